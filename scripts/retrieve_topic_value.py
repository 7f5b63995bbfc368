#!/usr/bin/python3
"""
Reads the most recent value of a topic from the recorded AlloraAdapter.
Read-only: nothing is deployed or signed.

    python scripts/retrieve_topic_value.py --topic-id 1
"""

import click

from chaindeploy.backends.forge import ForgeBackend
from chaindeploy.config import Settings
from chaindeploy.deployer import Deployer
from chaindeploy.record import JSONDeploymentRecord
from chaindeploy.registry import ContractRegistration, ContractRegistry

REGISTRY = ContractRegistry(
    [ContractRegistration(name="AlloraAdapter", source="src/AlloraAdapter.sol")]
)


@click.command()
@click.option("--topic-id", "-t", type=int, default=1, show_default=True)
def cli(topic_id):
    settings = Settings.from_env()
    if not settings.record_filepath.exists():
        raise click.ClickException(f"No deployment record at {settings.record_filepath}")
    record = JSONDeploymentRecord(settings.record_filepath).load()
    backend = ForgeBackend(
        rpc_url=settings.rpc_url, private_key=settings.private_key, chain_id=settings.chain_id
    )
    deployer = Deployer(REGISTRY, record, backend, verify=False)
    adapter = deployer.attach("AlloraAdapter")

    value, timestamp = adapter.functions.getTopicValue(topic_id, b"").call()
    print(f"value: {value}")
    print(f"timestamp: {timestamp}")


if __name__ == "__main__":
    cli()
