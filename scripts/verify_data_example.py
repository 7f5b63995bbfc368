#!/usr/bin/python3
"""
Signs a NumericData payload locally and submits it to a deployed AlloraAdapter.
Manual testing only.

    python scripts/verify_data_example.py --topic-id 1
"""

import time

import click
from web3 import Web3

from chaindeploy.backends.forge import ForgeBackend
from chaindeploy.config import Settings
from chaindeploy.deployer import Deployer
from chaindeploy.registry import ContractRegistration, ContractRegistry
from chaindeploy.signing import AdapterDomain, NumericData, numeric_data_digest, sign_digest

ADAPTER_NAME = "AlloraAdapter"
ADAPTER_VERSION = "1"

REGISTRY = ContractRegistry(
    [ContractRegistration(name="AlloraAdapter", source="src/AlloraAdapter.sol")]
)


@click.command()
@click.option("--topic-id", "-t", type=int, default=1, show_default=True)
@click.option("--numeric-value", "-v", type=int, default=123456789012345678, show_default=True)
def cli(topic_id, numeric_value):
    settings = Settings.from_env()
    backend = ForgeBackend(
        rpc_url=settings.rpc_url, private_key=settings.private_key, chain_id=settings.chain_id
    )
    deployer = Deployer.from_settings(REGISTRY, settings, backend=backend, verify=False)
    adapter = deployer.attach("AlloraAdapter")

    numeric_data = NumericData(
        topic_id=topic_id,
        timestamp=int(time.time()) - 60 * 5,
        numeric_value=numeric_value,
        extra_data=b"",
    )
    domain = AdapterDomain(
        name=ADAPTER_NAME,
        version=ADAPTER_VERSION,
        chain_id=settings.chain_id,
        verifying_contract=adapter.address,
    )

    local_digest = numeric_data_digest(numeric_data, domain)
    remote_digest = adapter.functions.getMessage(tuple(numeric_data)).call()
    print(f"local message:  {Web3.to_hex(local_digest)}")
    print(f"remote message: {Web3.to_hex(remote_digest)}")
    if bytes(local_digest) != bytes(remote_digest):
        raise click.ClickException("local message does not match remote. Check chain id.")

    signature = sign_digest(local_digest, settings.private_key)
    print(f"signature: {Web3.to_hex(signature)}")

    receipt = deployer.transact(
        adapter.functions.verifyData,
        {"signedNumericData": [(bytes(signature), tuple(numeric_data))], "extraData": b""},
    )
    print(f"tx receipt: {receipt}")


if __name__ == "__main__":
    cli()
