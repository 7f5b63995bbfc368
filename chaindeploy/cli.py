from contextlib import contextmanager
from typing import Iterator, Optional

import click

from chaindeploy.backends.base import DeployBackend
from chaindeploy.config import Settings
from chaindeploy.deployer import Deployer
from chaindeploy.exceptions import DeploymentError
from chaindeploy.options import (
    autosign_option,
    backend_option,
    contract_names_option,
    max_verify_attempts_option,
    network_option,
    plan_argument,
    verify_option,
    verify_timeout_option,
)
from chaindeploy.params import DeploymentPlan
from chaindeploy.record import JSONDeploymentRecord


@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except DeploymentError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")


@contextmanager
def _connect_backend(
    backend: str, network: Optional[str], settings: Settings, verify: bool
) -> Iterator[Optional[DeployBackend]]:
    """Yields the backend to deploy with; None selects the default forge backend."""
    if backend == "forge":
        yield None
        return
    if not network:
        raise click.UsageError("--network is required with the ape backend")
    from chaindeploy.backends.ape import ape_backend

    with ape_backend(network, chain_id=settings.chain_id, verify=verify) as ape:
        yield ape


def _with_retry_bounds(
    settings: Settings, max_verify_attempts: Optional[int], verify_timeout: Optional[float]
) -> Settings:
    if max_verify_attempts is not None:
        settings = settings._replace(verify_max_attempts=max_verify_attempts)
    if verify_timeout is not None:
        settings = settings._replace(verify_timeout=verify_timeout)
    return settings


@click.group()
def cli():
    """Idempotent contract deployment and verification."""


@cli.command()
@plan_argument
@backend_option
@network_option
@autosign_option
@verify_option
@max_verify_attempts_option
@verify_timeout_option
def deploy(
    plan_filepath,
    backend,
    network,
    autosign,
    verify,
    max_verify_attempts,
    verify_timeout,
):
    """Deploy (or re-attach to) every contract of a deployment plan."""
    with _handle_errors():
        settings = _with_retry_bounds(Settings.from_env(), max_verify_attempts, verify_timeout)
        plan = DeploymentPlan.from_yaml(plan_filepath)
        plan.check_chain_id(settings.chain_id)
        with _connect_backend(backend, network, settings, verify) as deploy_backend:
            deployer = Deployer.from_settings(
                plan.registry,
                settings,
                backend=deploy_backend,
                verify=verify,
                autosign=autosign,
            )
            plan.execute(deployer)
            print("\nDeployments:")
            for name, address in deployer.addresses().items():
                print(f"\t{name}: {address}")


@cli.command()
@plan_argument
@contract_names_option
@backend_option
@network_option
@max_verify_attempts_option
@verify_timeout_option
def verify(plan_filepath, contract_names, backend, network, max_verify_attempts, verify_timeout):
    """Verify recorded contracts of a deployment plan on the block explorer."""
    with _handle_errors():
        settings = _with_retry_bounds(Settings.from_env(), max_verify_attempts, verify_timeout)
        plan = DeploymentPlan.from_yaml(plan_filepath)
        plan.check_chain_id(settings.chain_id)
        with _connect_backend(backend, network, settings, verify=True) as deploy_backend:
            deployer = Deployer.from_settings(
                plan.registry, settings, backend=deploy_backend, autosign=True
            )
            if not deployer.verification_enabled:
                raise click.ClickException("Verification is not configured (ETHERSCAN_API_KEY).")
            names = contract_names or [
                name for name in plan.contract_names() if deployer.get_address(name)
            ]
            for name in names:
                deployer.verify_deployed(name, plan.constructor_args(name, deployer))


@cli.command()
def status():
    """Show the deployment record of the configured environment."""
    with _handle_errors():
        settings = Settings.from_env()
        record = JSONDeploymentRecord(settings.record_filepath).load()
        print(f"Record: {record}")
        if not len(record):
            print("(i) No contracts deployed")
        for name, address in record.as_dict().items():
            print(f"\t{name}: {address}")


@cli.command()
@click.option("--yes", "-y", is_flag=True, default=False, help="Do not ask for confirmation.")
def clear(yes):
    """Wipe the deployment record of the configured environment."""
    with _handle_errors():
        settings = Settings.from_env()
        record = JSONDeploymentRecord(settings.record_filepath).load()
        if not yes:
            click.confirm(f"Clear {len(record)} recorded deployment(s) in {record}?", abort=True)
        record.clear()
        print(f"(i) Cleared deployment record {record}")


if __name__ == "__main__":
    cli()
