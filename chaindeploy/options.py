from pathlib import Path

import click

from chaindeploy.types import MinFloat, MinInt

BACKENDS = ["forge", "ape"]

plan_argument = click.argument(
    "plan_filepath",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
)

backend_option = click.option(
    "--backend",
    "-b",
    help="Deployment backend.",
    type=click.Choice(BACKENDS),
    default="forge",
    show_default=True,
)

network_option = click.option(
    "--network",
    "-n",
    help="ape network choice (ape backend only), e.g. ethereum:sepolia:infura",
    type=click.STRING,
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without asking for confirmation.",
    is_flag=True,
    default=False,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Verify deployed contracts on the block explorer.",
    default=True,
    show_default=True,
)

max_verify_attempts_option = click.option(
    "--max-verify-attempts",
    help="Give up verification after this many submissions (default: unbounded).",
    type=MinInt(1),
    required=False,
)

verify_timeout_option = click.option(
    "--verify-timeout",
    help="Give up verification after this many seconds (default: unbounded).",
    type=MinFloat(0),
    required=False,
)

contract_names_option = click.option(
    "--contract-name",
    "-c",
    "contract_names",
    help="Contract to verify; all recorded plan contracts when omitted.",
    type=click.STRING,
    multiple=True,
)
