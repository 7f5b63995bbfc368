#!/usr/bin/python3
from pathlib import Path

import click

from chaindeploy.constants import FORGE_OUT_DIR
from chaindeploy.signing import iter_artifact_error_selectors


@click.command()
@click.option(
    "--out-dir",
    "-o",
    type=click.Path(file_okay=False, exists=True, path_type=Path),
    default=FORGE_OUT_DIR,
    help="forge build output directory",
)
def cli(out_dir):
    """List the 4-byte selectors of every custom error in the build artifacts."""
    for _, name, selector in iter_artifact_error_selectors(out_dir):
        print(f"{name} {selector}")


if __name__ == "__main__":
    cli()
