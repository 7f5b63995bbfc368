import sys
from typing import Any, Sequence

ZERO_ADDRESS = "0x" + "0" * 40


def _ask(question: str) -> None:
    """Exits the process unless the user answers anything other than N."""
    answer = input(question)
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        sys.exit(-1)


def _continue() -> None:
    _ask("Continue Y/N? ")


def _confirm_resolution(constructor_args: Sequence[Any], contract_name: str) -> None:
    """Shows the resolved constructor arguments of a contract and asks to deploy it."""
    if not constructor_args:
        print(f"\n(i) No constructor arguments for {contract_name}")
    else:
        print(f"\nConstructor arguments for {contract_name}")
        for position, value in enumerate(constructor_args):
            print(f"\t[{position}]={value}")

    _ask(f"Deploy {contract_name} Y/N? ")
    if any(isinstance(value, str) and value.lower() == ZERO_ADDRESS for value in constructor_args):
        _ask("Zero Address detected for deployment parameter; Continue? Y/N? ")
