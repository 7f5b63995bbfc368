import json
from pathlib import Path
from typing import Any, Optional

import yaml
from eth_typing import ChecksumAddress
from eth_utils import is_hex_address, to_checksum_address

from chaindeploy.exceptions import MalformedAddressError


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> Any:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def is_address(value: Any) -> bool:
    """Returns True for a 0x-prefixed, 40 hex character string."""
    return isinstance(value, str) and value.startswith("0x") and is_hex_address(value)


def validate_address(value: Any, context: Optional[str] = None) -> ChecksumAddress:
    """Returns the checksummed form of an address or raises MalformedAddressError."""
    if not is_address(value):
        where = f" for {context}" if context else ""
        raise MalformedAddressError(f"Invalid address{where}: {value!r}")
    return to_checksum_address(value)
