"""
Helpers for manually exercising signed-data adapters: the EIP-712 digest of a
``NumericData`` payload, its personal-message signature, and the 4-byte
selectors of custom errors in build artifacts.

The struct hash ABI-encodes ``bytes extraData`` as-is (it is not hashed first),
matching what the adapter contract computes in ``getMessage``.
"""

import json
from pathlib import Path
from typing import Iterator, List, NamedTuple, Tuple

from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address
from eth_utils.abi import collapse_if_tuple
from hexbytes import HexBytes

EIP712_DOMAIN_TYPE = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
NUMERIC_DATA_TYPE = (
    "NumericData(uint256 topicId,uint256 timestamp,uint256 numericValue,bytes extraData)"
)

EIP712_DOMAIN_TYPEHASH = keccak(text=EIP712_DOMAIN_TYPE)
NUMERIC_DATA_TYPEHASH = keccak(text=NUMERIC_DATA_TYPE)


class NumericData(NamedTuple):
    topic_id: int
    timestamp: int
    numeric_value: int
    extra_data: bytes = b""


class AdapterDomain(NamedTuple):
    name: str
    version: str
    chain_id: int
    verifying_contract: str


def domain_separator(domain: AdapterDomain) -> bytes:
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                EIP712_DOMAIN_TYPEHASH,
                keccak(text=domain.name),
                keccak(text=str(domain.version)),
                domain.chain_id,
                to_checksum_address(domain.verifying_contract),
            ],
        )
    )


def numeric_data_hash(numeric_data: NumericData) -> bytes:
    return keccak(
        encode(
            ["bytes32", "uint256", "uint256", "uint256", "bytes"],
            [
                NUMERIC_DATA_TYPEHASH,
                numeric_data.topic_id,
                numeric_data.timestamp,
                numeric_data.numeric_value,
                bytes(numeric_data.extra_data),
            ],
        )
    )


def numeric_data_digest(numeric_data: NumericData, domain: AdapterDomain) -> HexBytes:
    """Returns the message the adapter expects to be signed for `numeric_data`."""
    return HexBytes(
        keccak(b"\x19\x01" + domain_separator(domain) + numeric_data_hash(numeric_data))
    )


def sign_digest(digest: bytes, private_key: str) -> HexBytes:
    """Signs the digest bytes as an EIP-191 personal message."""
    signed = Account.sign_message(encode_defunct(primitive=bytes(digest)), private_key=private_key)
    return HexBytes(signed.signature)


def recover_signer(digest: bytes, signature: bytes) -> str:
    return Account.recover_message(encode_defunct(primitive=bytes(digest)), signature=signature)


def error_selectors(abi: List[dict]) -> List[Tuple[str, str]]:
    """Returns ``(ErrorName, 0xselector)`` for every custom error in an ABI."""
    selectors = list()
    for entry in abi:
        if entry.get("type") != "error":
            continue
        argument_types = ",".join(collapse_if_tuple(i) for i in entry.get("inputs", []))
        signature = f"{entry['name']}({argument_types})"
        selector = "0x" + function_signature_to_4byte_selector(signature).hex()
        selectors.append((entry["name"], selector))
    return selectors


def iter_artifact_error_selectors(out_dir: Path) -> Iterator[Tuple[Path, str, str]]:
    """Yields ``(artifact, ErrorName, 0xselector)`` for every forge artifact under `out_dir`."""
    for filepath in sorted(Path(out_dir).rglob("*")):
        if not filepath.is_file():
            continue
        if filepath.suffix != ".json":
            print(f"Skipping non json file {filepath}")
            continue
        with open(filepath, "r") as file:
            artifact = json.load(file)
        abi = artifact.get("abi") if isinstance(artifact, dict) else None
        if not abi:
            print(f"No abi found for {filepath}, skipping")
            continue
        for name, selector in error_selectors(abi):
            yield filepath, name, selector
