import json

import pytest
from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import keccak, to_checksum_address

from chaindeploy.signing import (
    AdapterDomain,
    NumericData,
    domain_separator,
    error_selectors,
    iter_artifact_error_selectors,
    numeric_data_digest,
    numeric_data_hash,
    recover_signer,
    sign_digest,
)
from tests.conftest import ADDRESS_C, CHAIN_ID, DUMMY_PRIVATE_KEY

DOMAIN = AdapterDomain(
    name="AlloraAdapter",
    version="1",
    chain_id=CHAIN_ID,
    verifying_contract=ADDRESS_C,
)

NUMERIC_DATA = NumericData(topic_id=1, timestamp=1700000000, numeric_value=123456789, extra_data=b"\x01\x02")

ERRORS_ABI = [
    {"type": "error", "name": "OwnableUnauthorizedAccount", "inputs": [{"name": "account", "type": "address"}]},
    {
        "type": "error",
        "name": "AlloraAdapterV2InvalidData",
        "inputs": [
            {
                "name": "data",
                "type": "tuple",
                "components": [{"type": "uint256"}, {"type": "bytes"}],
            }
        ],
    },
    {"type": "function", "name": "owner", "inputs": [], "outputs": [{"type": "address"}]},
]


@pytest.fixture
def out_dir(tmp_path):
    artifact_dir = tmp_path / "out" / "AlloraAdapter.sol"
    artifact_dir.mkdir(parents=True)
    (artifact_dir / "AlloraAdapter.json").write_text(json.dumps({"abi": ERRORS_ABI}))
    (artifact_dir / "Empty.json").write_text(json.dumps({"abi": []}))
    (tmp_path / "out" / "build-info.txt").write_text("not an artifact")
    return tmp_path / "out"


def test_domain_separator_matches_eip712():
    typed_data = {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Ping": [{"name": "value", "type": "uint256"}],
        },
        "primaryType": "Ping",
        "domain": {
            "name": DOMAIN.name,
            "version": DOMAIN.version,
            "chainId": DOMAIN.chain_id,
            "verifyingContract": to_checksum_address(DOMAIN.verifying_contract),
        },
        "message": {"value": 1},
    }
    assert encode_typed_data(full_message=typed_data).header == domain_separator(DOMAIN)


def test_numeric_data_hash_encodes_extra_data_unhashed():
    expected = keccak(
        encode(
            ["bytes32", "uint256", "uint256", "uint256", "bytes"],
            [
                keccak(text="NumericData(uint256 topicId,uint256 timestamp,uint256 numericValue,bytes extraData)"),
                1,
                1700000000,
                123456789,
                b"\x01\x02",
            ],
        )
    )
    assert numeric_data_hash(NUMERIC_DATA) == expected


def test_digest():
    digest = numeric_data_digest(NUMERIC_DATA, DOMAIN)
    assert len(digest) == 32
    assert digest == keccak(b"\x19\x01" + domain_separator(DOMAIN) + numeric_data_hash(NUMERIC_DATA))
    assert digest != numeric_data_digest(NUMERIC_DATA._replace(numeric_value=1), DOMAIN)
    assert digest != numeric_data_digest(NUMERIC_DATA, DOMAIN._replace(chain_id=1))


def test_sign_and_recover():
    digest = numeric_data_digest(NUMERIC_DATA, DOMAIN)
    signature = sign_digest(digest, DUMMY_PRIVATE_KEY)
    assert len(signature) == 65
    assert recover_signer(digest, signature) == Account.from_key(DUMMY_PRIVATE_KEY).address


def test_error_selectors():
    selectors = dict(error_selectors(ERRORS_ABI))
    assert set(selectors) == {"OwnableUnauthorizedAccount", "AlloraAdapterV2InvalidData"}
    assert selectors["OwnableUnauthorizedAccount"] == "0x118cdaa7"
    expected = "0x" + keccak(text="AlloraAdapterV2InvalidData((uint256,bytes))")[:4].hex()
    assert selectors["AlloraAdapterV2InvalidData"] == expected


def test_iter_artifact_error_selectors(out_dir, capsys):
    results = list(iter_artifact_error_selectors(out_dir))
    assert [(path.name, name) for path, name, _ in results] == [
        ("AlloraAdapter.json", "OwnableUnauthorizedAccount"),
        ("AlloraAdapter.json", "AlloraAdapterV2InvalidData"),
    ]
    output = capsys.readouterr().out
    assert "Skipping non json file" in output
    assert "No abi found" in output
