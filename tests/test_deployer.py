import builtins

import pytest
from eth_utils import to_checksum_address

from chaindeploy.deployer import Deployer
from chaindeploy.exceptions import (
    ConstructorArgumentsError,
    ContractCreationError,
    DependencyNotDeployedError,
    MalformedAddressError,
    RegistryError,
    VerificationError,
    VerificationTimeout,
)
from chaindeploy.record import InMemoryDeploymentRecord
from chaindeploy.registry import LinkedLibrary
from chaindeploy.retry import RetryPolicy
from chaindeploy.verification import VerificationStatus
from tests.conftest import ADDRESS_A, ADDRESS_B, AttachedContract, FakeBackend


def test_deploy_creates_and_records(deployer, backend, record):
    contract = deployer.deploy("A", [])

    assert contract.address == to_checksum_address(ADDRESS_A)
    assert record.get("A") == to_checksum_address(ADDRESS_A)
    assert backend.created == [("A", [], ())]


def test_deploy_is_idempotent(deployer, backend):
    first = deployer.deploy("A", [])
    second = deployer.deploy("A", [])

    assert first == second
    assert len(backend.created) == 1
    # verification submitted once; the second call only checks status
    assert len(backend.verify_requests) == 1


def test_rerun_reattaches_and_deploys_remainder(registry, backend, retry_policy):
    record = InMemoryDeploymentRecord().load()
    Deployer(registry, record, backend, retry_policy=retry_policy, autosign=True).deploy("A")

    rerun_record = InMemoryDeploymentRecord(initial=record.persisted).load()
    rerun = Deployer(registry, rerun_record, backend, retry_policy=retry_policy, autosign=True)
    rerun.deploy("A")
    rerun.deploy("C")

    assert [created[0] for created in backend.created] == ["A", "C"]


def test_missing_library_fails_without_create(deployer, backend, record):
    with pytest.raises(DependencyNotDeployedError, match="Library A not yet deployed"):
        deployer.deploy("B", [])
    assert backend.created == []
    assert record.get("B") is None


def test_library_linking_end_to_end(deployer, backend, record):
    deployer.deploy("A", [])
    assert record.as_dict() == {"A": to_checksum_address(ADDRESS_A)}

    deployer.deploy("B", [])

    name, args, libraries = backend.created[1]
    assert name == "B"
    assert libraries == (LinkedLibrary("src/A.sol", "A", to_checksum_address(ADDRESS_A)),)
    assert record.as_dict() == {
        "A": to_checksum_address(ADDRESS_A),
        "B": to_checksum_address(ADDRESS_B),
    }
    # libraries are passed to verification too
    assert backend.verify_requests[-1].libraries == libraries


def test_unknown_contract(deployer, backend):
    with pytest.raises(RegistryError):
        deployer.deploy("Unknown", [])
    assert backend.created == []


def test_create_failure_leaves_record_untouched(deployer, backend, record):
    backend.create_error = ContractCreationError("execution reverted")
    with pytest.raises(ContractCreationError):
        deployer.deploy("A", [])
    assert record.get("A") is None
    assert backend.verify_requests == []

    # re-running re-attempts creation
    backend.create_error = None
    deployer.deploy("A", [])
    assert len(backend.created) == 2
    assert record.get("A") == to_checksum_address(ADDRESS_A)


def test_malformed_address_is_fatal(registry, record, retry_policy):
    backend = FakeBackend(addresses={"A": "0x1234"})
    deployer = Deployer(registry, record, backend, retry_policy=retry_policy, autosign=True)
    with pytest.raises(MalformedAddressError):
        deployer.deploy("A", [])
    assert record.get("A") is None


def test_address_persisted_before_verification(registry, record):
    backend = FakeBackend(
        addresses={"A": ADDRESS_A}, verify_outcomes=[VerificationError("down")] * 5
    )
    deployer = Deployer(
        registry, record, backend, retry_policy=RetryPolicy(interval=0, max_attempts=2), autosign=True
    )
    with pytest.raises(VerificationTimeout):
        deployer.deploy("A", [])
    assert record.persisted == {"A": to_checksum_address(ADDRESS_A)}

    # a later run re-polls verification without creating again
    backend.verify_outcomes = []
    contract = deployer.deploy("A", [])
    assert contract.address == to_checksum_address(ADDRESS_A)
    assert len(backend.created) == 1
    assert len(backend.verify_requests) == 3


def test_already_verified_contract_is_not_resubmitted(registry, retry_policy):
    backend = FakeBackend(addresses={"A": ADDRESS_A}, verified=[ADDRESS_A])
    record = InMemoryDeploymentRecord(initial={"A": ADDRESS_A}).load()
    deployer = Deployer(registry, record, backend, retry_policy=retry_policy, autosign=True)

    deployer.deploy("A", [])

    assert backend.created == []
    assert backend.verify_requests == []
    assert len(backend.check_requests) == 1


def test_verification_disabled(registry, record, retry_policy):
    backend = FakeBackend(addresses={"A": ADDRESS_A}, enabled=False)
    deployer = Deployer(registry, record, backend, retry_policy=retry_policy, autosign=True)
    deployer.deploy("A", [])
    assert backend.check_requests == []
    assert backend.verify_requests == []


def test_verify_flag_off(registry, record, backend, retry_policy):
    deployer = Deployer(
        registry, record, backend, verify=False, retry_policy=retry_policy, autosign=True
    )
    deployer.deploy("A", [])
    assert not deployer.verification_enabled
    assert backend.verify_requests == []


def test_constructor_args_checked_before_create(deployer, backend):
    backend.abi_inputs["A"] = [{"name": "admin", "type": "address"}]
    with pytest.raises(ConstructorArgumentsError):
        deployer.deploy("A", [])
    with pytest.raises(ConstructorArgumentsError):
        deployer.deploy("A", ["not an address"])
    assert backend.created == []


def test_constructor_args_encoded_for_verification(deployer, backend):
    admin = to_checksum_address(ADDRESS_B)
    backend.abi_inputs["A"] = [{"name": "admin", "type": "address"}]
    deployer.deploy("A", [admin])
    assert backend.verify_requests[0].constructor_args_encoded == "00" * 12 + "bb" * 20


def test_verify_deployed(deployer, backend):
    with pytest.raises(DependencyNotDeployedError):
        deployer.verify_deployed("A")
    deployer.deploy("A")
    assert deployer.verify_deployed("A") == VerificationStatus.ALREADY_VERIFIED


def test_attach_never_deploys(deployer, backend, record):
    with pytest.raises(DependencyNotDeployedError):
        deployer.attach("A")
    assert backend.created == []
    assert record.as_dict() == {}

    deployer.deploy("A")
    assert deployer.attach("A") == AttachedContract("A", to_checksum_address(ADDRESS_A))
    assert len(backend.created) == 1


def test_struct_mapping_reordered_before_create(deployer, backend):
    backend.abi_inputs["A"] = [
        {
            "name": "args",
            "type": "tuple",
            "components": [
                {"name": "admin", "type": "address"},
                {"name": "aggregator", "type": "address"},
            ],
        }
    ]
    admin, aggregator = to_checksum_address(ADDRESS_A), to_checksum_address(ADDRESS_B)
    deployer.deploy("A", [{"aggregator": aggregator, "admin": admin}])
    assert backend.created[0][1] == [(admin, aggregator)]


def test_clear(deployer, record):
    deployer.deploy("A")
    deployer.clear()
    assert deployer.get_address("A") is None
    assert record.persisted == {}


def test_call_skips_when_already_complete(deployer):
    submitted = []
    result = deployer.call("set admin", lambda: submitted.append(1), lambda: True)
    assert result is None
    assert submitted == []


def test_call_submits_once_when_incomplete(deployer):
    submitted = []

    def operation():
        submitted.append(1)
        return "receipt"

    result = deployer.call("set admin", operation, lambda: False)
    assert result == "receipt"
    assert submitted == [1]


def test_transact_delegates_to_backend(deployer, backend):
    receipt = deployer.transact(lambda x: f"receipt-{x}", 7)
    assert receipt == "receipt-7"
    assert len(backend.transactions) == 1


def test_interactive_abort(registry, record, backend, retry_policy, monkeypatch):
    monkeypatch.setattr(builtins, "input", lambda prompt: "n")
    deployer = Deployer(registry, record, backend, retry_policy=retry_policy)
    with pytest.raises(SystemExit):
        deployer.deploy("A", [])
    assert backend.created == []


def test_interactive_confirm(registry, record, backend, retry_policy, monkeypatch):
    prompts = []

    def answer(prompt):
        prompts.append(prompt)
        return "y"

    monkeypatch.setattr(builtins, "input", answer)
    deployer = Deployer(registry, record, backend, retry_policy=retry_policy)
    deployer.deploy("A", ["0x" + "00" * 20])
    assert prompts == ["Deploy A Y/N? ", "Zero Address detected for deployment parameter; Continue? Y/N? "]
    assert len(backend.created) == 1


def test_progress_output(deployer, capsys):
    deployer.deploy("A")
    deployer.deploy("A")
    output = capsys.readouterr().out
    assert "Deploying A..." in output
    assert f"Deployed A to {to_checksum_address(ADDRESS_A)}" in output
    assert "Verifying A" in output
    assert "A verified" in output
    assert f"A already deployed at {to_checksum_address(ADDRESS_A)}" in output
    assert "A already verified" in output
