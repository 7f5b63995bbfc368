from typing import Any, NamedTuple

import pytest
from eth_utils import to_checksum_address

from chaindeploy.backends.base import DeployBackend
from chaindeploy.deployer import Deployer
from chaindeploy.record import InMemoryDeploymentRecord
from chaindeploy.registry import ContractRegistration, ContractRegistry
from chaindeploy.retry import RetryPolicy
from chaindeploy.verification import VerificationStatus

# Common constants
CHAIN_ID = 11155111
ADDRESS_A = "0x" + "aa" * 20
ADDRESS_B = "0x" + "bb" * 20
ADDRESS_C = "0x" + "cc" * 20
SIGNER = to_checksum_address("0x" + "11" * 20)
DUMMY_PRIVATE_KEY = "0x0123456789012345678901234567890123456789012345678901234567890123"


class AttachedContract(NamedTuple):
    name: str
    address: str


class FakeBackend(DeployBackend):
    """Records every collaborator invocation instead of touching a chain."""

    def __init__(self, addresses=None, verify_outcomes=None, verified=None, enabled=True):
        self.chain_id = CHAIN_ID
        self.addresses = dict(addresses or {})
        self.verify_outcomes = list(verify_outcomes or [])
        self.verified = set(to_checksum_address(a) for a in (verified or []))
        self.enabled = enabled
        self.abi_inputs = dict()
        self.create_error = None
        self.created = list()
        self.verify_requests = list()
        self.check_requests = list()
        self.transactions = list()

    @property
    def signer_address(self) -> str:
        return SIGNER

    @property
    def verification_enabled(self) -> bool:
        return self.enabled

    def create(self, registration, constructor_args, libraries) -> str:
        self.created.append((registration.name, list(constructor_args), tuple(libraries)))
        if self.create_error is not None:
            raise self.create_error
        return self.addresses[registration.name]

    def verify(self, request) -> VerificationStatus:
        self.verify_requests.append(request)
        outcome = self.verify_outcomes.pop(0) if self.verify_outcomes else VerificationStatus.VERIFIED
        if isinstance(outcome, Exception):
            raise outcome
        if outcome.is_success:
            self.verified.add(request.address)
        return outcome

    def check_verified(self, request) -> bool:
        self.check_requests.append(request)
        return request.address in self.verified

    def attach(self, registration, address) -> Any:
        return AttachedContract(registration.name, address)

    def transact(self, method, *args) -> Any:
        self.transactions.append((method, args))
        return method(*args)

    def constructor_abi_inputs(self, registration):
        return self.abi_inputs.get(registration.name)


# Fixtures
@pytest.fixture
def registry():
    return ContractRegistry(
        [
            ContractRegistration(name="A", source="src/A.sol"),
            ContractRegistration(name="B", source="src/B.sol", libraries=("A",)),
            ContractRegistration(name="C", source="src/C.sol"),
        ]
    )


@pytest.fixture
def backend():
    return FakeBackend(addresses={"A": ADDRESS_A, "B": ADDRESS_B, "C": ADDRESS_C})


@pytest.fixture
def record():
    return InMemoryDeploymentRecord().load()


@pytest.fixture
def retry_policy():
    return RetryPolicy(interval=0)


@pytest.fixture
def deployer(registry, record, backend, retry_policy):
    return Deployer(
        registry=registry,
        record=record,
        backend=backend,
        retry_policy=retry_policy,
        autosign=True,
    )
