"""
Backend built on ape: the selected ape account deploys, and the network's
explorer plugin (e.g. ape-etherscan) publishes and serves verified sources.
Contracts are resolved from the ape project and its dependencies by name.
"""

from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from ape import networks, project
from ape.api import AccountAPI, ExplorerAPI
from ape.cli.choices import select_account
from ape.contracts import ContractContainer
from ape.exceptions import ApeException

from chaindeploy.backends.base import ABIInput, DeployBackend
from chaindeploy.exceptions import (
    ConfigurationError,
    ContractCreationError,
    TransactionFailedError,
    VerificationError,
)
from chaindeploy.registry import ContractRegistration, LinkedLibrary
from chaindeploy.verification import VerificationRequest, VerificationStatus


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


class ApeBackend(DeployBackend):
    def __init__(
        self,
        account: AccountAPI,
        chain_id: int,
        explorer: Optional[ExplorerAPI] = None,
    ):
        self.account = account
        self.chain_id = chain_id
        self.explorer = explorer

    @property
    def signer_address(self) -> str:
        return self.account.address

    @property
    def verification_enabled(self) -> bool:
        return self.explorer is not None

    def constructor_abi_inputs(self, registration: ContractRegistration) -> Optional[List[ABIInput]]:
        container = get_contract_container(registration.contract_type)
        return [
            abi_input.model_dump(mode="json", by_alias=True, exclude_none=True)
            for abi_input in container.constructor.abi.inputs
        ]

    def create(
        self,
        registration: ContractRegistration,
        constructor_args: Sequence[Any],
        libraries: Tuple[LinkedLibrary, ...],
    ) -> str:
        if libraries:
            raise ContractCreationError(
                f"{registration.name} links libraries "
                f"({', '.join(library.name for library in libraries)}); "
                "library linking requires the forge backend."
            )
        container = get_contract_container(registration.contract_type)
        try:
            instance = self.account.deploy(container, *constructor_args, publish=False)
        except ApeException as e:
            raise ContractCreationError(f"Deployment of {registration.name} failed: {e}") from e
        return instance.address

    def verify(self, request: VerificationRequest) -> VerificationStatus:
        if self.explorer is None:
            raise VerificationError("No explorer available for this network")
        try:
            self.explorer.publish_contract(request.address)
        except ApeException as e:
            if "already verified" in str(e).lower():
                return VerificationStatus.ALREADY_VERIFIED
            raise VerificationError(str(e)) from e
        return VerificationStatus.VERIFIED

    def check_verified(self, request: VerificationRequest) -> bool:
        if self.explorer is None:
            return False
        try:
            return self.explorer.get_contract_type(request.address) is not None
        except ApeException as e:
            raise VerificationError(str(e)) from e

    def attach(self, registration: ContractRegistration, address: str) -> Any:
        if registration.connect is not None:
            return registration.connect(address, self.account)
        return get_contract_container(registration.contract_type).at(address)

    def transact(self, method: Any, *args) -> Any:
        try:
            receipt = method(*args, sender=self.account)
        except ApeException as e:
            raise TransactionFailedError(str(e)) from e
        if receipt.failed:
            raise TransactionFailedError(f"Transaction {receipt.txn_hash} failed")
        return receipt


@contextmanager
def ape_backend(network_choice: str, chain_id: int, verify: bool = True) -> Iterator[ApeBackend]:
    """Connects to an ape network and yields a backend for the selected account."""
    with networks.parse_network_choice(network_choice) as provider:
        provider_chain_id = provider.network.chain_id
        if provider_chain_id != chain_id:
            raise ConfigurationError(
                f"CHAIN_ID ({chain_id}) does not match "
                f"chain_id of current network ({provider_chain_id})."
            )
        explorer = provider.network.explorer if verify else None
        yield ApeBackend(account=select_account(), chain_id=chain_id, explorer=explorer)
