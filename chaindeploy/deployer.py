from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from chaindeploy.backends.base import DeployBackend
from chaindeploy.confirm import _confirm_resolution, _continue
from chaindeploy.config import Settings
from chaindeploy.constants import FORGE_VERIFY_TIMEOUT
from chaindeploy.exceptions import DependencyNotDeployedError
from chaindeploy.explorer import ExplorerClient
from chaindeploy.record import DeploymentRecord, JSONDeploymentRecord
from chaindeploy.registry import ContractName, ContractRegistration, ContractRegistry, LinkedLibrary
from chaindeploy.retry import CancellationToken, RetryPolicy
from chaindeploy.utils import validate_address
from chaindeploy.verification import (
    VerificationPoller,
    VerificationRequest,
    VerificationStatus,
)


class Transactor:
    """
    Represents a signing backend plus annotated, optionally confirmed transaction execution.
    """

    def __init__(self, backend: DeployBackend, autosign: bool = False):
        self.backend = backend
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign

    def get_account(self) -> str:
        """Returns the transactor address."""
        return self.backend.signer_address

    def transact(self, method: Any, *args) -> Any:
        base_message = f"\nTransacting {method}"
        if args:
            pretty_args = "\n\t".join(str(arg) for arg in args)
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()
        return self.backend.transact(method, *args)

    def call(
        self,
        label: str,
        operation: Callable[[], Any],
        already_complete: Callable[[], bool],
    ) -> Optional[Any]:
        """
        Submits `operation` unless `already_complete` reports that its effect
        is already present on chain. Returns the operation's result, or None
        if nothing was submitted.
        """
        if already_complete():
            print(f"(i) {label} already complete")
            return None
        print(f"(i) Executing {label}...")
        result = operation()
        print(f"(i) {label} complete")
        return result


class Deployer(Transactor):
    """
    Idempotent deployment of a registry of contracts: each contract is created
    at most once per deployment record, its address is persisted before
    verification is attempted, and verification is driven to completion.
    """

    def __init__(
        self,
        registry: ContractRegistry,
        record: DeploymentRecord,
        backend: DeployBackend,
        verify: bool = True,
        retry_policy: Optional[RetryPolicy] = None,
        cancellation: Optional[CancellationToken] = None,
        autosign: bool = False,
    ):
        super().__init__(backend=backend, autosign=autosign)
        self.registry = registry
        self.record = record
        self.verify = verify
        self.poller = VerificationPoller(
            backend=backend, policy=retry_policy, cancellation=cancellation
        )

    @classmethod
    def from_settings(
        cls,
        registry: ContractRegistry,
        settings: Settings,
        backend: Optional[DeployBackend] = None,
        *args,
        **kwargs,
    ) -> "Deployer":
        """Builds a deployer backed by the JSON record and forge for the configured environment."""
        if backend is None:
            from chaindeploy.backends.forge import ForgeBackend

            explorer = None
            if settings.etherscan_api_key:
                explorer = ExplorerClient(
                    api_key=settings.etherscan_api_key,
                    chain_id=settings.chain_id,
                    api_url=settings.explorer_api_url,
                )
            verify_timeout = FORGE_VERIFY_TIMEOUT
            if settings.verify_timeout:
                verify_timeout = min(verify_timeout, settings.verify_timeout)
            backend = ForgeBackend(
                rpc_url=settings.rpc_url,
                private_key=settings.private_key,
                chain_id=settings.chain_id,
                explorer=explorer,
                verify_timeout=verify_timeout,
            )
        record = JSONDeploymentRecord(settings.record_filepath).load()
        kwargs.setdefault("retry_policy", settings.retry_policy())
        instance = cls(registry, record, backend, *args, **kwargs)
        instance._print_deployment_info(settings)
        return instance

    @property
    def verification_enabled(self) -> bool:
        return self.verify and self.backend.verification_enabled

    def get_address(self, name: ContractName) -> Optional[str]:
        return self.record.get(name)

    def addresses(self) -> Dict[ContractName, str]:
        return self.record.as_dict()

    def clear(self) -> None:
        """Forgets every recorded deployment; the next run deploys from scratch."""
        self.record.clear()
        print(f"(i) Cleared deployment record {self.record}")

    def _resolve_libraries(self, registration: ContractRegistration) -> Tuple[LinkedLibrary, ...]:
        libraries = list()
        for library_name in registration.libraries:
            address = self.record.get(library_name)
            if address is None:
                raise DependencyNotDeployedError(
                    f"Library {library_name} not yet deployed for contract {registration.source_id}"
                )
            library = self.registry[library_name]
            libraries.append(
                LinkedLibrary(source_path=library.source_path, name=library_name, address=address)
            )
        return tuple(libraries)

    def _verification_request(
        self, registration: ContractRegistration, address: str, constructor_args: Sequence[Any]
    ) -> VerificationRequest:
        return VerificationRequest(
            address=address,
            contract_id=registration.source_id,
            constructor_args_encoded=self.backend.encode_constructor_args(
                registration, constructor_args
            ),
            chain_id=self.backend.chain_id,
            libraries=self._resolve_libraries(registration),
        )

    def _verify(
        self, registration: ContractRegistration, address: str, constructor_args: Sequence[Any]
    ) -> Optional[VerificationStatus]:
        if not self.verification_enabled:
            return None
        request = self._verification_request(registration, address, constructor_args)
        return self.poller.poll(request, label=registration.name)

    def deploy(self, name: ContractName, constructor_args: Sequence[Any] = ()) -> Any:
        """
        Returns a handle to the deployed contract `name`, creating it first if
        the record has no address for it. Verification is retried on every
        call until the explorer confirms it.
        """
        registration = self.registry[name]
        constructor_args = list(constructor_args)

        existing_address = self.record.get(name)
        if existing_address is not None:
            print(f"(i) {name} already deployed at {existing_address}")
            self._verify(registration, existing_address, constructor_args)
            return self.backend.attach(registration, existing_address)

        libraries = self._resolve_libraries(registration)
        constructor_args = self.backend.validate_constructor_args(registration, constructor_args)
        if not self._autosign:
            _confirm_resolution(constructor_args, name)

        print(f"(i) Deploying {name}...")
        address = self.backend.create(registration, constructor_args, libraries)
        address = validate_address(address, context=name)
        self.record.set(name, address)
        print(f"(i) Deployed {name} to {address}")

        self._verify(registration, address, constructor_args)
        return self.backend.attach(registration, address)

    def attach(self, name: ContractName) -> Any:
        """Returns a handle to the recorded contract `name`; never deploys."""
        registration = self.registry[name]
        address = self.record.get(name)
        if address is None:
            raise DependencyNotDeployedError(f"{name} is not deployed in {self.record}")
        return self.backend.attach(registration, address)

    def verify_deployed(
        self, name: ContractName, constructor_args: Sequence[Any] = ()
    ) -> Optional[VerificationStatus]:
        """Drives verification of an already recorded contract without deploying anything."""
        registration = self.registry[name]
        address = self.record.get(name)
        if address is None:
            raise DependencyNotDeployedError(f"{name} is not deployed in {self.record}")
        return self._verify(registration, address, list(constructor_args))

    def _print_deployment_info(self, settings: Settings) -> None:
        print(
            f"Account: {self.get_account()}",
            f"Deployment: {settings.deployment_name}",
            f"Record: {self.record}",
            f"Verify: {self.verification_enabled}",
            f"Chain ID: {settings.chain_id}",
            f"RPC: {settings.rpc_url}",
            sep="\n",
        )
