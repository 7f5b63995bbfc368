from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import encode, is_encodable
from eth_utils.abi import collapse_if_tuple

from chaindeploy.exceptions import ConstructorArgumentsError
from chaindeploy.registry import ContractRegistration, LinkedLibrary
from chaindeploy.verification import VerificationRequest, VerificationStatus

ABIInput = Dict[str, Any]


def _normalize_arg(abi_input: ABIInput, value: Any) -> Any:
    """Converts struct values given as mappings into tuples ordered by ABI components."""
    abi_type = abi_input["type"]
    components = abi_input.get("components") or []
    if abi_type.startswith("tuple") and abi_type.endswith("]"):
        element = dict(abi_input, type=abi_type[: abi_type.rindex("[")])
        return [_normalize_arg(element, item) for item in value]
    if abi_type == "tuple":
        if isinstance(value, dict):
            try:
                value = [value[component["name"]] for component in components]
            except KeyError as e:
                raise ConstructorArgumentsError(f"Struct value is missing field {e}")
        return tuple(
            _normalize_arg(component, item) for component, item in zip(components, value)
        )
    return value


def validate_constructor_args(
    contract_name: str, abi_inputs: List[ABIInput], args: Sequence[Any]
) -> List[Any]:
    """
    Validates the constructor arguments against the constructor ABI and
    returns them in encodable form.
    """
    if len(args) != len(abi_inputs):
        raise ConstructorArgumentsError(
            f"Constructor arguments length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(args)}."
        )
    normalized = list()
    for position, (abi_input, value) in enumerate(zip(abi_inputs, args)):
        value = _normalize_arg(abi_input, value)
        abi_type = collapse_if_tuple(abi_input)
        if not is_encodable(abi_type, value):
            raise ConstructorArgumentsError(
                f"{contract_name} constructor argument '{abi_input.get('name', '')}' at position "
                f"{position} has a value '{value}' whose type does not match "
                f"expected ABI type '{abi_type}'"
            )
        normalized.append(value)
    return normalized


class DeployBackend(ABC):
    """
    Capability interface to the chain, the build tool and the block explorer.
    The orchestrator talks to nothing else.
    """

    chain_id: int

    @property
    @abstractmethod
    def signer_address(self) -> str:
        raise NotImplementedError

    @property
    def verification_enabled(self) -> bool:
        return True

    @abstractmethod
    def create(
        self,
        registration: ContractRegistration,
        constructor_args: Sequence[Any],
        libraries: Tuple[LinkedLibrary, ...],
    ) -> str:
        """Deploys the contract and returns its address. Raises ContractCreationError."""
        raise NotImplementedError

    @abstractmethod
    def verify(self, request: VerificationRequest) -> VerificationStatus:
        """Submits verification once. Raises VerificationError on transient failure."""
        raise NotImplementedError

    @abstractmethod
    def check_verified(self, request: VerificationRequest) -> bool:
        """Returns True if the explorer already serves source/ABI for the address."""
        raise NotImplementedError

    @abstractmethod
    def attach(self, registration: ContractRegistration, address: str) -> Any:
        raise NotImplementedError

    @abstractmethod
    def transact(self, method: Any, *args) -> Any:
        """Submits a state-changing call and waits for its receipt."""
        raise NotImplementedError

    def constructor_abi_inputs(self, registration: ContractRegistration) -> Optional[List[ABIInput]]:
        """Returns the constructor ABI inputs, or None when they are not known yet."""
        return None

    def validate_constructor_args(
        self, registration: ContractRegistration, args: Sequence[Any]
    ) -> List[Any]:
        """
        Returns the arguments to create `registration` with: struct mappings are
        converted to tuples in ABI component order. Unchanged when the ABI is unknown.
        """
        abi_inputs = self.constructor_abi_inputs(registration)
        if abi_inputs is None:
            return list(args)
        return validate_constructor_args(registration.name, abi_inputs, args)

    def encode_constructor_args(
        self, registration: ContractRegistration, args: Sequence[Any]
    ) -> str:
        """ABI-encodes constructor arguments as an unprefixed hex string."""
        abi_inputs = self.constructor_abi_inputs(registration)
        if abi_inputs is None:
            if args:
                raise ConstructorArgumentsError(
                    f"Constructor ABI for {registration.source_id} is unavailable; "
                    "cannot encode constructor arguments."
                )
            return ""
        values = validate_constructor_args(registration.name, abi_inputs, args)
        if not abi_inputs:
            return ""
        types = [collapse_if_tuple(abi_input) for abi_input in abi_inputs]
        return encode(types, values).hex()
