from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, Iterator, NamedTuple, Optional, Tuple

from chaindeploy.exceptions import RegistryError

ContractName = str
SourceId = str

# (address, signer) -> contract handle
ConnectFunction = Callable[[str, Any], Any]


class ContractRegistration(NamedTuple):
    """Represents a single contract the caller intends to deploy."""

    name: ContractName
    source: str
    libraries: Tuple[ContractName, ...] = tuple()
    connect: Optional[ConnectFunction] = None

    @property
    def source_id(self) -> SourceId:
        """Identifier understood by the build tool, e.g. ``src/Foo.sol:Foo``."""
        if ":" in self.source:
            return self.source
        return f"{self.source}:{self.name}"

    @property
    def source_path(self) -> str:
        return self.source_id.rsplit(":", 1)[0]

    @property
    def contract_type(self) -> str:
        """The contract name inside the source unit."""
        return self.source_id.rsplit(":", 1)[1]


class LinkedLibrary(NamedTuple):
    """A deployed library, as passed to the build tool for bytecode linking."""

    source_path: str
    name: ContractName
    address: str

    def __str__(self) -> str:
        return f"{self.source_path}:{self.name}:{self.address}"


def _check_cycles(registrations: Dict[ContractName, ContractRegistration]) -> None:
    visiting, done = set(), set()

    def visit(name: ContractName, path: Tuple[ContractName, ...]) -> None:
        if name in done:
            return
        if name in visiting:
            cycle = " -> ".join(path + (name,))
            raise RegistryError(f"Library dependency cycle: {cycle}")
        visiting.add(name)
        for library in registrations[name].libraries:
            visit(library, path + (name,))
        visiting.discard(name)
        done.add(name)

    for contract_name in registrations:
        visit(contract_name, tuple())


class ContractRegistry:
    """
    Static mapping of logical contract names to registrations.
    Unknown names and unresolvable library dependencies are rejected on construction.
    """

    def __init__(self, registrations: Iterable[ContractRegistration]):
        self._registrations: Dict[ContractName, ContractRegistration] = OrderedDict()
        for registration in registrations:
            if registration.name in self._registrations:
                raise RegistryError(f"Duplicate registration for {registration.name}")
            libraries = tuple(registration.libraries)
            if len(set(libraries)) != len(libraries):
                raise RegistryError(f"Duplicate library dependency declared by {registration.name}")
            self._registrations[registration.name] = registration._replace(libraries=libraries)

        for registration in self._registrations.values():
            for library in registration.libraries:
                if library not in self._registrations:
                    raise RegistryError(
                        f"{registration.name} links against unknown library {library}"
                    )
        _check_cycles(self._registrations)

    @classmethod
    def from_dict(cls, contracts: Dict[ContractName, Dict[str, Any]]) -> "ContractRegistry":
        """
        Builds a registry from ``{name: {"source": ..., "libraries": [...]}}``.
        """
        registrations = list()
        for name, info in contracts.items():
            if isinstance(info, str):
                info = {"source": info}
            if not isinstance(info, dict) or "source" not in info:
                raise RegistryError(f"Registration for {name} must declare a 'source'.")
            registrations.append(
                ContractRegistration(
                    name=name,
                    source=info["source"],
                    libraries=tuple(info.get("libraries") or ()),
                    connect=info.get("connect"),
                )
            )
        return cls(registrations)

    def __getitem__(self, name: ContractName) -> ContractRegistration:
        try:
            return self._registrations[name]
        except KeyError:
            raise RegistryError(f"Contract {name} is not registered")

    def __contains__(self, name: object) -> bool:
        return name in self._registrations

    def __iter__(self) -> Iterator[ContractName]:
        return iter(self._registrations)

    def __len__(self) -> int:
        return len(self._registrations)

    def names(self) -> Tuple[ContractName, ...]:
        return tuple(self._registrations)
