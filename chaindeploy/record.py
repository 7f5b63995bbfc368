"""
Durable mapping from contract name to deployed address for one named
deployment environment.

The JSON backing file is a flat object ``{"ContractName": "0x..."}``. Every
write is a full rewrite through a temporary file in the same directory that is
then renamed over the record, so a crash never leaves a half-written record.
Concurrent writers targeting the same file are not supported.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Optional

from eth_typing import ChecksumAddress

from chaindeploy.exceptions import RecordConflictError, RecordCorruptedError
from chaindeploy.utils import _load_json, is_address, validate_address

ContractName = str

STANDARD_RECORD_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class DeploymentRecord(ABC):
    """Name -> address store owned by a single Deployer."""

    def __init__(self):
        self._addresses: Dict[ContractName, ChecksumAddress] = OrderedDict()

    @abstractmethod
    def _read(self) -> Optional[dict]:
        """Returns the persisted mapping, or None if nothing was ever persisted."""
        raise NotImplementedError

    @abstractmethod
    def _write(self, data: Dict[ContractName, ChecksumAddress]) -> None:
        """Durably replaces the persisted mapping; returns only after the flush."""
        raise NotImplementedError

    def load(self) -> "DeploymentRecord":
        data = self._read()
        if data is None:
            self._addresses = OrderedDict()
            self._write(dict(self._addresses))
            return self

        if not isinstance(data, dict):
            raise RecordCorruptedError(
                f"Deployment record {self} must be a JSON object, got {type(data).__name__}."
            )
        addresses = OrderedDict()
        for name, address in data.items():
            if not is_address(address):
                raise RecordCorruptedError(
                    f"Deployment record {self} has an invalid address for {name}: {address!r}"
                )
            addresses[name] = validate_address(address)
        self._addresses = addresses
        return self

    def get(self, name: ContractName) -> Optional[ChecksumAddress]:
        return self._addresses.get(name)

    def set(self, name: ContractName, address: str) -> ChecksumAddress:
        address = validate_address(address, context=name)
        existing = self._addresses.get(name)
        if existing is not None:
            if existing == address:
                return existing
            raise RecordConflictError(
                f"{name} is already recorded at {existing}; "
                f"clear the record before recording {address}."
            )
        updated = OrderedDict(self._addresses)
        updated[name] = address
        self._write(dict(updated))
        self._addresses = updated
        return address

    def clear(self) -> None:
        self._write(dict())
        self._addresses = OrderedDict()

    def as_dict(self) -> Dict[ContractName, ChecksumAddress]:
        return dict(self._addresses)

    def __contains__(self, name: object) -> bool:
        return name in self._addresses

    def __len__(self) -> int:
        return len(self._addresses)


class JSONDeploymentRecord(DeploymentRecord):
    """Deployment record persisted as a flat JSON object on disk."""

    def __init__(self, filepath: Path):
        super().__init__()
        self.filepath = Path(filepath)

    @classmethod
    def from_environment(cls, deployments_dir: Path, deployment_name: str) -> "JSONDeploymentRecord":
        return cls(filepath=Path(deployments_dir) / f"{deployment_name}.json")

    def _read(self) -> Optional[dict]:
        if not self.filepath.exists():
            return None
        try:
            return _load_json(self.filepath)
        except json.JSONDecodeError as e:
            raise RecordCorruptedError(f"Deployment record {self.filepath} is not valid JSON: {e}")

    def _write(self, data: Dict[ContractName, ChecksumAddress]) -> None:
        # Create the parent directory if it does not exist
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.filepath.parent, prefix=f".{self.filepath.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as file:
                json.dump(data, file, **STANDARD_RECORD_JSON_FORMAT)
                file.flush()
                os.fsync(file.fileno())
            os.replace(temp_path, self.filepath)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def __str__(self) -> str:
        return str(self.filepath)


class InMemoryDeploymentRecord(DeploymentRecord):
    """Deployment record kept in memory; `persisted` mirrors what a file would hold."""

    def __init__(self, initial: Optional[dict] = None):
        super().__init__()
        self.persisted = None if initial is None else dict(initial)
        self.writes = 0

    def _read(self) -> Optional[dict]:
        return None if self.persisted is None else dict(self.persisted)

    def _write(self, data: Dict[ContractName, ChecksumAddress]) -> None:
        self.persisted = dict(data)
        self.writes += 1

    def __str__(self) -> str:
        return "<in-memory>"
