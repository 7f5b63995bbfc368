"""
Backend that shells out to foundry's ``forge`` for contract creation and
explorer verification, and uses web3 for attaching to deployed contracts and
sending administrative transactions.

    forge create --rpc-url <rpc_url> --private-key <key> --broadcast \
        [--libraries src/Lib.sol:Lib:0x...] src/MyToken.sol:MyToken \
        --constructor-args "ForgeUSD" "FUSD" 18
"""

import re
import subprocess
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple

from eth_account import Account
from eth_typing import ChecksumAddress
from web3 import Web3

from chaindeploy.backends.base import ABIInput, DeployBackend
from chaindeploy.constants import (
    FORGE_ALREADY_VERIFIED_MARKERS,
    FORGE_BINARY,
    FORGE_CREATE_TIMEOUT,
    FORGE_DEPLOYED_TO_MARKER,
    FORGE_OUT_DIR,
    FORGE_VERIFIED_MARKERS,
    FORGE_VERIFY_TIMEOUT,
)
from chaindeploy.exceptions import (
    ConstructorArgumentsError,
    ContractCreationError,
    DeploymentError,
    MalformedAddressError,
    TransactionFailedError,
    VerificationError,
)
from chaindeploy.explorer import ExplorerClient
from chaindeploy.registry import ContractRegistration, LinkedLibrary
from chaindeploy.utils import _load_json
from chaindeploy.verification import VerificationRequest, VerificationStatus

DEPLOYED_TO_PATTERN = re.compile(re.escape(FORGE_DEPLOYED_TO_MARKER) + r"\s*(0x[0-9a-fA-F]+)")

REDACTED = "***"

Runner = Callable[..., subprocess.CompletedProcess]


def format_cli_arg(value: Any) -> str:
    """Renders a constructor argument in forge's command line syntax."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, dict):
        raise ConstructorArgumentsError(
            "Struct arguments given as a mapping need the constructor ABI to be ordered; "
            "run 'forge build' or pass a tuple."
        )
    if isinstance(value, tuple):
        return "(" + ",".join(format_cli_arg(item) for item in value) + ")"
    if isinstance(value, list):
        return "[" + ",".join(format_cli_arg(item) for item in value) + "]"
    return str(value)


def parse_deployed_address(output: str) -> str:
    """Extracts the address following ``Deployed to:`` in forge create output."""
    match = DEPLOYED_TO_PATTERN.search(output)
    if not match:
        raise MalformedAddressError("forge create output does not contain a deployed address")
    address = match.group(1)
    if len(address) != 42:
        raise MalformedAddressError(f"forge create reported a malformed address: {address}")
    return address


def _library_args(libraries: Tuple[LinkedLibrary, ...]) -> List[str]:
    args = list()
    for library in libraries:
        args.extend(["--libraries", str(library)])
    return args


class ForgeBackend(DeployBackend):
    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        chain_id: int,
        explorer: Optional[ExplorerClient] = None,
        out_dir: Path = FORGE_OUT_DIR,
        forge_binary: str = FORGE_BINARY,
        broadcast: bool = True,
        cwd: Optional[Path] = None,
        runner: Runner = subprocess.run,
        web3: Optional[Web3] = None,
        receipt_timeout: float = 120,
        create_timeout: Optional[float] = FORGE_CREATE_TIMEOUT,
        verify_timeout: Optional[float] = FORGE_VERIFY_TIMEOUT,
    ):
        self.rpc_url = rpc_url
        self._private_key = private_key
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.explorer = explorer
        self.out_dir = Path(out_dir)
        self.forge_binary = forge_binary
        self.broadcast = broadcast
        self.cwd = cwd
        self.runner = runner
        self.w3 = web3 or Web3(Web3.HTTPProvider(rpc_url))
        self.receipt_timeout = receipt_timeout
        self.create_timeout = create_timeout
        self.verify_timeout = verify_timeout

    @property
    def signer_address(self) -> ChecksumAddress:
        return self.account.address

    @property
    def verification_enabled(self) -> bool:
        return self.explorer is not None

    def _redact(self, text: str) -> str:
        secrets = [self._private_key]
        if self.explorer is not None:
            secrets.append(self.explorer.api_key)
        for secret in secrets:
            if secret:
                text = text.replace(secret, REDACTED)
        return text

    def _run(self, command: List[str], timeout: Optional[float]) -> subprocess.CompletedProcess:
        return self.runner(command, capture_output=True, text=True, cwd=self.cwd, timeout=timeout)

    #
    # Artifacts
    #

    def artifact_filepath(self, registration: ContractRegistration) -> Path:
        source_filename = Path(registration.source_path).name
        return self.out_dir / source_filename / f"{registration.contract_type}.json"

    def get_abi(self, registration: ContractRegistration) -> Optional[List[dict]]:
        filepath = self.artifact_filepath(registration)
        if not filepath.exists():
            return None
        return _load_json(filepath)["abi"]

    def constructor_abi_inputs(self, registration: ContractRegistration) -> Optional[List[ABIInput]]:
        abi = self.get_abi(registration)
        if abi is None:
            return None
        for entry in abi:
            if entry.get("type") == "constructor":
                return list(entry.get("inputs", []))
        return list()  # default constructor

    #
    # Deployment
    #

    def create_command(
        self,
        registration: ContractRegistration,
        constructor_args: Sequence[Any],
        libraries: Tuple[LinkedLibrary, ...],
    ) -> List[str]:
        command = [
            self.forge_binary,
            "create",
            "--rpc-url",
            self.rpc_url,
            "--private-key",
            self._private_key,
        ]
        if self.broadcast:
            command.append("--broadcast")
        command.extend(_library_args(libraries))
        command.append(registration.source_id)
        if constructor_args:
            # variadic; must come last
            command.append("--constructor-args")
            command.extend(format_cli_arg(arg) for arg in constructor_args)
        return command

    def create(
        self,
        registration: ContractRegistration,
        constructor_args: Sequence[Any],
        libraries: Tuple[LinkedLibrary, ...],
    ) -> str:
        command = self.create_command(registration, constructor_args, libraries)
        try:
            result = self._run(command, timeout=self.create_timeout)
        except subprocess.TimeoutExpired as e:
            raise ContractCreationError(
                f"forge create {registration.source_id} did not finish within {e.timeout}s; "
                "the transaction may still have been broadcast, check the deployer account "
                "before re-running."
            ) from e
        except OSError as e:
            raise ContractCreationError(f"Unable to run {self.forge_binary}: {e}") from e
        if result.returncode != 0:
            raise ContractCreationError(
                f"forge create {registration.source_id} failed "
                f"(exit status {result.returncode}):\n{self._redact(result.stderr or result.stdout)}"
            )
        return parse_deployed_address(result.stdout)

    #
    # Verification
    #

    def verify_command(self, request: VerificationRequest) -> List[str]:
        command = [
            self.forge_binary,
            "verify-contract",
            "--chain",
            str(request.chain_id),
            "--etherscan-api-key",
            self.explorer.api_key,
            "--watch",
        ]
        if request.constructor_args_encoded:
            command.extend(["--constructor-args", "0x" + request.constructor_args_encoded])
        command.extend(_library_args(request.libraries))
        command.extend([request.address, request.contract_id])
        return command

    def verify(self, request: VerificationRequest) -> VerificationStatus:
        if self.explorer is None:
            raise VerificationError("No explorer API key configured")
        try:
            result = self._run(self.verify_command(request), timeout=self.verify_timeout)
        except subprocess.TimeoutExpired as e:
            raise VerificationError(f"forge verify-contract did not finish within {e.timeout}s") from e
        except OSError as e:
            raise VerificationError(f"Unable to run {self.forge_binary}: {e}") from e

        output = f"{result.stdout or ''}\n{result.stderr or ''}"
        if any(marker in output for marker in FORGE_VERIFIED_MARKERS):
            return VerificationStatus.VERIFIED
        if any(marker in output.lower() for marker in FORGE_ALREADY_VERIFIED_MARKERS):
            return VerificationStatus.ALREADY_VERIFIED
        if result.returncode != 0:
            raise VerificationError(self._redact(output.strip()) or f"exit status {result.returncode}")
        return VerificationStatus.PENDING

    def check_verified(self, request: VerificationRequest) -> bool:
        if self.explorer is None:
            return False
        return self.explorer.is_verified(request.address)

    #
    # Interaction
    #

    def attach(self, registration: ContractRegistration, address: str) -> Any:
        if registration.connect is not None:
            return registration.connect(address, self.account)
        abi = self.get_abi(registration)
        if abi is None:
            raise DeploymentError(
                f"No build artifact for {registration.source_id} at "
                f"{self.artifact_filepath(registration)}; run 'forge build'."
            )
        return self.w3.eth.contract(address=address, abi=abi)

    def transact(self, method: Any, *args) -> Any:
        sender = self.account.address
        transaction = method(*args).build_transaction(
            {
                "from": sender,
                "nonce": self.w3.eth.get_transaction_count(sender),
                "chainId": self.chain_id,
            }
        )
        signed = self.account.sign_transaction(transaction)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt["status"] != 1:
            raise TransactionFailedError(f"Transaction {tx_hash.hex()} reverted")
        return receipt
