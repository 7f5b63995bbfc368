"""
Drives block-explorer verification of a deployed contract to completion.

Only an explicit success signal from the backend is terminal; everything else
(network errors, explorer indexing lag, rate limiting, error output) is treated
as transient and retried at the policy's interval until the policy's bound, if
any, is reached.
"""

from enum import Enum
from typing import Callable, NamedTuple, Optional, Tuple

from chaindeploy.exceptions import VerificationError, VerificationTimeout
from chaindeploy.registry import LinkedLibrary
from chaindeploy.retry import CancellationToken, RetryPolicy, monotonic


class VerificationStatus(Enum):
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already verified"
    PENDING = "pending"
    FAILED = "failed"

    @property
    def is_success(self) -> bool:
        return self in (VerificationStatus.VERIFIED, VerificationStatus.ALREADY_VERIFIED)


class VerificationRequest(NamedTuple):
    """Everything needed to (re-)submit verification for one deployed contract."""

    address: str
    contract_id: str
    constructor_args_encoded: str
    chain_id: int
    libraries: Tuple[LinkedLibrary, ...] = tuple()


class VerificationPoller:
    def __init__(
        self,
        backend,
        policy: Optional[RetryPolicy] = None,
        cancellation: Optional[CancellationToken] = None,
        clock: Callable[[], float] = monotonic,
    ):
        self.backend = backend
        self.policy = policy or RetryPolicy()
        self.cancellation = cancellation or CancellationToken()
        self.clock = clock

    def _already_verified(self, request: VerificationRequest) -> bool:
        try:
            return self.backend.check_verified(request)
        except VerificationError as e:
            # an inconclusive status check falls through to a submission,
            # which the explorer answers with "already verified" if it is
            print(f"(i) Could not check verification status of {request.address}: {e}")
            return False

    def poll(self, request: VerificationRequest, label: Optional[str] = None) -> VerificationStatus:
        """
        Blocks until the contract at `request.address` is verified.
        Returns the terminal status; raises VerificationTimeout or
        VerificationCancelled if the policy bound or the token stops polling first.
        """
        label = label or request.contract_id
        started = self.clock()
        attempts = 0

        self.cancellation.raise_if_cancelled()
        if self._already_verified(request):
            print(f"(i) {label} already verified at {request.address}")
            return VerificationStatus.ALREADY_VERIFIED

        print(f"(i) Verifying {label} at {request.address}...")
        while True:
            attempts += 1
            try:
                status = self.backend.verify(request)
            except VerificationError as e:
                print(f"(i) Verification attempt {attempts} for {label} failed: {e}")
            else:
                if status.is_success:
                    print(f"(i) {label} {status.value}")
                    return status
                print(f"(i) Verification attempt {attempts} for {label}: {status.value}")

            elapsed = self.clock() - started
            if self.policy.exhausted(attempts=attempts, elapsed=elapsed):
                raise VerificationTimeout(
                    f"{label} at {request.address} was not verified after "
                    f"{attempts} attempt(s) and {elapsed:.0f}s"
                )
            self.cancellation.wait(self.policy.delay(attempts))

            if self._already_verified(request):
                print(f"(i) {label} verified")
                return VerificationStatus.VERIFIED
