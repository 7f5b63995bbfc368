"""Error taxonomy of the deployment orchestrator."""


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""


class ConfigurationError(DeploymentError, ValueError):
    """Raised when a required setting is missing or invalid."""


class RegistryError(DeploymentError, ValueError):
    """Raised when a contract registry is inconsistent."""


class DependencyNotDeployedError(DeploymentError, ValueError):
    """Raised when a contract depends on another contract that is not yet deployed."""


class RecordCorruptedError(DeploymentError, ValueError):
    """Raised when a persisted deployment record cannot be parsed."""


class ContractCreationError(DeploymentError):
    """Raised when the create collaborator fails; no address was produced."""


class MalformedAddressError(DeploymentError, ValueError):
    """Raised when a deployed address is missing or is not a valid address."""


class VerificationError(DeploymentError):
    """Raised for a transient verification failure."""


class VerificationTimeout(DeploymentError):
    """Raised when verification did not succeed within the retry bound."""


class VerificationCancelled(DeploymentError):
    """Raised when verification polling was cancelled."""


class TransactionFailedError(DeploymentError):
    """Raised when a submitted transaction was rejected or reverted."""


class PlanError(DeploymentError, ValueError):
    """Raised when a deployment plan file is malformed."""


class RecordConflictError(DeploymentError, ValueError):
    """Raised when a recorded contract address would be overwritten."""


class ConstructorArgumentsError(DeploymentError, ValueError):
    """Raised when constructor arguments do not match the constructor ABI."""
