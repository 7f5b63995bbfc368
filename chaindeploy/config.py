import os
from pathlib import Path
from typing import Mapping, NamedTuple, Optional

from dotenv import load_dotenv

from chaindeploy.constants import (
    CHAIN_ID_ENV,
    DEFAULT_VERIFY_INTERVAL,
    DEPLOYMENT_NAME_ENV,
    DEPLOYMENTS_DIR,
    DEPLOYMENTS_DIR_ENV,
    ETHERSCAN_API_KEY_ENV,
    EXPLORER_API_URL_ENV,
    PRIVATE_KEY_ENV,
    RPC_URL_ENV,
    VERIFY_INTERVAL_ENV,
    VERIFY_MAX_ATTEMPTS_ENV,
    VERIFY_TIMEOUT_ENV,
)
from chaindeploy.exceptions import ConfigurationError
from chaindeploy.retry import RetryPolicy


def get_env_variable(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name)
    if not value:
        raise ConfigurationError(f"Environment variable {name} not defined.")
    return value


def get_optional_env_variable(environ: Mapping[str, str], name: str) -> Optional[str]:
    return environ.get(name) or None


def _parse_number(environ: Mapping[str, str], name: str, cast, required: bool = False):
    raw = get_env_variable(environ, name) if required else get_optional_env_variable(environ, name)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number, got {raw!r}.")


class Settings(NamedTuple):
    """Deployment settings, loaded once at startup."""

    deployment_name: str
    rpc_url: str
    private_key: str
    chain_id: int
    etherscan_api_key: Optional[str] = None
    explorer_api_url: Optional[str] = None
    deployments_dir: Path = DEPLOYMENTS_DIR
    verify_interval: float = DEFAULT_VERIFY_INTERVAL
    verify_max_attempts: Optional[int] = None
    verify_timeout: Optional[float] = None

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, dotenv_path: Optional[Path] = None
    ) -> "Settings":
        if environ is None:
            # exported variables win over the .env file
            load_dotenv(dotenv_path=dotenv_path, override=False)
            environ = os.environ

        verify_interval = _parse_number(environ, VERIFY_INTERVAL_ENV, float)
        return cls(
            deployment_name=get_env_variable(environ, DEPLOYMENT_NAME_ENV),
            rpc_url=get_env_variable(environ, RPC_URL_ENV),
            private_key=get_env_variable(environ, PRIVATE_KEY_ENV),
            chain_id=_parse_number(environ, CHAIN_ID_ENV, int, required=True),
            etherscan_api_key=get_optional_env_variable(environ, ETHERSCAN_API_KEY_ENV),
            explorer_api_url=get_optional_env_variable(environ, EXPLORER_API_URL_ENV),
            deployments_dir=Path(environ.get(DEPLOYMENTS_DIR_ENV) or DEPLOYMENTS_DIR),
            verify_interval=(
                DEFAULT_VERIFY_INTERVAL if verify_interval is None else verify_interval
            ),
            verify_max_attempts=_parse_number(environ, VERIFY_MAX_ATTEMPTS_ENV, int),
            verify_timeout=_parse_number(environ, VERIFY_TIMEOUT_ENV, float),
        )

    @property
    def record_filepath(self) -> Path:
        return self.deployments_dir / f"{self.deployment_name}.json"

    def retry_policy(self) -> RetryPolicy:
        try:
            return RetryPolicy(
                interval=self.verify_interval,
                max_attempts=self.verify_max_attempts,
                timeout=self.verify_timeout,
            )
        except ValueError as e:
            raise ConfigurationError(str(e))

    def __repr__(self) -> str:
        return (
            f"Settings(deployment_name={self.deployment_name!r}, rpc_url={self.rpc_url!r}, "
            f"chain_id={self.chain_id}, verify={self.etherscan_api_key is not None})"
        )
