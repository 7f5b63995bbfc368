import json
from typing import Any, Dict, List, Optional

import requests

from chaindeploy.constants import ETHERSCAN_V2_API_URL, EXPLORER_API_URLS
from chaindeploy.exceptions import VerificationError

ETHERSCAN_OK_STATUS = "1"


def explorer_api_url(chain_id: int) -> str:
    """Returns the explorer API endpoint for a chain; Etherscan v2 when not listed."""
    return EXPLORER_API_URLS.get(chain_id, ETHERSCAN_V2_API_URL)


class ExplorerClient:
    """Minimal Etherscan-compatible API client for verification status checks."""

    def __init__(
        self,
        api_key: str,
        chain_id: int,
        api_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        self.api_key = api_key
        self.chain_id = chain_id
        self.api_url = api_url or explorer_api_url(chain_id)
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, **params) -> Dict[str, Any]:
        params = {"chainid": self.chain_id, **params, "apikey": self.api_key}
        try:
            response = self.session.get(self.api_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise VerificationError(f"Explorer request failed: {e}") from e
        except ValueError as e:
            raise VerificationError(f"Explorer returned a non-JSON response: {e}") from e
        if not isinstance(data, dict):
            raise VerificationError(f"Explorer returned an unexpected response: {data!r}")
        return data

    def get_abi(self, address: str) -> Optional[List[dict]]:
        """Returns the published ABI for `address`, or None if the source is not verified."""
        data = self._get(module="contract", action="getabi", address=address)
        if str(data.get("status")) != ETHERSCAN_OK_STATUS:
            return None
        try:
            return json.loads(data["result"])
        except (KeyError, TypeError, ValueError):
            return None

    def is_verified(self, address: str) -> bool:
        return self.get_abi(address) is not None
