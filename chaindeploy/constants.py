from pathlib import Path

#
# Filesystem
#

DEPLOYMENTS_DIR = Path("deployments")
FORGE_OUT_DIR = Path("out")
RECORD_SUFFIX = ".json"

#
# Environment
#

DEPLOYMENT_NAME_ENV = "DEPLOYMENT_NAME"
RPC_URL_ENV = "RPC_URL"
PRIVATE_KEY_ENV = "PRIVATE_KEY"
CHAIN_ID_ENV = "CHAIN_ID"
ETHERSCAN_API_KEY_ENV = "ETHERSCAN_API_KEY"
EXPLORER_API_URL_ENV = "EXPLORER_API_URL"
DEPLOYMENTS_DIR_ENV = "DEPLOYMENTS_DIR"
VERIFY_INTERVAL_ENV = "VERIFY_INTERVAL"
VERIFY_MAX_ATTEMPTS_ENV = "VERIFY_MAX_ATTEMPTS"
VERIFY_TIMEOUT_ENV = "VERIFY_TIMEOUT"

#
# Verification
#

DEFAULT_VERIFY_INTERVAL = 10.0  # seconds

# Etherscan v2 serves every supported chain from one endpoint, selected by chainid
ETHERSCAN_V2_API_URL = "https://api.etherscan.io/v2/api"

EXPLORER_API_URLS = {
    1: ETHERSCAN_V2_API_URL,
    11155111: ETHERSCAN_V2_API_URL,
    137: ETHERSCAN_V2_API_URL,
    80002: ETHERSCAN_V2_API_URL,
    42161: ETHERSCAN_V2_API_URL,
    421614: ETHERSCAN_V2_API_URL,
    8453: ETHERSCAN_V2_API_URL,
    84532: ETHERSCAN_V2_API_URL,
}

#
# Forge
#

FORGE_BINARY = "forge"
# seconds a single forge invocation may take
FORGE_CREATE_TIMEOUT = 600
FORGE_VERIFY_TIMEOUT = 300
FORGE_DEPLOYED_TO_MARKER = "Deployed to:"
FORGE_VERIFIED_MARKERS = (
    "Contract successfully verified",
    "Pass - Verified",
)
FORGE_ALREADY_VERIFIED_MARKERS = (
    "is already verified",
    "already verified",
)

#
# Plans
#

VARIABLE_PREFIX = "$"
DEPLOYER_VARIABLE = "deployer"
