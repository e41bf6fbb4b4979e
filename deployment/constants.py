from pathlib import Path

import deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

TOKEN_FARM_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "token-farm.yml"

#
# Networks
#

LOCAL_BLOCKCHAIN_ENVIRONMENTS = ["local"]

#
# Contracts
#

DAPP_TOKEN = "DAppToken"
LP_TOKEN = "LPToken"
TOKEN_FARM = "TokenFarm"

FARM_CONTRACTS = [DAPP_TOKEN, LP_TOKEN, TOKEN_FARM]

# labels used in the final deployment report
CONTRACT_LABELS = {
    DAPP_TOKEN: "DApp Token",
    LP_TOKEN: "LP Token",
    TOKEN_FARM: "Token Farm",
}

OWNERSHIP_TRANSFER_METHOD = "transferOwnership"

# revert reasons signalling that the sender may not call a guarded method
UNAUTHORIZED_REVERT_MARKERS = (
    "OwnableUnauthorizedAccount",
    "Ownable: caller is not the owner",
    "AccessControlUnauthorizedAccount",
    "is missing role",
)

#
# Process
#

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

BANNER_WIDTH = 50
