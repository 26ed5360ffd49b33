from collections import OrderedDict
from pathlib import Path

import deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

TOKEN_EXCHANGE_PLAN_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "token-exchange.yml"

#
# Networks
#

LOCAL_NETWORKS = ["local"]

#
# Configuration
#

UPGRADEABLE_VARIANT_ENVVAR = "DEPLOY_GM_WITH_PROXY"
TRUTHY_VALUES = ("1", "true", "yes", "on")
FALSY_VALUES = ("", "0", "false", "no", "off")

#
# Roles
#

# role -> funding account index
DEFAULT_ROLE_INDICES = OrderedDict(
    [
        ("admin", 0),  # owner of every proxy admin
        ("mdtAdmin", 1),
        ("gmAdmin", 2),
        ("xcnAdmin", 3),
        ("mdtExchangeAdmin", 4),
        ("xcnExchangeAdmin", 5),
        ("user", 6),
        ("attacker", 7),
    ]
)

#
# Contracts
#

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"
PROXY_NAME = "TransparentUpgradeableProxy"
DEFAULT_INITIALIZER = "initialize"
ROLE_GRANT_METHOD = "grantRole"

TOKEN_DECIMALS = 18

PLAIN_VARIANT = "plain"
PROXY_VARIANT = "proxy"
