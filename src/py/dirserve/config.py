from os import getenv

PORT: int = int(getenv("PORT", 8000))

# Accessible from everywhere by default, as this is typically run to share
# a directory on the local network.
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

BASE: str = getenv("DIRSERVE_BASE", ".")

RENDER: str = getenv("DIRSERVE_RENDER", "plain")

# Substrings that are forbidden anywhere in a request path
RESTRICTED: str = getenv("DIRSERVE_RESTRICTED", ".env,.git,Cargo.toml,Cargo.lock")

READ_TIMEOUT: float = float(getenv("DIRSERVE_READ_TIMEOUT", 30))

LOG_REQUESTS: bool = getenv("DIRSERVE_LOG_REQUESTS", "1") == "1"

# EOF
