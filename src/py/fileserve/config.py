from os import getenv

PORT: int = int(getenv("PORT", 8080))

# Listening on all interfaces, the server is expected to run in a container
# or behind a reverse proxy.
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

ROOT: str = getenv("FILESERVE_ROOT", "public")

INDEX: str = getenv("FILESERVE_INDEX", "index.html")

LISTING: bool = getenv("FILESERVE_LISTING", "1") == "1"

# Socket read/write timeout, in seconds
TIMEOUT: float = float(getenv("FILESERVE_TIMEOUT", 10.0))

# Idle time after which a kept-alive connection is closed, in seconds
KEEPALIVE: float = float(getenv("FILESERVE_KEEPALIVE", 5.0))

LOG_REQUESTS: bool = getenv("FILESERVE_LOG_REQUESTS", "1") == "1"

LOG_LEVEL: str = getenv("FILESERVE_LOG_LEVEL", "info")

# EOF
