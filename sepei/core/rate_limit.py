"""Per-client request limits (slowapi)."""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from sepei.core.config import settings

# Fire stations often share one public IP, so member limits stay generous
RATE_LIMITS = {
    "login": "10/minute",
    "register": "5/minute",
    "ballot": "30/minute",
    "polls_read": "120/minute",
    "admin_write": "60/minute",
}


def client_address(request: Request) -> str:
    """Rate limit key: the first X-Forwarded-For hop behind the proxy, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


# In-memory counters are per process; set REDIS_URL when running several workers
limiter = Limiter(
    key_func=client_address,
    storage_uri=settings.REDIS_URL or "memory://",
    strategy="fixed-window",
)
