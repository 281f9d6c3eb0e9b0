"""Rate limiting configuration using slowapi.

The limiter is wired into the app in main.py; approval and clock endpoints
apply tighter per-route limits with ``@limiter.limit``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Default: 60 requests/minute per client IP for all endpoints.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
)

# Clock and approval writes
WRITE_LIMIT = "20/minute"
