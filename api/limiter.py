"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in route modules that
apply per-route limits with @limiter.limit().

One shared instance means all routes share the same in-memory counter store.
default_limits is the flat global throttle applied to every route;
RATE_LIMIT_ENABLED=false switches the whole limiter off (tests do this).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[_settings.global_rate_limit],
    enabled=_settings.rate_limit_enabled,
    storage_uri="memory://",
)
