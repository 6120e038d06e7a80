"""Request throttling for the unauthenticated account endpoints.

Registration and login are the only routes reachable without a token, so
they carry explicit per-address limits. Limits apply in production only.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from partnerhub.settings import settings

REGISTER_RATE = "5/minute"
LOGIN_RATE = "10/minute"

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    headers_enabled=False,
    enabled=settings.env == "production",
)
