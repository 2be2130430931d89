"""Rate limiting configuration for the public endpoints."""

from slowapi import Limiter

from refledger.api.request_info import client_ip
from refledger.settings import settings

# Single shared limiter instance - disabled outside production
limiter = Limiter(
    key_func=lambda request: client_ip(request) or "unknown",
    default_limits=["200/minute"],
    storage_uri="memory://",
    enabled=settings.env == "production",
)
