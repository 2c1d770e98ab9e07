from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.settings import settings

# Shared across workers through Redis; client address comes from TrustedProxiesMiddleware.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.redis_url,
    key_prefix="pmc",
)

__all__ = ["limiter"]
