from slowapi import Limiter
from slowapi.util import get_remote_address
from app.core.config import settings
from loguru import logger

# ----------------------------------------------------------------
# 1. CLIENT IP IDENTIFICATION
# ----------------------------------------------------------------
def get_real_ip(request):
    """
    Identifies the client IP behind proxies.
    Checks X-Forwarded-For (Vercel/Nginx) and X-Real-IP (Cloudflare).
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Leftmost IP is the actual client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)

# ----------------------------------------------------------------
# 2. STORAGE (Redis when configured, memory otherwise)
# ----------------------------------------------------------------
storage_uri = settings.REDIS_URL

if storage_uri and storage_uri.startswith("redis://") and settings.ENV == "prod":
    # Managed Redis in production requires TLS
    storage_uri = storage_uri.replace("redis://", "rediss://", 1)

if storage_uri:
    logger.info("Initializing rate limiter with Redis storage")
    limiter = Limiter(
        key_func=get_real_ip,
        storage_uri=storage_uri,
        strategy="fixed-window",
        storage_options={"socket_connect_timeout": 5, "retry_on_timeout": True},
        enabled=settings.RATE_LIMIT_ENABLED,
    )
else:
    logger.warning("REDIS_URL not set. Using in-memory rate limiting.")
    limiter = Limiter(key_func=get_real_ip, enabled=settings.RATE_LIMIT_ENABLED)
