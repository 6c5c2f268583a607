"""
Rate limiting.

HTTP endpoints use SlowAPI keyed by client address. The SMS webhook always
arrives from the provider's shared addresses, so it is limited per sender
phone number instead, on the same `limits` backend SlowAPI uses.
"""

from fastapi import Request, Response
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from textquiz.core.logging import get_logger

logger = get_logger(__name__)

limiter = Limiter(key_func=get_remote_address)

SIGNUP_RATE_LIMIT = "5/minute"
SENDER_RATE_LIMIT = "20/minute"

_sender_storage = MemoryStorage()
_sender_limiter = MovingWindowRateLimiter(_sender_storage)
_sender_limit = parse(SENDER_RATE_LIMIT)


def sender_within_limit(phone_number: str) -> bool:
    """Count one inbound message from `phone_number`; False once over the limit."""
    return _sender_limiter.hit(_sender_limit, "sms_sender", phone_number)


def reset_rate_limits() -> None:
    """Clear all counters (tests)."""
    limiter.reset()
    _sender_storage.reset()


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Custom handler for rate limit exceeded errors."""
    logger.bind(path=request.url.path, limit=str(exc.detail)).warning("rate_limit_exceeded")
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests. Please try again later."},
    )
