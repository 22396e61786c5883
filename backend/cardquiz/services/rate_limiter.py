"""Throttle sign-in, sign-up and password-reset requests per client.

Every (endpoint, client IP) pair owns a leaky bucket kept in Redis as a hash of
``tokens`` and ``ts``.  The bucket starts full at ``RATE_LIMIT_AUTH_BURST``
and refills at ``RATE_LIMIT_AUTH_RPM / 60`` tokens per second; each request
takes one token.  Setting the RPM to 0 turns throttling off.

If Redis cannot be reached the request goes through: losing the limiter must
never lock learners out of their accounts.
"""

import logging
import math
import time
from dataclasses import dataclass

import redis
from fastapi import HTTPException, Request

from cardquiz.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "rl:auth"

_pool: redis.ConnectionPool | None = None

# KEYS[1] bucket, ARGV = burst, tokens/second, now.  Returns 1 when a token
# was taken.  The key lives just long enough to refill completely.
_LUA_SCRIPT = """
local burst = tonumber(ARGV[1])
local rate  = tonumber(ARGV[2])
local now   = tonumber(ARGV[3])

local state  = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
local tokens = tonumber(state[1]) or burst
local ts     = tonumber(state[2]) or now

tokens = math.min(burst, tokens + math.max(0, now - ts) * rate)

local taken = 0
if tokens >= 1 then
    tokens = tokens - 1
    taken = 1
end

redis.call('HSET', KEYS[1], 'tokens', tokens, 'ts', now)
redis.call('EXPIRE', KEYS[1], math.ceil(burst / rate) + 1)
return taken
"""


@dataclass(frozen=True)
class BucketPolicy:
    burst: int
    per_minute: int

    @classmethod
    def from_settings(cls) -> "BucketPolicy":
        return cls(settings.RATE_LIMIT_AUTH_BURST, settings.RATE_LIMIT_AUTH_RPM)

    @property
    def enabled(self) -> bool:
        return self.per_minute > 0

    @property
    def refill_per_second(self) -> float:
        return self.per_minute / 60.0

    @property
    def retry_after(self) -> int:
        """Seconds until one token is back in an empty bucket."""
        return max(1, math.ceil(1 / self.refill_per_second))


def _get_redis() -> redis.Redis:
    global _pool
    if _pool is None:
        _pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=10,
            socket_connect_timeout=0.5,
            socket_timeout=0.5,
        )
    return redis.Redis(connection_pool=_pool)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _client_key(request: Request) -> str:
    return f"{KEY_PREFIX}:{request.url.path}:{_client_ip(request)}"


def _check(bucket_key: str, policy: BucketPolicy | None = None) -> bool:
    """Take a token from *bucket_key*; False when the bucket is empty."""
    policy = policy or BucketPolicy.from_settings()
    if not policy.enabled:
        return True
    try:
        taken = _get_redis().eval(
            _LUA_SCRIPT, 1, bucket_key, policy.burst, policy.refill_per_second, time.time()
        )
    except redis.RedisError as e:
        logger.warning("Auth rate limiter unavailable, allowing request: %s", e)
        return True
    return bool(taken)


def require_auth_rate_limit(request: Request) -> None:
    """FastAPI dependency for the auth routes. Raises 429 once a client runs dry."""
    policy = BucketPolicy.from_settings()
    key = _client_key(request)
    if _check(key, policy):
        return
    logger.info("Throttled auth request %s", key)
    raise HTTPException(
        status_code=429,
        detail="Too many attempts. Please wait a moment and try again.",
        headers={"Retry-After": str(policy.retry_after)},
    )
