"""
Per-client-IP admission control.
Fixed window counters kept in Redis so every server process shares them.
Runs before the orchestrator; a rejected request never reaches the core.
"""

import time
from dataclasses import dataclass

import redis

from shotcache.config import REDIS_URL, RATE_LIMIT_WINDOW_SECONDS, RATE_LIMIT_MAX_REQUESTS
from shotcache.logger import setup_logger

logger = setup_logger("shotcache.throttle")

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


@dataclass(frozen=True)
class Admission:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int

    def headers(self) -> dict:
        """IETF draft RateLimit-* headers."""
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_seconds),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_seconds)
        return headers


class RateLimiter:
    """
    INVARIANT: counter keys embed the window index, so a key never outlives
    its window by more than the expiry set on it.
    Counter-store failures admit the request (logged).
    """

    def __init__(self, client, window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
                 max_requests: int = RATE_LIMIT_MAX_REQUESTS, prefix: str = "ratelimit",
                 clock=time.time):
        self._client = client
        self._window = window_seconds
        self._max = max_requests
        self._prefix = prefix
        self._clock = clock

    @classmethod
    def from_url(cls, url: str = REDIS_URL, **kwargs) -> "RateLimiter":
        return cls(redis.Redis.from_url(url), **kwargs)

    def check(self, client_id: str) -> Admission:
        now = self._clock()
        window_index = int(now // self._window)
        reset_seconds = max(1, int((window_index + 1) * self._window - now))
        key = f"{self._prefix}:{client_id}:{window_index}"

        try:
            pipe = self._client.pipeline()
            pipe.incr(key)
            pipe.expire(key, self._window)
            count, _ = pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"[THROTTLE] Counter store unavailable, admitting {client_id}: {e}")
            return Admission(True, self._max, self._max, reset_seconds)

        remaining = max(0, self._max - count)
        allowed = count <= self._max
        if not allowed:
            logger.warning(f"[THROTTLE] {client_id} over limit ({count}/{self._max})")
        return Admission(allowed, self._max, remaining, reset_seconds)
