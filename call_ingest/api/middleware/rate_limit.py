"""
Rate Limiting Middleware
Token bucket per client address on the webhook endpoint
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict
from fastapi import Request

from call_ingest.core.logging import get_logger
from call_ingest.core.exceptions import RateLimitError

logger = get_logger(__name__)


@dataclass
class RateLimitBucket:
    """Token bucket for rate limiting"""
    tokens: float
    last_update: float
    max_tokens: int
    refill_rate: float  # tokens per second

    def consume(self, now: float, tokens: int = 1) -> bool:
        """Try to consume tokens, return True if successful"""
        elapsed = now - self.last_update

        # Refill tokens
        self.tokens = min(
            self.max_tokens,
            self.tokens + elapsed * self.refill_rate
        )
        self.last_update = now

        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def time_until_available(self, tokens: int = 1) -> float:
        """Calculate time until tokens are available"""
        if self.tokens >= tokens:
            return 0
        needed = tokens - self.tokens
        return needed / self.refill_rate


class RateLimiter:
    """
    Requests-per-minute limiter keyed by client

    A limit of 0 disables limiting. Buckets idle for longer than
    idle_seconds (and long enough to be full again) are dropped when a
    new client shows up.
    """

    def __init__(
        self,
        requests_per_minute: int = 600,
        burst_multiplier: float = 1.5,
        idle_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.requests_per_minute = requests_per_minute
        self.burst_multiplier = burst_multiplier
        self.idle_seconds = idle_seconds
        self._clock = clock
        self.buckets: Dict[str, RateLimitBucket] = {}

    @property
    def enabled(self) -> bool:
        return self.requests_per_minute > 0

    def _prune(self, now: float) -> None:
        """Drop buckets idle long enough to have refilled completely"""
        idle = [
            client_id for client_id, bucket in self.buckets.items()
            if now - bucket.last_update >= max(self.idle_seconds, bucket.max_tokens / bucket.refill_rate)
        ]
        for client_id in idle:
            del self.buckets[client_id]

    def _get_bucket(self, client_id: str) -> RateLimitBucket:
        """Get or create the client's bucket"""
        if client_id not in self.buckets:
            now = self._clock()
            self._prune(now)
            capacity = int(self.requests_per_minute * self.burst_multiplier)
            self.buckets[client_id] = RateLimitBucket(
                tokens=capacity,
                last_update=now,
                max_tokens=capacity,
                refill_rate=self.requests_per_minute / 60.0
            )
        return self.buckets[client_id]

    def check(self, client_id: str) -> None:
        """
        Consume one request for the client

        Raises:
            RateLimitError: If rate limit exceeded
        """
        if not self.enabled:
            return
        bucket = self._get_bucket(client_id)
        if not bucket.consume(self._clock()):
            retry_after = int(bucket.time_until_available(1)) + 1
            logger.warning(f"Rate limit exceeded for client {client_id}")
            raise RateLimitError(retry_after=retry_after)


def client_key(request: Request) -> str:
    """First X-Forwarded-For hop, else the peer address"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
