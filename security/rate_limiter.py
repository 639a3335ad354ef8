"""
Fixed-window rate limiting backed by Redis counters.

A request in window ``now // window`` increments ``rate_limit:{identifier}:{bucket}``;
the first increment sets the key's expiry. The request is allowed while the
counter is at or below the limit.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from django.conf import settings
import django_redis

logger = logging.getLogger(__name__)

LOOPBACK_ADDRESSES = {'127.0.0.1', '::1', 'localhost'}

DEFAULT_RULES = [
    ('/api/users/username', 5, 3600),
    ('/api/vouchers/verify', 10, 3600),
    ('/api/vouchers/claim', 10, 3600),
    ('/api/vouchers/execute-claim', 10, 3600),
    # claim-status and claim-tx share the /api/vouchers/claim prefix but are reconciliation
    # and status reads, so they get the general voucher budget
    ('/api/vouchers/claim-status', 50, 60),
    ('/api/vouchers/claim-tx', 50, 60),
    ('/api/vouchers/link', 20, 60),
    ('/api/vouchers', 50, 60),
    ('/api/transactions', 100, 60),
    ('/api/analytics', 50, 60),
]
DEFAULT_LIMIT = (200, 60)

DEFAULT_ACTION_LIMITS = {
    'verify': {'limit': 100, 'window': 3600},
    'claim': {'limit': 50, 'window': 3600},
    'execute_claim': {'limit': 10, 'window': 3600},
}


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None


class RedisCounterStore:
    """Counter store on the raw Redis connection behind the default cache."""

    def __init__(self, alias='default'):
        self.alias = alias

    @property
    def connection(self):
        return django_redis.get_redis_connection(self.alias)

    def hit(self, key: str, window: int) -> Tuple[int, int]:
        """INCR the key, set its expiry on first use; returns (count, ttl)."""
        conn = self.connection
        count = int(conn.incr(key))
        if count == 1:
            conn.expire(key, window)
        ttl = int(conn.ttl(key))
        return count, ttl


class RateLimiter:
    KEY_PREFIX = 'rate_limit'

    def __init__(self, store=None, clock=time.time):
        self.store = store or RedisCounterStore()
        self.clock = clock

    def check(self, identifier: str, limit: int, window: int) -> RateLimitResult:
        now = int(self.clock())
        bucket = now // window
        key = f"{self.KEY_PREFIX}:{identifier}:{bucket}"

        count, ttl = self.store.hit(key, window)
        if ttl < 0:
            ttl = window

        allowed = count <= limit
        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - count),
            reset_time=now + ttl,
            retry_after=None if allowed else ttl,
        )

    def check_or_allow(self, identifier: str, limit: int, window: int) -> Optional[RateLimitResult]:
        """Like check(), but a store failure lets the request through (returns None)."""
        try:
            return self.check(identifier, limit, window)
        except Exception as e:
            logger.warning(f"[RateLimit] store unavailable, allowing {identifier}: {e}")
            return None


_default_limiter = None


def get_rate_limiter() -> RateLimiter:
    global _default_limiter
    if _default_limiter is None:
        _default_limiter = RateLimiter()
    return _default_limiter


def get_rate_limit_config(path: str) -> Tuple[int, int]:
    """(limit, window) for a request path; the longest matching prefix wins."""
    rules = getattr(settings, 'RATE_LIMIT_RULES', DEFAULT_RULES)
    best = None
    for prefix, limit, window in rules:
        if path.startswith(prefix) and (best is None or len(prefix) > len(best[0])):
            best = (prefix, limit, window)
    if best is None:
        return tuple(getattr(settings, 'RATE_LIMIT_DEFAULT', DEFAULT_LIMIT))
    return best[1], best[2]


def is_loopback(ip: Optional[str]) -> bool:
    return (ip or '') in LOOPBACK_ADDRESSES


def check_action_limit(action: str, code: str, ip: str, limiter=None) -> Optional[RateLimitResult]:
    """
    Secondary per-handler limit keyed by action, voucher code and client IP.

    Loopback callers and unknown actions are not limited (returns None), and
    neither are requests when the counter store is down.
    """
    if is_loopback(ip):
        return None
    limits = getattr(settings, 'VOUCHER_ACTION_RATE_LIMITS', DEFAULT_ACTION_LIMITS)
    config = limits.get(action)
    if not config:
        return None
    limiter = limiter or get_rate_limiter()
    return limiter.check_or_allow(f"{action}:{code}:{ip}", config['limit'], config['window'])
