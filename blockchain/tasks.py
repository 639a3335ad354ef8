from celery import shared_task
from django.conf import settings
from django.core.cache import cache
from django.db import connection
import logging
import uuid
from functools import wraps

logger = logging.getLogger(__name__)


def ensure_db_connection_closed(func):
    """Decorator to ensure database connections are properly closed after task execution"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        finally:
            connection.close()
    return wrapper


LOCK_KEY = 'locks:index_voucher_events'


class TickLock:
    """
    Cache lock owned by one tick through a unique token.

    ``refresh`` extends the TTL while the lock is still ours (or re-takes it
    after a lapse nobody else used) and reports False once another tick holds it.
    ``release`` only deletes the key while it still carries our token.
    """

    def __init__(self, key, timeout):
        self.key = key
        self.timeout = timeout
        self.token = uuid.uuid4().hex

    def acquire(self):
        return cache.add(self.key, self.token, timeout=self.timeout)

    def refresh(self):
        holder = cache.get(self.key)
        if holder is None:
            return cache.add(self.key, self.token, timeout=self.timeout)
        if holder != self.token:
            return False
        cache.touch(self.key, self.timeout)
        return True

    def release(self):
        if cache.get(self.key) == self.token:
            cache.delete(self.key)


@shared_task(name='blockchain.index_voucher_events')
@ensure_db_connection_closed
def index_voucher_events():
    """
    One voucher indexer tick (scheduled by beat).

    Ticks never overlap: a token-owned cache lock guards the run and is
    refreshed after every indexed range. Failures are logged and the next
    scheduled tick resumes from the last persisted cursor.
    """
    from .event_indexer import VoucherEventIndexer

    lock = TickLock(LOCK_KEY, getattr(settings, 'VOUCHER_INDEXER_LOCK_TIMEOUT', 300))
    if not lock.acquire():
        logger.info('[VoucherIndexer] Skipping run: another index_voucher_events is active')
        return {'skipped': True, 'reason': 'locked'}

    try:
        indexer = VoucherEventIndexer.from_settings()
        return indexer.index_latest_events(heartbeat=lock.refresh)
    except Exception as e:
        logger.error(f"[VoucherIndexer] tick failed: {e}", exc_info=True)
        return {'error': str(e)}
    finally:
        lock.release()
