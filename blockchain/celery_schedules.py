"""
Celery beat schedules for blockchain tasks
"""
from decouple import config

BLOCKCHAIN_CELERY_BEAT_SCHEDULE = {
    # Voucher created/cancelled event scan
    'index-voucher-events': {
        'task': 'blockchain.index_voucher_events',
        'schedule': float(config('VOUCHER_INDEXER_POLL_INTERVAL', default=30, cast=int)),
    },
}
