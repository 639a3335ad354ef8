"""
Voucher event indexer.

Each tick reads the chain head, walks ``[cursor + 1, head]`` in fixed-size
block ranges, folds VoucherCreated / VoucherCancelled events into the code
registry and persists the cursor after every completed range. A failing
range aborts the tick; the next tick resumes from the last persisted range.
"""
import logging
from datetime import datetime, timezone as dt_timezone

from django.conf import settings
from django.db import IntegrityError, transaction

from vouchers.models import VoucherCode, generate_voucher_code

from .events import CREATED, CANCELLED, decode_voucher_log
from .evm_client import VoucherChainClient
from .models import IndexerCursor

logger = logging.getLogger(__name__)


class VoucherEventIndexer:
    MAX_CODE_ATTEMPTS = 5

    def __init__(self, client, batch_size=1000, cursor_name=IndexerCursor.VOUCHER, start_block=0,
                 max_ranges_per_tick=None):
        if batch_size < 1:
            raise ValueError('batch_size must be positive')
        if max_ranges_per_tick is not None and max_ranges_per_tick < 1:
            raise ValueError('max_ranges_per_tick must be positive')
        self.client = client
        self.batch_size = batch_size
        self.cursor_name = cursor_name
        self.start_block = start_block
        self.max_ranges_per_tick = max_ranges_per_tick

    @classmethod
    def from_settings(cls, client=None):
        return cls(
            client=client or VoucherChainClient(),
            batch_size=getattr(settings, 'VOUCHER_INDEXER_BATCH_SIZE', 1000),
            start_block=getattr(settings, 'VOUCHER_INDEXER_START_BLOCK', 0),
            max_ranges_per_tick=getattr(settings, 'VOUCHER_INDEXER_MAX_RANGES_PER_TICK', None),
        )

    def get_last_indexed_block(self):
        return IndexerCursor.get_block(self.cursor_name, default=self.start_block)

    def update_last_indexed_block(self, block):
        if not IndexerCursor.advance(self.cursor_name, block):
            logger.debug(f"[VoucherIndexer] cursor {self.cursor_name} already at or past {block}")

    def index_latest_events(self, heartbeat=None):
        """
        One indexer tick. Returns a summary dict; chain and DB errors propagate.

        At most ``max_ranges_per_tick`` ranges are walked; ``caught_up`` is False
        when the head was not reached. ``heartbeat`` is called after every
        persisted range and ends the tick early when it returns False.
        """
        head = self.client.get_block_number()
        last = self.get_last_indexed_block()
        if head <= last:
            return {'from_block': None, 'to_block': last, 'created': 0, 'cancelled': 0, 'caught_up': True}

        summary = {'from_block': last + 1, 'to_block': last, 'created': 0, 'cancelled': 0}
        start = last + 1
        ranges = 0
        while start <= head:
            if self.max_ranges_per_tick is not None and ranges >= self.max_ranges_per_tick:
                break
            end = min(start + self.batch_size - 1, head)
            counts = self.index_range(start, end)
            self.update_last_indexed_block(end)
            summary['to_block'] = end
            summary['created'] += counts['created']
            summary['cancelled'] += counts['cancelled']
            start = end + 1
            ranges += 1
            if heartbeat is not None and start <= head and not heartbeat():
                logger.warning(f"[VoucherIndexer] stopping tick after block {end}: lock lost")
                break
        summary['caught_up'] = summary['to_block'] >= head

        logger.info(
            f"[VoucherIndexer] indexed blocks {summary['from_block']}-{summary['to_block']}: "
            f"{summary['created']} created, {summary['cancelled']} cancelled"
        )
        return summary

    def index_range(self, from_block, to_block):
        counts = {'created': 0, 'cancelled': 0}
        block_times = {}
        for log in self.client.get_logs(from_block, to_block):
            event = decode_voucher_log(log)
            if event is None:
                continue
            if event.block_number not in block_times:
                block_times[event.block_number] = self._block_time(event.block_number)
            block_time = block_times[event.block_number]

            if event.kind == CREATED and self.handle_created(event, block_time):
                counts['created'] += 1
            elif event.kind == CANCELLED and self.handle_cancelled(event, block_time):
                counts['cancelled'] += 1
        return counts

    def handle_created(self, event, block_time):
        """Insert a registry row for a newly created voucher. No-op when one already exists."""
        if VoucherCode.objects.filter(voucher_id=event.voucher_id).exists():
            return False

        for _ in range(self.MAX_CODE_ATTEMPTS):
            try:
                with transaction.atomic():
                    VoucherCode.objects.create(
                        code=generate_voucher_code(),
                        voucher_id=event.voucher_id,
                        creator_address=event.creator,
                        amount=event.amount,
                        on_chain_created_at=block_time,
                    )
                logger.info(f"[VoucherIndexer] registered voucher {event.voucher_id} at block {event.block_number}")
                return True
            except IntegrityError:
                # Either a concurrent link creation won the voucher_id, or the code collided
                if VoucherCode.objects.filter(voucher_id=event.voucher_id).exists():
                    return False
        raise RuntimeError(f"Could not allocate a unique code for voucher {event.voucher_id}")

    def handle_cancelled(self, event, block_time):
        """Mark an active voucher cancelled. Missing, claimed or already-cancelled rows are left alone."""
        updated = VoucherCode.objects.filter(
            voucher_id=event.voucher_id, cancelled=False, claimed=False,
        ).update(cancelled=True, cancelled_at=block_time, cancel_tx_hash=event.tx_hash or None)
        if updated:
            logger.info(f"[VoucherIndexer] voucher {event.voucher_id} cancelled in {event.tx_hash}")
        else:
            logger.debug(f"[VoucherIndexer] cancel event for {event.voucher_id} ignored")
        return bool(updated)

    def _block_time(self, block_number):
        ts = self.client.get_block_timestamp(block_number)
        return datetime.fromtimestamp(ts, tz=dt_timezone.utc)
