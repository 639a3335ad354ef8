"""
Run the voucher event indexer as a long-lived loop
"""
import logging
import time

from django.conf import settings
from django.core.management.base import BaseCommand

from blockchain.event_indexer import VoucherEventIndexer

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Index VoucherCreated / VoucherCancelled events into the code registry'

    def add_arguments(self, parser):
        parser.add_argument(
            '--once',
            action='store_true',
            help='Run a single tick instead of polling continuously'
        )
        parser.add_argument(
            '--interval',
            type=int,
            default=None,
            help='Seconds between ticks (defaults to VOUCHER_INDEXER_POLL_INTERVAL)'
        )

    def handle(self, *args, **options):
        indexer = VoucherEventIndexer.from_settings()
        interval = options['interval'] or getattr(settings, 'VOUCHER_INDEXER_POLL_INTERVAL', 30)

        self.stdout.write(
            f"Starting voucher indexer from block {indexer.get_last_indexed_block()} "
            f"(batch {indexer.batch_size})..."
        )

        if options['once']:
            summary = indexer.index_latest_events()
            self.stdout.write(self.style.SUCCESS(f"Tick complete: {summary}"))
            return

        while True:
            caught_up = True
            try:
                summary = indexer.index_latest_events()
                caught_up = summary.get('caught_up', True)
            except Exception as e:
                logger.error(f"[VoucherIndexer] tick failed: {e}", exc_info=True)
            if caught_up:
                try:
                    time.sleep(interval)
                except KeyboardInterrupt:
                    self.stdout.write("\nStopping indexer...")
                    break
