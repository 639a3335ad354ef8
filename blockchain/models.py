from django.db import models
from django.utils import timezone


class IndexerCursor(models.Model):
    """Per-indexer cursor: the highest block fully processed by that indexer."""
    VOUCHER = 'voucher'
    TOKEN_TRANSFER = 'token_transfer'

    KNOWN_NAMES = (VOUCHER, TOKEN_TRANSFER)

    name = models.CharField(max_length=64, unique=True, db_index=True)
    last_indexed_block = models.BigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['last_indexed_block'], name='indexer_cursor_block_idx'),
        ]

    def __str__(self):
        return f"{self.name} @ {self.last_indexed_block}"

    @classmethod
    def get_block(cls, name, default=0):
        row = cls.objects.filter(name=name).values_list('last_indexed_block', flat=True).first()
        return default if row is None else row

    @classmethod
    def advance(cls, name, block):
        """Move the cursor forward to ``block``; never moves it backwards.

        Returns True when the stored value changed.
        """
        _, created = cls.objects.get_or_create(
            name=name, defaults={'last_indexed_block': block}
        )
        if created:
            return True
        updated = cls.objects.filter(
            name=name, last_indexed_block__lt=block
        ).update(last_indexed_block=block, updated_at=timezone.now())
        return bool(updated)
