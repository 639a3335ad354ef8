import secrets
import string

from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.db.models import Q

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 16


def generate_voucher_code():
    """Fresh shareable claim code (16 chars from A-Z0-9, ~82 bits of entropy)."""
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class VoucherCode(models.Model):
    """Maps an on-chain voucher id to the human-shareable code handed to the recipient."""

    TX_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('success', 'Success'),
        ('failed', 'Failed'),
    ]

    code = models.CharField(max_length=32, unique=True, editable=False)
    voucher_id = models.CharField(max_length=66, unique=True, help_text='0x-prefixed bytes32, lowercase')
    password_hash = models.CharField(max_length=256, null=True, blank=True)

    creator_address = models.CharField(max_length=42, null=True, blank=True, db_index=True)
    amount = models.CharField(max_length=80, null=True, blank=True, help_text='uint256 as decimal string')

    claimed = models.BooleanField(default=False)
    claimed_by = models.CharField(max_length=42, null=True, blank=True, db_index=True)
    claimed_at = models.DateTimeField(null=True, blank=True)
    claim_tx_hash = models.CharField(max_length=66, null=True, blank=True, db_index=True)
    claim_tx_status = models.CharField(max_length=10, choices=TX_STATUS_CHOICES, null=True, blank=True)
    claim_tx_submitted_at = models.DateTimeField(null=True, blank=True)

    cancelled = models.BooleanField(default=False)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_tx_hash = models.CharField(max_length=66, null=True, blank=True)

    on_chain_created_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=~Q(claimed=True, cancelled=True),
                name='voucher_not_claimed_and_cancelled',
            ),
        ]

    def __str__(self):
        return f"{self.code} -> {self.voucher_id} ({self.status})"

    @property
    def status(self):
        if self.cancelled:
            return 'cancelled'
        if self.claimed:
            return 'claimed'
        return 'pending'

    @property
    def has_password(self):
        return bool(self.password_hash)

    def set_password(self, raw_password):
        self.password_hash = make_password(raw_password) if raw_password else None

    def check_password(self, raw_password):
        """True when no password is set, or when ``raw_password`` matches the stored digest."""
        if not self.password_hash:
            return True
        if not raw_password:
            return False
        return check_password(raw_password, self.password_hash)


class ClaimAttempt(models.Model):
    """Append-only audit trail of claim and verify attempts."""

    voucher_code = models.CharField(max_length=32, db_index=True)
    ip_address = models.CharField(max_length=45, null=True, blank=True)
    recipient_address = models.CharField(max_length=42, null=True, blank=True)
    success = models.BooleanField(default=False)
    attempted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-attempted_at']
        indexes = [
            models.Index(fields=['voucher_code', 'attempted_at'], name='claim_attempt_code_time_idx'),
        ]

    def __str__(self):
        outcome = 'ok' if self.success else 'failed'
        return f"{self.voucher_code} from {self.ip_address} ({outcome})"
