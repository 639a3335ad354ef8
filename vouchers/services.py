"""
Voucher registry and claim authorization service.

The service owns every read and write of the code registry outside the event
indexer: link creation, password-gated verification, claim authorization
signing and the reconciliation of claim outcomes back into the registry.
"""
import logging
import time
from dataclasses import dataclass, asdict

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from blockchain.evm_client import ChainClientError, VoucherChainClient

from .exceptions import (
    AlreadyClaimed,
    Forbidden,
    InvalidFormat,
    NotFound,
    Unauthorized,
    UpstreamUnavailable,
    VoucherCancelled,
)
from .models import ClaimAttempt, VoucherCode, generate_voucher_code
from .signing import ClaimSigner
from .validators import (
    is_valid_address,
    normalize_address,
    normalize_code,
    normalize_tx_hash,
    normalize_voucher_id,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimAuthorization:
    voucher_id: str
    recipient: str
    amount: str
    deadline: int
    signature: str
    contract_address: str

    def as_dict(self):
        return asdict(self)


class VoucherService:
    MAX_CODE_ATTEMPTS = 5
    LIST_TYPES = ('created', 'received')
    MAX_PAGE_SIZE = 100

    def __init__(self, signer: ClaimSigner, chain_client=None, deadline_seconds=3600, clock=time.time):
        self.signer = signer
        self.chain_client = chain_client
        self.deadline_seconds = deadline_seconds
        self.clock = clock

    @property
    def wallet_address(self):
        return self.signer.address

    # Lookups

    def get_voucher_by_code(self, code) -> VoucherCode:
        try:
            return VoucherCode.objects.get(code=normalize_code(code))
        except VoucherCode.DoesNotExist:
            raise NotFound()

    def get_voucher_by_id(self, voucher_id) -> VoucherCode:
        try:
            return VoucherCode.objects.get(voucher_id=normalize_voucher_id(voucher_id))
        except VoucherCode.DoesNotExist:
            raise NotFound()

    def _check_claimable(self, voucher, password):
        if voucher.cancelled:
            raise VoucherCancelled()
        if voucher.claimed:
            raise AlreadyClaimed()
        if voucher.has_password:
            if not password:
                raise Unauthorized('Password required')
            if not voucher.check_password(password):
                raise Unauthorized('Invalid password')

    # Claim authorization

    def create_claim_authorization(self, code, recipient, password=None) -> ClaimAuthorization:
        """
        Sign a claim authorization for ``recipient``.

        Gates run in order: unknown code, cancelled, already claimed, password,
        recipient format. Nothing is written; repeated calls yield fresh deadlines.
        """
        voucher = self.get_voucher_by_code(code)
        self._check_claimable(voucher, password)
        normalize_address(recipient)

        deadline = int(self.clock()) + self.deadline_seconds
        signature = self.signer.sign_claim(voucher.voucher_id, recipient, deadline)
        return ClaimAuthorization(
            voucher_id=voucher.voucher_id,
            recipient=recipient,
            amount=voucher.amount or '0',
            deadline=deadline,
            signature=signature,
            contract_address=self.signer.contract_address,
        )

    def verify_voucher(self, code, password=None) -> dict:
        voucher = self.get_voucher_by_code(code)
        self._check_claimable(voucher, password)
        return {
            'valid': True,
            'status': voucher.status,
            'voucher': {
                'voucher_id': voucher.voucher_id,
                'amount': voucher.amount or '0',
                'creator_address': voucher.creator_address,
                'claimed': voucher.claimed,
                'cancelled': voucher.cancelled,
            },
            'hasPassword': voucher.has_password,
        }

    # Registry writes

    def create_voucher_link(self, voucher_id, password=None, creator_address=None, amount=None) -> str:
        """Return the shareable code for ``voucher_id``, creating the mapping on first use."""
        voucher_id = normalize_voucher_id(voucher_id)
        if creator_address is not None:
            if not is_valid_address(creator_address):
                raise InvalidFormat('Invalid creator address')
            creator_address = creator_address.lower()
        if amount is not None:
            amount = str(amount)
            if not amount.isdigit():
                raise InvalidFormat('Amount must be a non-negative integer string')

        existing = VoucherCode.objects.filter(voucher_id=voucher_id).first()
        if existing:
            return self._refresh_password(existing, password)

        if creator_address is None or amount is None:
            on_chain = self._fetch_on_chain(voucher_id)
            if on_chain is not None and on_chain.exists:
                creator_address = creator_address or on_chain.creator
                amount = amount if amount is not None else str(on_chain.amount)

        for _ in range(self.MAX_CODE_ATTEMPTS):
            voucher = VoucherCode(
                code=generate_voucher_code(),
                voucher_id=voucher_id,
                creator_address=creator_address,
                amount=amount,
            )
            voucher.set_password(password)
            try:
                with transaction.atomic():
                    voucher.save()
                logger.info(f"Created voucher link with code {voucher.code} for voucher_id {voucher_id}")
                return voucher.code
            except IntegrityError:
                survivor = VoucherCode.objects.filter(voucher_id=voucher_id).first()
                if survivor:
                    return self._refresh_password(survivor, password)
        raise RuntimeError(f"Could not allocate a unique code for voucher {voucher_id}")

    def _refresh_password(self, voucher, password):
        if password:
            voucher.set_password(password)
            voucher.save(update_fields=['password_hash'])
        return voucher.code

    def _fetch_on_chain(self, voucher_id):
        if self.chain_client is None:
            return None
        try:
            return self.chain_client.get_voucher(voucher_id)
        except ChainClientError as e:
            logger.info(f"Failed to fetch voucher {voucher_id} from chain: {e}")
            return None

    def record_claim_submission(self, voucher_id, tx_hash):
        """Remember a relayed claim transaction as pending."""
        VoucherCode.objects.filter(voucher_id=voucher_id, claimed=False).update(
            claim_tx_hash=tx_hash,
            claim_tx_status='pending',
            claim_tx_submitted_at=timezone.now(),
        )

    def update_claim_status(self, code, tx_hash, success, recipient=None):
        """
        Fold a claim transaction outcome into the registry.

        On success the voucher becomes claimed by ``recipient`` or, when not
        given, by the recipient of the most recent claim attempt.
        """
        tx_hash = normalize_tx_hash(tx_hash)
        voucher = self.get_voucher_by_code(code)

        if not success:
            VoucherCode.objects.filter(pk=voucher.pk, claimed=False).update(
                claim_tx_hash=tx_hash, claim_tx_status='failed',
            )
            logger.info(f"Claim tx {tx_hash} for voucher {voucher.code} failed")
            return 'Claim failed'

        if voucher.cancelled:
            raise VoucherCancelled()
        if voucher.claimed:
            if voucher.claim_tx_hash == tx_hash:
                return 'Voucher claimed successfully'
            raise AlreadyClaimed()

        claimed_by = normalize_address(recipient) if recipient else self._latest_recipient(voucher.code)
        if not claimed_by:
            raise InvalidFormat('No claim recipient known for this voucher')

        updated = VoucherCode.objects.filter(pk=voucher.pk, claimed=False, cancelled=False).update(
            claimed=True,
            claimed_by=claimed_by,
            claimed_at=timezone.now(),
            claim_tx_hash=tx_hash,
            claim_tx_status='success',
        )
        if not updated:
            raise AlreadyClaimed()
        logger.info(f"Voucher {voucher.code} successfully claimed by {claimed_by} in tx {tx_hash}")
        return 'Voucher claimed successfully'

    def _latest_recipient(self, code):
        """Recipient of the newest successful claim attempt, else of the newest attempt naming one."""
        attempts = (
            ClaimAttempt.objects.filter(voucher_code=code, recipient_address__isnull=False)
            .exclude(recipient_address='')
            .order_by('-attempted_at', '-id')
        )
        recipient = attempts.filter(success=True).values_list('recipient_address', flat=True).first()
        return recipient or attempts.values_list('recipient_address', flat=True).first()

    def sync_voucher_status(self, voucher_id) -> dict:
        """Compare the registry row with the contract record and adopt the on-chain state."""
        voucher = self.get_voucher_by_id(voucher_id)
        if self.chain_client is None:
            raise UpstreamUnavailable()
        try:
            on_chain = self.chain_client.get_voucher(voucher.voucher_id)
        except ChainClientError as e:
            logger.error(f"Failed to read voucher {voucher.voucher_id} on-chain: {e}")
            raise UpstreamUnavailable()

        updated = False
        now = timezone.now()
        if on_chain.is_cancelled and not voucher.cancelled:
            if voucher.claimed:
                logger.warning(f"Voucher {voucher.voucher_id} is cancelled on-chain but claimed locally")
            else:
                voucher.cancelled = True
                voucher.cancelled_at = now
                voucher.save(update_fields=['cancelled', 'cancelled_at'])
                updated = True

        if on_chain.is_claimed and not voucher.claimed:
            if voucher.cancelled:
                logger.warning(f"Voucher {voucher.voucher_id} is claimed on-chain but cancelled locally")
            else:
                voucher.claimed = True
                voucher.claimed_at = now
                voucher.claimed_by = voucher.claimed_by or self._latest_recipient(voucher.code)
                fields = ['claimed', 'claimed_at', 'claimed_by']
                if voucher.claim_tx_hash:
                    voucher.claim_tx_status = 'success'
                    fields.append('claim_tx_status')
                voucher.save(update_fields=fields)
                updated = True

        return {
            'voucher_id': voucher.voucher_id,
            'code': voucher.code,
            'claimed': voucher.claimed,
            'cancelled': voucher.cancelled,
            'on_chain_claimed': on_chain.claimed,
            'on_chain_cancelled': on_chain.is_cancelled,
            'synced': updated,
            'message': 'Database updated with on-chain status' if updated else 'Database already in sync',
        }

    def delete_voucher(self, voucher_id, requester_address=None):
        """Soft delete: mark the voucher cancelled. Only the creator may do so when they identify themselves."""
        voucher = self.get_voucher_by_id(voucher_id)
        if requester_address and (voucher.creator_address or '').lower() != requester_address.lower():
            raise Forbidden('You can only delete your own vouchers')
        if voucher.claimed:
            raise AlreadyClaimed()
        if not voucher.cancelled:
            voucher.cancelled = True
            voucher.cancelled_at = timezone.now()
            voucher.save(update_fields=['cancelled', 'cancelled_at'])
            logger.info(f"Voucher {voucher.voucher_id} marked as deleted/cancelled")
        return voucher

    # Reads

    def get_claim_tx(self, tx_hash) -> VoucherCode:
        voucher = VoucherCode.objects.filter(claim_tx_hash=normalize_tx_hash(tx_hash)).first()
        if voucher is None:
            raise NotFound('Transaction not found')
        return voucher

    def list_user_vouchers(self, address, query_type='created', page=0, limit=20):
        if not is_valid_address(address):
            raise InvalidFormat('Invalid Ethereum address')
        if query_type not in self.LIST_TYPES:
            raise InvalidFormat("Invalid query type. Use 'created' or 'received'")
        page = max(0, int(page))
        limit = max(1, min(int(limit), self.MAX_PAGE_SIZE))
        offset = page * limit

        if query_type == 'created':
            qs = VoucherCode.objects.filter(
                creator_address__iexact=address, cancelled=False,
            ).order_by('-created_at')
        else:
            qs = VoucherCode.objects.filter(claimed_by__iexact=address).order_by('-claimed_at')
        return list(qs[offset:offset + limit]), page, limit

    # Audit

    def record_attempt(self, code, ip_address, recipient=None, success=False):
        """Append a claim attempt row. Audit failures never fail the request."""
        try:
            return ClaimAttempt.objects.create(
                voucher_code=(code or '')[:32],
                ip_address=ip_address or None,
                recipient_address=recipient.lower() if is_valid_address(recipient) else None,
                success=success,
            )
        except Exception as e:
            logger.warning(f"Failed to record claim attempt for {code}: {e}")
            return None

    def mark_attempt_success(self, attempt):
        if attempt is None:
            return
        try:
            ClaimAttempt.objects.filter(pk=attempt.pk).update(success=True)
        except Exception as e:
            logger.warning(f"Failed to update claim attempt {attempt.pk}: {e}")


_voucher_service = None


def build_voucher_service(chain_client=None) -> VoucherService:
    signer = ClaimSigner(
        private_key=settings.BACKEND_PRIVATE_KEY,
        contract_address=settings.VOUCHER_CONTRACT_ADDRESS,
        chain_id=settings.EVM_CHAIN_ID,
    )
    return VoucherService(
        signer=signer,
        chain_client=chain_client or VoucherChainClient(),
        deadline_seconds=getattr(settings, 'VOUCHER_CLAIM_DEADLINE_SECONDS', 3600),
    )


def get_voucher_service() -> VoucherService:
    global _voucher_service
    if _voucher_service is None:
        _voucher_service = build_voucher_service()
    return _voucher_service
