"""
Decoding of voucher contract logs into typed events.

Both events share the layout ``(bytes32 indexed voucherId, address indexed
creator, uint256 amount)``: id and creator arrive as topics, amount in data.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from eth_abi import decode
from eth_utils import to_hex
from hexbytes import HexBytes

from .constants import VOUCHER_CREATED_TOPIC, VOUCHER_CANCELLED_TOPIC

logger = logging.getLogger(__name__)

CREATED = 'created'
CANCELLED = 'cancelled'

_TOPIC_KINDS = {
    VOUCHER_CREATED_TOPIC: CREATED,
    VOUCHER_CANCELLED_TOPIC: CANCELLED,
}


@dataclass(frozen=True)
class VoucherEvent:
    kind: str
    voucher_id: str
    creator: str
    amount: str
    block_number: int
    tx_hash: str
    log_index: int = 0


def _topic_hex(topic) -> str:
    return to_hex(HexBytes(topic)).lower()


def decode_voucher_log(log) -> Optional[VoucherEvent]:
    """Decode one raw log; returns None for logs that are not voucher events."""
    topics = log.get('topics') or []
    if not topics:
        return None

    kind = _TOPIC_KINDS.get(_topic_hex(topics[0]))
    if kind is None:
        return None
    if len(topics) < 3:
        logger.warning(f"[VoucherEvents] {kind} log without indexed fields, skipping")
        return None

    voucher_id = _topic_hex(topics[1])
    creator = to_hex(bytes(HexBytes(topics[2])[-20:])).lower()

    data = HexBytes(log.get('data') or b'')
    amount = decode(['uint256'], bytes(data))[0] if data else 0

    tx_hash = log.get('transactionHash')
    return VoucherEvent(
        kind=kind,
        voucher_id=voucher_id,
        creator=creator,
        amount=str(amount),
        block_number=int(log.get('blockNumber') or 0),
        tx_hash=_topic_hex(tx_hash) if tx_hash is not None else '',
        log_index=int(log.get('logIndex') or 0),
    )
