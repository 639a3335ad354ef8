import re

from .exceptions import InvalidFormat, InvalidRecipient

ADDRESS_RE = re.compile(r'^0x[0-9a-fA-F]{40}$')
BYTES32_RE = re.compile(r'^0x[0-9a-fA-F]{64}$')


def is_valid_address(value):
    return bool(value) and isinstance(value, str) and bool(ADDRESS_RE.match(value))


def normalize_address(value):
    """Lowercased 0x address, or InvalidRecipient."""
    if not is_valid_address(value):
        raise InvalidRecipient()
    return value.lower()


def normalize_voucher_id(value):
    if not value or not isinstance(value, str) or not BYTES32_RE.match(value):
        raise InvalidFormat('Invalid voucher ID format')
    return value.lower()


def normalize_tx_hash(value):
    if not value or not isinstance(value, str) or not BYTES32_RE.match(value):
        raise InvalidFormat('Invalid transaction hash format')
    return value.lower()


def normalize_code(value):
    """Codes are matched case-insensitively; surrounding whitespace is ignored."""
    if not value or not isinstance(value, str):
        raise InvalidFormat('Voucher code is required')
    return value.strip().upper()
