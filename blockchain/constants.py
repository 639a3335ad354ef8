from eth_utils import keccak, to_hex

ZERO_ADDRESS = '0x' + '0' * 40

VOUCHER_CREATED_SIGNATURE = 'VoucherCreated(bytes32,address,uint256)'
VOUCHER_CANCELLED_SIGNATURE = 'VoucherCancelled(bytes32,address,uint256)'

VOUCHER_CREATED_TOPIC = to_hex(keccak(text=VOUCHER_CREATED_SIGNATURE))
VOUCHER_CANCELLED_TOPIC = to_hex(keccak(text=VOUCHER_CANCELLED_SIGNATURE))

# Minimal ABI for the voucher contract: the view and write calls the backend uses
VOUCHER_CONTRACT_ABI = [
    {
        'name': 'vouchers',
        'type': 'function',
        'stateMutability': 'view',
        'inputs': [{'name': 'voucherId', 'type': 'bytes32'}],
        'outputs': [
            {'name': 'creator', 'type': 'address'},
            {'name': 'amount', 'type': 'uint256'},
            {'name': 'claimed', 'type': 'bool'},
        ],
    },
    {
        'name': 'claimVoucher',
        'type': 'function',
        'stateMutability': 'nonpayable',
        'inputs': [
            {'name': 'voucherId', 'type': 'bytes32'},
            {'name': 'recipient', 'type': 'address'},
            {'name': 'deadline', 'type': 'uint256'},
            {'name': 'signature', 'type': 'bytes'},
        ],
        'outputs': [],
    },
]

# Custom error selectors of the voucher contract -> (error name, user-facing message)
CONTRACT_REVERT_REASONS = {
    '0x3f686685': ('VoucherDoesNotExist', 'This voucher does not exist on-chain'),
    '0xe13829d1': ('VoucherAlreadyClaimed', 'This voucher has already been claimed'),
    '0x64869dad': ('InvalidBackendSignature', 'Invalid signature - please try again'),
    '0x0bf31887': ('SignatureExpired', 'The claim authorization has expired - please request a new one'),
    '0x2c5a3af5': ('InvalidAmount', 'Invalid voucher amount'),
    '0x90b8ec18': ('TransferFailed', 'Token transfer failed - please check your wallet'),
}


def explain_revert(error_text):
    """Map a revert payload or RPC error string to a user-facing message, if recognised."""
    if not error_text:
        return None
    lowered = str(error_text).lower()
    for selector, (name, message) in CONTRACT_REVERT_REASONS.items():
        if selector[2:] in lowered or name.lower() in lowered:
            return message
    return None
