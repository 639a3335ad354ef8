"""
Claim authorization signatures.

The contract rebuilds the same packed message on-chain:

    keccak256(voucherId ‖ recipient ‖ deadline ‖ address(this) ‖ block.chainid)

and recovers the signer from the EIP-191 wrapped hash. Any byte of
difference here makes every claim revert with InvalidBackendSignature.
"""
from eth_account import Account
from eth_utils import keccak, to_bytes, to_hex

EIP191_PREFIX = b'\x19Ethereum Signed Message:\n32'


def _uint256(value):
    return int(value).to_bytes(32, 'big')


def encode_claim_message(voucher_id, recipient, deadline, contract_address, chain_id):
    """Packed 136-byte claim message: bytes32, address, uint256, address, uint256."""
    voucher_bytes = to_bytes(hexstr=voucher_id)
    recipient_bytes = to_bytes(hexstr=recipient)
    contract_bytes = to_bytes(hexstr=contract_address)
    if len(voucher_bytes) != 32 or len(recipient_bytes) != 20 or len(contract_bytes) != 20:
        raise ValueError('Malformed claim message field')
    return voucher_bytes + recipient_bytes + _uint256(deadline) + contract_bytes + _uint256(chain_id)


def claim_message_hash(voucher_id, recipient, deadline, contract_address, chain_id):
    return keccak(encode_claim_message(voucher_id, recipient, deadline, contract_address, chain_id))


def to_eth_signed_message_hash(message_hash):
    return keccak(EIP191_PREFIX + message_hash)


class ClaimSigner:
    """Signs claim messages with the backend key for one contract on one chain."""

    def __init__(self, private_key, contract_address, chain_id):
        if not private_key:
            raise ValueError('Backend private key is not configured')
        self._account = Account.from_key(private_key)
        self.contract_address = contract_address
        self.chain_id = int(chain_id)

    @property
    def address(self):
        return self._account.address

    def sign_claim(self, voucher_id, recipient, deadline):
        """Returns the 65-byte r‖s‖v signature (v in {27, 28}) as 0x-prefixed hex."""
        message_hash = claim_message_hash(voucher_id, recipient, deadline, self.contract_address, self.chain_id)
        # The digest is already EIP-191 wrapped, so it is signed as a raw hash exactly once
        signed = self._account.unsafe_sign_hash(to_eth_signed_message_hash(message_hash))
        return to_hex(signed.signature)
