from django.test import SimpleTestCase
from eth_abi.packed import encode_packed
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak, to_bytes, to_checksum_address

from vouchers.signing import (
    ClaimSigner,
    claim_message_hash,
    encode_claim_message,
    to_eth_signed_message_hash,
)

# Well-known development key; its address is public knowledge
DEV_KEY = '0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80'
DEV_ADDRESS = '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'

CONTRACT = '0x66Eb0Aa46827e5F3fFcb6Dea23C309CB401690B6'
CHAIN_ID = 42161
VOUCHER_ID = '0x' + '1f' * 32
RECIPIENT = '0x70997970c51812dc3a010c7d01b50e0d17dc79c8'
DEADLINE = 1_700_003_600


class ClaimMessageLayoutTest(SimpleTestCase):

    def test_layout_matches_abi_encode_packed(self):
        expected = encode_packed(
            ['bytes32', 'address', 'uint256', 'address', 'uint256'],
            [to_bytes(hexstr=VOUCHER_ID), to_checksum_address(RECIPIENT), DEADLINE,
             to_checksum_address(CONTRACT), CHAIN_ID],
        )
        message = encode_claim_message(VOUCHER_ID, RECIPIENT, DEADLINE, CONTRACT, CHAIN_ID)

        self.assertEqual(message, expected)
        self.assertEqual(len(message), 32 + 20 + 32 + 20 + 32)

    def test_field_offsets(self):
        message = encode_claim_message(VOUCHER_ID, RECIPIENT, DEADLINE, CONTRACT, CHAIN_ID)

        self.assertEqual(message[:32], to_bytes(hexstr=VOUCHER_ID))
        self.assertEqual(message[32:52], to_bytes(hexstr=RECIPIENT))
        self.assertEqual(int.from_bytes(message[52:84], 'big'), DEADLINE)
        self.assertEqual(message[84:104], to_bytes(hexstr=CONTRACT))
        self.assertEqual(int.from_bytes(message[104:136], 'big'), CHAIN_ID)

    def test_address_case_does_not_change_message(self):
        self.assertEqual(
            claim_message_hash(VOUCHER_ID, RECIPIENT, DEADLINE, CONTRACT, CHAIN_ID),
            claim_message_hash(VOUCHER_ID, to_checksum_address(RECIPIENT), DEADLINE, CONTRACT.lower(), CHAIN_ID),
        )

    def test_malformed_field_is_rejected(self):
        with self.assertRaises(ValueError):
            encode_claim_message('0x1234', RECIPIENT, DEADLINE, CONTRACT, CHAIN_ID)

    def test_eip191_digest(self):
        message_hash = claim_message_hash(VOUCHER_ID, RECIPIENT, DEADLINE, CONTRACT, CHAIN_ID)
        self.assertEqual(
            to_eth_signed_message_hash(message_hash),
            keccak(b'\x19Ethereum Signed Message:\n32' + message_hash),
        )


class ClaimSignerTest(SimpleTestCase):

    def setUp(self):
        self.signer = ClaimSigner(DEV_KEY, CONTRACT, CHAIN_ID)

    def test_address_derived_from_key(self):
        self.assertEqual(self.signer.address, DEV_ADDRESS)

    def test_signature_recovers_to_backend_address(self):
        signature = self.signer.sign_claim(VOUCHER_ID, RECIPIENT, DEADLINE)

        # Rebuild the digest independently, the way the contract does
        packed = encode_packed(
            ['bytes32', 'address', 'uint256', 'address', 'uint256'],
            [to_bytes(hexstr=VOUCHER_ID), to_checksum_address(RECIPIENT), DEADLINE,
             to_checksum_address(CONTRACT), CHAIN_ID],
        )
        recovered = Account.recover_message(encode_defunct(primitive=keccak(packed)), signature=signature)

        self.assertEqual(recovered, DEV_ADDRESS)

    def test_signature_encoding(self):
        signature = self.signer.sign_claim(VOUCHER_ID, RECIPIENT, DEADLINE)

        self.assertTrue(signature.startswith('0x'))
        self.assertEqual(len(signature), 2 + 130)
        self.assertIn(int(signature[-2:], 16), (27, 28))

    def test_signature_binds_every_field(self):
        base = self.signer.sign_claim(VOUCHER_ID, RECIPIENT, DEADLINE)
        other_signer = ClaimSigner(DEV_KEY, CONTRACT, 1)

        self.assertNotEqual(base, self.signer.sign_claim(VOUCHER_ID, RECIPIENT, DEADLINE + 1))
        self.assertNotEqual(base, self.signer.sign_claim('0x' + '2e' * 32, RECIPIENT, DEADLINE))
        self.assertNotEqual(base, other_signer.sign_claim(VOUCHER_ID, RECIPIENT, DEADLINE))

    def test_missing_key_is_rejected(self):
        with self.assertRaises(ValueError):
            ClaimSigner('', CONTRACT, CHAIN_ID)
