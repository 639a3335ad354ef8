from django.test import SimpleTestCase
from eth_utils import keccak, to_hex
from hexbytes import HexBytes

from blockchain.constants import VOUCHER_CREATED_TOPIC, VOUCHER_CANCELLED_TOPIC, explain_revert
from blockchain.events import CREATED, CANCELLED, decode_voucher_log
from blockchain.tests.fakes import make_voucher_log, voucher_id_for

CREATOR = '0x70997970C51812dc3A010C7d01b50e0d17dc79C8'


class VoucherLogDecodingTest(SimpleTestCase):

    def test_topics_match_event_signatures(self):
        self.assertEqual(VOUCHER_CREATED_TOPIC, to_hex(keccak(text='VoucherCreated(bytes32,address,uint256)')))
        self.assertEqual(VOUCHER_CANCELLED_TOPIC, to_hex(keccak(text='VoucherCancelled(bytes32,address,uint256)')))
        self.assertNotEqual(VOUCHER_CREATED_TOPIC, VOUCHER_CANCELLED_TOPIC)

    def test_decodes_created_event(self):
        log = make_voucher_log('created', voucher_id_for(7), CREATOR, 25 * 10**18, block_number=120, log_index=3)

        event = decode_voucher_log(log)

        self.assertEqual(event.kind, CREATED)
        self.assertEqual(event.voucher_id, voucher_id_for(7))
        self.assertEqual(event.creator, CREATOR.lower())
        self.assertEqual(event.amount, str(25 * 10**18))
        self.assertEqual(event.block_number, 120)
        self.assertEqual(event.tx_hash, '0x' + f'{120:064x}')
        self.assertEqual(event.log_index, 3)

    def test_decodes_cancelled_event(self):
        event = decode_voucher_log(make_voucher_log('cancelled', voucher_id_for(9), CREATOR, 5, block_number=4))
        self.assertEqual(event.kind, CANCELLED)
        self.assertEqual(event.amount, '5')

    def test_amount_beyond_64_bits_is_kept_exact(self):
        amount = 2**200 + 1
        event = decode_voucher_log(make_voucher_log('created', voucher_id_for(1), CREATOR, amount, block_number=1))
        self.assertEqual(event.amount, str(amount))

    def test_unknown_topic_is_ignored(self):
        log = make_voucher_log('created', voucher_id_for(1), CREATOR, 1, block_number=1)
        log['topics'][0] = HexBytes(keccak(text='Transfer(address,address,uint256)'))
        self.assertIsNone(decode_voucher_log(log))

    def test_log_without_topics_is_ignored(self):
        self.assertIsNone(decode_voucher_log({'topics': [], 'data': b''}))


class RevertExplanationTest(SimpleTestCase):

    def test_known_selector_maps_to_user_message(self):
        self.assertEqual(
            explain_revert('execution reverted: 0xe13829d1'),
            'This voucher has already been claimed',
        )
        self.assertEqual(
            explain_revert('execution reverted: custom error 0x0bf31887'),
            'The claim authorization has expired - please request a new one',
        )

    def test_error_name_is_recognised(self):
        self.assertEqual(explain_revert('InvalidBackendSignature()'), 'Invalid signature - please try again')

    def test_unknown_error_returns_none(self):
        self.assertIsNone(explain_revert('insufficient funds for gas'))
        self.assertIsNone(explain_revert(None))
