"""
Gasless claim execution: the backend relayer submits ``claimVoucher`` on the
recipient's behalf and pays the gas.
"""
import logging

from blockchain.evm_client import ChainClientError

from .exceptions import TransactionSubmissionFailed
from .services import VoucherService, get_voucher_service

logger = logging.getLogger(__name__)


class GaslessClaimExecutor:
    def __init__(self, service: VoucherService, chain_client):
        self.service = service
        self.chain_client = chain_client

    def execute_claim(self, code, recipient, password=None) -> str:
        """
        Authorize and relay a claim; returns the transaction hash as soon as
        the node accepts it. The voucher is recorded with a pending claim tx,
        and the final outcome is folded in later through claim-status or sync.
        """
        auth = self.service.create_claim_authorization(code, recipient, password)
        try:
            tx_hash = self.chain_client.send_claim(
                auth.voucher_id, auth.recipient, auth.deadline, auth.signature,
            )
        except ChainClientError as e:
            logger.error(f"Failed to execute gasless claim for {auth.voucher_id}: {e}")
            raise TransactionSubmissionFailed(e.revert_message)

        self.service.record_claim_submission(auth.voucher_id, tx_hash)
        logger.info(f"Executed gasless claim transaction {tx_hash} for voucher {auth.voucher_id} to {recipient}")
        return tx_hash


def build_claim_executor(service=None) -> GaslessClaimExecutor:
    service = service or get_voucher_service()
    return GaslessClaimExecutor(service=service, chain_client=service.chain_client)
