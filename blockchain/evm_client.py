"""
EVM RPC adapter for the voucher contract.

Wraps web3.py so the indexer, the claim engine and the executor depend on a
small surface (block number, logs, block time, voucher view, claim submit)
that tests can replace with a fake.
"""
import logging
from dataclasses import dataclass
from typing import List

from django.conf import settings
from eth_account import Account
from eth_utils import to_checksum_address, to_bytes
from web3 import Web3
from web3.exceptions import ContractLogicError

from .constants import (
    VOUCHER_CONTRACT_ABI,
    VOUCHER_CREATED_TOPIC,
    VOUCHER_CANCELLED_TOPIC,
    ZERO_ADDRESS,
    explain_revert,
)

logger = logging.getLogger(__name__)


class ChainClientError(Exception):
    """RPC or contract failure. ``revert_message`` is set for known contract reverts."""

    def __init__(self, message, revert_message=None):
        super().__init__(message)
        self.revert_message = revert_message


@dataclass(frozen=True)
class OnChainVoucher:
    creator: str
    amount: int
    claimed: bool

    @property
    def exists(self) -> bool:
        return self.creator.lower() != ZERO_ADDRESS

    @property
    def is_cancelled(self) -> bool:
        # The contract clears the creator and sets claimed when a voucher is cancelled
        return self.claimed and not self.exists

    @property
    def is_claimed(self) -> bool:
        return self.claimed and self.exists


class VoucherChainClient:
    """Thin web3.py client bound to one voucher contract on one chain."""

    def __init__(self, rpc_url=None, contract_address=None, chain_id=None,
                 relayer_private_key=None, timeout=None, gas_limit=None):
        self.rpc_url = rpc_url or getattr(settings, 'EVM_RPC_URL', '')
        self.contract_address = to_checksum_address(
            contract_address or getattr(settings, 'VOUCHER_CONTRACT_ADDRESS')
        )
        self.chain_id = int(chain_id or getattr(settings, 'EVM_CHAIN_ID', 42161))
        self.relayer_private_key = relayer_private_key or getattr(settings, 'RELAYER_PRIVATE_KEY', '')
        self.timeout = timeout or getattr(settings, 'EVM_RPC_TIMEOUT', 10)
        self.gas_limit = gas_limit or getattr(settings, 'VOUCHER_CLAIM_GAS_LIMIT', 200_000)

        self._w3 = None
        self._contract = None
        self._relayer = None

    @property
    def w3(self) -> Web3:
        if self._w3 is None:
            self._w3 = Web3(Web3.HTTPProvider(self.rpc_url, request_kwargs={'timeout': self.timeout}))
        return self._w3

    @property
    def contract(self):
        if self._contract is None:
            self._contract = self.w3.eth.contract(address=self.contract_address, abi=VOUCHER_CONTRACT_ABI)
        return self._contract

    @property
    def relayer(self):
        if self._relayer is None:
            if not self.relayer_private_key:
                raise ChainClientError('Relayer private key is not configured')
            self._relayer = Account.from_key(self.relayer_private_key)
        return self._relayer

    def get_block_number(self) -> int:
        try:
            return int(self.w3.eth.block_number)
        except Exception as e:
            raise ChainClientError(f"Failed to read block number: {e}") from e

    def get_block_timestamp(self, block_number: int) -> int:
        try:
            block = self.w3.eth.get_block(block_number)
        except Exception as e:
            raise ChainClientError(f"Failed to read block {block_number}: {e}") from e
        return int(block['timestamp'])

    def get_logs(self, from_block: int, to_block: int) -> List[dict]:
        """Voucher created/cancelled logs of the contract in ``[from_block, to_block]``."""
        try:
            return list(self.w3.eth.get_logs({
                'address': self.contract_address,
                'fromBlock': from_block,
                'toBlock': to_block,
                'topics': [[VOUCHER_CREATED_TOPIC, VOUCHER_CANCELLED_TOPIC]],
            }))
        except Exception as e:
            raise ChainClientError(f"Failed to fetch logs {from_block}-{to_block}: {e}") from e

    def get_voucher(self, voucher_id: str) -> OnChainVoucher:
        try:
            creator, amount, claimed = self.contract.functions.vouchers(
                to_bytes(hexstr=voucher_id)
            ).call()
        except Exception as e:
            raise ChainClientError(f"Failed to read voucher {voucher_id}: {e}") from e
        return OnChainVoucher(creator=str(creator).lower(), amount=int(amount), claimed=bool(claimed))

    def send_claim(self, voucher_id: str, recipient: str, deadline: int, signature: str) -> str:
        """Sign and broadcast ``claimVoucher`` from the relayer; returns the tx hash without waiting."""
        relayer = self.relayer
        try:
            fn = self.contract.functions.claimVoucher(
                to_bytes(hexstr=voucher_id),
                to_checksum_address(recipient),
                int(deadline),
                to_bytes(hexstr=signature),
            )
            tx = fn.build_transaction({
                'chainId': self.chain_id,
                'from': relayer.address,
                'nonce': self.w3.eth.get_transaction_count(relayer.address, 'pending'),
                'gas': self.gas_limit,
                'gasPrice': self.w3.eth.gas_price,
            })
            signed = self.w3.eth.account.sign_transaction(tx, private_key=self.relayer_private_key)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as e:
            revert = explain_revert(getattr(e, 'data', None)) or explain_revert(str(e))
            raise ChainClientError(f"Claim reverted: {e}", revert_message=revert) from e
        except Exception as e:
            raise ChainClientError(f"Failed to submit claim: {e}", revert_message=explain_revert(str(e))) from e
        return self.w3.to_hex(tx_hash)
