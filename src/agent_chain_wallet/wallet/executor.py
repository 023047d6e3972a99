"""Build, sign, submit and confirm transactions for one account."""

from __future__ import annotations

import logging
import threading

from web3 import Web3

from agent_chain_wallet.errors import ChainError, TransactionRevertedError
from agent_chain_wallet.wallet.models import TransactionOutcome, TransactionRequest, TxStatus
from agent_chain_wallet.wallet.provider import ChainClient
from agent_chain_wallet.wallet.signer import AccountSigner

logger = logging.getLogger("agent_chain_wallet.wallet.executor")

DEFAULT_RECEIPT_TIMEOUT = 120.0
DEFAULT_POLL_INTERVAL = 1.0
PRIORITY_FEE_WEI = Web3.to_wei(1.5, "gwei")


class TransactionExecutor:
    """Submits transactions from one signer, one at a time.

    Writes are serialized by a per-executor lock that is held from nonce
    lookup until the receipt is observed, so two calls on the same account
    never race for a nonce. Executors for different accounts share nothing
    except, possibly, the chain client.
    """

    def __init__(
        self,
        client: ChainClient,
        signer: AccountSigner,
        *,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.client = client
        self.signer = signer
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self._lock = threading.Lock()

    def _check_chain(self, request: TransactionRequest) -> int:
        if request.chain_id is not None and request.chain_id != self.client.chain_id:
            raise ChainError(
                f"Request targets chain {request.chain_id} but the client is "
                f"connected to {self.client.chain.name} ({self.client.chain_id})"
            )
        return self.client.chain_id

    def _base_tx(self, request: TransactionRequest) -> dict:
        tx: dict = {
            "from": self.signer.address,
            "to": request.to,
            "value": request.value,
            "chainId": self._check_chain(request),
        }
        if request.data:
            tx["data"] = "0x" + request.data.hex()
        return tx

    def estimate_gas(self, request: TransactionRequest) -> int:
        """Estimate gas units for *request* without signing or sending."""
        return self.client.estimate_gas(self._base_tx(request))

    def build_transaction(self, request: TransactionRequest) -> dict:
        """Populate nonce, fees and gas for *request*.

        Uses EIP-1559 fee parameters with a legacy gas price fallback.
        """
        tx = self._base_tx(request)
        tx["nonce"] = self.client.get_transaction_count(self.signer.address, "pending")

        try:
            base_fee = self.client.get_base_fee()
        except ChainError:
            base_fee = None
        if base_fee is not None:
            tx["maxFeePerGas"] = base_fee * 2 + PRIORITY_FEE_WEI
            tx["maxPriorityFeePerGas"] = PRIORITY_FEE_WEI
        else:
            tx["gasPrice"] = self.client.get_gas_price()

        tx["gas"] = self.client.estimate_gas(tx)
        del tx["from"]
        return tx

    def submit(self, request: TransactionRequest) -> TransactionOutcome:
        """Sign and broadcast *request*. Returns a ``PENDING`` outcome.

        Callers must hold the executor lock; use :meth:`execute` instead.
        """
        tx = self.build_transaction(request)
        raw = self.signer.sign_transaction(tx)
        tx_hash = self.client.send_raw_transaction(raw)
        logger.info(
            f"Submitted tx {tx_hash} from {self.signer.address} to {request.to} "
            f"(nonce={tx['nonce']}, value={request.value})"
        )
        return TransactionOutcome(hash=tx_hash)

    def wait(self, outcome: TransactionOutcome) -> TransactionOutcome:
        """Wait, bounded by ``receipt_timeout``, for *outcome* to settle.

        Raises ``ReceiptTimeoutError`` if no receipt arrives in time and
        ``TransactionRevertedError`` if the receipt reports failure.
        """
        try:
            receipt = self.client.wait_for_receipt(
                outcome.hash, self.receipt_timeout, self.poll_interval
            )
        except ChainError:
            logger.warning(f"No confirmation for tx {outcome.hash}")
            raise
        outcome.apply_receipt(receipt)
        if outcome.status is TxStatus.REVERTED:
            logger.warning(f"Tx {outcome.hash} reverted in block {outcome.block_number}")
            raise TransactionRevertedError(outcome)
        logger.info(
            f"Tx {outcome.hash} confirmed in block {outcome.block_number} "
            f"(gasUsed={outcome.gas_used})"
        )
        return outcome

    def execute(self, request: TransactionRequest) -> TransactionOutcome:
        """Submit *request* and block until it is confirmed. No retries."""
        with self._lock:
            return self.wait(self.submit(request))
