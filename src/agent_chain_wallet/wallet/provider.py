"""Read access to one EVM chain over JSON-RPC."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound
from web3.middleware import ExtraDataToPOAMiddleware

from agent_chain_wallet.errors import (
    ChainError,
    ReceiptNotFoundError,
    ReceiptTimeoutError,
    WalletError,
)
from agent_chain_wallet.wallet.abi import ERC20_ABI
from agent_chain_wallet.wallet.chains import Chain
from agent_chain_wallet.wallet.units import to_hex

logger = logging.getLogger("agent_chain_wallet.wallet.provider")


@contextmanager
def _rpc(action: str) -> Iterator[None]:
    """Re-raise transport and node errors as ``ChainError``."""
    try:
        yield
    except WalletError:
        raise
    except Exception as exc:
        logger.debug(f"RPC {action} failed: {exc}")
        raise ChainError(str(exc)) from exc


class ChainClient:
    """Thin wrapper over a ``Web3`` instance bound to one chain.

    A single client may be shared by several wallets: it keeps no
    per-account state, and the underlying HTTP session is safe for
    concurrent reads.
    """

    def __init__(self, w3: Web3, chain: Chain) -> None:
        self.w3 = w3
        self.chain = chain

    @classmethod
    def connect(cls, chain: Chain, rpc_url: str | None = None) -> ChainClient:
        """Create a client over HTTP.

        Injects POA middleware for non-mainnet chains.
        """
        w3 = Web3(Web3.HTTPProvider(rpc_url or chain.rpc_url))
        if chain.chain_id != 1:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        return cls(w3, chain)

    @property
    def chain_id(self) -> int:
        return self.chain.chain_id

    # ------------------------------------------------------------------
    # Account and network state
    # ------------------------------------------------------------------

    def get_balance(self, address: str) -> int:
        with _rpc("get_balance"):
            return int(self.w3.eth.get_balance(address))

    def get_transaction_count(self, address: str, block: str = "pending") -> int:
        with _rpc("get_transaction_count"):
            return int(self.w3.eth.get_transaction_count(address, block))

    def get_block_number(self) -> int:
        with _rpc("block_number"):
            return int(self.w3.eth.block_number)

    def get_gas_price(self) -> int:
        with _rpc("gas_price"):
            return int(self.w3.eth.gas_price)

    def get_block(self, block: int | str = "latest") -> Any:
        with _rpc("get_block"):
            return self.w3.eth.get_block(block)

    def get_base_fee(self) -> Optional[int]:
        """Base fee of the latest block, or ``None`` on pre-London chains."""
        latest = self.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        return int(base_fee) if base_fee is not None else None

    def get_ens_name(self, address: str) -> Optional[str]:
        with _rpc("ens_name"):
            return self.w3.ens.name(address)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def get_transaction(self, tx_hash: str) -> Any:
        with _rpc("get_transaction"):
            try:
                return self.w3.eth.get_transaction(tx_hash)
            except TransactionNotFound as exc:
                raise ChainError(f"Transaction {tx_hash} not found") from exc

    def get_transaction_receipt(self, tx_hash: str) -> Any:
        with _rpc("get_transaction_receipt"):
            try:
                return self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound as exc:
                raise ReceiptNotFoundError(
                    f"Receipt for transaction {tx_hash} not found"
                ) from exc

    def estimate_gas(self, tx: dict) -> int:
        with _rpc("estimate_gas"):
            return int(self.w3.eth.estimate_gas(tx))

    def send_raw_transaction(self, raw: bytes) -> str:
        with _rpc("send_raw_transaction"):
            return to_hex(self.w3.eth.send_raw_transaction(raw))

    def wait_for_receipt(
        self, tx_hash: str, timeout: float, poll_interval: float
    ) -> Any:
        """Block until a receipt is observed or *timeout* seconds pass.

        Raises ``ReceiptTimeoutError`` on timeout. The transaction itself may
        still be mined later.
        """
        with _rpc("wait_for_transaction_receipt"):
            try:
                return self.w3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=timeout, poll_latency=poll_interval
                )
            except TimeExhausted as exc:
                raise ReceiptTimeoutError(tx_hash, timeout) from exc

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def contract(self, address: str, abi: Sequence[dict]) -> Any:
        """Bind *abi* to a checksummed contract *address* on this chain."""
        return self.w3.eth.contract(address=address, abi=abi)

    def encode_call(self, address: str, abi: Sequence[dict], name: str, args: Sequence) -> bytes:
        """Call data (selector plus arguments) for ``name(*args)``.

        Raises web3's validation errors if *args* do not match the ABI.
        """
        data = self.contract(address, abi).encode_abi(name, args=list(args))
        return Web3.to_bytes(hexstr=data)

    def read_contract(self, address: str, abi: Sequence[dict], name: str, args: Sequence) -> Any:
        """Call a view function and return its decoded result."""
        with _rpc(f"read {name}"):
            function = getattr(self.contract(address, abi).functions, name)
            return function(*args).call()

    def read_erc20_balance(self, token: str, owner: str) -> int:
        return int(self.read_contract(token, ERC20_ABI, "balanceOf", [owner]))
