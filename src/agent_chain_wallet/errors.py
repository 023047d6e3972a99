"""Error taxonomy shared by the vault, wallet and tool layers."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agent_chain_wallet.wallet.models import TransactionOutcome


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    FORMAT = "format"
    CRYPTO = "crypto"
    WALLET_NOT_CONFIGURED = "wallet_not_configured"
    CHAIN = "chain"
    VALIDATION = "validation"


class WalletError(Exception):
    """Base class for every error raised by this package."""

    kind: ErrorKind = ErrorKind.CHAIN


class ConfigurationError(WalletError):
    """Bad or missing startup configuration. Fatal for the process."""

    kind = ErrorKind.CONFIGURATION


class FormatError(WalletError):
    """An encrypted secret blob could not be parsed."""

    kind = ErrorKind.FORMAT


class CryptoError(WalletError):
    """Wrong key length, bad padding, or an undecodable plaintext."""

    kind = ErrorKind.CRYPTO


class WalletNotConfiguredError(WalletError):
    kind = ErrorKind.WALLET_NOT_CONFIGURED

    def __init__(
        self,
        message: str = "Wallet not configured. Please set PRIVATE_KEY in environment variables.",
    ) -> None:
        super().__init__(message)


class ChainError(WalletError):
    """RPC failure, reverted transaction, or missing receipt."""

    kind = ErrorKind.CHAIN


class ReceiptNotFoundError(ChainError):
    pass


class ReceiptTimeoutError(ChainError):
    """No receipt was observed within the configured wait."""

    def __init__(self, tx_hash: str, timeout: float) -> None:
        super().__init__(
            f"Transaction {tx_hash} was not confirmed within {timeout:g} seconds"
        )
        self.tx_hash = tx_hash
        self.timeout = timeout


class TransactionRevertedError(ChainError):
    def __init__(self, outcome: TransactionOutcome) -> None:
        super().__init__(
            f"Transaction {outcome.hash} reverted in block {outcome.block_number}"
        )
        self.outcome = outcome


class ValidationError(WalletError):
    """Tool input failed its request schema."""

    kind = ErrorKind.VALIDATION
