"""Value types passed between the signer, executor and wallet."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class TxStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


@dataclass(frozen=True)
class TransactionRequest:
    """A state-changing call to submit from the wallet's account."""

    to: str
    value: int = 0
    data: Optional[bytes] = None
    chain_id: Optional[int] = None


@dataclass
class TransactionOutcome:
    """Lifecycle of one submitted transaction.

    Starts ``PENDING`` and moves once to ``CONFIRMED`` or ``REVERTED`` when a
    receipt is observed. Both end states are terminal.
    """

    hash: str
    status: TxStatus = TxStatus.PENDING
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @property
    def is_final(self) -> bool:
        return self.status is not TxStatus.PENDING

    def apply_receipt(self, receipt) -> TransactionOutcome:
        if self.is_final:
            raise RuntimeError(f"Outcome for {self.hash} is already {self.status.value}")
        self.status = TxStatus.CONFIRMED if receipt["status"] == 1 else TxStatus.REVERTED
        self.block_number = receipt["blockNumber"]
        self.gas_used = receipt["gasUsed"]
        return self


@dataclass(frozen=True)
class GeneratedIdentity:
    """A freshly generated key pair. ``private_key`` is the key, not the address."""

    private_key: str
    address: str

    def __repr__(self) -> str:
        return f"GeneratedIdentity(address={self.address!r}, private_key=<redacted>)"


@dataclass(frozen=True)
class ProvisionedWallet:
    """Values for the external agent record. Carries no raw key material."""

    wallet_address: str
    private_key_encrypted: str


@dataclass(frozen=True)
class OnboardedAgent:
    """Record values for an agent that was funded and registered on-chain."""

    wallet_address: str
    private_key_encrypted: str
    funding_tx: str
    registration_tx: str
    registered_onchain_at: datetime
    registered_onchain: bool = True


@dataclass(frozen=True)
class CreateGameParams:
    username: str
    game_type: str
    player_symbol: str
    number_of_players: int
    code: str
    starting_balance: int
    stake_amount: int
