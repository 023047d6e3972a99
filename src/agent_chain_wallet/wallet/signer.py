"""Signing identity derived from a raw private key using eth-account."""

from __future__ import annotations

from eth_account import Account

from agent_chain_wallet.errors import CryptoError
from agent_chain_wallet.wallet.models import GeneratedIdentity


def _coerce_key(private_key: bytes | str) -> bytes:
    if isinstance(private_key, (bytes, bytearray)):
        raw = bytes(private_key)
    else:
        text = private_key.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise CryptoError("Private key is not valid hex") from exc
    if len(raw) != 32:
        raise CryptoError(f"Private key must be 32 bytes, got {len(raw)}")
    return raw


class AccountSigner:
    """Owns one private key and signs transactions for its address.

    The key never leaves this object: it is not exposed as an attribute and
    is redacted from ``repr``.
    """

    def __init__(self, private_key: bytes | str) -> None:
        raw = _coerce_key(private_key)
        try:
            self._account = Account.from_key(raw)
        except ValueError as exc:
            raise CryptoError(f"Invalid private key: {exc}") from exc

    @property
    def address(self) -> str:
        """Checksummed address derived from the key."""
        return self._account.address

    def sign_transaction(self, tx: dict) -> bytes:
        """Sign a fully populated transaction dict and return the raw bytes."""
        signed = self._account.sign_transaction(tx)
        return bytes(signed.raw_transaction)

    @staticmethod
    def generate() -> GeneratedIdentity:
        """Create a fresh random identity for a new agent.

        Returns the private key and its derived address as two distinct
        values.
        """
        acct = Account.create()
        return GeneratedIdentity(
            private_key="0x" + bytes(acct.key).hex(),
            address=acct.address,
        )

    def __repr__(self) -> str:
        return f"AccountSigner(address={self.address!r})"
