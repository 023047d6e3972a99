"""Encryption of private keys at rest.

Keys are stored as ``hex(iv):hex(ciphertext)`` using AES-256-CBC with PKCS7
padding. The plaintext is the lower-case hex text of the key (no ``0x``), so a
32-byte key encrypts to 80 bytes of ciphertext. This matches records written
by the existing agent backend.

CBC provides no authentication. A tampered IV or ciphertext usually fails the
padding check, but can decrypt to a different, well-formed key without any
error. Callers that need tamper detection must verify the derived address
against the stored one.
"""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from agent_chain_wallet.errors import ConfigurationError, CryptoError, FormatError

KEY_SIZE = 32
IV_SIZE = 16
DELIMITER = ":"


@dataclass(frozen=True)
class EncryptedSecret:
    """An IV and the CBC ciphertext produced with it."""

    iv: bytes
    ciphertext: bytes

    def serialize(self) -> str:
        return f"{self.iv.hex()}{DELIMITER}{self.ciphertext.hex()}"

    @classmethod
    def parse(cls, blob: str) -> EncryptedSecret:
        """Split a stored blob into IV and ciphertext.

        Raises
        ------
        FormatError
            If the blob does not have exactly two hex parts, the IV is not
            16 bytes, or the ciphertext is not a whole number of blocks.
        """
        parts = blob.strip().split(DELIMITER)
        if len(parts) != 2:
            raise FormatError("Invalid encrypted key format")
        iv_hex, ct_hex = parts
        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(ct_hex)
        except ValueError as exc:
            raise FormatError(f"Invalid encrypted key format: {exc}") from exc
        if len(iv) != IV_SIZE:
            raise FormatError(f"IV must be {IV_SIZE} bytes, got {len(iv)}")
        if not ciphertext or len(ciphertext) % IV_SIZE:
            raise FormatError("Ciphertext length is not a multiple of the block size")
        return cls(iv=iv, ciphertext=ciphertext)


def _normalize_secret(secret: bytes | str) -> str:
    """Return the secret as 64 lower-case hex characters without a prefix."""
    if isinstance(secret, (bytes, bytearray)):
        raw = bytes(secret)
    else:
        text = secret.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise CryptoError("Secret is not valid hex") from exc
    if len(raw) != KEY_SIZE:
        raise CryptoError(f"Secret must be {KEY_SIZE} bytes, got {len(raw)}")
    return raw.hex()


def _check_key(passphrase_key: bytes) -> None:
    if len(passphrase_key) != KEY_SIZE:
        raise CryptoError(
            f"Encryption key must be {KEY_SIZE} bytes, got {len(passphrase_key)}"
        )


def encrypt_secret(secret: bytes | str, passphrase_key: bytes) -> EncryptedSecret:
    """Encrypt a 32-byte secret under *passphrase_key* with a fresh random IV."""
    _check_key(passphrase_key)
    plaintext = _normalize_secret(secret).encode("utf-8")

    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(passphrase_key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return EncryptedSecret(iv=iv, ciphertext=ciphertext)


def decrypt_secret(encrypted: EncryptedSecret | str, passphrase_key: bytes) -> bytes:
    """Decrypt a stored secret and return the raw 32 bytes.

    Raises
    ------
    FormatError
        If *encrypted* is a string that is not a valid ``iv:ciphertext`` blob.
    CryptoError
        If the key length is wrong, the padding is invalid, or the plaintext
        is not a 32-byte hex key.
    """
    if isinstance(encrypted, str):
        encrypted = EncryptedSecret.parse(encrypted)
    _check_key(passphrase_key)

    decryptor = Cipher(
        algorithms.AES(passphrase_key), modes.CBC(encrypted.iv)
    ).decryptor()
    padded = decryptor.update(encrypted.ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        plaintext = unpadder.update(padded) + unpadder.finalize()
        text = plaintext.decode("utf-8")
    except ValueError as exc:
        # UnicodeDecodeError is a ValueError too
        raise CryptoError("Failed to decrypt private key") from exc
    try:
        return bytes.fromhex(_normalize_secret(text))
    except CryptoError as exc:
        raise CryptoError("Failed to decrypt private key") from exc


def generate_encryption_key() -> str:
    """Return a new random 32-byte encryption key as 64 hex characters.

    Run once at setup and store the result as ``AGENT_KEY_ENCRYPTION_SECRET``.
    """
    return secrets.token_hex(KEY_SIZE)


class KeyVault:
    """Holds the process-wide encryption key and encrypts agent keys with it."""

    def __init__(self, passphrase_key: bytes) -> None:
        if len(passphrase_key) != KEY_SIZE:
            raise ConfigurationError(
                f"Encryption key must decode to exactly {KEY_SIZE} bytes, "
                f"got {len(passphrase_key)}"
            )
        self._key = passphrase_key

    @classmethod
    def from_hex(cls, secret: str | None) -> KeyVault:
        """Build a vault from a 64-character hex secret.

        Raises ``ConfigurationError`` if the secret is missing, not hex, or
        not exactly 32 bytes once decoded.
        """
        if not secret:
            raise ConfigurationError(
                "AGENT_KEY_ENCRYPTION_SECRET must be set to a 64-character hex string (32 bytes)"
            )
        try:
            key = bytes.fromhex(secret.strip())
        except ValueError as exc:
            raise ConfigurationError(
                "AGENT_KEY_ENCRYPTION_SECRET must be a 64-character hex string (32 bytes)"
            ) from exc
        return cls(key)

    def encrypt(self, secret: bytes | str) -> str:
        """Encrypt a private key and return the storage blob."""
        return encrypt_secret(secret, self._key).serialize()

    def decrypt(self, blob: str) -> bytes:
        """Decrypt a storage blob back to the raw 32-byte private key."""
        return decrypt_secret(blob, self._key)

    def self_test(self) -> bool:
        """Round-trip a random key through this vault."""
        sample = secrets.token_bytes(KEY_SIZE)
        if self.decrypt(self.encrypt(sample)) != sample:
            raise CryptoError("Encryption self-test failed")
        return True

    def __repr__(self) -> str:
        return "KeyVault(<redacted>)"
