"""Configuration system for Agent Chain Wallet.

Settings come from built-in defaults, an optional YAML file (with ``${VAR}``
environment expansion), and finally environment variables. Invalid
settings raise :class:`ConfigurationError` at startup.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic import ValidationError as PydanticValidationError

from agent_chain_wallet.errors import ConfigurationError
from agent_chain_wallet.wallet.chains import Chain, get_chain
from agent_chain_wallet.wallet.vault import KeyVault


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str, env: Mapping[str, str]) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        return env.get(match.group(1), match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object, env: Mapping[str, str]) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj, env)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v, env) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item, env) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Settings model
# ---------------------------------------------------------------------------

# Environment variable -> settings field
ENV_VARS: dict[str, str] = {
    "CHAIN": "chain",
    "RPC_URL": "rpc_url",
    "PRIVATE_KEY": "private_key",
    "ENCRYPTED_PRIVATE_KEY": "encrypted_private_key",
    "AGENT_KEY_ENCRYPTION_SECRET": "encryption_secret",
    "TREASURY_PRIVATE_KEY": "treasury_private_key",
    "TYCOON_CONTRACT_ADDRESS": "tycoon_contract_address",
    "RECEIPT_TIMEOUT": "receipt_timeout",
    "POLL_INTERVAL": "poll_interval",
}


class WalletSettings(BaseModel):
    """Process-wide settings for one agent runtime."""

    chain: str = "sepolia"
    rpc_url: Optional[str] = None  # Falls back to the chain's public RPC
    private_key: Optional[SecretStr] = None
    encrypted_private_key: Optional[str] = None  # iv:ciphertext blob
    encryption_secret: Optional[SecretStr] = None  # 64 hex chars
    treasury_private_key: Optional[SecretStr] = None  # Funds new agents
    tycoon_contract_address: Optional[str] = None
    receipt_timeout: float = Field(default=120.0, gt=0)
    poll_interval: float = Field(default=1.0, gt=0)

    def resolve_chain(self) -> Chain:
        try:
            return get_chain(self.chain)
        except KeyError as exc:
            raise ConfigurationError(str(exc.args[0])) from exc

    def resolve_rpc_url(self) -> str:
        url = (self.rpc_url or "").strip() or self.resolve_chain().rpc_url
        if not url:
            raise ConfigurationError("RPC_URL is not set")
        return url

    def build_vault(self) -> KeyVault:
        """Build the key vault from the encryption secret.

        Raises ``ConfigurationError`` if the secret is missing, not hex, or
        does not decode to exactly 32 bytes.
        """
        secret = self.encryption_secret.get_secret_value() if self.encryption_secret else None
        return KeyVault.from_hex(secret)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> WalletSettings:
    """Load settings from an optional YAML file and the environment.

    Environment variables listed in :data:`ENV_VARS` override file values.
    Empty environment values are ignored.
    """
    env = os.environ if env is None else env
    data: dict = {}
    if path is not None:
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        data = _expand_env_recursive(raw, env)

    for var, field in ENV_VARS.items():
        value = env.get(var)
        if value:
            data[field] = value

    try:
        return WalletSettings.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def save_settings(settings: WalletSettings, path: Path) -> None:
    """Write non-secret settings to a YAML file.

    Secrets are written as ``${VAR}`` placeholders so they stay in the
    environment.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data = settings.model_dump(
        mode="python",
        exclude_none=True,
        exclude={
            "private_key",
            "treasury_private_key",
            "encryption_secret",
            "encrypted_private_key",
        },
    )
    data["encryption_secret"] = "${AGENT_KEY_ENCRYPTION_SECRET}"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)
