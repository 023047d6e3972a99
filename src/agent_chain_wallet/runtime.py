"""Composition root: settings in, client, wallet and tools out."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from agent_chain_wallet.config import WalletSettings
from agent_chain_wallet.errors import ConfigurationError, CryptoError, FormatError
from agent_chain_wallet.tools.chain_tools import build_chain_tools
from agent_chain_wallet.tools.registry import ToolRegistry
from agent_chain_wallet.wallet.agent_wallet import (
    INITIAL_GAS_FUNDING,
    AgentWallet,
    create_agent_with_wallet,
)
from agent_chain_wallet.wallet.models import OnboardedAgent
from agent_chain_wallet.wallet.provider import ChainClient
from agent_chain_wallet.wallet.units import normalize_address
from agent_chain_wallet.wallet.vault import KeyVault

logger = logging.getLogger("agent_chain_wallet.runtime")


@dataclass
class Runtime:
    settings: WalletSettings
    vault: KeyVault
    client: ChainClient
    wallet: Optional[AgentWallet]
    tools: ToolRegistry
    treasury: Optional[AgentWallet] = None
    tycoon_address: Optional[str] = None

    def onboard_agent(self, username: str, funding: int = INITIAL_GAS_FUNDING) -> OnboardedAgent:
        """Create, fund and register a new agent wallet.

        Raises ``ConfigurationError`` unless both ``TREASURY_PRIVATE_KEY``
        and ``TYCOON_CONTRACT_ADDRESS`` are set.
        """
        if self.treasury is None:
            raise ConfigurationError("TREASURY_PRIVATE_KEY is not set")
        if self.tycoon_address is None:
            raise ConfigurationError("TYCOON_CONTRACT_ADDRESS is not set")
        return create_agent_with_wallet(
            self.vault,
            self.treasury,
            username,
            self.tycoon_address,
            funding=funding,
        )


def _build_wallet(
    private_key: bytes | str,
    client: ChainClient,
    settings: WalletSettings,
    label: str,
) -> AgentWallet:
    try:
        return AgentWallet(
            private_key,
            client,
            receipt_timeout=settings.receipt_timeout,
            poll_interval=settings.poll_interval,
        )
    except CryptoError as exc:
        raise ConfigurationError(f"Invalid {label}: {exc}") from exc


def create_runtime(
    settings: WalletSettings,
    client: ChainClient | None = None,
) -> Runtime:
    """Validate *settings* and wire up one agent's runtime.

    Raises ``ConfigurationError`` for a missing or malformed encryption
    secret, an unknown chain, an unusable signing key, or a malformed
    contract address. Callers should treat it as fatal. Without a private
    key the runtime is read-only.
    """
    vault = settings.build_vault()
    if client is None:
        client = ChainClient.connect(settings.resolve_chain(), settings.resolve_rpc_url())

    private_key = None
    if settings.private_key is not None and settings.private_key.get_secret_value():
        private_key = settings.private_key.get_secret_value()
    elif settings.encrypted_private_key:
        try:
            private_key = vault.decrypt(settings.encrypted_private_key)
        except (FormatError, CryptoError) as exc:
            raise ConfigurationError(f"Cannot decrypt ENCRYPTED_PRIVATE_KEY: {exc}") from exc

    wallet = None
    if private_key is not None:
        wallet = _build_wallet(private_key, client, settings, "PRIVATE_KEY")
        logger.info(f"Wallet {wallet.address} ready on {client.chain.name}")
        if not client.chain.testnet:
            logger.warning(f"{client.chain.name} is not a testnet; agent writes spend real funds")
    else:
        logger.info(f"No signing key configured; write tools disabled on {client.chain.name}")

    treasury = None
    if settings.treasury_private_key is not None and settings.treasury_private_key.get_secret_value():
        treasury = _build_wallet(
            settings.treasury_private_key.get_secret_value(),
            client,
            settings,
            "TREASURY_PRIVATE_KEY",
        )

    tycoon_address = None
    if settings.tycoon_contract_address:
        try:
            tycoon_address = normalize_address(settings.tycoon_contract_address.strip())
        except ValueError as exc:
            raise ConfigurationError(f"Invalid TYCOON_CONTRACT_ADDRESS: {exc}") from exc

    return Runtime(
        settings=settings,
        vault=vault,
        client=client,
        wallet=wallet,
        tools=build_chain_tools(client, wallet),
        treasury=treasury,
        tycoon_address=tycoon_address,
    )
