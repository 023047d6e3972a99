"""Per-agent wallet: one signing identity bound to one chain client."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from web3 import Web3

from agent_chain_wallet.wallet.abi import ERC20_ABI, TYCOON_ABI
from agent_chain_wallet.wallet.executor import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RECEIPT_TIMEOUT,
    TransactionExecutor,
)
from agent_chain_wallet.wallet.models import (
    CreateGameParams,
    GeneratedIdentity,
    OnboardedAgent,
    ProvisionedWallet,
    TransactionOutcome,
    TransactionRequest,
)
from agent_chain_wallet.wallet.provider import ChainClient
from agent_chain_wallet.wallet.signer import AccountSigner
from agent_chain_wallet.wallet.units import format_units, normalize_address
from agent_chain_wallet.wallet.vault import KeyVault

logger = logging.getLogger("agent_chain_wallet.wallet.agent_wallet")

# Gas money a new agent receives from the treasury
INITIAL_GAS_FUNDING = Web3.to_wei(0.01, "ether")


class AgentWallet:
    """Mediates all chain interaction for a single agent account.

    Constructed from an already-decrypted private key. The key is held by
    the signer for the lifetime of this object and is never returned.
    Every write builds a request, signs it, submits it and blocks until a
    receipt is observed (bounded by ``receipt_timeout``), then returns the
    transaction hash. Writes are not retried.
    """

    def __init__(
        self,
        private_key: bytes | str,
        client: ChainClient,
        *,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._signer = AccountSigner(private_key)
        self.client = client
        self._executor = TransactionExecutor(
            client,
            self._signer,
            receipt_timeout=receipt_timeout,
            poll_interval=poll_interval,
        )

    @classmethod
    def from_encrypted(
        cls,
        blob: str,
        vault: KeyVault,
        client: ChainClient,
        **kwargs,
    ) -> AgentWallet:
        """Decrypt a stored key with *vault* and build the wallet from it."""
        return cls(vault.decrypt(blob), client, **kwargs)

    @property
    def address(self) -> str:
        return self._signer.address

    @property
    def receipt_timeout(self) -> float:
        return self._executor.receipt_timeout

    @property
    def poll_interval(self) -> float:
        return self._executor.poll_interval

    @staticmethod
    def generate_wallet() -> GeneratedIdentity:
        """Generate a new random identity (private key and its address)."""
        return AccountSigner.generate()

    def __repr__(self) -> str:
        return f"AgentWallet(address={self.address!r}, chain={self.client.chain.name!r})"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_balance(self) -> int:
        """Native-currency balance in wei."""
        return self.client.get_balance(self.address)

    def get_token_balance(self, token_address: str) -> int:
        """ERC-20 ``balanceOf`` for this wallet, in the token's smallest unit."""
        return self.client.read_erc20_balance(normalize_address(token_address), self.address)

    def get_balances(
        self,
        tokens: Optional[dict[str, tuple[str, int]]] = None,
    ) -> dict[str, str]:
        """Native and token balances as decimal strings for the agent record.

        *tokens* maps a symbol to ``(token_address, decimals)``. The native
        balance is reported under the chain's native symbol, lower-cased.
        """
        balances = {self.client.chain.native_symbol.lower(): format_units(self.get_balance(), 18)}
        for symbol, (token_address, decimals) in (tokens or {}).items():
            balances[symbol.lower()] = format_units(self.get_token_balance(token_address), decimals)
        return balances

    def estimate_gas(
        self,
        to: str,
        value: int = 0,
        data: Optional[bytes] = None,
    ) -> int:
        """Estimate gas for a call from this account. Signs and sends nothing."""
        request = TransactionRequest(to=normalize_address(to), value=value, data=data)
        return self._executor.estimate_gas(request)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _execute(self, request: TransactionRequest) -> TransactionOutcome:
        return self._executor.execute(request)

    def _contract_call(
        self,
        contract: str,
        abi: Sequence[dict],
        name: str,
        args: list,
    ) -> str:
        address = normalize_address(contract)
        request = TransactionRequest(
            to=address,
            data=self.client.encode_call(address, abi, name, args),
            chain_id=self.client.chain_id,
        )
        logger.info(f"{self.address} calling {name} on {request.to}")
        return self._execute(request).hash

    def register_on_chain(
        self,
        username: str,
        tycoon_address: str,
        tycoon_abi: Sequence[dict] = TYCOON_ABI,
    ) -> str:
        """Call ``registerPlayer(username)`` on the game contract."""
        return self._contract_call(tycoon_address, tycoon_abi, "registerPlayer", [username])

    def approve_token(self, token_address: str, spender_address: str, amount: int) -> str:
        """Allow *spender_address* to move *amount* of the token (for stakes)."""
        return self._contract_call(
            token_address,
            ERC20_ABI,
            "approve",
            [normalize_address(spender_address), amount],
        )

    def create_game(
        self,
        tycoon_address: str,
        params: CreateGameParams,
        tycoon_abi: Sequence[dict] = TYCOON_ABI,
    ) -> str:
        return self._contract_call(
            tycoon_address,
            tycoon_abi,
            "createGame",
            [
                params.username,
                params.game_type,
                params.player_symbol,
                params.number_of_players,
                params.code,
                params.starting_balance,
                params.stake_amount,
            ],
        )

    def join_game(
        self,
        tycoon_address: str,
        game_id: int,
        username: str,
        player_symbol: str,
        join_code: str,
        tycoon_abi: Sequence[dict] = TYCOON_ABI,
    ) -> str:
        return self._contract_call(
            tycoon_address,
            tycoon_abi,
            "joinGame",
            [game_id, username, player_symbol, join_code],
        )

    def send_eth(self, to: str, amount: int) -> str:
        """Transfer *amount* wei of native currency to *to*."""
        request = TransactionRequest(
            to=normalize_address(to),
            value=amount,
            chain_id=self.client.chain_id,
        )
        logger.info(f"{self.address} sending {amount} wei to {request.to}")
        return self._execute(request).hash

    def fund(self, agent_address: str, amount: int = INITIAL_GAS_FUNDING) -> str:
        """Send gas money from this (treasury) wallet to a new agent."""
        return self.send_eth(agent_address, amount)


def provision_agent_wallet(vault: KeyVault) -> ProvisionedWallet:
    """Generate a fresh agent identity and encrypt its key for storage.

    Returns only the address and the encrypted blob; the raw key is
    discarded.
    """
    identity = AgentWallet.generate_wallet()
    encrypted = vault.encrypt(identity.private_key)
    logger.info(f"Provisioned agent wallet {identity.address}")
    return ProvisionedWallet(
        wallet_address=identity.address,
        private_key_encrypted=encrypted,
    )


def create_agent_with_wallet(
    vault: KeyVault,
    treasury: AgentWallet,
    username: str,
    tycoon_address: str,
    *,
    funding: int = INITIAL_GAS_FUNDING,
    tycoon_abi: Sequence[dict] = TYCOON_ABI,
) -> OnboardedAgent:
    """Provision, fund and register a new agent.

    The treasury sends *funding* wei of gas money to the fresh address, then
    the agent's own wallet calls ``registerPlayer(username)``. Both writes
    wait for confirmation; any failure propagates and the partially created
    wallet is not returned.
    """
    tycoon = normalize_address(tycoon_address)
    record = provision_agent_wallet(vault)

    funding_tx = treasury.fund(record.wallet_address, funding)

    agent = AgentWallet.from_encrypted(
        record.private_key_encrypted,
        vault,
        treasury.client,
        receipt_timeout=treasury.receipt_timeout,
        poll_interval=treasury.poll_interval,
    )
    registration_tx = agent.register_on_chain(username, tycoon, tycoon_abi)
    logger.info(f"Agent {username} registered at {agent.address} (tx {registration_tx})")

    return OnboardedAgent(
        wallet_address=record.wallet_address,
        private_key_encrypted=record.private_key_encrypted,
        funding_tx=funding_tx,
        registration_tx=registration_tx,
        registered_onchain_at=datetime.now(timezone.utc),
    )
