"""Planner-facing chain tools.

Ten tools that read chain state or, for ``send_eth``, transfer native
currency from the agent's own wallet. Inputs are validated by the request
models below; results are human/LLM-readable strings or JSON-serializable
records. Errors are lowered to strings by the registry.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator, BeforeValidator, Field

from agent_chain_wallet.errors import WalletNotConfiguredError
from agent_chain_wallet.tools.registry import NoParams, ToolParams, ToolRegistry
from agent_chain_wallet.wallet.agent_wallet import AgentWallet
from agent_chain_wallet.wallet.provider import ChainClient
from agent_chain_wallet.wallet.units import (
    format_ether,
    format_gwei,
    normalize_address,
    normalize_hash,
    parse_ether,
    to_hex,
)

logger = logging.getLogger("agent_chain_wallet.tools.chain")


# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------


def _check_ether(value: str) -> str:
    parse_ether(value)
    return value.strip()


def _stringify_int(value):
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _check_block_number(value: str) -> str:
    text = value.strip()
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"Invalid block number '{value}': expected a non-negative integer")
    return text


Address = Annotated[str, AfterValidator(normalize_address)]
TxHash = Annotated[str, AfterValidator(normalize_hash)]
EtherAmount = Annotated[str, AfterValidator(_check_ether)]
BlockNumber = Annotated[str, BeforeValidator(_stringify_int), AfterValidator(_check_block_number)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class AddressParams(ToolParams):
    address: Address = Field(description="The Ethereum address (0x...)")


class HashParams(ToolParams):
    hash: TxHash = Field(description="The transaction hash (0x...)")


class SendEthParams(ToolParams):
    to: Address = Field(description="Recipient address (0x...)")
    amount: EtherAmount = Field(description="Amount in ETH (e.g., '0.1')")


class Erc20BalanceParams(ToolParams):
    contract_address: Address = Field(
        alias="contractAddress", description="ERC20 token contract address"
    )
    wallet_address: Address = Field(
        alias="walletAddress", description="Wallet address to check balance"
    )


class EstimateGasParams(ToolParams):
    to: Address = Field(description="Recipient address (0x...)")
    value: EtherAmount = Field(description="Amount in ETH (e.g., '0.1')")


class BlockDetailsParams(ToolParams):
    block_number: BlockNumber = Field(alias="blockNumber", description="Block number to query")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _iso_timestamp(seconds: int) -> str:
    """UTC ISO-8601 with milliseconds and a ``Z`` suffix."""
    dt = datetime.fromtimestamp(int(seconds), tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _optional_int(value) -> Optional[int]:
    return int(value) if value is not None else None


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register_chain_tools(
    registry: ToolRegistry,
    client: ChainClient,
    wallet: AgentWallet | None = None,
) -> ToolRegistry:
    """Register the chain tools on *registry*, bound to *client* and *wallet*.

    Without a wallet, ``send_eth`` reports that the wallet is not
    configured and makes no network call.
    """

    @registry.tool(
        "get_eth_balance",
        "Get the ETH balance of an Ethereum address. Returns balance in ETH.",
        AddressParams,
        error_prefix="Error getting balance",
    )
    def get_eth_balance(params: AddressParams) -> str:
        balance = client.get_balance(params.address)
        return f"Balance: {format_ether(balance)} ETH"

    @registry.tool(
        "get_block_number",
        "Get the current block number of the blockchain",
        NoParams,
        error_prefix="Error getting block number",
    )
    def get_block_number(params: NoParams) -> str:
        return f"Current block number: {client.get_block_number()}"

    @registry.tool(
        "get_transaction",
        "Get details of a transaction by its hash",
        HashParams,
        error_prefix="Error getting transaction",
    )
    def get_transaction(params: HashParams) -> dict:
        tx = client.get_transaction(params.hash)
        return {
            "from": tx["from"],
            "to": tx.get("to"),
            "value": format_ether(tx["value"]),
            "blockNumber": _optional_int(tx.get("blockNumber")),
            "gas": str(tx["gas"]),
        }

    @registry.tool(
        "get_gas_price",
        "Get the current gas price in Gwei",
        NoParams,
        error_prefix="Error getting gas price",
    )
    def get_gas_price(params: NoParams) -> str:
        return f"Current gas price: {format_gwei(client.get_gas_price())} Gwei"

    def _require_wallet() -> None:
        if wallet is None:
            raise WalletNotConfiguredError()

    @registry.tool(
        "send_eth",
        "Send ETH to an address. ONLY use when explicitly asked to send a transaction.",
        SendEthParams,
        error_prefix="Error sending transaction",
        guard=_require_wallet,
    )
    def send_eth(params: SendEthParams) -> str:
        tx_hash = wallet.send_eth(params.to, parse_ether(params.amount))
        return f"Transaction sent! Hash: {tx_hash}"

    @registry.tool(
        "read_erc20_balance",
        "Read ERC20 token balance for an address",
        Erc20BalanceParams,
        error_prefix="Error reading contract",
    )
    def read_erc20_balance(params: Erc20BalanceParams) -> str:
        balance = client.read_erc20_balance(params.contract_address, params.wallet_address)
        return f"Token balance: {balance}"

    @registry.tool(
        "get_ens_name",
        "Get ENS name for an Ethereum address",
        AddressParams,
        error_prefix="Error getting ENS name",
    )
    def get_ens_name(params: AddressParams) -> str:
        name = client.get_ens_name(params.address)
        return f"ENS name: {name}" if name else "No ENS name found for this address"

    @registry.tool(
        "estimate_gas",
        "Estimate gas needed for a transaction",
        EstimateGasParams,
        error_prefix="Error estimating gas",
    )
    def estimate_gas(params: EstimateGasParams) -> str:
        tx = {"to": params.to, "value": parse_ether(params.value)}
        if wallet is not None:
            tx["from"] = wallet.address
        return f"Estimated gas: {client.estimate_gas(tx)} units"

    @registry.tool(
        "get_block_details",
        "Get detailed information about a specific block",
        BlockDetailsParams,
        error_prefix="Error getting block details",
    )
    def get_block_details(params: BlockDetailsParams) -> dict:
        block = client.get_block(int(params.block_number))
        return {
            "number": int(block["number"]),
            "hash": to_hex(block["hash"]),
            "timestamp": _iso_timestamp(block["timestamp"]),
            "transactions": len(block["transactions"]),
            "gasUsed": str(block["gasUsed"]),
            "gasLimit": str(block["gasLimit"]),
        }

    @registry.tool(
        "get_transaction_receipt",
        "Get the receipt of a transaction to check if it was successful",
        HashParams,
        error_prefix="Error getting transaction receipt",
    )
    def get_transaction_receipt(params: HashParams) -> dict:
        receipt = client.get_transaction_receipt(params.hash)
        return {
            "status": "Success" if receipt["status"] == 1 else "Failed",
            "blockNumber": int(receipt["blockNumber"]),
            "gasUsed": str(receipt["gasUsed"]),
            "from": receipt["from"],
            "to": receipt.get("to"),
        }

    logger.debug(f"Registered chain tools: {registry.list_names()}")
    return registry


def build_chain_tools(client: ChainClient, wallet: AgentWallet | None = None) -> ToolRegistry:
    """Create a fresh registry holding only the chain tools."""
    return register_chain_tools(ToolRegistry(), client, wallet)
