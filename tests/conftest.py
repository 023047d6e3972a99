"""Shared fixtures: a mocked web3 object behind a real ChainClient."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from eth_account import Account
from web3 import Web3

from agent_chain_wallet.wallet.chains import get_chain
from agent_chain_wallet.wallet.provider import ChainClient

# Offline instance used only to build real Contract objects for call encoding
CODEC = Web3()

PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
OTHER_KEY = "0x" + "11" * 32
ENCRYPTION_SECRET = "ab" * 32
RECIPIENT = "0x" + "22" * 20
TX_HASH = "0x" + "ab" * 32


def make_w3(base_fee: int | None = 10_000_000_000) -> MagicMock:
    """A MagicMock shaped like ``Web3`` with sensible defaults for writes."""
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 0
    w3.eth.get_block.return_value = {"baseFeePerGas": base_fee}
    w3.eth.gas_price = 2_500_000_000
    w3.eth.estimate_gas.return_value = 21_000
    w3.eth.contract.side_effect = CODEC.eth.contract
    w3.eth.send_raw_transaction.return_value = bytes.fromhex("ab" * 32)
    w3.eth.wait_for_transaction_receipt.return_value = {
        "status": 1,
        "blockNumber": 100,
        "gasUsed": 21_000,
    }
    return w3


def stub_contract_read(w3: MagicMock, function: str, value) -> MagicMock:
    """Make ``contract.functions.<function>(...).call()`` return *value*."""
    w3.eth.contract.side_effect = None
    contract = w3.eth.contract.return_value
    getattr(contract.functions, function).return_value.call.return_value = value
    return contract


def decode_call(abi: list[dict], data: bytes) -> tuple[str, dict]:
    """Function name and named arguments encoded in *data*."""
    function, args = CODEC.eth.contract(abi=abi).decode_function_input(data)
    return function.fn_name, args


@pytest.fixture
def w3():
    return make_w3()


@pytest.fixture
def client(w3):
    return ChainClient(w3, get_chain("sepolia"))


@pytest.fixture
def address():
    return Account.from_key(PRIVATE_KEY).address
