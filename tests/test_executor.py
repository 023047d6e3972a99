"""Tests for building, signing, submitting and confirming transactions."""

import pytest
from eth_account import Account
from web3.exceptions import TimeExhausted

from agent_chain_wallet.errors import ChainError, ReceiptTimeoutError, TransactionRevertedError
from agent_chain_wallet.wallet.chains import get_chain
from agent_chain_wallet.wallet.executor import PRIORITY_FEE_WEI, TransactionExecutor
from agent_chain_wallet.wallet.models import TransactionOutcome, TransactionRequest, TxStatus
from agent_chain_wallet.wallet.provider import ChainClient
from agent_chain_wallet.wallet.signer import AccountSigner
from agent_chain_wallet.wallet.units import normalize_address

from conftest import PRIVATE_KEY, RECIPIENT, TX_HASH, make_w3

TO = normalize_address(RECIPIENT)


def make_executor(w3, **kwargs):
    client = ChainClient(w3, get_chain("sepolia"))
    return TransactionExecutor(client, AccountSigner(PRIVATE_KEY), **kwargs)


class TestBuild:
    def test_eip1559_fees_when_base_fee_present(self, w3):
        w3.eth.get_transaction_count.return_value = 7
        tx = make_executor(w3).build_transaction(TransactionRequest(to=TO, value=5))

        assert tx["nonce"] == 7
        assert tx["chainId"] == 11155111
        assert tx["maxPriorityFeePerGas"] == PRIORITY_FEE_WEI
        assert tx["maxFeePerGas"] == 2 * 10_000_000_000 + PRIORITY_FEE_WEI
        assert tx["gas"] == 21_000
        assert "gasPrice" not in tx
        assert "from" not in tx

    def test_legacy_gas_price_fallback(self):
        w3 = make_w3(base_fee=None)
        tx = make_executor(w3).build_transaction(TransactionRequest(to=TO, value=5))
        assert tx["gasPrice"] == 2_500_000_000
        assert "maxFeePerGas" not in tx

    def test_nonce_uses_pending_block(self, w3):
        make_executor(w3).build_transaction(TransactionRequest(to=TO))
        address = Account.from_key(PRIVATE_KEY).address
        w3.eth.get_transaction_count.assert_called_once_with(address, "pending")

    def test_data_is_hex_encoded(self, w3):
        tx = make_executor(w3).build_transaction(TransactionRequest(to=TO, data=b"\x12\x34"))
        assert tx["data"] == "0x1234"

    def test_chain_mismatch_is_rejected(self, w3):
        with pytest.raises(ChainError, match="chain 1"):
            make_executor(w3).build_transaction(TransactionRequest(to=TO, chain_id=1))

    def test_estimate_does_not_sign_or_send(self, w3):
        gas = make_executor(w3).estimate_gas(TransactionRequest(to=TO, value=1))
        assert gas == 21_000
        w3.eth.send_raw_transaction.assert_not_called()
        w3.eth.get_transaction_count.assert_not_called()


class TestExecute:
    def test_confirmed_outcome(self, w3):
        outcome = make_executor(w3).execute(TransactionRequest(to=TO, value=1))

        assert outcome.hash == TX_HASH
        assert outcome.status is TxStatus.CONFIRMED
        assert outcome.block_number == 100
        assert outcome.gas_used == 21_000

    def test_submitted_bytes_are_signed_by_wallet(self, w3):
        make_executor(w3).execute(TransactionRequest(to=TO, value=1))
        raw = w3.eth.send_raw_transaction.call_args.args[0]
        assert Account.recover_transaction(raw) == Account.from_key(PRIVATE_KEY).address

    def test_reverted_receipt_raises(self, w3):
        w3.eth.wait_for_transaction_receipt.return_value = {
            "status": 0,
            "blockNumber": 101,
            "gasUsed": 30_000,
        }
        with pytest.raises(TransactionRevertedError) as info:
            make_executor(w3).execute(TransactionRequest(to=TO))
        assert info.value.outcome.status is TxStatus.REVERTED
        assert info.value.outcome.block_number == 101

    def test_timeout_is_reported_and_not_retried(self, w3):
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("slow")
        with pytest.raises(ReceiptTimeoutError):
            make_executor(w3, receipt_timeout=3).execute(TransactionRequest(to=TO))
        assert w3.eth.send_raw_transaction.call_count == 1
        assert w3.eth.wait_for_transaction_receipt.call_args.kwargs["timeout"] == 3

    def test_rpc_error_on_send_propagates(self, w3):
        w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")
        with pytest.raises(ChainError, match="nonce too low"):
            make_executor(w3).execute(TransactionRequest(to=TO))


class TestOutcome:
    def test_terminal_states_do_not_change(self):
        outcome = TransactionOutcome(hash=TX_HASH)
        assert not outcome.is_final
        outcome.apply_receipt({"status": 1, "blockNumber": 1, "gasUsed": 1})
        assert outcome.is_final
        with pytest.raises(RuntimeError):
            outcome.apply_receipt({"status": 0, "blockNumber": 2, "gasUsed": 1})
        assert outcome.status is TxStatus.CONFIRMED

    def test_request_is_immutable(self):
        request = TransactionRequest(to=TO)
        with pytest.raises(AttributeError):
            request.value = 1
