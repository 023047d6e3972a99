"""Tests for settings loading and runtime startup validation."""

import asyncio
import logging

import pytest
import yaml
from eth_account import Account

from agent_chain_wallet.config import WalletSettings, load_settings, save_settings
from agent_chain_wallet.errors import ConfigurationError
from agent_chain_wallet.runtime import create_runtime
from agent_chain_wallet.wallet.chains import get_chain
from agent_chain_wallet.wallet.provider import ChainClient
from agent_chain_wallet.wallet.vault import KeyVault

from conftest import ENCRYPTION_SECRET, OTHER_KEY, PRIVATE_KEY, RECIPIENT, make_w3


TYCOON = "0x" + "44" * 20


def settings_from(env):
    return load_settings(env=env)


class TestLoadSettings:
    def test_defaults(self):
        settings = settings_from({})
        assert settings.chain == "sepolia"
        assert settings.receipt_timeout == 120
        assert settings.poll_interval == 1.0
        assert settings.private_key is None

    def test_environment_overrides(self):
        settings = settings_from({
            "CHAIN": "base",
            "RPC_URL": "http://localhost:8545",
            "PRIVATE_KEY": PRIVATE_KEY,
            "RECEIPT_TIMEOUT": "30",
        })
        assert settings.chain == "base"
        assert settings.rpc_url == "http://localhost:8545"
        assert settings.private_key.get_secret_value() == PRIVATE_KEY
        assert settings.receipt_timeout == 30

    def test_onboarding_keys(self):
        settings = settings_from({
            "TREASURY_PRIVATE_KEY": OTHER_KEY,
            "TYCOON_CONTRACT_ADDRESS": TYCOON,
        })
        assert settings.treasury_private_key.get_secret_value() == OTHER_KEY
        assert settings.tycoon_contract_address == TYCOON
        assert OTHER_KEY not in repr(settings)

    def test_empty_environment_values_ignored(self):
        assert settings_from({"CHAIN": ""}).chain == "sepolia"

    def test_secrets_hidden_in_repr(self):
        settings = settings_from({"PRIVATE_KEY": PRIVATE_KEY})
        assert PRIVATE_KEY not in repr(settings)

    def test_yaml_file_with_expansion(self, tmp_path):
        path = tmp_path / "wallet.yaml"
        path.write_text(
            "chain: ethereum\n"
            "rpc_url: ${NODE_URL}\n"
            "encryption_secret: ${AGENT_KEY_ENCRYPTION_SECRET}\n"
        )
        settings = load_settings(path, env={
            "NODE_URL": "http://node:8545",
            "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
        })
        assert settings.chain == "ethereum"
        assert settings.rpc_url == "http://node:8545"
        assert settings.encryption_secret.get_secret_value() == ENCRYPTION_SECRET

    def test_environment_beats_file(self, tmp_path):
        path = tmp_path / "wallet.yaml"
        path.write_text("chain: ethereum\n")
        assert load_settings(path, env={"CHAIN": "base"}).chain == "base"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "nope.yaml", env={})

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "wallet.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_settings(path, env={})

    @pytest.mark.parametrize("value", ["0", "-5", "soon"])
    def test_invalid_timeout(self, value):
        with pytest.raises(ConfigurationError):
            settings_from({"RECEIPT_TIMEOUT": value})

    def test_save_keeps_secret_out_of_file(self, tmp_path):
        path = tmp_path / "out" / "wallet.yaml"
        settings = WalletSettings(
            chain="base",
            private_key=PRIVATE_KEY,
            treasury_private_key=OTHER_KEY,
            encryption_secret=ENCRYPTION_SECRET,
        )
        save_settings(settings, path)
        text = path.read_text()
        assert ENCRYPTION_SECRET not in text
        assert PRIVATE_KEY not in text
        assert "treasury_private_key" not in text
        data = yaml.safe_load(text)
        assert data["chain"] == "base"
        assert data["encryption_secret"] == "${AGENT_KEY_ENCRYPTION_SECRET}"


class TestChainResolution:
    def test_unknown_chain(self):
        with pytest.raises(ConfigurationError, match="Unknown chain"):
            WalletSettings(chain="solana").resolve_chain()

    def test_default_rpc(self):
        assert WalletSettings(chain="sepolia").resolve_rpc_url() == "https://rpc.sepolia.org"

    def test_explicit_rpc(self):
        settings = WalletSettings(chain="sepolia", rpc_url="http://localhost:8545")
        assert settings.resolve_rpc_url() == "http://localhost:8545"


class TestCreateRuntime:
    @pytest.fixture
    def client(self):
        return ChainClient(make_w3(), get_chain("sepolia"))

    @pytest.mark.parametrize("secret", [None, "", "abcd", "zz" * 32, "ab" * 31])
    def test_bad_encryption_secret_is_fatal(self, client, secret):
        env = {} if secret is None else {"AGENT_KEY_ENCRYPTION_SECRET": secret}
        with pytest.raises(ConfigurationError):
            create_runtime(settings_from(env), client=client)

    def test_unknown_chain_is_fatal(self):
        settings = settings_from({
            "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
            "CHAIN": "solana",
        })
        with pytest.raises(ConfigurationError):
            create_runtime(settings)

    def test_read_only_without_key(self, client):
        runtime = create_runtime(
            settings_from({"AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET}),
            client=client,
        )
        assert runtime.wallet is None
        result = asyncio.run(runtime.tools.invoke("send_eth", {"to": RECIPIENT, "amount": "1"}))
        assert result.result == (
            "Wallet not configured. Please set PRIVATE_KEY in environment variables."
        )

    def test_plain_private_key(self, client, address):
        runtime = create_runtime(
            settings_from({
                "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
                "PRIVATE_KEY": PRIVATE_KEY,
                "RECEIPT_TIMEOUT": "7",
            }),
            client=client,
        )
        assert runtime.wallet.address == address
        assert runtime.wallet._executor.receipt_timeout == 7

    def test_encrypted_private_key(self, client, address):
        blob = KeyVault.from_hex(ENCRYPTION_SECRET).encrypt(PRIVATE_KEY)
        runtime = create_runtime(
            settings_from({
                "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
                "ENCRYPTED_PRIVATE_KEY": blob,
            }),
            client=client,
        )
        assert runtime.wallet.address == address

    @pytest.mark.parametrize("blob", ["not-a-blob", "00" * 16 + ":" + "00" * 32])
    def test_bad_encrypted_key_is_fatal(self, client, blob):
        settings = settings_from({
            "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
            "ENCRYPTED_PRIVATE_KEY": blob,
        })
        with pytest.raises(ConfigurationError, match="ENCRYPTED_PRIVATE_KEY"):
            create_runtime(settings, client=client)

    def test_malformed_private_key_is_fatal(self, client):
        settings = settings_from({
            "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
            "PRIVATE_KEY": "0x1234",
        })
        with pytest.raises(ConfigurationError, match="PRIVATE_KEY"):
            create_runtime(settings, client=client)

    def test_mainnet_key_logs_warning(self, caplog):
        client = ChainClient(make_w3(), get_chain("ethereum"))
        settings = settings_from({
            "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
            "PRIVATE_KEY": PRIVATE_KEY,
        })
        with caplog.at_level(logging.WARNING, logger="agent_chain_wallet.runtime"):
            create_runtime(settings, client=client)
        assert "ethereum is not a testnet" in caplog.text

    def test_testnet_key_does_not_warn(self, client, caplog):
        settings = settings_from({
            "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
            "PRIVATE_KEY": PRIVATE_KEY,
        })
        with caplog.at_level(logging.WARNING, logger="agent_chain_wallet.runtime"):
            create_runtime(settings, client=client)
        assert "not a testnet" not in caplog.text


class TestOnboardingRuntime:
    @pytest.fixture
    def client(self):
        return ChainClient(make_w3(), get_chain("sepolia"))

    def test_treasury_and_contract_wired(self, client):
        runtime = create_runtime(
            settings_from({
                "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
                "TREASURY_PRIVATE_KEY": OTHER_KEY,
                "TYCOON_CONTRACT_ADDRESS": " " + TYCOON.lower() + " ",
            }),
            client=client,
        )
        assert runtime.wallet is None
        assert runtime.treasury.address == Account.from_key(OTHER_KEY).address
        assert runtime.tycoon_address == TYCOON

    def test_onboard_agent(self, client):
        runtime = create_runtime(
            settings_from({
                "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
                "TREASURY_PRIVATE_KEY": OTHER_KEY,
                "TYCOON_CONTRACT_ADDRESS": TYCOON,
            }),
            client=client,
        )
        agent = runtime.onboard_agent("eren")
        key = runtime.vault.decrypt(agent.private_key_encrypted)
        assert Account.from_key(key).address == agent.wallet_address

    @pytest.mark.parametrize(
        "env, missing",
        [
            ({"TYCOON_CONTRACT_ADDRESS": TYCOON}, "TREASURY_PRIVATE_KEY"),
            ({"TREASURY_PRIVATE_KEY": OTHER_KEY}, "TYCOON_CONTRACT_ADDRESS"),
        ],
    )
    def test_onboarding_needs_both_keys(self, client, env, missing):
        runtime = create_runtime(
            settings_from({"AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET, **env}),
            client=client,
        )
        with pytest.raises(ConfigurationError, match=missing):
            runtime.onboard_agent("eren")
        client.w3.eth.send_raw_transaction.assert_not_called()

    def test_bad_contract_address_is_fatal(self, client):
        settings = settings_from({
            "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
            "TYCOON_CONTRACT_ADDRESS": "0xnope",
        })
        with pytest.raises(ConfigurationError, match="TYCOON_CONTRACT_ADDRESS"):
            create_runtime(settings, client=client)

    def test_malformed_treasury_key_is_fatal(self, client):
        settings = settings_from({
            "AGENT_KEY_ENCRYPTION_SECRET": ENCRYPTION_SECRET,
            "TREASURY_PRIVATE_KEY": "0x1234",
        })
        with pytest.raises(ConfigurationError, match="TREASURY_PRIVATE_KEY"):
            create_runtime(settings, client=client)
