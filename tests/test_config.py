"""
Tests for RelayerSettings.from_env.
"""
import pytest

from permit_relay.config import RelayerSettings
from permit_relay.engine.exceptions import ConfigurationError
from permit_relay.permits.schemas import FingerprintMode, SignatureRejectionPolicy

from conftest import CHAIN_ID, FACILITATOR_ADDRESS, TOKEN_ADDRESS

SECRET = "0x" + "5e" * 32


@pytest.fixture
def env():
    return {
        "RPC_URL": "https://rpc.example",
        "RELAYER_PRIVATE_KEY": SECRET,
        "FACILITATOR_ADDRESS": FACILITATOR_ADDRESS,
        "TOKEN_ADDRESS": TOKEN_ADDRESS,
        "CHAIN_ID": str(CHAIN_ID),
    }


def test_defaults(env):
    settings = RelayerSettings.from_env(env)
    assert settings.chain_id == CHAIN_ID
    assert settings.max_batch_size == 50
    assert settings.port == 3001
    assert settings.request_timeout == 60
    assert settings.fingerprint_mode == FingerprintMode.SIGNATURE
    assert settings.signature_rejection_policy == SignatureRejectionPolicy.KEEP_CONSUMED
    settings.require_chain_access()


def test_overrides_and_aliases(env):
    del env["RELAYER_PRIVATE_KEY"], env["TOKEN_ADDRESS"]
    env.update({
        "ADMIN_PRIVATE_KEY": SECRET,
        "USDC_ADDRESS": TOKEN_ADDRESS,
        "MAX_BATCH_SIZE": "10",
        "FINGERPRINT_MODE": "nonce_bound",
        "SIGNATURE_REJECTION_POLICY": "release",
        "PORT": "8080",
    })
    settings = RelayerSettings.from_env(env)
    assert settings.relayer_private_key == SECRET
    assert settings.token_address == TOKEN_ADDRESS
    assert settings.max_batch_size == 10
    assert settings.fingerprint_mode == FingerprintMode.NONCE_BOUND
    assert settings.signature_rejection_policy == SignatureRejectionPolicy.RELEASE
    assert settings.port == 8080


def test_missing_required_variables_are_named(env):
    del env["CHAIN_ID"], env["FACILITATOR_ADDRESS"]
    with pytest.raises(ConfigurationError) as exc_info:
        RelayerSettings.from_env(env)
    assert "CHAIN_ID" in str(exc_info.value)
    assert "FACILITATOR_ADDRESS" in str(exc_info.value)


def test_blank_values_count_as_missing(env):
    env["TOKEN_ADDRESS"] = "   "
    with pytest.raises(ConfigurationError, match="TOKEN_ADDRESS"):
        RelayerSettings.from_env(env)


def test_invalid_values_are_named(env):
    env["CHAIN_ID"] = "sepolia"
    env["FINGERPRINT_MODE"] = "hash"
    with pytest.raises(ConfigurationError) as exc_info:
        RelayerSettings.from_env(env)
    assert "CHAIN_ID" in str(exc_info.value)
    assert "FINGERPRINT_MODE" in str(exc_info.value)
    assert "sepolia" not in str(exc_info.value)


def test_chain_access_requires_rpc_and_key(env):
    del env["RPC_URL"], env["RELAYER_PRIVATE_KEY"]
    settings = RelayerSettings.from_env(env)
    with pytest.raises(ConfigurationError) as exc_info:
        settings.require_chain_access()
    assert "RPC_URL" in str(exc_info.value)
    assert "RELAYER_PRIVATE_KEY" in str(exc_info.value)


def test_private_key_not_in_repr(env):
    assert SECRET not in repr(RelayerSettings.from_env(env))
