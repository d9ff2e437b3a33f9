"""
Tests for the signature codec and local permit signing.
"""
import pytest
from eth_account import Account

from permit_relay.engine.exceptions import MalformedSignature
from permit_relay.permits.signatures import (
    PermitSignature,
    recover_permit_signer,
    sign_permit,
    split_signature,
)
from permit_relay.permits.standards import build_permit_typed_data

from conftest import (
    CHAIN_ID,
    DEADLINE,
    FACILITATOR_ADDRESS,
    HOLDER_ADDRESS,
    HOLDER_PRIVATE_KEY,
    OTHER_ADDRESS,
    OTHER_PRIVATE_KEY,
    TOKEN_ADDRESS,
    TOKEN_NAME,
    TOKEN_VERSION,
)

R_HEX = "11" * 32
S_HEX = "22" * 32


def _typed(**overrides):
    fields = dict(
        owner=HOLDER_ADDRESS,
        spender=FACILITATOR_ADDRESS,
        value=1_000_000,
        nonce=0,
        deadline=DEADLINE,
        chain_id=CHAIN_ID,
        verifying_contract=TOKEN_ADDRESS,
        token_name=TOKEN_NAME,
        token_version=TOKEN_VERSION,
    )
    fields.update(overrides)
    return build_permit_typed_data(**fields)


class TestSplitSignature:

    @pytest.mark.parametrize("v_byte, expected_v", [(27, 27), (28, 28), (0, 27), (1, 28)])
    def test_recovery_id_normalized(self, v_byte, expected_v):
        sig = split_signature("0x" + R_HEX + S_HEX + f"{v_byte:02x}")
        assert sig.v == expected_v
        assert sig.r == "0x" + R_HEX
        assert sig.s == "0x" + S_HEX

    def test_accepts_raw_bytes_and_unprefixed_hex(self):
        raw = bytes.fromhex(R_HEX + S_HEX + "1b")
        assert split_signature(raw) == split_signature(R_HEX + S_HEX + "1b")

    @pytest.mark.parametrize("v_byte", [2, 26, 29, 255])
    def test_invalid_recovery_id_rejected(self, v_byte):
        with pytest.raises(MalformedSignature):
            split_signature("0x" + R_HEX + S_HEX + f"{v_byte:02x}")

    @pytest.mark.parametrize("signature", [
        "0x" + R_HEX + S_HEX,                 # 64 bytes: v missing
        "0x" + R_HEX + S_HEX + "1b00",        # 66 bytes
        b"\x00" * 64,
        "",
    ])
    def test_wrong_length_rejected(self, signature):
        with pytest.raises(MalformedSignature):
            split_signature(signature)

    def test_non_hex_rejected(self):
        with pytest.raises(MalformedSignature):
            split_signature("0x" + "zz" * 65)

    def test_packed_hex_rejoins(self):
        packed = "0x" + R_HEX + S_HEX + "1c"
        assert split_signature(packed).to_packed_hex() == packed


class TestPermitSignature:

    def test_from_components_pads_integers(self):
        sig = PermitSignature.from_components(v=0, r=1, s=2)
        assert sig.v == 27
        assert sig.r == "0x" + "00" * 31 + "01"
        assert sig.s == "0x" + "00" * 31 + "02"
        assert sig.validate_format() is True

    def test_from_components_rejects_short_component(self):
        with pytest.raises(MalformedSignature):
            PermitSignature.from_components(v=27, r="0x1234", s="0x" + S_HEX)

    def test_model_rejects_unnormalized_v(self):
        with pytest.raises(ValueError):
            PermitSignature(v=1, r="0x" + R_HEX, s="0x" + S_HEX)


class TestSignAndRecover:

    def test_sign_then_recover_returns_holder(self):
        typed = _typed()
        sig = sign_permit(HOLDER_PRIVATE_KEY, typed)
        assert sig.v in (27, 28)
        assert recover_permit_signer(typed, sig) == HOLDER_ADDRESS

    def test_matches_eth_account_packed_signature(self):
        typed = _typed()
        expected = Account.sign_typed_data(HOLDER_PRIVATE_KEY, full_message=typed.to_dict())
        sig = sign_permit(HOLDER_PRIVATE_KEY, typed)
        assert bytes.fromhex(sig.to_packed_hex()[2:]) == bytes(expected.signature)

    def test_wrong_domain_version_recovers_other_address(self):
        sig = sign_permit(HOLDER_PRIVATE_KEY, _typed(token_version="1"))
        assert recover_permit_signer(_typed(), sig) != HOLDER_ADDRESS

    def test_wrong_key_recovers_that_key(self):
        typed = _typed()
        sig = sign_permit(OTHER_PRIVATE_KEY, typed)
        assert recover_permit_signer(typed, sig) == OTHER_ADDRESS
