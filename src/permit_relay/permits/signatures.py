"""
Permit Signature Codec and Off-Chain Signing Helpers

Parses compact 65-byte ECDSA signatures into their (v, r, s) components and
back, and signs / recovers EIP-2612 permit messages in-process with
``eth_account``. No RPC calls are made here.

Exported helpers
----------------
split_signature
    Decode a packed ``r || s || v`` signature (hex string or bytes) into a
    ``PermitSignature``. Rejects anything that is not exactly 65 bytes or
    whose recovery id is not 0/1/27/28.

sign_permit
    Sign a ``PermitTypedData`` with a holder's private key and return the
    ``PermitSignature``. Used by holders, the HTTP client and tests.

recover_permit_signer
    Recover the address that produced a signature over a ``PermitTypedData``.
"""

from typing import Literal, Union

from eth_account import Account
from eth_account.messages import encode_typed_data
from pydantic import Field

from ..engine.exceptions import MalformedSignature
from ..schemas.bases import BaseSignature
from .standards import PermitTypedData

#: Length of a packed ``r || s || v`` signature.
SIGNATURE_LENGTH = 65


def _normalize_component(name: str, value: Union[str, bytes, int]) -> str:
    """Return ``value`` as a 0x-prefixed, 64-char lowercase hex string."""
    if isinstance(value, bool):
        raise MalformedSignature(f"Invalid {name}: expected 32 bytes")
    if isinstance(value, int):
        if value < 0 or value >= 2 ** 256:
            raise MalformedSignature(f"Invalid {name}: out of range for 32 bytes")
        return "0x" + value.to_bytes(32, "big").hex()
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise MalformedSignature(f"Invalid {name}: expected 32 bytes, got {len(value)}")
        return "0x" + bytes(value).hex()
    if isinstance(value, str):
        hex_str = value[2:] if value[:2].lower() == "0x" else value
        if len(hex_str) != 64:
            raise MalformedSignature(f"Invalid {name}: expected 64 hex chars, got {len(hex_str)}")
        try:
            bytes.fromhex(hex_str)
        except ValueError:
            raise MalformedSignature(f"Invalid {name}: not valid hexadecimal")
        return "0x" + hex_str.lower()
    raise MalformedSignature(f"Invalid {name}: unsupported type {type(value).__name__}")


def _normalize_v(v: int) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise MalformedSignature("Invalid recovery ID: expected an integer")
    if v in (0, 1):
        return v + 27
    if v not in (27, 28):
        raise MalformedSignature(f"Invalid recovery ID: {v}. Must be 27 or 28 (or 0/1)")
    return v


class PermitSignature(BaseSignature):
    """
    ECDSA signature (v, r, s) over an EIP-2612 permit.

    Attributes:
        signature_type: Always ``"EIP2612"``.
        v: ECDSA recovery ID (27 or 28).
        r: r component, 0x-prefixed 64-char hex string.
        s: s component, 0x-prefixed 64-char hex string.

    Example::

        sig = PermitSignature.from_components(v=27, r="0x" + "a" * 64, s="0x" + "b" * 64)
        sig.to_packed_hex()
    """

    signature_type: Literal["EIP2612"] = Field(default="EIP2612", description="Signing standard")
    v: int = Field(..., ge=27, le=28, description="ECDSA recovery ID (27 or 28)")
    r: str = Field(..., description="Signature r component (32 bytes, 0x-prefixed hex)")
    s: str = Field(..., description="Signature s component (32 bytes, 0x-prefixed hex)")

    @classmethod
    def from_components(
        cls,
        *,
        v: int,
        r: Union[str, bytes, int],
        s: Union[str, bytes, int],
    ) -> "PermitSignature":
        """
        Build a signature from loose components, normalizing v and hex forms.

        Raises:
            MalformedSignature: If any component cannot be parsed.
        """
        return cls(
            v=_normalize_v(v),
            r=_normalize_component("r", r),
            s=_normalize_component("s", s),
        )

    def validate_format(self) -> bool:
        """
        Validate v/r/s components.

        Returns:
            True when all components pass.

        Raises:
            MalformedSignature: Descriptive message on the first failed check.
        """
        _normalize_v(self.v)
        _normalize_component("r", self.r)
        _normalize_component("s", self.s)
        return True

    def r_bytes(self) -> bytes:
        return bytes.fromhex(self.r[2:])

    def s_bytes(self) -> bytes:
        return bytes.fromhex(self.s[2:])

    def to_bytes(self) -> bytes:
        """Packed 65-byte ``r || s || v``."""
        return self.r_bytes() + self.s_bytes() + bytes([self.v])

    def to_packed_hex(self) -> str:
        """
        Encode v/r/s into a packed 65-byte hex string (``r || s || v``).

        Returns:
            0x-prefixed 132-character hex string.
        """
        self.validate_format()
        return "0x" + self.to_bytes().hex()


def split_signature(signature: Union[str, bytes]) -> PermitSignature:
    """
    Split a packed 65-byte signature into its canonical components.

    Args:
        signature: ``r || s || v`` as raw bytes or a hex string (0x optional).

    Returns:
        ``PermitSignature`` with v normalized to 27/28.

    Raises:
        MalformedSignature: If the input is not exactly 65 bytes or the
            recovery id is outside {0, 1, 27, 28}.
    """
    if isinstance(signature, str):
        hex_str = signature[2:] if signature[:2].lower() == "0x" else signature
        if len(hex_str) != SIGNATURE_LENGTH * 2:
            raise MalformedSignature(
                f"Invalid signature length: expected {SIGNATURE_LENGTH} bytes, "
                f"got {len(hex_str) / 2:g}"
            )
        try:
            raw = bytes.fromhex(hex_str)
        except ValueError:
            raise MalformedSignature("Invalid signature: not valid hexadecimal")
    elif isinstance(signature, (bytes, bytearray)):
        raw = bytes(signature)
    else:
        raise MalformedSignature(f"Unsupported signature type: {type(signature).__name__}")

    if len(raw) != SIGNATURE_LENGTH:
        raise MalformedSignature(
            f"Invalid signature length: expected {SIGNATURE_LENGTH} bytes, got {len(raw)}"
        )

    return PermitSignature.from_components(v=raw[64], r=raw[:32], s=raw[32:64])


def sign_permit(private_key: str, typed_data: PermitTypedData) -> PermitSignature:
    """
    Sign an EIP-2612 permit locally and return its (v, r, s) components.

    Args:
        private_key: Hex-encoded secp256k1 key of the holder (0x optional).
        typed_data:  Message built by ``build_permit_typed_data``.

    Returns:
        ``PermitSignature`` with v in {27, 28}.

    Example::

        typed = build_permit_typed_data(
            owner=holder, spender=facilitator, value=1_000_000, nonce=0,
            deadline=1_900_000_000, chain_id=11155111,
            verifying_contract=token, token_name="USD Coin", token_version="2",
        )
        sig = sign_permit("0xHOLDER_KEY", typed)
        packed = sig.to_packed_hex()
    """
    signed = Account.sign_typed_data(private_key, full_message=typed_data.to_dict())
    return PermitSignature.from_components(v=signed.v, r=signed.r, s=signed.s)


def recover_permit_signer(typed_data: PermitTypedData, signature: PermitSignature) -> str:
    """
    Recover the checksum address that signed ``typed_data``.

    A wrong domain or field does not raise: it yields some other address,
    so callers must compare the result against the expected owner.
    """
    signable = encode_typed_data(full_message=typed_data.to_dict())
    return Account.recover_message(
        signable,
        vrs=(signature.v, int(signature.r, 16), int(signature.s, 16)),
    )
