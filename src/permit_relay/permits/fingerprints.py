"""
Replay fingerprints.

A fingerprint is keccak256 over the ABI encoding of a permit's semantic
fields. Two modes are supported (see ``FingerprintMode``):

* ``SIGNATURE``   : ``(owner, spender, value, deadline, v, r, s)``
* ``NONCE_BOUND`` : ``(owner, spender, value, nonce, deadline, v, r, s)``

For a bulk request ``value`` is ``total_value``. The recipient list is not
part of the fingerprint: the permit authorizes an amount, not a payout plan.
"""

from typing import Optional, Union

from eth_abi import encode
from eth_utils import is_address, keccak, to_checksum_address

from ..engine.exceptions import InvalidRecipient, PermitValidationError
from .schemas import BulkPermitRequest, FingerprintMode, PermitRequest

_SIGNATURE_TYPES = ["address", "address", "uint256", "uint256", "uint8", "bytes32", "bytes32"]
_NONCE_BOUND_TYPES = ["address", "address", "uint256", "uint256", "uint256", "uint8", "bytes32", "bytes32"]


def _checksum(label: str, address: str) -> str:
    if not isinstance(address, str) or not is_address(address):
        raise InvalidRecipient(f"Invalid {label} address")
    return to_checksum_address(address)


def compute_fingerprint(
    request: Union[PermitRequest, BulkPermitRequest],
    mode: FingerprintMode = FingerprintMode.SIGNATURE,
    nonce: Optional[int] = None,
) -> str:
    """
    Compute the replay fingerprint of ``request``.

    Pure: no registry or ledger access. In ``NONCE_BOUND`` mode the nonce is
    taken from ``nonce`` if given, else from ``request.nonce``.

    Returns:
        0x-prefixed 64-char lowercase hex digest.

    Raises:
        InvalidRecipient: If owner or spender is not an address.
        PermitValidationError: In ``NONCE_BOUND`` mode when no nonce is known.
    """
    owner = _checksum("owner", request.owner)
    spender = _checksum("spender", request.spender)
    sig = request.signature
    value = request.authorized_value

    if mode == FingerprintMode.NONCE_BOUND:
        nonce = request.nonce if nonce is None else nonce
        if nonce is None:
            raise PermitValidationError("nonce is required for nonce-bound fingerprints")
        encoded = encode(
            _NONCE_BOUND_TYPES,
            [owner, spender, value, nonce, request.deadline, sig.v, sig.r_bytes(), sig.s_bytes()],
        )
    else:
        encoded = encode(
            _SIGNATURE_TYPES,
            [owner, spender, value, request.deadline, sig.v, sig.r_bytes(), sig.s_bytes()],
        )

    return "0x" + keccak(encoded).hex()


def normalize_fingerprint(fingerprint: Union[str, bytes]) -> str:
    """Canonical registry key: 0x-prefixed lowercase hex of 32 bytes."""
    if isinstance(fingerprint, (bytes, bytearray)):
        if len(fingerprint) != 32:
            raise ValueError("fingerprint must be 32 bytes")
        return "0x" + bytes(fingerprint).hex()
    hex_str = fingerprint[2:] if fingerprint[:2].lower() == "0x" else fingerprint
    if len(hex_str) != 64:
        raise ValueError("fingerprint must be 32 bytes of hex")
    bytes.fromhex(hex_str)
    return "0x" + hex_str.lower()
