"""
Tests for replay fingerprints.
"""
import pytest

from permit_relay.engine.exceptions import InvalidRecipient, PermitValidationError
from permit_relay.permits.fingerprints import compute_fingerprint, normalize_fingerprint
from permit_relay.permits.schemas import FingerprintMode

from conftest import DEADLINE, RECIPIENT_B


def test_fingerprint_is_32_byte_hex(make_single):
    fp = compute_fingerprint(make_single())
    assert fp.startswith("0x")
    assert len(fp) == 66
    assert fp == fp.lower()


def test_same_content_same_fingerprint(make_single):
    request = make_single()
    same = request.model_copy()
    assert compute_fingerprint(request) == compute_fingerprint(same)


def test_deadline_change_gives_distinct_fingerprint(make_single):
    assert compute_fingerprint(make_single()) != compute_fingerprint(make_single(deadline=DEADLINE + 1))


def test_value_change_gives_distinct_fingerprint(make_single):
    assert compute_fingerprint(make_single()) != compute_fingerprint(make_single(value=999_999))


def test_recipient_and_fee_not_part_of_fingerprint(make_single):
    request = make_single()
    rerouted = request.model_copy(update={"recipient": RECIPIENT_B, "fee_amount": 0})
    assert compute_fingerprint(request) == compute_fingerprint(rerouted)


def test_modes_differ(make_single):
    request = make_single(nonce=0)
    assert compute_fingerprint(request, FingerprintMode.SIGNATURE) != compute_fingerprint(
        request, FingerprintMode.NONCE_BOUND
    )


def test_nonce_bound_depends_on_nonce(make_single):
    request = make_single(nonce=0)
    assert compute_fingerprint(request, FingerprintMode.NONCE_BOUND, nonce=0) != compute_fingerprint(
        request, FingerprintMode.NONCE_BOUND, nonce=1
    )


def test_nonce_bound_requires_nonce(make_single):
    request = make_single().model_copy(update={"nonce": None})
    with pytest.raises(PermitValidationError):
        compute_fingerprint(request, FingerprintMode.NONCE_BOUND)


def test_bulk_uses_total_value(make_bulk, make_single):
    bulk = make_bulk()
    single = make_single(value=bulk.total_value)
    assert bulk.signature == single.signature
    assert compute_fingerprint(bulk) == compute_fingerprint(single)


def test_malformed_owner_rejected(make_single):
    request = make_single().model_copy(update={"owner": "not-an-address"})
    with pytest.raises(InvalidRecipient):
        compute_fingerprint(request)


def test_normalize_fingerprint():
    raw = bytes(range(32))
    assert normalize_fingerprint(raw) == "0x" + raw.hex()
    assert normalize_fingerprint(raw.hex().upper()) == "0x" + raw.hex()
    with pytest.raises(ValueError):
        normalize_fingerprint("0x1234")
