"""
Shared fixtures for the permit relay test suite.

Permits are signed with real secp256k1 keys through eth_account and
executed against ``InMemoryLedger``, which recovers signatures exactly like
an EIP-2612 token would. No network access is needed.
"""

import time
from typing import List, Optional, Tuple

import pytest
from eth_account import Account
from eth_utils import to_checksum_address

from permit_relay.ledgers.memory import InMemoryLedger
from permit_relay.permits.registry import ReplayRegistry
from permit_relay.permits.schemas import BulkPermitRequest, PermitRequest, RecipientAmount
from permit_relay.permits.signatures import sign_permit
from permit_relay.permits.standards import build_permit_typed_data
from permit_relay.permits.validator import PermitValidator

# Test keys (do not use in production!)
HOLDER_PRIVATE_KEY = "0x1234567890123456789012345678901234567890123456789012345678901234"
OTHER_PRIVATE_KEY = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcd"

HOLDER_ADDRESS = Account.from_key(HOLDER_PRIVATE_KEY).address
OTHER_ADDRESS = Account.from_key(OTHER_PRIVATE_KEY).address

TOKEN_ADDRESS = to_checksum_address("0x1c7d4b196cb0c7b01d743fbc6116a902379c7238")
FACILITATOR_ADDRESS = to_checksum_address("0x" + "fa" * 20)
FEE_BENEFICIARY = to_checksum_address("0x" + "fe" * 20)
RECIPIENT_A = to_checksum_address("0x" + "a1" * 20)
RECIPIENT_B = to_checksum_address("0x" + "b2" * 20)
NULL_ADDRESS = "0x0000000000000000000000000000000000000000"

CHAIN_ID = 11155111
TOKEN_NAME = "USD Coin"
TOKEN_VERSION = "2"

NOW = int(time.time())
DEADLINE = NOW + 3600


@pytest.fixture
def ledger() -> InMemoryLedger:
    """Fresh ledger; the holder starts with 1,000,000 units ("1.000000")."""
    ledger = InMemoryLedger(
        token_address=TOKEN_ADDRESS,
        chain_id=CHAIN_ID,
        facilitator_address=FACILITATOR_ADDRESS,
        fee_beneficiary=FEE_BENEFICIARY,
        token_name=TOKEN_NAME,
        token_version=TOKEN_VERSION,
        decimals=6,
    )
    ledger.mint(HOLDER_ADDRESS, 1_000_000)
    return ledger


@pytest.fixture
def registry() -> ReplayRegistry:
    return ReplayRegistry()


@pytest.fixture
def validator(ledger, registry) -> PermitValidator:
    return PermitValidator(ledger, registry)


def _sign(ledger, value: int, deadline: int, key: str, nonce: Optional[int], spender: str):
    owner = Account.from_key(HOLDER_PRIVATE_KEY).address
    typed = build_permit_typed_data(
        owner=owner,
        spender=spender,
        value=value,
        nonce=ledger.nonce(owner) if nonce is None else nonce,
        deadline=deadline,
        chain_id=CHAIN_ID,
        verifying_contract=TOKEN_ADDRESS,
        token_name=TOKEN_NAME,
        token_version=TOKEN_VERSION,
    )
    return sign_permit(key, typed)


@pytest.fixture
def make_single(ledger):
    """Factory for signed single-recipient requests from the holder.

    ``signing_key`` lets a test sign with the wrong key while keeping the
    holder as ``owner``.
    """
    def factory(
        value: int = 1_000_000,
        fee_amount: int = 10_000,
        recipient: str = RECIPIENT_A,
        deadline: int = DEADLINE,
        nonce: Optional[int] = None,
        signing_key: str = HOLDER_PRIVATE_KEY,
        spender: str = FACILITATOR_ADDRESS,
        owner: str = HOLDER_ADDRESS,
    ) -> PermitRequest:
        signature = _sign(ledger, value, deadline, signing_key, nonce, spender)
        return PermitRequest(
            owner=owner,
            spender=spender,
            recipient=recipient,
            value=value,
            deadline=deadline,
            signature=signature,
            fee_amount=fee_amount,
            nonce=ledger.nonce(HOLDER_ADDRESS) if nonce is None else nonce,
        )
    return factory


@pytest.fixture
def make_bulk(ledger):
    """Factory for signed bulk requests from the holder."""
    def factory(
        recipients: Optional[List[Tuple[str, int]]] = None,
        fee_amount: int = 10_000,
        total_value: Optional[int] = None,
        deadline: int = DEADLINE,
        nonce: Optional[int] = None,
        signing_key: str = HOLDER_PRIVATE_KEY,
    ) -> BulkPermitRequest:
        if recipients is None:
            recipients = [(RECIPIENT_A, 600_000), (RECIPIENT_B, 390_000)]
        if total_value is None:
            total_value = sum(amount for _, amount in recipients) + fee_amount
        signature = _sign(ledger, total_value, deadline, signing_key, nonce, FACILITATOR_ADDRESS)
        return BulkPermitRequest(
            owner=HOLDER_ADDRESS,
            spender=FACILITATOR_ADDRESS,
            recipients=[RecipientAmount(recipient=r, amount=a) for r, a in recipients],
            total_value=total_value,
            deadline=deadline,
            signature=signature,
            fee_amount=fee_amount,
            nonce=ledger.nonce(HOLDER_ADDRESS) if nonce is None else nonce,
        )
    return factory
