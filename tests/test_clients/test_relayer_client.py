"""
Tests for RelayerClient against an in-process RelayerServer via httpx.ASGITransport.
"""
import httpx
import pytest

from permit_relay.clients import RelayerClient, RelayerResponseError
from permit_relay.facilitator import PermitFacilitator
from permit_relay.permits.standards import prepare_permit
from permit_relay.servers import RelayerServer

from conftest import (
    CHAIN_ID,
    DEADLINE,
    FACILITATOR_ADDRESS,
    HOLDER_ADDRESS,
    HOLDER_PRIVATE_KEY,
    OTHER_PRIVATE_KEY,
    RECIPIENT_A,
    RECIPIENT_B,
    TOKEN_ADDRESS,
)


@pytest.fixture
def app(ledger, registry):
    return RelayerServer(PermitFacilitator(ledger, registry=registry))


def make_client(app):
    return RelayerClient(base_url="http://relayer/api", transport=httpx.ASGITransport(app=app))


async def typed_data_for(ledger, value):
    return await prepare_permit(
        ledger,
        owner=HOLDER_ADDRESS,
        spender=FACILITATOR_ADDRESS,
        value=value,
        deadline=DEADLINE,
        chain_id=CHAIN_ID,
        verifying_contract=TOKEN_ADDRESS,
    )


@pytest.mark.asyncio
async def test_sign_and_execute_transfer(app, ledger):
    typed_data = await typed_data_for(ledger, 1_000_000)

    async with make_client(app) as client:
        response = await client.sign_and_execute_transfer(
            HOLDER_PRIVATE_KEY, typed_data, recipient=RECIPIENT_A, fee_amount=10_000,
        )
        assert response.total_paid_out == 990_000
        assert await client.is_permit_used(response.fingerprint) is True

        status = await client.get_transaction_status(response.tx_hash)
        assert status.status == "confirmed"

    assert ledger.balance(RECIPIENT_A) == 990_000


@pytest.mark.asyncio
async def test_sign_and_execute_bulk_transfer(app, ledger):
    typed_data = await typed_data_for(ledger, 1_000_000)

    async with make_client(app) as client:
        response = await client.sign_and_execute_bulk_transfer(
            HOLDER_PRIVATE_KEY,
            typed_data,
            recipients=[(RECIPIENT_A, 600_000), (RECIPIENT_B, 390_000)],
            fee_amount=10_000,
        )

    assert response.recipient_count == 2
    assert ledger.balance(RECIPIENT_B) == 390_000


@pytest.mark.asyncio
async def test_error_response_raises(app, ledger):
    typed_data = await typed_data_for(ledger, 1_000_000)

    async with make_client(app) as client:
        with pytest.raises(RelayerResponseError) as exc_info:
            await client.sign_and_execute_transfer(OTHER_PRIVATE_KEY, typed_data, recipient=RECIPIENT_A)

    assert exc_info.value.code == "InvalidPermitSignature"
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_replay_raises_conflict(app, ledger):
    typed_data = await typed_data_for(ledger, 1_000_000)

    async with make_client(app) as client:
        await client.sign_and_execute_transfer(HOLDER_PRIVATE_KEY, typed_data, recipient=RECIPIENT_A)
        with pytest.raises(RelayerResponseError) as exc_info:
            await client.sign_and_execute_transfer(HOLDER_PRIVATE_KEY, typed_data, recipient=RECIPIENT_A)

    assert exc_info.value.code == "PermitAlreadyUsed"
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_unknown_transaction_is_not_an_error(app):
    async with make_client(app) as client:
        status = await client.get_transaction_status("0x" + "00" * 32)
    assert status.success is False


@pytest.mark.asyncio
async def test_health(app):
    async with make_client(app) as client:
        health = await client.health()
    assert health.chain_id == CHAIN_ID
    assert health.token_address == TOKEN_ADDRESS
