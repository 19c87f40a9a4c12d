"""
Tests for receipt resolution and charged-fee computation.
"""
from unittest.mock import AsyncMock, call, patch

import pytest
from web3.exceptions import TransactionNotFound

from conveyor_relay.engine.exceptions import ReceiptTimeout
from conveyor_relay.evm.receipts import ReceiptPollPolicy, ReceiptVerifier
from conveyor_relay.schemas.bases import MetaTxErrorKind, SubmissionPath

from mocks import (
    DAI_MAINNET,
    FEE_COLLECTOR,
    FORWARDER_ADDRESS,
    OWNER_ADDRESS,
    TARGET_ADDRESS,
    TX_HASH,
    USDC_MAINNET,
    FakeWeb3,
    make_meta_status_log,
    make_receipt,
    make_transfer_log,
)


def _verifier(receipt=None, policy=None):
    w3 = FakeWeb3(receipt=receipt)
    return ReceiptVerifier(w3, policy or ReceiptPollPolicy(max_attempts=3)), w3


@pytest.mark.asyncio
async def test_forwarded_call_failure_detected_from_logs():
    receipt = make_receipt(status=1, logs=[make_meta_status_log(False, "INSUFFICIENT_BALANCE")])
    verifier, _ = _verifier(receipt)

    outcome = await verifier.resolve(TX_HASH)

    assert outcome.success is False
    assert outcome.error_kind == MetaTxErrorKind.FORWARDED_CALL_FAILED
    assert outcome.error_message == "INSUFFICIENT_BALANCE"
    assert outcome.tx_hash == TX_HASH


@pytest.mark.asyncio
async def test_successful_status_event():
    receipt = make_receipt(status=1, logs=[make_meta_status_log(True)])
    verifier, _ = _verifier(receipt)

    outcome = await verifier.resolve(TX_HASH)

    assert outcome.is_success()
    assert outcome.tx_hash == TX_HASH
    assert outcome.path == SubmissionPath.RELAY


@pytest.mark.asyncio
async def test_receipt_without_status_event_succeeds():
    verifier, _ = _verifier(make_receipt(status=1))

    outcome = await verifier.resolve(TX_HASH, path=SubmissionPath.DIRECT)

    assert outcome.is_success()
    assert outcome.path == SubmissionPath.DIRECT


@pytest.mark.asyncio
async def test_reverted_receipt():
    verifier, _ = _verifier(make_receipt(status=0))

    outcome = await verifier.resolve(TX_HASH, path=SubmissionPath.DIRECT)

    assert outcome.error_kind == MetaTxErrorKind.TRANSACTION_REVERTED
    assert outcome.error_message == "Transaction Reverted"
    assert outcome.tx_hash == TX_HASH


@pytest.mark.asyncio
async def test_later_failure_status_wins_over_earlier_success():
    receipt = make_receipt(status=1, logs=[
        make_meta_status_log(True),
        make_meta_status_log(False, "INSUFFICIENT_BALANCE"),
    ])
    verifier, _ = _verifier(receipt)

    outcome = await verifier.resolve(TX_HASH)

    assert outcome.success is False
    assert outcome.error_kind == MetaTxErrorKind.FORWARDED_CALL_FAILED
    assert outcome.error_message == "INSUFFICIENT_BALANCE"


@pytest.mark.asyncio
async def test_status_events_from_other_contracts_are_ignored():
    receipt = make_receipt(status=1, logs=[
        make_meta_status_log(False, "SPOOFED", emitter=TARGET_ADDRESS),
        make_meta_status_log(True),
    ])
    verifier, _ = _verifier(receipt)

    outcome = await verifier.resolve(TX_HASH, forwarder=FORWARDER_ADDRESS.lower())

    assert outcome.is_success()
    assert ReceiptVerifier.find_meta_status(receipt)["error"] == "SPOOFED"


def test_find_meta_status_decodes_fields():
    receipt = make_receipt(logs=[make_meta_status_log(False, "EXPIRED")])

    status = ReceiptVerifier.find_meta_status(receipt)

    assert status["success"] is False
    assert status["error"] == "EXPIRED"
    assert status["sender"].lower() == OWNER_ADDRESS.lower()


@pytest.mark.asyncio
async def test_polling_times_out_with_bounded_backoff():
    verifier, w3 = _verifier()
    w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("pending")

    with patch.object(ReceiptVerifier, "_sleep_async", new=AsyncMock()) as sleep:
        outcome = await verifier.resolve(TX_HASH)

    assert outcome.error_kind == MetaTxErrorKind.RECEIPT_TIMEOUT
    assert outcome.tx_hash == TX_HASH
    assert w3.eth.get_transaction_receipt.await_count == 3
    assert sleep.await_args_list == [call(1.0), call(2.0)]


@pytest.mark.asyncio
async def test_polling_returns_receipt_once_mined():
    verifier, w3 = _verifier(policy=ReceiptPollPolicy(max_attempts=5))
    w3.eth.get_transaction_receipt.side_effect = [
        TransactionNotFound("pending"),
        None,
        make_receipt(status=1),
    ]

    with patch.object(ReceiptVerifier, "_sleep_async", new=AsyncMock()) as sleep:
        outcome = await verifier.resolve(TX_HASH)

    assert outcome.is_success()
    assert sleep.await_count == 2


def test_poll_policy_delays_are_capped():
    policy = ReceiptPollPolicy(max_attempts=6, initial_delay=1.0, multiplier=2.0, max_delay=5.0)

    assert list(policy.delays()) == [1.0, 2.0, 4.0, 5.0, 5.0]


@pytest.mark.asyncio
async def test_charged_fee_nets_refunds():
    receipt = make_receipt(logs=[
        make_transfer_log(DAI_MAINNET, OWNER_ADDRESS, FEE_COLLECTOR, 100),
        make_meta_status_log(True),
        make_transfer_log(DAI_MAINNET, FEE_COLLECTOR, OWNER_ADDRESS, 30),
    ])
    verifier, _ = _verifier(receipt)

    assert await verifier.compute_charged_fee(TX_HASH, FEE_COLLECTOR) == 70


@pytest.mark.asyncio
async def test_charged_fee_filters_by_token():
    receipt = make_receipt(logs=[
        make_transfer_log(DAI_MAINNET, OWNER_ADDRESS, FEE_COLLECTOR, 100),
        make_transfer_log(USDC_MAINNET, OWNER_ADDRESS, FEE_COLLECTOR, 5),
    ])
    verifier, _ = _verifier(receipt)

    assert await verifier.compute_charged_fee(TX_HASH, FEE_COLLECTOR, fee_token=DAI_MAINNET) == 100
    assert await verifier.compute_charged_fee(TX_HASH, FEE_COLLECTOR) == 105


@pytest.mark.asyncio
async def test_charged_fee_without_receipt_raises():
    verifier, w3 = _verifier(policy=ReceiptPollPolicy(max_attempts=1))

    with pytest.raises(ReceiptTimeout):
        await verifier.compute_charged_fee(TX_HASH, FEE_COLLECTOR)
