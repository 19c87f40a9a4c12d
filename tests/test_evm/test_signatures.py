"""
Tests for the signed message factory and signature recovery.
Tests: 1) forward documents recover to the signer 2) any mutated field
changes the recovered signer 3) permit schemas 4) contract signers skip recovery
"""
import copy
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from conveyor_relay.engine.exceptions import SignatureVerificationFailed
from conveyor_relay.evm.constants import PERMIT_MAX_VALUE
from conveyor_relay.evm.schemas import FeeTokenKind, SignaturePackage, SignerKind
from conveyor_relay.evm.signatures import (
    LocalAccountWallet,
    ProviderWallet,
    SignedMessageFactory,
    Wallet,
    prepare_transaction,
)
from conveyor_relay.evm.standards import ALLOWANCE_PERMIT_TYPE, FORWARDER_TYPE, PERMIT_TYPE
from conveyor_relay.evm.verifies import recover_typed_data_signer, verify_signature_package

from mocks import (
    DAI_MAINNET,
    DOMAIN_NAME,
    FORWARDER_ADDRESS,
    OTHER_PRIVATE_KEY,
    OWNER_ADDRESS,
    OWNER_PRIVATE_KEY,
    USDC_MAINNET,
    make_forward_request,
)


class OpaqueContractWallet(Wallet):
    """Returns a signature no ECDSA recovery can parse."""

    @property
    def address(self) -> str:
        return OWNER_ADDRESS

    async def sign_typed_data(self, document, signer_address):
        return "0x" + "11" * 96

    async def send_transaction(self, w3, tx):
        raise NotImplementedError


@pytest.fixture
def factory():
    return SignedMessageFactory(LocalAccountWallet(OWNER_PRIVATE_KEY))


def test_forward_document_layout(factory):
    document, sign_request = factory.build_forward_message(1, FORWARDER_ADDRESS, DOMAIN_NAME, make_forward_request())

    assert document["primaryType"] == "Forwarder"
    assert document["types"]["Forwarder"] == FORWARDER_TYPE
    assert document["domain"] == {
        "name": DOMAIN_NAME,
        "version": "1",
        "chainId": 1,
        "verifyingContract": FORWARDER_ADDRESS,
    }
    assert document["message"]["from"] == OWNER_ADDRESS
    assert document["message"]["extendCategories"] == [1, 2]
    assert sign_request.signer == OWNER_ADDRESS
    assert sign_request.document is document


@pytest.mark.asyncio
async def test_signed_forward_document_recovers_signer(factory):
    _, sign_request = factory.build_forward_message(1, FORWARDER_ADDRESS, DOMAIN_NAME, make_forward_request())

    package = await sign_request.sign()

    assert package.signer_kind == SignerKind.EOA
    assert recover_typed_data_signer(package.document, package.signature) == OWNER_ADDRESS
    v, r, s = package.vrs()
    assert v in (27, 28)
    assert len(r) == 66 and len(s) == 66


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "section,field,value",
    [
        ("message", "from", "0x0000000000000000000000000000000000000001"),
        ("message", "to", "0x0000000000000000000000000000000000000002"),
        ("message", "feeToken", USDC_MAINNET),
        ("message", "useOraclePriceFeed", False),
        ("message", "maxTokenAmount", 2 * 10 ** 17 + 1),
        ("message", "deadline", 1_900_000_001),
        ("message", "nonce", 6),
        ("message", "data", "0x1234"),
        ("message", "extendCategories", [1, 2, 3]),
        ("domain", "chainId", 137),
        ("domain", "verifyingContract", "0x0000000000000000000000000000000000000003"),
        ("domain", "name", "Other"),
    ],
)
async def test_mutated_field_changes_recovered_signer(factory, section, field, value):
    _, sign_request = factory.build_forward_message(1, FORWARDER_ADDRESS, DOMAIN_NAME, make_forward_request())
    package = await sign_request.sign()

    tampered = copy.deepcopy(package.document)
    tampered[section][field] = value

    assert recover_typed_data_signer(tampered, package.signature) != OWNER_ADDRESS


@pytest.mark.asyncio
async def test_wrong_key_fails_verification():
    factory = SignedMessageFactory(LocalAccountWallet(OTHER_PRIVATE_KEY))
    _, sign_request = factory.build_forward_message(1, FORWARDER_ADDRESS, DOMAIN_NAME, make_forward_request())

    with pytest.raises(SignatureVerificationFailed) as exc_info:
        await sign_request.sign()

    assert exc_info.value.expected == OWNER_ADDRESS
    assert exc_info.value.recovered != OWNER_ADDRESS


@pytest.mark.asyncio
async def test_contract_signer_skips_recovery():
    factory = SignedMessageFactory(OpaqueContractWallet())
    _, sign_request = factory.build_forward_message(1, FORWARDER_ADDRESS, DOMAIN_NAME, make_forward_request())

    package = await sign_request.sign(SignerKind.CONTRACT)

    assert package.signer_kind == SignerKind.CONTRACT
    assert package.signature == "0x" + "11" * 96


@pytest.mark.asyncio
async def test_opaque_signature_from_key_holder_is_rejected():
    factory = SignedMessageFactory(OpaqueContractWallet())
    _, sign_request = factory.build_forward_message(1, FORWARDER_ADDRESS, DOMAIN_NAME, make_forward_request())

    with pytest.raises(SignatureVerificationFailed):
        await sign_request.sign(SignerKind.EOA)


def test_standard_permit_document(factory):
    document, sign_request = factory.build_permit_message(
        1, USDC_MAINNET, FeeTokenKind.STANDARD_PERMIT, OWNER_ADDRESS, FORWARDER_ADDRESS, 1_900_000_000, 4
    )

    assert document["types"]["Permit"] == PERMIT_TYPE
    assert document["domain"]["verifyingContract"] == USDC_MAINNET
    assert document["domain"]["name"] == "Permit"
    assert document["message"] == {
        "owner": OWNER_ADDRESS,
        "spender": FORWARDER_ADDRESS,
        "value": PERMIT_MAX_VALUE,
        "nonce": 4,
        "deadline": 1_900_000_000,
    }
    assert sign_request.signer == OWNER_ADDRESS


@pytest.mark.asyncio
async def test_allowance_permit_document_signs(factory):
    document, sign_request = factory.build_permit_message(
        1, DAI_MAINNET, FeeTokenKind.ALLOWANCE_PERMIT, OWNER_ADDRESS, FORWARDER_ADDRESS, 1_900_000_000, 0
    )

    assert document["types"]["Permit"] == ALLOWANCE_PERMIT_TYPE
    assert document["message"] == {
        "holder": OWNER_ADDRESS,
        "spender": FORWARDER_ADDRESS,
        "nonce": 0,
        "expiry": 1_900_000_000,
        "allowed": True,
    }

    package = await sign_request.sign()
    assert verify_signature_package(package) == OWNER_ADDRESS


def test_malformed_signature_raises():
    package = SignaturePackage(
        document={"types": {}, "primaryType": "Forwarder", "domain": {}, "message": {}},
        signature="0x1234",
        signer=OWNER_ADDRESS,
    )

    with pytest.raises(SignatureVerificationFailed):
        verify_signature_package(package)


@pytest.mark.asyncio
async def test_provider_wallet_signs_through_node():
    w3 = MagicMock()
    w3.provider.make_request = AsyncMock(return_value={"result": "0xsigned"})
    wallet = ProviderWallet(w3, OWNER_ADDRESS.lower())

    signature = await wallet.sign_typed_data({"primaryType": "Forwarder"}, wallet.address)

    assert signature == "0xsigned"
    method, params = w3.provider.make_request.await_args.args
    assert method == "eth_signTypedData_v4"
    assert params[0] == OWNER_ADDRESS
    assert json.loads(params[1]) == {"primaryType": "Forwarder"}


@pytest.mark.asyncio
async def test_provider_wallet_refusal_raises():
    w3 = MagicMock()
    w3.provider.make_request = AsyncMock(return_value={"error": {"code": 4001, "message": "User rejected"}})

    with pytest.raises(RuntimeError):
        await ProviderWallet(w3, OWNER_ADDRESS).sign_typed_data({}, OWNER_ADDRESS)


@pytest.mark.asyncio
async def test_prepare_transaction_falls_back_to_legacy_gas():
    w3 = MagicMock()
    w3.eth.get_transaction_count = AsyncMock(return_value=3)
    w3.eth.estimate_gas = AsyncMock(side_effect=ValueError("insufficient funds"))
    w3.eth.fee_history = AsyncMock(side_effect=ValueError("not supported"))

    async def value(v):
        return v

    type(w3.eth).chain_id = property(lambda self: value(1))
    type(w3.eth).gas_price = property(lambda self: value(7))

    tx = await prepare_transaction(w3, {"to": FORWARDER_ADDRESS, "data": "0x"}, OWNER_ADDRESS)

    assert tx["from"] == OWNER_ADDRESS
    assert tx["nonce"] == 3
    assert tx["chainId"] == 1
    assert tx["gas"] == 100000
    assert tx["gasPrice"] == 7
    assert "maxFeePerGas" not in tx
