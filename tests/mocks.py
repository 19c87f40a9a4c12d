"""
Meta-Transaction Test Mocks Module

Mock data and fakes shared by the test suite. Nothing here talks to a real
chain, relay or price source.

Key Components:
    - Test keys, addresses and chain constants
    - Factories for forward requests, receipts and event logs
    - A recording price source and an in-memory relay transport
    - Fake web3 ``eth`` namespace and a fake ``ChainReader``

Usage:
    from mocks import (
        OWNER_ADDRESS,
        make_receipt,
        make_meta_status_log,
        RecordingPriceSource,
    )
"""

import json
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, Mock

import httpx
from eth_abi import encode
from eth_account import Account
from web3 import AsyncWeb3

from conveyor_relay.evm.chain import ChainReader
from conveyor_relay.evm.constants import (
    DAI_ADDRESS,
    DEFAULT_FORWARDER_ADDRESS,
    META_STATUS_TOPIC,
    TRANSFER_TOPIC,
    USDC_ADDRESS,
    ChainId,
)
from conveyor_relay.evm.schemas import ForwardRequest
from conveyor_relay.fees.sources import PriceSource
from conveyor_relay.relay.client import RelayClient


# ========================================================================
# Constants
# ========================================================================

# Test private keys (do not use in production!)
OWNER_PRIVATE_KEY = "0x1234567890123456789012345678901234567890123456789012345678901234"
OTHER_PRIVATE_KEY = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcdefabcd"

OWNER_ADDRESS = Account.from_key(OWNER_PRIVATE_KEY).address
OTHER_ADDRESS = Account.from_key(OTHER_PRIVATE_KEY).address

TARGET_ADDRESS = AsyncWeb3.to_checksum_address("0x5fbdb2315678afecb367f032d93f642f64180aa3")
FEE_COLLECTOR = AsyncWeb3.to_checksum_address("0x70997970c51812dc3a010c7d01b50e0d17dc79c8")
FORWARDER_ADDRESS = AsyncWeb3.to_checksum_address(DEFAULT_FORWARDER_ADDRESS)

DAI_MAINNET = DAI_ADDRESS[ChainId.MAINNET]
USDC_MAINNET = USDC_ADDRESS[ChainId.MAINNET]
MATIC_FEE_TOKEN = USDC_ADDRESS[ChainId.MATIC]

TX_HASH = "0x" + "ab" * 32
CALL_DATA = "0xa9059cbb" + "00" * 12 + "5fbdb2315678afecb367f032d93f642f64180aa3" + "00" * 31 + "0a"
DOMAIN_NAME = "Conveyor"
RELAY_URL = "https://relay.test"

TARGET_ABI: List[Dict[str, Any]] = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    }
]


# ========================================================================
# Factories
# ========================================================================

def make_forward_request(**overrides) -> ForwardRequest:
    fields = {
        "from": OWNER_ADDRESS,
        "to": TARGET_ADDRESS,
        "fee_token": DAI_MAINNET,
        "use_oracle_price_feed": True,
        "max_token_amount": 2 * 10 ** 17,
        "deadline": 1_900_000_000,
        "nonce": 5,
        "data": CALL_DATA,
        "extend_categories": [1, 2],
    }
    fields.update(overrides)
    return ForwardRequest(**fields)


def _pad_address(address: str) -> str:
    return "0x" + "00" * 12 + address.lower().replace("0x", "")


def make_meta_status_log(
    success: bool,
    error: str = "",
    sender: str = OWNER_ADDRESS,
    emitter: str = FORWARDER_ADDRESS,
) -> Dict[str, Any]:
    return {
        "address": emitter,
        "topics": [META_STATUS_TOPIC],
        "data": encode(["address", "bool", "string"], [sender, success, error]),
    }


def make_transfer_log(token: str, src: str, dst: str, value: int) -> Dict[str, Any]:
    return {
        "address": token,
        "topics": [TRANSFER_TOPIC, _pad_address(src), _pad_address(dst)],
        "data": "0x" + encode(["uint256"], [value]).hex(),
    }


def make_receipt(status: int = 1, logs: Optional[List[Dict[str, Any]]] = None, tx_hash: str = TX_HASH) -> Dict[str, Any]:
    return {
        "transactionHash": tx_hash,
        "status": status,
        "blockNumber": 100,
        "gasUsed": 21000,
        "logs": logs or [],
    }


def relay_response(success: bool = True, tx_hash: Optional[str] = TX_HASH, error: str = "") -> Dict[str, Any]:
    return {
        "id": 1,
        "jsonrpc": "2.0",
        "result": {"success": success, "errorMessage": error, "txnHash": tx_hash},
    }


# ========================================================================
# Fakes
# ========================================================================

class RecordingPriceSource(PriceSource):
    """In-memory price source that records every lookup."""

    def __init__(
        self,
        token_prices: Optional[Dict[Tuple[str, str, str], Decimal]] = None,
        coin_prices: Optional[Dict[Tuple[str, str], Decimal]] = None,
    ):
        self.token_prices = {
            (platform, token.lower(), vs): price
            for (platform, token, vs), price in (token_prices or {}).items()
        }
        self.coin_prices = coin_prices or {}
        self.calls: List[Tuple[Any, ...]] = []

    async def token_price(self, platform: str, token_address: str, vs_currency: str) -> Optional[Decimal]:
        self.calls.append(("token", platform, token_address, vs_currency))
        return self.token_prices.get((platform, token_address.lower(), vs_currency))

    async def coin_price(self, coin_id: str, vs_currency: str) -> Optional[Decimal]:
        self.calls.append(("coin", coin_id, vs_currency))
        return self.coin_prices.get((coin_id, vs_currency))


class RecordingRelay:
    """MockTransport handler that answers with a fixed body and keeps requests."""

    def __init__(self, body: Optional[Dict[str, Any]] = None, status_code: int = 200):
        self.body = body if body is not None else relay_response()
        self.status_code = status_code
        self.requests: List[Dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        return httpx.Response(self.status_code, json=self.body)

    def client(self) -> RelayClient:
        return RelayClient(RELAY_URL, transport=httpx.MockTransport(self))


async def _value(value):
    return value


class FakeEth:
    """Stand-in for ``AsyncWeb3.eth`` with awaitable properties."""

    def __init__(self, chain_id: int = ChainId.MAINNET, gas_price: int = 10 ** 9, receipt: Optional[Dict[str, Any]] = None):
        self._chain_id = int(chain_id)
        self._gas_price = gas_price
        self.get_transaction_receipt = AsyncMock(return_value=receipt)
        self.estimate_gas = AsyncMock(return_value=100000)

    @property
    def chain_id(self):
        return _value(self._chain_id)

    @property
    def gas_price(self):
        return _value(self._gas_price)


class FakeWeb3:
    def __init__(self, **kwargs):
        self.eth = FakeEth(**kwargs)


def make_fake_chain(
    enabled: bool = True,
    nonce: int = 5,
    decimals: int = 18,
    is_contract: bool = False,
    token_nonce: int = 0,
) -> Mock:
    """``ChainReader`` double with every read stubbed."""
    chain = Mock(spec=ChainReader)
    chain.is_sponsorship_enabled = AsyncMock(return_value=enabled)
    chain.current_nonce = AsyncMock(return_value=nonce)
    chain.token_nonce = AsyncMock(return_value=token_nonce)
    chain.has_on_chain_code = AsyncMock(return_value=is_contract)
    chain.token_decimals = AsyncMock(return_value=decimals)
    chain.encode_call = Mock(return_value=CALL_DATA)
    return chain
