"""
EVM Chain Configuration Management

Chain identifiers, relay endpoint pools, forwarder addresses, fee-token
lookups, price-source routes and event topics used by the meta-transaction
client. Everything here is static data plus small lookup helpers; the values
are resolved once into a :class:`~conveyor_relay.config.ConveyorConfig` and
never consulted as process-wide mutable state.
"""

import os
from enum import IntEnum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from web3 import Web3
import dotenv

from .schemas import FeeTokenKind

dotenv.load_dotenv()


class ChainId(IntEnum):
    """EVM network identifiers known to the client."""
    MAINNET = 1
    ROPSTEN = 3
    RINKEBY = 4
    GOERLI = 5
    KOVAN = 42
    OKEX_TESTNET = 65
    OKEX = 66
    BSC = 56
    BSC_TESTNET = 97
    XDAI = 100
    HECO = 128
    MATIC = 137
    FANTOM = 250
    HECO_TESTNET = 256
    MOONRIVER = 1285
    MOONBEAM_TESTNET = 1287
    FANTOM_TESTNET = 4002
    ARBITRUM = 42161
    CELO = 42220
    AVALANCHE_TESTNET = 43113
    AVALANCHE = 43114
    MATIC_TESTNET = 80001
    SEPOLIA = 11155111
    PALM_TESTNET = 11297108099
    PALM = 11297108109
    HARMONY = 1666600000
    HARMONY_TESTNET = 1666700000
    ARBITRUM_TESTNET = 79377087078960


#: Sponsorship is free on these networks.
TESTNET_CHAIN_IDS = frozenset({
    ChainId.ROPSTEN,
    ChainId.RINKEBY,
    ChainId.GOERLI,
    ChainId.KOVAN,
    ChainId.ARBITRUM_TESTNET,
    ChainId.AVALANCHE_TESTNET,
    ChainId.HARMONY_TESTNET,
    ChainId.OKEX_TESTNET,
    ChainId.BSC_TESTNET,
    ChainId.PALM_TESTNET,
    ChainId.MOONBEAM_TESTNET,
    ChainId.FANTOM_TESTNET,
    ChainId.MATIC_TESTNET,
    ChainId.HECO_TESTNET,
    ChainId.SEPOLIA,
})

ZERO_ADDRESS: str = "0x0000000000000000000000000000000000000000"

#: Fee-token sentinel meaning "no fee is charged for this call".
NO_FEE_TOKEN: str = ZERO_ADDRESS

#: Forwarder deployment shared by every chain unless overridden per chain.
DEFAULT_FORWARDER_ADDRESS: str = "0x84194C00E190dE7A10180853f6a28502Ad1A1029"

#: Interchangeable relay endpoints per environment; one is picked at random
#: when a configuration is resolved.
RELAYER_ENDPOINTS: Dict[str, List[str]] = {
    "staging": [
        "https://conveyor-geode-staging.ata.network",
    ],
    "production": [
        "https://conveyor-geode.ata.network",
    ],
}

#: Allowance granted by a standard permit; covers many future fees.
PERMIT_MAX_VALUE: int = 10 ** 30

#: Domain name used for permit documents.
PERMIT_DOMAIN_NAME: str = "Permit"

# ---------------------------------------------------------------------------
# Event topics
# ---------------------------------------------------------------------------

#: ``MetaStatus(address sender, bool success, string error)`` emitted by the forwarder.
META_STATUS_TOPIC: str = "0xf624f223d0e1427abaf1ac2d9cf7c8487cad3018f0a93b5dafa867aed96165a3"

#: ERC-20 ``Transfer(address indexed from, address indexed to, uint256 value)``.
TRANSFER_TOPIC: str = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

# ---------------------------------------------------------------------------
# Fee tokens
# ---------------------------------------------------------------------------

#: DAI-style tokens whose permit uses ``(holder, spender, nonce, expiry, allowed)``.
DAI_ADDRESS: Dict[int, str] = {
    ChainId.MAINNET: "0x6B175474E89094C44Da98b954EedeAC495271d0F",
    ChainId.MATIC: "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063",
}

USDC_ADDRESS: Dict[int, str] = {
    ChainId.MAINNET: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    ChainId.BSC: "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
    ChainId.MATIC: "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
}


def resolve_fee_token_kind(chain_id: int, fee_token: str) -> FeeTokenKind:
    """
    Resolve which permit schema a fee token uses.

    Args:
        chain_id: EVM network ID.
        fee_token: Fee token contract address (any casing).

    Returns:
        FeeTokenKind.ALLOWANCE_PERMIT for DAI-style tokens, otherwise
        FeeTokenKind.STANDARD_PERMIT.
    """
    dai = DAI_ADDRESS.get(chain_id)
    if dai is not None and dai.lower() == fee_token.lower():
        return FeeTokenKind.ALLOWANCE_PERMIT
    return FeeTokenKind.STANDARD_PERMIT


def is_testnet(chain_id: int) -> bool:
    return chain_id in TESTNET_CHAIN_IDS


def is_no_fee_token(fee_token: str, sentinel: str = NO_FEE_TOKEN) -> bool:
    return fee_token.lower() == sentinel.lower()


# ---------------------------------------------------------------------------
# Price-source routes
# ---------------------------------------------------------------------------

class PriceRoute(BaseModel):
    """How to price a fee token in a chain's native asset.

    A direct route asks the price source for ``token -> native_currency``.
    A bridged route asks for ``token -> bridge_currency`` and then for
    ``native_coin_id -> bridge_currency`` and divides the two.
    """
    platform: str = Field(..., description="Price-source platform id of the chain")
    native_currency: Optional[str] = Field(None, description="Quote currency for a direct route")
    bridge_currency: Optional[str] = Field(None, description="Intermediate quote currency for a two-hop route")
    native_coin_id: Optional[str] = Field(None, description="Price-source id of the native asset (two-hop only)")
    native_decimals: int = Field(default=18, description="Decimals of the native asset")

    @property
    def is_bridged(self) -> bool:
        return self.bridge_currency is not None


PRICE_ROUTES: Dict[int, PriceRoute] = {
    ChainId.MAINNET: PriceRoute(platform="ethereum", native_currency="eth"),
    ChainId.BSC: PriceRoute(platform="binance-smart-chain", native_currency="bnb"),
    ChainId.ARBITRUM: PriceRoute(platform="arbitrum-one", native_currency="eth"),
    ChainId.MATIC: PriceRoute(platform="polygon-pos", bridge_currency="bnb", native_coin_id="matic-network"),
    ChainId.MOONRIVER: PriceRoute(platform="moonriver", bridge_currency="bnb", native_coin_id="moonriver"),
}


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

def get_private_key_from_env() -> Optional[str]:
    """
    Load the signing account's private key from the environment.

    Environment Variable:
        - EVM_PRIVATE_KEY: 0x-prefixed hex private key

    Returns:
        str: Private key from environment, or None if not configured

    Note:
        The private key should be stored securely and never committed to
        version control.
    """
    return os.getenv("EVM_PRIVATE_KEY")


def get_rpc_url_from_env() -> Optional[str]:
    """
    Load the JSON-RPC endpoint of the target chain from the environment.

    Environment Variable:
        - EVM_RPC_URL: HTTP(S) JSON-RPC endpoint

    Returns:
        str: RPC URL, or None if not configured
    """
    return os.getenv("EVM_RPC_URL")


def to_checksum(address: str) -> str:
    return Web3.to_checksum_address(address)
