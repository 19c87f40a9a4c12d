"""
Tests for fee quoting policy and price conversion.
"""
from decimal import Decimal

import pytest

from conveyor_relay.engine.exceptions import UnsupportedChain, UnsupportedFeeToken
from conveyor_relay.evm.constants import NO_FEE_TOKEN, ChainId
from conveyor_relay.fees.quoter import FeeQuoter

from mocks import DAI_MAINNET, MATIC_FEE_TOKEN, USDC_MAINNET, RecordingPriceSource


@pytest.fixture
def source():
    return RecordingPriceSource(
        token_prices={
            ("ethereum", DAI_MAINNET, "eth"): Decimal("0.0005"),
            ("ethereum", USDC_MAINNET, "eth"): Decimal("0.0004"),
            ("polygon-pos", MATIC_FEE_TOKEN, "bnb"): Decimal("0.003"),
        },
        coin_prices={
            ("matic-network", "bnb"): Decimal("0.0015"),
        },
    )


@pytest.mark.asyncio
async def test_no_fee_sentinel_is_free(source):
    quoter = FeeQuoter(source)

    assert await quoter.quote(ChainId.MAINNET, NO_FEE_TOKEN, 18, 10 ** 18) == 0
    assert source.calls == []


@pytest.mark.asyncio
async def test_testnet_is_free(source):
    quoter = FeeQuoter(source)

    assert await quoter.quote(ChainId.SEPOLIA, DAI_MAINNET, 18, 10 ** 18) == 0
    assert source.calls == []


@pytest.mark.asyncio
async def test_direct_conversion(source):
    quoter = FeeQuoter(source)

    # 0.0001 ETH of gas at 0.0005 ETH per DAI is 0.2 DAI
    amount = await quoter.quote(ChainId.MAINNET, DAI_MAINNET, 18, 10 ** 14)

    assert amount == 2 * 10 ** 17
    assert source.calls == [("token", "ethereum", DAI_MAINNET, "eth")]


@pytest.mark.asyncio
async def test_rounds_half_up(source):
    quoter = FeeQuoter(source)

    # 0.001 ETH at 0.0004 ETH per token is 2.5 whole units
    assert await quoter.quote(ChainId.MAINNET, USDC_MAINNET, 0, 10 ** 15) == 3


@pytest.mark.asyncio
async def test_tiny_fee_is_clamped_to_one(source):
    quoter = FeeQuoter(source)

    assert await quoter.quote(ChainId.MAINNET, USDC_MAINNET, 6, 1) == 1


@pytest.mark.asyncio
async def test_two_hop_conversion(source):
    quoter = FeeQuoter(source)

    # token = 0.003 BNB, MATIC = 0.0015 BNB, so one token costs 2 MATIC
    amount = await quoter.quote(ChainId.MATIC, MATIC_FEE_TOKEN, 6, 10 ** 18)

    assert amount == 500000
    assert ("coin", "matic-network", "bnb") in source.calls


@pytest.mark.asyncio
async def test_quote_is_idempotent(source):
    quoter = FeeQuoter(source)

    first = await quoter.quote(ChainId.MAINNET, DAI_MAINNET, 18, 123456789012345)
    second = await quoter.quote(ChainId.MAINNET, DAI_MAINNET, 18, 123456789012345)

    assert first == second >= 1


@pytest.mark.asyncio
async def test_unsupported_chain(source):
    quoter = FeeQuoter(source)

    with pytest.raises(UnsupportedChain):
        await quoter.quote(ChainId.FANTOM, DAI_MAINNET, 18, 10 ** 14)
    assert source.calls == []


@pytest.mark.asyncio
async def test_missing_price_data_is_unsupported_token(source):
    quoter = FeeQuoter(source)
    unknown = "0x000000000000000000000000000000000000dEaD"

    with pytest.raises(UnsupportedFeeToken):
        await quoter.quote(ChainId.MAINNET, unknown, 18, 10 ** 14)


@pytest.mark.asyncio
async def test_missing_bridge_price_is_unsupported_token():
    source = RecordingPriceSource(token_prices={("polygon-pos", MATIC_FEE_TOKEN, "bnb"): Decimal("0.003")})
    quoter = FeeQuoter(source)

    with pytest.raises(UnsupportedFeeToken):
        await quoter.quote(ChainId.MATIC, MATIC_FEE_TOKEN, 6, 10 ** 18)
