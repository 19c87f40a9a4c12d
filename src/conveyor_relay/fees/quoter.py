"""
Fee Quoting

Converts a gas-cost estimate in a chain's native units into the amount of fee
token the forwarder is allowed to charge (the ``maxTokenAmount`` of a
ForwardRequest).

Policy:
    - The "no fee" sentinel token is always free.
    - Test networks are always free.
    - Otherwise the token is priced in the native asset, directly or through
      an intermediate currency when the native asset has no direct quote, and
      the result is rounded half-up to whole token units with a floor of 1.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Dict, Optional

from ..evm.constants import (
    NO_FEE_TOKEN,
    PRICE_ROUTES,
    PriceRoute,
    is_no_fee_token,
    is_testnet,
)
from ..engine.exceptions import UnsupportedChain, UnsupportedFeeToken
from .sources import PriceSource

logger = logging.getLogger(__name__)


class FeeQuoter:
    """
    Prices gas costs in fee-token units.

    Args:
        price_source: External price lookups.
        routes: Per-chain pricing routes; defaults to ``PRICE_ROUTES``.
        no_fee_token: Fee-token sentinel that disables fees.
    """

    def __init__(
        self,
        price_source: PriceSource,
        routes: Optional[Dict[int, PriceRoute]] = None,
        no_fee_token: str = NO_FEE_TOKEN,
    ):
        self.price_source = price_source
        self.routes = routes if routes is not None else PRICE_ROUTES
        self.no_fee_token = no_fee_token

    async def native_price(self, chain_id: int, fee_token: str) -> Decimal:
        """
        Price of one whole fee token in the native asset of ``chain_id``.

        Raises:
            UnsupportedChain: No route is configured for the chain.
            UnsupportedFeeToken: The price source has no data.
        """
        route = self.routes.get(chain_id)
        if route is None:
            raise UnsupportedChain(f"No price source configured for chain {chain_id}")

        if not route.is_bridged:
            price = await self.price_source.token_price(route.platform, fee_token, route.native_currency)
            if price is None or price <= 0:
                raise UnsupportedFeeToken(f"No price data for {fee_token} on chain {chain_id}")
            return price

        token_in_bridge = await self.price_source.token_price(route.platform, fee_token, route.bridge_currency)
        if token_in_bridge is None or token_in_bridge <= 0:
            raise UnsupportedFeeToken(f"No price data for {fee_token} on chain {chain_id}")
        native_in_bridge = await self.price_source.coin_price(route.native_coin_id, route.bridge_currency)
        if native_in_bridge is None or native_in_bridge <= 0:
            raise UnsupportedFeeToken(
                f"No price data for {route.native_coin_id} in {route.bridge_currency}"
            )
        with localcontext() as ctx:
            ctx.prec = 78
            return token_in_bridge / native_in_bridge

    async def quote(self, chain_id: int, fee_token: str, decimals: int, gas_cost: int) -> int:
        """
        Fee-token amount covering ``gas_cost``.

        Args:
            chain_id: EVM network ID.
            fee_token: Fee token address.
            decimals: Decimals of the fee token.
            gas_cost: Gas cost in the native asset's smallest unit.

        Returns:
            0 for the sentinel token or a test network, otherwise an integer
            amount of at least 1.

        Raises:
            UnsupportedChain: No route is configured for the chain.
            UnsupportedFeeToken: The price source has no data.
        """
        if is_no_fee_token(fee_token, self.no_fee_token):
            return 0
        if is_testnet(chain_id):
            return 0

        route = self.routes.get(chain_id)
        price = await self.native_price(chain_id, fee_token)

        with localcontext() as ctx:
            ctx.prec = 78
            native_amount = Decimal(gas_cost) / (Decimal(10) ** route.native_decimals)
            token_amount = native_amount / price * (Decimal(10) ** decimals)
            amount = int(token_amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))

        amount = max(amount, 1)
        logger.debug(
            "Quoted %d units of %s for gas cost %d on chain %d (price %s)",
            amount, fee_token, gas_cost, chain_id, price,
        )
        return amount
