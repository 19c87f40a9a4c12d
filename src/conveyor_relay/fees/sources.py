"""
External Price Sources

The fee quoter prices fee tokens through a ``PriceSource``. Two lookups are
needed: a token (by contract address on a platform) quoted in some currency,
and a native coin (by id) quoted in some currency. ``None`` means "no data";
it is never interpreted as a zero price.

``CoinGeckoPriceSource`` implements the contract over the public CoinGecko
``simple`` endpoints with ``httpx``.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from ..engine.exceptions import PriceSourceUnavailable

logger = logging.getLogger(__name__)

COINGECKO_API_URL: str = "https://api.coingecko.com/api/v3"


class PriceSource(ABC):
    """Price lookups consumed by :class:`~conveyor_relay.fees.quoter.FeeQuoter`."""

    @abstractmethod
    async def token_price(self, platform: str, token_address: str, vs_currency: str) -> Optional[Decimal]:
        """Price of one whole token in ``vs_currency``, or ``None`` if unknown."""

    @abstractmethod
    async def coin_price(self, coin_id: str, vs_currency: str) -> Optional[Decimal]:
        """Price of one native coin in ``vs_currency``, or ``None`` if unknown."""


class CoinGeckoPriceSource(PriceSource):
    """
    CoinGecko-backed price source.

    Args:
        client: Optional shared ``httpx.AsyncClient``. When omitted a client
            is created per lookup.
        base_url: API root.
        timeout: Request timeout in seconds.

    Example::

        source = CoinGeckoPriceSource()
        price = await source.token_price("ethereum", dai_address, "eth")
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = COINGECKO_API_URL,
        timeout: float = 30.0,
    ):
        self._client = client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _get(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise PriceSourceUnavailable(f"Price source request failed: {e}") from e
        except ValueError as e:
            raise PriceSourceUnavailable(f"Price source returned invalid JSON: {e}") from e

    @staticmethod
    def _extract(data: Dict[str, Any], key: str, vs_currency: str) -> Optional[Decimal]:
        entry = data.get(key)
        if not entry or entry.get(vs_currency) is None:
            return None
        return Decimal(str(entry[vs_currency]))

    async def token_price(self, platform: str, token_address: str, vs_currency: str) -> Optional[Decimal]:
        data = await self._get(
            f"/simple/token_price/{platform}",
            {"contract_addresses": token_address, "vs_currencies": vs_currency},
        )
        price = self._extract(data, token_address.lower(), vs_currency)
        logger.debug("Price of %s on %s in %s: %s", token_address, platform, vs_currency, price)
        return price

    async def coin_price(self, coin_id: str, vs_currency: str) -> Optional[Decimal]:
        data = await self._get(
            "/simple/price",
            {"ids": coin_id, "vs_currencies": vs_currency},
        )
        price = self._extract(data, coin_id, vs_currency)
        logger.debug("Price of %s in %s: %s", coin_id, vs_currency, price)
        return price
