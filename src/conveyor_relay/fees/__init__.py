from .quoter import FeeQuoter
from .sources import PriceSource, CoinGeckoPriceSource, COINGECKO_API_URL

__all__ = [
    "FeeQuoter",
    "PriceSource",
    "CoinGeckoPriceSource",
    "COINGECKO_API_URL",
]
