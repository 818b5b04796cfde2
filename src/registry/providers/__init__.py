"""Asset data providers - balance and price sources.

This module provides the concrete clients the AssetRegistry reads from.
"""

from src.registry.providers.coingecko import CoinGeckoPriceClient
from src.registry.providers.static import StaticBalanceClient, StaticPriceClient

__all__ = [
    "CoinGeckoPriceClient",
    "StaticBalanceClient",
    "StaticPriceClient",
]
