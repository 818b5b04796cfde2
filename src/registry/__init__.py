"""Asset Registry Layer.

Supplies the allocation engine with the current set of assets, built from
a wallet balance lookup and a price feed lookup.

Components:
- AssetRegistry: Snapshot holder with degraded-mode refresh
- BalanceClient / PriceClient: Client interfaces
- Asset: Immutable holding snapshot
"""

from src.registry.asset_registry import AssetRegistry
from src.registry.base import (
    DEFAULT_COIN_IDS,
    Asset,
    BalanceClient,
    PriceClient,
    price_for_symbol,
    symbol_to_coin_id,
)

__all__ = [
    "AssetRegistry",
    "Asset",
    "BalanceClient",
    "PriceClient",
    "DEFAULT_COIN_IDS",
    "price_for_symbol",
    "symbol_to_coin_id",
]
