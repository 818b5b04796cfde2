"""Build an AssetRegistry from configuration."""

from typing import Optional

from src.registry.asset_registry import AssetRegistry
from src.registry.base import symbol_to_coin_id
from src.registry.providers.coingecko import CoinGeckoPriceClient
from src.registry.providers.static import StaticBalanceClient, StaticPriceClient
from src.utils.config import Config


def build_registry(
    config: Config,
    offline: bool = False,
    api_key: Optional[str] = None,
) -> AssetRegistry:
    """Create a registry over the configured demo wallet.

    Args:
        config: Loaded configuration
        offline: Price assets from ``price_feed.fallback_prices`` instead
            of calling CoinGecko
        api_key: Optional CoinGecko API key

    Returns:
        Registry that has not been refreshed yet
    """
    registry_config = config.section("registry")
    price_config = config.section("price_feed")

    balance_client = StaticBalanceClient(config.get("wallet.assets", []))

    if offline:
        price_client = StaticPriceClient(price_config.get("fallback_prices") or {})
    else:
        price_client = CoinGeckoPriceClient.from_config(price_config, api_key=api_key)

    return AssetRegistry(balance_client, price_client, registry_config)


def coin_ids_for(config: Config) -> list[str]:
    """Coin ids of every configured wallet asset, in wallet order."""
    coin_ids = config.get("registry.coin_ids")
    return [
        symbol_to_coin_id(holding["symbol"], coin_ids)
        for holding in config.get("wallet.assets", [])
    ]
