"""Static balance and price clients.

Serve fixed holdings and prices from configuration. Used for the demo
portfolio, offline runs of the CLI, and tests.
"""

from typing import Dict, Iterable, List, Mapping

from src.registry.base import Asset, BalanceClient, PriceClient


class StaticBalanceClient(BalanceClient):
    """Balance client returning a configured list of holdings.

    Example:
        >>> client = StaticBalanceClient([
        ...     {"symbol": "ALEO", "balance": 2584.75},
        ...     {"symbol": "BTC", "balance": 0.12, "usd_value": 7200},
        ... ])
        >>> [a.symbol for a in client.get_assets()]
        ['ALEO', 'BTC']
    """

    def __init__(self, holdings: Iterable[Mapping]):
        """Initialize with holdings.

        Args:
            holdings: Mappings with ``symbol``, ``balance`` and optionally
                ``usd_value``

        Raises:
            ValueError: If a holding has no symbol or a negative amount
        """
        self._assets = []
        for holding in holdings:
            symbol = holding.get("symbol")
            if not symbol:
                raise ValueError(f"holding has no symbol: {dict(holding)}")
            self._assets.append(
                Asset(
                    symbol=str(symbol),
                    balance=float(holding.get("balance", 0.0)),
                    usd_value=float(holding.get("usd_value", 0.0)),
                )
            )

    def get_assets(self) -> List[Asset]:
        return list(self._assets)


class StaticPriceClient(PriceClient):
    """Price client returning configured ``{coin_id: usd}`` prices."""

    def __init__(self, prices: Mapping[str, float]):
        self._prices = {coin_id: float(usd) for coin_id, usd in prices.items()}

    def get_prices(self, coin_ids: List[str]) -> Dict[str, Dict[str, float]]:
        return {
            coin_id: {"usd": self._prices[coin_id]}
            for coin_id in coin_ids
            if coin_id in self._prices
        }
