"""Asset Registry: the engine's read-only view of the testator's holdings.

Combines a wallet balance lookup with a price feed lookup into a list of
``Asset`` snapshots. Refreshes happen out of band (on a timer in the UI);
everything the engine derives from a snapshot must be re-read after a
refresh, since nothing downstream caches amounts or USD values.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

from src.registry.base import (
    Asset,
    BalanceClient,
    PriceClient,
    price_for_symbol,
    symbol_to_coin_id,
)
from src.utils.exceptions import DataProviderError
from src.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


class AssetRegistry:
    """Holds the latest asset snapshot and refreshes it from its clients.

    Degradation rules:
    - Before the first successful refresh the snapshot is empty, so every
      derived value reads as 0.
    - A failed balance lookup empties the snapshot, unless
      ``keep_last_known_good`` is set and a previous snapshot exists.
    - A failed price lookup values every asset at 0 (or at its previous
      unit price with ``keep_last_known_good``).

    Configuration Parameters:
        coin_ids: Symbol to price feed coin id overrides
        keep_last_known_good: Keep the previous snapshot on errors (default False)
        refresh_interval_seconds: Age after which the snapshot is stale (default 300)

    Example:
        >>> registry = AssetRegistry(
        ...     balance_client=StaticBalanceClient([{"symbol": "BTC", "balance": 1}]),
        ...     price_client=StaticPriceClient({"bitcoin": 60000}),
        ... )
        >>> [asset.symbol for asset in registry.refresh()]
        ['BTC']
        >>> registry.total_value()
        60000.0
    """

    def __init__(
        self,
        balance_client: Optional[BalanceClient] = None,
        price_client: Optional[PriceClient] = None,
        config: Optional[Dict] = None,
    ):
        """Initialize registry with its clients and configuration.

        Args:
            balance_client: Wallet balance source
            price_client: USD price source. Without one, the balance
                client's own ``usd_value`` is used as-is.
            config: Registry configuration dictionary
        """
        config = config or {}

        self.balance_client = balance_client
        self.price_client = price_client
        self.coin_ids: Optional[Dict[str, str]] = config.get("coin_ids")
        self.keep_last_known_good = bool(config.get("keep_last_known_good", False))
        self.refresh_interval_seconds = config.get("refresh_interval_seconds", 300)

        self._assets: List[Asset] = []
        self._loaded = False
        self.last_error: Optional[str] = None
        self.refreshed_at: Optional[datetime] = None

        if self.refresh_interval_seconds <= 0:
            raise ValueError(
                "refresh_interval_seconds must be > 0, "
                f"got {self.refresh_interval_seconds}"
            )

    @classmethod
    def from_assets(cls, assets: Iterable[Asset], config: Optional[Dict] = None) -> "AssetRegistry":
        """Create a registry holding a fixed snapshot (no clients)."""
        registry = cls(config=config)
        registry._set_snapshot(list(assets))
        return registry

    @property
    def assets(self) -> List[Asset]:
        """Current snapshot (empty while loading or after a failure)."""
        return list(self._assets)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def get_asset(self, symbol: str) -> Optional[Asset]:
        """Return the asset with ``symbol`` or None."""
        for asset in self._assets:
            if asset.symbol == symbol:
                return asset
        return None

    def symbols(self) -> List[str]:
        return [asset.symbol for asset in self._assets]

    def total_value(self) -> float:
        """Sum of USD values across the snapshot."""
        return sum(asset.usd_value for asset in self._assets)

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        """Whether the snapshot should be refreshed before the next read."""
        if not self._loaded or self.refreshed_at is None:
            return True
        now = now or datetime.now()
        age = now - self.refreshed_at
        return age >= timedelta(seconds=self.refresh_interval_seconds)

    def refresh(self) -> List[Asset]:
        """Fetch balances and prices and replace the snapshot.

        Never raises for client failures; see the class docstring for how
        each failure degrades.

        Returns:
            The new snapshot
        """
        if self.balance_client is None:
            return self.assets

        try:
            balances = self.balance_client.get_assets()
        except (DataProviderError, ValueError) as e:
            self.last_error = str(e)
            if self.keep_last_known_good and self._loaded:
                logger.warning(
                    "Balance lookup failed, keeping last known snapshot: %s", e
                )
                return self.assets
            logger.warning("Balance lookup failed, portfolio reads as empty: %s", e)
            self._assets = []
            self._loaded = False
            return []

        self.last_error = None

        if self.price_client is not None:
            balances = self._price(balances)

        self._set_snapshot(balances)

        log_with_context(
            logger,
            "info",
            "Asset registry refreshed",
            assets=len(self._assets),
            total_usd=round(self.total_value(), 2),
        )
        return self.assets

    def apply_prices(self, prices: Mapping[str, Mapping[str, float]]) -> List[Asset]:
        """Revalue the current snapshot from a price feed response.

        Used when the price poll resolves on its own schedule, without a
        new balance lookup.
        """
        repriced = [
            asset.repriced(price_for_symbol(prices, asset.symbol, self.coin_ids))
            for asset in self._assets
        ]
        if self._loaded:
            self._set_snapshot(repriced)
        return self.assets

    def _price(self, balances: List[Asset]) -> List[Asset]:
        """Attach USD values to freshly fetched balances."""
        coin_ids = sorted(
            {symbol_to_coin_id(asset.symbol, self.coin_ids) for asset in balances}
        )

        try:
            prices = self.price_client.get_prices(coin_ids)
        except (DataProviderError, ValueError) as e:
            self.last_error = str(e)
            if self.keep_last_known_good:
                logger.warning("Price lookup failed, reusing previous prices: %s", e)
                return [self._reuse_price(asset) for asset in balances]
            logger.warning("Price lookup failed, valuing assets at 0: %s", e)
            prices = {}

        priced = []
        for asset in balances:
            price = price_for_symbol(prices, asset.symbol, self.coin_ids)
            if price == 0.0:
                logger.debug("No price for %s, valuing at 0", asset.symbol)
            priced.append(asset.repriced(price))
        return priced

    def _reuse_price(self, asset: Asset) -> Asset:
        previous = self.get_asset(asset.symbol)
        price = previous.unit_price_usd if previous is not None else 0.0
        return asset.repriced(price)

    def _set_snapshot(self, assets: List[Asset]) -> None:
        self._assets = assets
        self._loaded = True
        self.refreshed_at = datetime.now()
