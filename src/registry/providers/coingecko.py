"""CoinGecko price client.

Fetches USD spot prices from CoinGecko's ``simple/price`` endpoint. The
public endpoint needs no key; an API key, when configured, is sent in the
``x-cg-demo-api-key`` header.
"""

from typing import Dict, List, Mapping, Optional

import requests

from src.registry.base import PriceClient
from src.utils.exceptions import DataProviderError
from src.utils.logging import get_logger

logger = get_logger(__name__)


class CoinGeckoPriceClient(PriceClient):
    """Price client backed by the CoinGecko REST API.

    API Endpoint: https://api.coingecko.com/api/v3/simple/price

    When ``fallback_prices`` is given, a failed request returns those
    prices (for the requested coins only) instead of raising, so the will
    form keeps showing plausible values while offline.

    Example:
        >>> client = CoinGeckoPriceClient()
        >>> client.get_prices(["bitcoin", "aleo"])
        {'bitcoin': {'usd': 63000.0}, 'aleo': {'usd': 0.19}}
    """

    API_URL = "https://api.coingecko.com/api/v3"

    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = 10.0,
        api_key: Optional[str] = None,
        fallback_prices: Optional[Mapping[str, float]] = None,
    ):
        """Initialize CoinGecko client.

        Args:
            base_url: API root (override for the pro tier or a proxy)
            timeout: Request timeout in seconds
            api_key: Optional demo/pro API key
            fallback_prices: ``{coin_id: usd}`` used when the request fails
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self.fallback_prices = dict(fallback_prices) if fallback_prices else None

        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    @classmethod
    def from_config(
        cls,
        config: Optional[Dict] = None,
        api_key: Optional[str] = None,
    ) -> "CoinGeckoPriceClient":
        """Build a client from the ``price_feed`` config section."""
        config = config or {}
        return cls(
            base_url=config.get("base_url", cls.API_URL),
            timeout=config.get("timeout", 10.0),
            api_key=api_key,
            fallback_prices=config.get("fallback_prices"),
        )

    def get_prices(self, coin_ids: List[str]) -> Dict[str, Dict[str, float]]:
        """Fetch USD prices for ``coin_ids``.

        Args:
            coin_ids: CoinGecko coin ids (e.g., "bitcoin", "aleo")

        Returns:
            ``{coin_id: {"usd": price}}``; coins CoinGecko does not list
            are absent.

        Raises:
            DataProviderError: If the request fails and no fallback is set
        """
        if not coin_ids:
            return {}

        params = {"ids": ",".join(coin_ids), "vs_currencies": "usd"}
        headers = {"accept": "application/json"}
        if self.api_key:
            headers["x-cg-demo-api-key"] = self.api_key

        logger.debug("Fetching prices for %s", params["ids"])

        try:
            response = requests.get(
                f"{self.base_url}/simple/price",
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            if self.fallback_prices is not None:
                logger.warning("Price request failed, using fallback prices: %s", e)
                return self._fallback(coin_ids)
            raise DataProviderError(f"Failed to fetch prices from CoinGecko: {e}") from e

        if not isinstance(payload, dict):
            raise DataProviderError(
                f"Unexpected CoinGecko response type: {type(payload).__name__}"
            )

        prices = {}
        for coin_id in coin_ids:
            entry = payload.get(coin_id)
            if not isinstance(entry, dict) or entry.get("usd") is None:
                continue
            try:
                prices[coin_id] = {"usd": float(entry["usd"])}
            except (TypeError, ValueError):
                logger.warning("Skipping malformed price for %s: %r", coin_id, entry["usd"])

        logger.info("Fetched %d of %d prices from CoinGecko", len(prices), len(coin_ids))
        return prices

    def _fallback(self, coin_ids: List[str]) -> Dict[str, Dict[str, float]]:
        return {
            coin_id: {"usd": float(self.fallback_prices[coin_id])}
            for coin_id in coin_ids
            if coin_id in self.fallback_prices
        }
