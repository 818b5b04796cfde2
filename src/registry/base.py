"""Abstract interfaces for the asset data sources.

The allocation engine never talks to a wallet or a price feed directly. It
reads an ``Asset`` snapshot assembled by the ``AssetRegistry`` from two
clients defined here:

- BalanceClient: which assets the testator holds and how many units
- PriceClient: current USD price per coin id
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

# Price feed coin ids for the symbols the wallet step knows about.
# Unknown symbols fall back to their lowercase form.
DEFAULT_COIN_IDS: Dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "ALEO": "aleo",
    "USDT": "tether",
    "USDC": "usd-coin",
    "BNB": "binancecoin",
    "SOL": "solana",
}


@dataclass(frozen=True)
class Asset:
    """One fungible crypto holding in the testator's portfolio.

    Attributes:
        symbol: Ticker symbol (e.g., "ALEO", "BTC")
        balance: Native units held
        usd_value: Current USD value of the whole balance
    """

    symbol: str
    balance: float
    usd_value: float

    def __post_init__(self):
        """Validate asset fields."""
        if self.balance < 0:
            raise ValueError(f"balance must be non-negative, got {self.balance}")
        if self.usd_value < 0:
            raise ValueError(
                f"usd_value must be non-negative, got {self.usd_value}"
            )

    @property
    def unit_price_usd(self) -> float:
        """USD price of one native unit (0 when the balance is empty)."""
        if self.balance <= 0:
            return 0.0
        return self.usd_value / self.balance

    def repriced(self, unit_price_usd: float) -> "Asset":
        """Return a copy valued at ``unit_price_usd`` per unit."""
        return Asset(
            symbol=self.symbol,
            balance=self.balance,
            usd_value=self.balance * max(0.0, unit_price_usd),
        )


def symbol_to_coin_id(
    symbol: str,
    coin_ids: Optional[Mapping[str, str]] = None,
) -> str:
    """Map a ticker symbol to its price feed coin id.

    Example:
        >>> symbol_to_coin_id("BTC")
        'bitcoin'
        >>> symbol_to_coin_id("DOGE")
        'doge'
    """
    mapping = DEFAULT_COIN_IDS if coin_ids is None else coin_ids
    return mapping.get(symbol, symbol.lower())


def price_for_symbol(
    prices: Optional[Mapping[str, Mapping[str, float]]],
    symbol: str,
    coin_ids: Optional[Mapping[str, str]] = None,
) -> float:
    """Look up the USD price of ``symbol`` in a price feed response.

    Missing responses, missing coins and malformed entries all read as 0
    so a USD value degrades to ``amount * 0`` instead of failing.
    """
    if not prices:
        return 0.0

    entry = prices.get(symbol_to_coin_id(symbol, coin_ids))
    if not isinstance(entry, Mapping):
        return 0.0

    try:
        price = float(entry.get("usd") or 0.0)
    except (TypeError, ValueError):
        return 0.0

    return price if price > 0 else 0.0


class BalanceClient(ABC):
    """Abstract interface for wallet balance lookups.

    Example:
        >>> class MyWallet(BalanceClient):
        ...     def get_assets(self):
        ...         return [Asset("ALEO", 1000.0, 0.0)]
    """

    @abstractmethod
    def get_assets(self) -> List[Asset]:
        """Fetch the testator's holdings.

        Returns:
            Assets with their native balances. ``usd_value`` may be 0 when
            the wallet has no pricing of its own; the registry reprices.

        Raises:
            DataProviderError: If the wallet cannot be read
        """
        pass


class PriceClient(ABC):
    """Abstract interface for USD price lookups."""

    @abstractmethod
    def get_prices(self, coin_ids: List[str]) -> Dict[str, Dict[str, float]]:
        """Fetch USD prices for ``coin_ids``.

        Returns:
            ``{coin_id: {"usd": price}}``. Coins the feed does not know may
            be absent.

        Raises:
            DataProviderError: If the feed cannot be reached
        """
        pass
