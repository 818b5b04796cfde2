"""Validation Layer: detects over-allocation without ever mutating state.

Two checks guard the 100% cap:

1. Per asset: the percentages of all beneficiaries on one asset
2. Per portfolio: the portfolio-level percentages of all beneficiaries

Both allow a small tolerance for floating point rounding. Callers decide
whether a failed check means reject, clamp, or warn.
"""

from typing import Dict, Iterable, List, Optional

from src.allocation import valuation
from src.allocation.base import (
    DEFAULT_EPSILON,
    DEFAULT_PORTFOLIO_DECIMALS,
    MAX_PERCENTAGE,
    ValidationResult,
)
from src.allocation.table import AllocationTable
from src.utils.exceptions import ConfigurationError, OverAllocationError
from src.utils.logging import get_logger

logger = get_logger(__name__)


class AllocationValidator:
    """Checks the Allocation Table against the 100% caps.

    Configuration Parameters:
        epsilon: Tolerance above 100% accepted as rounding noise (default 0.1)
        portfolio_decimals: Decimals portfolio percentages are rounded to (default 1)

    Example:
        >>> validator = AllocationValidator(table)
        >>> _ = table.set("BTC", "alice", 60)
        >>> _ = table.set("BTC", "bob", 60)
        >>> result = validator.validate("BTC")
        >>> result.ok, result.total_percentage
        (False, 120.0)
    """

    def __init__(self, table: AllocationTable, config: Optional[Dict] = None):
        """Initialize validator.

        Args:
            table: Allocation table to check
            config: Validation configuration dictionary

        Raises:
            ConfigurationError: If epsilon or decimals are negative
        """
        config = config or {}

        self.table = table
        self.epsilon = config.get("epsilon", DEFAULT_EPSILON)
        self.portfolio_decimals = config.get("portfolio_decimals", DEFAULT_PORTFOLIO_DECIMALS)

        self._validate_config()

    def _validate_config(self) -> None:
        """Validate configuration parameters."""
        if self.epsilon < 0:
            raise ConfigurationError(f"epsilon must be >= 0, got {self.epsilon}")
        if self.portfolio_decimals < 0:
            raise ConfigurationError(
                f"portfolio_decimals must be >= 0, got {self.portfolio_decimals}"
            )

    @property
    def cap(self) -> float:
        """Largest total accepted as within 100%."""
        return MAX_PERCENTAGE + self.epsilon

    def validate(self, asset_symbol: str) -> ValidationResult:
        """Sum all records for ``asset_symbol`` and compare with the cap."""
        total = self.table.total_for_asset(asset_symbol)
        return ValidationResult(
            asset_symbol=asset_symbol,
            ok=total <= self.cap,
            total_percentage=total,
        )

    def results(self) -> List[ValidationResult]:
        """Validation result for every known asset.

        Covers the current snapshot plus any symbol still present in the
        table after a refresh dropped it.
        """
        symbols = self.table.registry.symbols()
        for record in self.table.records():
            if record.asset_symbol not in symbols:
                symbols.append(record.asset_symbol)
        return [self.validate(symbol) for symbol in symbols]

    def validate_all(self) -> Dict[str, str]:
        """Map each over-allocated asset to its user-facing message."""
        return {r.asset_symbol: r.message for r in self.results() if not r.ok}

    def is_valid(self) -> bool:
        return not self.validate_all()

    def remaining(self, asset_symbol: str) -> float:
        """Percentage points of ``asset_symbol`` not yet allocated."""
        return self.validate(asset_symbol).remaining

    def headroom(self, asset_symbol: str, beneficiary_id: str) -> float:
        """Largest percentage ``beneficiary_id`` can hold on the asset."""
        others = self.table.total_for_asset(asset_symbol) - self.table.get(
            asset_symbol, beneficiary_id
        )
        return max(0.0, MAX_PERCENTAGE - others)

    def validate_uniform(self, beneficiary_id: str, percentage: float) -> List[str]:
        """Assets a uniform portfolio write of ``percentage`` would push past 100%.

        Assets where ``beneficiary_id`` already holds at least ``percentage``
        are never listed, since the write does not raise their total.
        Portfolio percentages read 0 when prices are missing, so this is
        the check that still holds the per-asset cap in that case.
        """
        symbols = []
        for asset in self.table.registry.assets:
            current = self.table.get(asset.symbol, beneficiary_id)
            if percentage <= current:
                continue
            others = self.table.total_for_asset(asset.symbol) - current
            if others + percentage > self.cap:
                symbols.append(asset.symbol)
        return symbols

    def uniform_headroom(self, beneficiary_id: str) -> float:
        """Largest percentage ``beneficiary_id`` can hold on every asset at once."""
        headrooms = [
            self.headroom(asset.symbol, beneficiary_id) for asset in self.table.registry.assets
        ]
        return min(headrooms) if headrooms else MAX_PERCENTAGE

    def portfolio_total(
        self,
        beneficiary_ids: Iterable[str],
        overrides: Optional[Dict[str, float]] = None,
    ) -> float:
        """Sum of portfolio percentages, with ``overrides`` replacing reads."""
        overrides = overrides or {}
        percentages = valuation.portfolio_percentages(
            self.table, beneficiary_ids, self.portfolio_decimals
        )
        percentages.update(overrides)
        return sum(percentages.values())

    def validate_portfolio(
        self,
        beneficiary_id: str,
        proposed_percentage: Optional[float] = None,
        beneficiary_ids: Optional[Iterable[str]] = None,
    ) -> bool:
        """Whether portfolio percentages would exceed 100% after an edit.

        Args:
            beneficiary_id: Beneficiary being edited
            proposed_percentage: New portfolio percentage. None checks the
                current state.
            beneficiary_ids: Every beneficiary of the will. Defaults to the
                ones holding records.

        Returns:
            True when the total would exceed 100% plus tolerance
        """
        ids = self._with(beneficiary_id, beneficiary_ids)
        overrides = {}
        if proposed_percentage is not None:
            overrides[beneficiary_id] = proposed_percentage

        exceeded = self.portfolio_total(ids, overrides) > self.cap
        if exceeded:
            logger.debug(
                "Portfolio total would exceed 100%% with %s at %s",
                beneficiary_id,
                proposed_percentage,
            )
        return exceeded

    def portfolio_headroom(
        self,
        beneficiary_id: str,
        beneficiary_ids: Optional[Iterable[str]] = None,
    ) -> float:
        """Largest portfolio percentage ``beneficiary_id`` can take."""
        ids = [b for b in self._with(beneficiary_id, beneficiary_ids) if b != beneficiary_id]
        return max(0.0, MAX_PERCENTAGE - self.portfolio_total(ids))

    def raise_if_invalid(self, beneficiary_ids: Optional[Iterable[str]] = None) -> None:
        """Raise for any over-allocation. Used right before submission.

        Raises:
            OverAllocationError: Naming the implicated assets, or the
                portfolio total
        """
        errors = self.validate_all()
        if errors:
            raise OverAllocationError("; ".join(errors.values()))

        ids = list(beneficiary_ids) if beneficiary_ids is not None else self.table.beneficiary_ids()
        total = self.portfolio_total(ids)
        if total > self.cap:
            raise OverAllocationError(
                f"Total portfolio allocation is {total:.1f}%, maximum 100%"
            )

    def _with(
        self,
        beneficiary_id: str,
        beneficiary_ids: Optional[Iterable[str]],
    ) -> List[str]:
        ids = list(beneficiary_ids) if beneficiary_ids is not None else self.table.beneficiary_ids()
        if beneficiary_id not in ids:
            ids.append(beneficiary_id)
        return ids
