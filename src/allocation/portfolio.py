"""Portfolio Aggregator: converts between the per-asset and portfolio views.

Read path:
    total_value(b)          = sum over assets of record(asset, b).usd_value
    portfolio_percentage(b) = 100 * total_value(b) / sum of asset USD values

Write path (portfolio percentage p for beneficiary b):
1. Check the portfolio total with p against the 100% cap
2. Check every asset the write would raise against the 100% cap
3. Write the same p to every asset for b

Writing a uniform percentage makes the write a fixed point of the read:
sum(p/100 * v_a) = p/100 * sum(v_a), so reading b back yields p again no
matter how differently the assets are valued. No solver is involved.

The write replaces whatever per-asset split b had before.
"""

import math
from typing import Dict, Iterable, List, Optional

from src.allocation import valuation
from src.allocation.base import (
    DEFAULT_PORTFOLIO_DECIMALS,
    MAX_PERCENTAGE,
    AllocationRecord,
    CurrencyUnit,
    OverAllocationPolicy,
    PortfolioEditResult,
    parse_percentage,
    round_half_up,
)
from src.allocation.table import AllocationTable
from src.allocation.validation import AllocationValidator
from src.utils.exceptions import ConfigurationError
from src.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


class PortfolioAggregator:
    """Derives portfolio-level numbers and applies portfolio-level edits.

    Configuration Parameters:
        portfolio_decimals: Decimals portfolio percentages are rounded to (default 1)
        over_allocation_policy: "reject", "clamp" or "warn" (default "reject")

    Example:
        >>> aggregator = PortfolioAggregator(table)
        >>> result = aggregator.set_portfolio_percentage("alice", 40)
        >>> table.get("ALEO", "alice"), table.get("BTC", "alice")
        (40.0, 40.0)
        >>> aggregator.portfolio_percentage("alice")
        40.0
    """

    def __init__(
        self,
        table: AllocationTable,
        validator: Optional[AllocationValidator] = None,
        config: Optional[Dict] = None,
    ):
        """Initialize aggregator.

        Args:
            table: Allocation table to read and write
            validator: Validator guarding the write path. Built from
                ``config`` when omitted.
            config: Allocation configuration dictionary

        Raises:
            ConfigurationError: If the policy or decimals are invalid
        """
        config = config or {}

        self.table = table
        self.validator = validator or AllocationValidator(table, config)
        self.portfolio_decimals = config.get("portfolio_decimals", DEFAULT_PORTFOLIO_DECIMALS)

        policy = config.get("over_allocation_policy", OverAllocationPolicy.REJECT.value)
        try:
            self.policy = OverAllocationPolicy(policy)
        except ValueError as e:
            raise ConfigurationError(
                f"over_allocation_policy must be one of "
                f"{[p.value for p in OverAllocationPolicy]}, got {policy!r}"
            ) from e

        if self.portfolio_decimals < 0:
            raise ConfigurationError(
                f"portfolio_decimals must be >= 0, got {self.portfolio_decimals}"
            )

    # Read path

    def total_portfolio_value(self) -> float:
        return valuation.total_portfolio_value(self.table)

    def total_value(self, beneficiary_id: str) -> float:
        """USD value allocated to ``beneficiary_id`` across all assets."""
        return valuation.beneficiary_value(self.table, beneficiary_id)

    def portfolio_percentage(self, beneficiary_id: str, rounded: bool = True) -> float:
        """Beneficiary's share of the portfolio's USD value (0 if worthless)."""
        decimals = self.portfolio_decimals if rounded else None
        return valuation.portfolio_percentage(self.table, beneficiary_id, decimals)

    def portfolio_percentages(self, beneficiary_ids: Iterable[str]) -> Dict[str, float]:
        return valuation.portfolio_percentages(
            self.table, beneficiary_ids, self.portfolio_decimals
        )

    def total_allocated_percentage(self, beneficiary_ids: Iterable[str]) -> float:
        """Sum of rounded portfolio percentages, as shown next to the sliders."""
        return sum(self.portfolio_percentages(beneficiary_ids).values())

    def remaining_percentage(self, beneficiary_ids: Iterable[str]) -> float:
        return max(0.0, MAX_PERCENTAGE - self.total_allocated_percentage(beneficiary_ids))

    def value_for_percentage(self, percentage: float) -> float:
        """USD value of ``percentage`` of the whole portfolio."""
        return (percentage / 100.0) * self.total_portfolio_value()

    def asset_count(self, beneficiary_id: str) -> int:
        """Number of assets on which ``beneficiary_id`` holds a nonzero share."""
        return sum(
            1 for r in self.table.records_for_beneficiary(beneficiary_id) if r.percentage > 0
        )

    def value_in_unit(
        self,
        asset_symbol: str,
        beneficiary_id: str,
        unit: CurrencyUnit,
    ) -> float:
        """Allocation of one asset to one beneficiary expressed in ``unit``."""
        record = self.table.record(asset_symbol, beneficiary_id)
        if record is None:
            return 0.0
        return record.value_in(unit)

    # Write path

    def set_portfolio_percentage(
        self,
        beneficiary_id: str,
        percentage,
        beneficiary_ids: Optional[Iterable[str]] = None,
        policy: Optional[OverAllocationPolicy] = None,
    ) -> PortfolioEditResult:
        """Apply a portfolio-level percentage uniformly to every asset.

        The value is rounded to ``portfolio_decimals`` before it is stored,
        so the read path returns exactly the value written.

        When the edit would push the portfolio or any single asset past
        100%, REJECT and WARN leave the table untouched and report the
        flag; CLAMP writes the largest uniform percentage that still fits
        both caps.

        Args:
            beneficiary_id: Beneficiary being edited
            percentage: New portfolio percentage (number or text input)
            beneficiary_ids: Every beneficiary of the will, used for the
                portfolio total. Defaults to the ones holding records.
            policy: Overrides the configured over-allocation policy

        Returns:
            PortfolioEditResult describing what was written
        """
        policy = policy or self.policy
        ids = self._ids(beneficiary_id, beneficiary_ids)

        requested = parse_percentage(percentage)
        if requested is None:
            log_with_context(
                logger,
                "debug",
                "Ignoring non-numeric portfolio input",
                beneficiary=beneficiary_id,
                value=repr(percentage),
            )
            return PortfolioEditResult(
                beneficiary_id=beneficiary_id,
                requested=None,
                applied=None,
                accepted=False,
                exceeded=False,
                total_percentage=self.validator.portfolio_total(ids),
                notes=["invalid input ignored"],
            )

        value = round_half_up(requested, self.portfolio_decimals)
        notes = []

        portfolio_exceeded = self.validator.validate_portfolio(beneficiary_id, value, ids)
        over_allocated = self.validator.validate_uniform(beneficiary_id, value)
        exceeded = portfolio_exceeded or bool(over_allocated)
        if exceeded:
            proposed_total = self.validator.portfolio_total(ids, {beneficiary_id: value})
            if policy != OverAllocationPolicy.CLAMP:
                if portfolio_exceeded:
                    reason = f"total would be {proposed_total:.1f}%"
                else:
                    reason = f"exceeds 100% on {', '.join(over_allocated)}"
                log_with_context(
                    logger,
                    "warning",
                    "Portfolio allocation exceeds 100%, edit not applied",
                    beneficiary=beneficiary_id,
                    requested=value,
                    total=round(proposed_total, 1),
                    assets=over_allocated,
                )
                return PortfolioEditResult(
                    beneficiary_id=beneficiary_id,
                    requested=requested,
                    applied=None,
                    accepted=False,
                    exceeded=True,
                    total_percentage=proposed_total,
                    notes=[reason],
                )

            value = self._floor(
                min(
                    self.validator.portfolio_headroom(beneficiary_id, ids),
                    self.validator.uniform_headroom(beneficiary_id),
                )
            )
            notes.append(f"clamped from {requested} to {value}")
            logger.warning(
                "Portfolio allocation for %s clamped from %s to %s",
                beneficiary_id,
                requested,
                value,
            )

        self._apply_uniform(beneficiary_id, value)

        return PortfolioEditResult(
            beneficiary_id=beneficiary_id,
            requested=requested,
            applied=value,
            accepted=True,
            exceeded=exceeded,
            total_percentage=self.validator.portfolio_total(ids),
            notes=notes,
        )

    def percentage_from_amount(self, asset_symbol: str, amount: float) -> float:
        """Convert native units of an asset into a percentage of its balance."""
        asset = self.table.registry.get_asset(asset_symbol)
        if asset is None or asset.balance <= 0:
            return 0.0
        return 100.0 * max(0.0, amount) / asset.balance

    def percentage_from_usd(self, asset_symbol: str, usd_value: float) -> float:
        """Convert a USD value into a percentage of an asset's value."""
        asset = self.table.registry.get_asset(asset_symbol)
        if asset is None or asset.usd_value <= 0:
            return 0.0
        return 100.0 * max(0.0, usd_value) / asset.usd_value

    def set_asset_amount(
        self,
        asset_symbol: str,
        beneficiary_id: str,
        amount: float,
    ) -> Optional[AllocationRecord]:
        """Allocate ``amount`` native units of an asset (stored as a percentage)."""
        percentage = self.percentage_from_amount(asset_symbol, amount)
        return self.table.set(asset_symbol, beneficiary_id, percentage)

    def set_asset_usd_value(
        self,
        asset_symbol: str,
        beneficiary_id: str,
        usd_value: float,
    ) -> Optional[AllocationRecord]:
        """Allocate ``usd_value`` dollars' worth of an asset (stored as a percentage)."""
        percentage = self.percentage_from_usd(asset_symbol, usd_value)
        return self.table.set(asset_symbol, beneficiary_id, percentage)

    def _apply_uniform(self, beneficiary_id: str, percentage: float) -> List[AllocationRecord]:
        records = []
        for asset in self.table.registry.assets:
            record = self.table.set(asset.symbol, beneficiary_id, percentage)
            if record is not None:
                records.append(record)

        log_with_context(
            logger,
            "debug",
            "Portfolio allocation applied",
            beneficiary=beneficiary_id,
            percentage=percentage,
            assets=len(records),
        )
        return records

    def _floor(self, value: float) -> float:
        factor = 10 ** self.portfolio_decimals
        return math.floor(value * factor + 1e-9) / factor

    def _ids(self, beneficiary_id: str, beneficiary_ids: Optional[Iterable[str]]) -> List[str]:
        ids = list(beneficiary_ids) if beneficiary_ids is not None else self.table.beneficiary_ids()
        if beneficiary_id not in ids:
            ids.append(beneficiary_id)
        return ids
