"""Read-path formulas shared by every portfolio-level view.

The aggregator, the validator and the review projector all derive
portfolio numbers through these functions so a beneficiary card and the
summary banner can never disagree.
"""

from typing import Dict, Iterable, Optional

from src.allocation.base import DEFAULT_PORTFOLIO_DECIMALS, round_half_up
from src.allocation.table import AllocationTable


def total_portfolio_value(table: AllocationTable) -> float:
    """Combined USD value of every asset in the current snapshot."""
    return table.registry.total_value()


def beneficiary_value(table: AllocationTable, beneficiary_id: str) -> float:
    """USD value allocated to ``beneficiary_id`` across all assets."""
    return sum(r.usd_value for r in table.records_for_beneficiary(beneficiary_id))


def portfolio_percentage(
    table: AllocationTable,
    beneficiary_id: str,
    decimals: Optional[int] = DEFAULT_PORTFOLIO_DECIMALS,
) -> float:
    """Share of the whole portfolio's USD value held by ``beneficiary_id``.

    Reads as 0 when the portfolio is worth nothing (empty snapshot,
    missing prices). Pass ``decimals=None`` for the unrounded value.
    """
    total = total_portfolio_value(table)
    if total <= 0:
        return 0.0

    percentage = 100.0 * beneficiary_value(table, beneficiary_id) / total
    if decimals is None:
        return percentage
    return round_half_up(percentage, decimals)


def portfolio_percentages(
    table: AllocationTable,
    beneficiary_ids: Iterable[str],
    decimals: Optional[int] = DEFAULT_PORTFOLIO_DECIMALS,
) -> Dict[str, float]:
    """``portfolio_percentage`` for each beneficiary, in input order."""
    return {
        beneficiary_id: portfolio_percentage(table, beneficiary_id, decimals)
        for beneficiary_id in beneficiary_ids
    }
