"""Review/Summary Projector: read-only totals for the review step.

Every figure is recomputed from the Allocation Table and the current
asset snapshot through ``valuation``, the same formulas the portfolio
view uses, so the summary banner matches the beneficiary cards.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

import pandas as pd

from src.allocation import valuation
from src.allocation.credentials import CredentialAllocations
from src.allocation.shares import ShareRedistributor
from src.allocation.table import AllocationTable

SUMMARY_COLUMNS = [
    "beneficiary_id",
    "share",
    "portfolio_percentage",
    "usd_value",
    "asset_count",
    "credential_count",
]


@dataclass(frozen=True)
class AllocationSummary:
    """Aggregate totals shown on the review step.

    Attributes:
        allocated_asset_count: Distinct assets with any nonzero allocation
        asset_count: Assets in the current snapshot
        beneficiary_count: Beneficiaries in the will
        total_portfolio_usd: USD value of the whole portfolio
        total_allocated_usd: USD value allocated to all beneficiaries
        total_allocated_percentage: Allocated share of the portfolio value
        allocated_credential_count: Credential assignments made
        credential_count: Credentials available to assign
    """

    allocated_asset_count: int
    asset_count: int
    beneficiary_count: int
    total_portfolio_usd: float
    total_allocated_usd: float
    total_allocated_percentage: float
    allocated_credential_count: int = 0
    credential_count: int = 0

    @property
    def has_allocations(self) -> bool:
        return self.allocated_asset_count > 0 or self.allocated_credential_count > 0


@dataclass(frozen=True)
class AssetBreakdown:
    """One asset's contribution to a beneficiary's inheritance."""

    symbol: str
    amount: float
    usd_value: float
    percentage: float


class ReviewProjector:
    """Computes review totals; owns no state of its own.

    Example:
        >>> projector = ReviewProjector(table, shares, credentials)
        >>> summary = projector.summary()
        >>> summary.total_allocated_usd
        28000.0
    """

    def __init__(
        self,
        table: AllocationTable,
        shares: Optional[ShareRedistributor] = None,
        credentials: Optional[CredentialAllocations] = None,
    ):
        self.table = table
        self.shares = shares
        self.credentials = credentials

    def summary(self, beneficiary_ids: Optional[Iterable[str]] = None) -> AllocationSummary:
        """Aggregate totals over ``beneficiary_ids``.

        Args:
            beneficiary_ids: Beneficiaries of the will. Defaults to the
                share table's beneficiaries, else those holding records.
        """
        ids = self._ids(beneficiary_ids)

        total_portfolio = valuation.total_portfolio_value(self.table)
        total_allocated = sum(valuation.beneficiary_value(self.table, b) for b in ids)
        percentage = 100.0 * total_allocated / total_portfolio if total_portfolio > 0 else 0.0

        allocated_assets = {
            r.asset_symbol
            for r in self.table.records()
            if r.percentage > 0 and r.beneficiary_id in ids
        }

        return AllocationSummary(
            allocated_asset_count=len(allocated_assets),
            asset_count=len(self.table.registry.assets),
            beneficiary_count=len(ids),
            total_portfolio_usd=total_portfolio,
            total_allocated_usd=total_allocated,
            total_allocated_percentage=percentage,
            allocated_credential_count=(
                self.credentials.allocated_count() if self.credentials else 0
            ),
            credential_count=self.credentials.credential_count() if self.credentials else 0,
        )

    def beneficiary_breakdown(self, beneficiary_id: str) -> List[AssetBreakdown]:
        """Per-asset detail for one beneficiary, largest USD value first.

        Zero allocations are left out.
        """
        rows = [
            AssetBreakdown(
                symbol=r.asset_symbol,
                amount=r.amount,
                usd_value=r.usd_value,
                percentage=r.percentage,
            )
            for r in self.table.records_for_beneficiary(beneficiary_id)
            if r.percentage > 0 or r.amount > 0
        ]
        rows.sort(key=lambda row: row.usd_value, reverse=True)
        return rows

    def to_frame(self, beneficiary_ids: Optional[Iterable[str]] = None) -> pd.DataFrame:
        """One row per beneficiary with share, portfolio percentage and USD value."""
        rows = []
        for beneficiary_id in self._ids(beneficiary_ids):
            records = self.table.records_for_beneficiary(beneficiary_id)
            rows.append(
                {
                    "beneficiary_id": beneficiary_id,
                    "share": self.shares.get(beneficiary_id) if self.shares else 0.0,
                    "portfolio_percentage": valuation.portfolio_percentage(
                        self.table, beneficiary_id
                    ),
                    "usd_value": valuation.beneficiary_value(self.table, beneficiary_id),
                    "asset_count": sum(1 for r in records if r.percentage > 0),
                    "credential_count": (
                        len(self.credentials.for_beneficiary(beneficiary_id))
                        if self.credentials
                        else 0
                    ),
                }
            )
        return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)

    def _ids(self, beneficiary_ids: Optional[Iterable[str]]) -> List[str]:
        if beneficiary_ids is not None:
            return list(beneficiary_ids)
        if self.shares is not None and len(self.shares) > 0:
            return self.shares.beneficiary_ids()
        return self.table.beneficiary_ids()
