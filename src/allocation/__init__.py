"""Allocation Layer.

This layer keeps the per-asset, per-beneficiary and portfolio-level views
of a will's crypto allocation numerically consistent, and enforces the
100% caps.

Components:
- AllocationTable: Authoritative (asset, beneficiary) -> percentage store
- AllocationValidator: Per-asset and portfolio-wide over-allocation checks
- PortfolioAggregator: Portfolio percentage read path and uniform write path
- ShareRedistributor: Coarse beneficiary shares and their rebalancing
- CredentialAllocations: Credential-to-beneficiary assignments
- ReviewProjector: Read-only totals for the review step
- WillAllocationStore: Owner of all of the above
"""

from src.allocation.base import (
    AllocationRecord,
    Beneficiary,
    BeneficiaryShare,
    CurrencyUnit,
    OverAllocationPolicy,
    PortfolioEditResult,
    ValidationResult,
    parse_percentage,
)
from src.allocation.credentials import Credential, CredentialAllocation, CredentialAllocations
from src.allocation.portfolio import PortfolioAggregator
from src.allocation.review import AllocationSummary, AssetBreakdown, ReviewProjector
from src.allocation.shares import ShareRedistributor
from src.allocation.store import WillAllocationStore
from src.allocation.table import AllocationTable
from src.allocation.validation import AllocationValidator

__all__ = [
    "AllocationRecord",
    "AllocationSummary",
    "AllocationTable",
    "AllocationValidator",
    "AssetBreakdown",
    "Beneficiary",
    "BeneficiaryShare",
    "Credential",
    "CredentialAllocation",
    "CredentialAllocations",
    "CurrencyUnit",
    "OverAllocationPolicy",
    "PortfolioAggregator",
    "PortfolioEditResult",
    "ReviewProjector",
    "ShareRedistributor",
    "ValidationResult",
    "WillAllocationStore",
    "parse_percentage",
]
