"""Core data structures for the allocation reconciliation engine.

This module defines the value types shared by every component of the
Allocation Layer. The layer keeps three views of the same data consistent:

- Per-asset view: what share of one asset each beneficiary receives
- Per-beneficiary view: which assets one beneficiary receives
- Portfolio view: one percentage of the total USD value per beneficiary

Only the per-asset percentage is ever stored. Native amounts, USD values
and portfolio percentages are derived from it and the latest asset snapshot.
"""

import math
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from src.registry.base import Asset

MAX_PERCENTAGE = 100.0
DEFAULT_EPSILON = 0.1
DEFAULT_PORTFOLIO_DECIMALS = 1


class CurrencyUnit(Enum):
    """Units an allocation can be displayed or entered in."""

    PERCENTAGE = "percentage"
    CRYPTO = "crypto"
    USD = "usd"


class OverAllocationPolicy(Enum):
    """What a caller does with a write that pushes a total past 100%.

    REJECT rolls the write back, CLAMP shrinks it to the remaining
    headroom, WARN keeps it and only reports the flag.
    """

    REJECT = "reject"
    CLAMP = "clamp"
    WARN = "warn"


@dataclass(frozen=True)
class Beneficiary:
    """A person or organisation named in the will.

    Only ``id`` matters to the engine; the rest is carried for display.
    """

    id: str
    display_name: str = ""
    relation: str = "other"
    address: str = ""


@dataclass(frozen=True)
class AllocationRecord:
    """A beneficiary's claim on one asset.

    ``amount`` and ``usd_value`` are projections of ``percentage`` onto the
    asset snapshot the record was read against. They are rebuilt on every
    read and are never written back.

    Attributes:
        asset_symbol: Asset the claim is on
        beneficiary_id: Beneficiary holding the claim
        percentage: Share of the asset in [0, 100]
        amount: Native units, ``percentage / 100 * balance``
        usd_value: ``amount * unit_price_usd``
    """

    asset_symbol: str
    beneficiary_id: str
    percentage: float
    amount: float = 0.0
    usd_value: float = 0.0

    @classmethod
    def project(
        cls,
        asset_symbol: str,
        beneficiary_id: str,
        percentage: float,
        asset: Optional[Asset],
    ) -> "AllocationRecord":
        """Build a record with amount and USD value derived from ``asset``.

        A missing asset (not in the current snapshot) projects to zero.
        """
        if asset is None:
            return cls(asset_symbol, beneficiary_id, percentage)

        amount = (percentage / 100.0) * asset.balance
        return cls(
            asset_symbol=asset_symbol,
            beneficiary_id=beneficiary_id,
            percentage=percentage,
            amount=amount,
            usd_value=amount * asset.unit_price_usd,
        )

    def value_in(self, unit: CurrencyUnit) -> float:
        """Return this claim expressed in ``unit``."""
        if unit == CurrencyUnit.CRYPTO:
            return self.amount
        if unit == CurrencyUnit.USD:
            return self.usd_value
        return self.percentage


@dataclass
class BeneficiaryShare:
    """Coarse, asset-independent weight used for equal-split bookkeeping.

    Not tied to any AllocationRecord; see ``ShareRedistributor``.
    """

    beneficiary_id: str
    allocation: float = 0.0


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking one asset against the 100% cap.

    Attributes:
        asset_symbol: Asset that was checked
        ok: True when the total is within 100% plus tolerance
        total_percentage: Sum of all beneficiaries' percentages on the asset
    """

    asset_symbol: str
    ok: bool
    total_percentage: float

    @property
    def exceeded_by(self) -> float:
        """Percentage points above 100 (0 when within the cap)."""
        return max(0.0, self.total_percentage - MAX_PERCENTAGE)

    @property
    def remaining(self) -> float:
        """Percentage points still free on the asset."""
        return max(0.0, MAX_PERCENTAGE - self.total_percentage)

    @property
    def message(self) -> str:
        """User-facing warning, empty when ``ok``."""
        if self.ok:
            return ""
        return f"Total allocation exceeds 100% for {self.asset_symbol}"


@dataclass(frozen=True)
class PortfolioEditResult:
    """Outcome of a portfolio-level percentage edit.

    Attributes:
        beneficiary_id: Beneficiary whose portfolio share was edited
        requested: Percentage the caller asked for (None if unparseable)
        applied: Percentage written to every asset (None if nothing written)
        accepted: Whether any write happened
        exceeded: Whether the request would push the portfolio, or any
            asset, past 100%
        total_percentage: Portfolio total after the edit, or the total the
            edit would have produced when it was refused
    """

    beneficiary_id: str
    requested: Optional[float]
    applied: Optional[float]
    accepted: bool
    exceeded: bool
    total_percentage: float
    notes: list[str] = field(default_factory=list)


_NUMERIC_INPUT = re.compile(r"[^0-9.]")


def round_half_up(value: float, decimals: int = 0) -> float:
    """Round like a calculator: halves always go up.

    Python's ``round`` uses banker's rounding, which would make a slider
    at 12.25 read back as 12.2 in one view and 12.3 in another.
    """
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def clamp_percentage(value: float) -> float:
    """Clamp a percentage into [0, 100]."""
    return min(MAX_PERCENTAGE, max(0.0, float(value)))


def parse_percentage(value) -> Optional[float]:
    """Interpret user input as a percentage in [0, 100].

    Strings are stripped of everything except digits and the decimal
    point, the way the allocation text fields behave. Anything that still
    is not a finite number yields None so the caller can ignore the edit.

    Example:
        >>> parse_percentage("42.5%")
        42.5
        >>> parse_percentage(150)
        100.0
        >>> parse_percentage("abc") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        cleaned = _NUMERIC_INPUT.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(Decimal(cleaned))
        except InvalidOperation:
            return None
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None

    if not math.isfinite(number):
        return None

    return clamp_percentage(number)
