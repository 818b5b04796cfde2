"""Beneficiary Share Redistributor.

Keeps one coarse ``allocation`` weight per beneficiary, used for the
initial equal split and the "reset to equal" action. The weights sum to
100 whenever at least one beneficiary exists.

These shares are independent of the per-asset Allocation
Table: resetting shares never touches asset percentages, and a portfolio
edit never touches shares. ``WillAllocationStore.sync_shares_from_portfolio``
is the only bridge between them, and it is never called implicitly.
"""

import math
from typing import Dict, Iterable, List, Optional, Tuple

from src.allocation.base import MAX_PERCENTAGE, BeneficiaryShare, parse_percentage
from src.allocation.table import AllocationTable
from src.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class ShareRedistributor:
    """Ordered table of beneficiary shares with redistribution rules.

    Rules:
    - Add: the first beneficiary gets 100, later ones get 0
    - Remove: the removed share is spread evenly over the remaining
      beneficiaries, each rounded to an integer, with the rounding
      remainder given to the first remaining beneficiary
    - Any total past 100 is taken back from the first beneficiaries in
      order, none going below 0
    - Reset: floor(100 / n) each, remainder to the first beneficiary
    - Direct edit: clamped to [0, 100], others untouched

    Example:
        >>> shares = ShareRedistributor()
        >>> for b in ("a", "b", "c"):
        ...     _ = shares.add(b)
        >>> shares.reset_to_equal()
        >>> shares.as_dict()
        {'a': 34.0, 'b': 33.0, 'c': 33.0}
    """

    def __init__(self, allocation_table: Optional[AllocationTable] = None):
        """Initialize an empty share table.

        Args:
            allocation_table: When given, removing a beneficiary also
                deletes their per-asset allocation records
        """
        self.allocation_table = allocation_table
        self._shares: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._shares)

    def __contains__(self, beneficiary_id: str) -> bool:
        return beneficiary_id in self._shares

    def get(self, beneficiary_id: str) -> float:
        return self._shares.get(beneficiary_id, 0.0)

    def shares(self) -> List[BeneficiaryShare]:
        return [BeneficiaryShare(b, allocation) for b, allocation in self._shares.items()]

    def as_dict(self) -> Dict[str, float]:
        return dict(self._shares)

    def beneficiary_ids(self) -> List[str]:
        return list(self._shares)

    def total(self) -> float:
        return sum(self._shares.values())

    def is_valid(self) -> bool:
        """Whether shares stay within 100% in total."""
        return self.total() <= MAX_PERCENTAGE

    def add(self, beneficiary_id: str) -> Optional[BeneficiaryShare]:
        """Add a beneficiary; a duplicate id is ignored.

        Returns:
            The new share, or None if the beneficiary already exists
        """
        if beneficiary_id in self._shares:
            logger.debug("Beneficiary %s already present, add ignored", beneficiary_id)
            return None

        allocation = MAX_PERCENTAGE if not self._shares else 0.0
        self._shares[beneficiary_id] = allocation

        log_with_context(
            logger, "debug", "Beneficiary share added",
            beneficiary=beneficiary_id, allocation=allocation,
        )
        return BeneficiaryShare(beneficiary_id, allocation)

    def remove(self, beneficiary_id: str) -> Optional[BeneficiaryShare]:
        """Remove a beneficiary and hand its share to the others.

        Returns:
            The removed share, or None if the beneficiary was unknown
        """
        if beneficiary_id not in self._shares:
            return None

        removed = self._shares.pop(beneficiary_id)

        if self.allocation_table is not None:
            self.allocation_table.remove_beneficiary(beneficiary_id)

        if self._shares:
            increment = removed / len(self._shares)
            for b in self._shares:
                self._shares[b] = float(_round_half_up(self._shares[b] + increment))
            self._assign_remainder()

        log_with_context(
            logger, "debug", "Beneficiary share removed",
            beneficiary=beneficiary_id, redistributed=removed, remaining=len(self._shares),
        )
        return BeneficiaryShare(beneficiary_id, removed)

    def reset_to_equal(self) -> None:
        """Split 100 equally, giving the integer remainder to the first."""
        count = len(self._shares)
        if count == 0:
            return

        equal = math.floor(MAX_PERCENTAGE / count)
        for b in self._shares:
            self._shares[b] = float(equal)
        self._assign_remainder()

        logger.debug("Shares reset to equal across %d beneficiaries", count)

    def update(self, beneficiary_id: str, allocation) -> Optional[BeneficiaryShare]:
        """Set one share directly, clamped to [0, 100].

        Other shares are not renormalised; check ``is_valid`` if the total
        matters. Unknown beneficiaries and non-numeric input are ignored.
        """
        if beneficiary_id not in self._shares:
            return None

        value = parse_percentage(allocation)
        if value is None:
            return None

        self._shares[beneficiary_id] = value
        return BeneficiaryShare(beneficiary_id, value)

    def load(self, shares: Iterable[Tuple[str, Optional[float]]]) -> None:
        """Replace all shares with those of an existing will.

        Missing or zero shares fall back to floor(100 / n). The total is
        then corrected to exactly 100 without any share leaving [0, 100].
        """
        entries = list(shares)
        self._shares = {}
        if not entries:
            return

        default = math.floor(MAX_PERCENTAGE / len(entries))
        for beneficiary_id, allocation in entries:
            value = parse_percentage(allocation) if allocation is not None else None
            self._shares[beneficiary_id] = value if value else float(default)

        self._assign_remainder()

    def assign(self, allocations: Dict[str, float], balance: bool = False) -> None:
        """Overwrite shares of existing beneficiaries from ``allocations``.

        With ``balance`` the result is then corrected to total exactly 100.
        """
        for beneficiary_id, allocation in allocations.items():
            self.update(beneficiary_id, allocation)

        if balance and self._shares:
            self._assign_remainder()

    def _assign_remainder(self) -> None:
        """Bring the total to exactly 100 keeping every share in [0, 100].

        A shortfall goes to the first beneficiary. An excess is taken from
        the first beneficiary down to 0, then from the next, in order.
        """
        difference = MAX_PERCENTAGE - self.total()
        if difference >= 0:
            first = next(iter(self._shares))
            self._shares[first] += difference
            return

        excess = -difference
        for beneficiary_id, allocation in self._shares.items():
            taken = min(allocation, excess)
            self._shares[beneficiary_id] = allocation - taken
            excess -= taken
            if excess <= 0:
                break

        logger.debug("Shares summed past 100%%, excess taken from the first beneficiaries")
