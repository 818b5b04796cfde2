"""Allocation Table: authoritative store of per-asset percentages.

Keys are ``(asset_symbol, beneficiary_id)`` pairs; the only stored value is
the percentage. Amounts and USD values come out of ``AllocationRecord``
projections against the registry's current snapshot, so a price refresh
is reflected on the very next read.

The table does not enforce the 100% cap. Interactive edits pass through
momentarily invalid states, and deciding what to do about them is the
caller's job (see ``AllocationValidator``).
"""

from typing import Dict, List, Optional, Tuple

import pandas as pd

from src.allocation.base import AllocationRecord, parse_percentage
from src.registry.asset_registry import AssetRegistry
from src.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)

FRAME_COLUMNS = ["asset_symbol", "beneficiary_id", "percentage", "amount", "usd_value"]


class AllocationTable:
    """Store of ``(asset, beneficiary) -> percentage`` records.

    Absence of a record reads as 0. Records are created lazily on first
    write and only removed with their beneficiary.

    Example:
        >>> table = AllocationTable(registry)
        >>> record = table.set("BTC", "alice", 40)
        >>> record.percentage, record.usd_value
        (40.0, 24000.0)
        >>> table.get("BTC", "alice")
        40.0
    """

    def __init__(self, registry: AssetRegistry):
        """Initialize an empty table over ``registry``.

        Args:
            registry: Asset snapshot used to project amounts and USD values
        """
        self.registry = registry
        self._percentages: Dict[Tuple[str, str], float] = {}

    def __len__(self) -> int:
        return len(self._percentages)

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._percentages

    def get(self, asset_symbol: str, beneficiary_id: str) -> float:
        """Return the stored percentage, 0 when there is no record."""
        return self._percentages.get((asset_symbol, beneficiary_id), 0.0)

    def set(
        self,
        asset_symbol: str,
        beneficiary_id: str,
        percentage,
    ) -> Optional[AllocationRecord]:
        """Clamp ``percentage`` to [0, 100] and upsert the record.

        Non-numeric input and symbols missing from the current snapshot
        are ignored rather than raised.

        Args:
            asset_symbol: Asset to allocate
            beneficiary_id: Beneficiary receiving the allocation
            percentage: New percentage (number or text field content)

        Returns:
            The projected record, or None if the write was ignored
        """
        value = parse_percentage(percentage)
        if value is None:
            log_with_context(
                logger,
                "debug",
                "Ignoring non-numeric allocation input",
                asset=asset_symbol,
                beneficiary=beneficiary_id,
                value=repr(percentage),
            )
            return None

        asset = self.registry.get_asset(asset_symbol)
        if asset is None:
            logger.warning(
                "Asset %s not found in current snapshot, allocation ignored",
                asset_symbol,
            )
            return None

        self._percentages[(asset_symbol, beneficiary_id)] = value

        record = AllocationRecord.project(asset_symbol, beneficiary_id, value, asset)
        log_with_context(
            logger,
            "debug",
            "Allocation updated",
            asset=asset_symbol,
            beneficiary=beneficiary_id,
            percentage=value,
            amount=f"{record.amount:.8f}",
        )
        return record

    def discard(self, asset_symbol: str, beneficiary_id: str) -> None:
        """Drop a single record. Used to roll back a rejected first write."""
        self._percentages.pop((asset_symbol, beneficiary_id), None)

    def record(
        self,
        asset_symbol: str,
        beneficiary_id: str,
    ) -> Optional[AllocationRecord]:
        """Return the record projected on the current snapshot, or None."""
        key = (asset_symbol, beneficiary_id)
        if key not in self._percentages:
            return None
        return AllocationRecord.project(
            asset_symbol,
            beneficiary_id,
            self._percentages[key],
            self.registry.get_asset(asset_symbol),
        )

    def records(self) -> List[AllocationRecord]:
        """All records in insertion order, projected on the current snapshot."""
        assets = {asset.symbol: asset for asset in self.registry.assets}
        return [
            AllocationRecord.project(symbol, beneficiary_id, percentage, assets.get(symbol))
            for (symbol, beneficiary_id), percentage in self._percentages.items()
        ]

    def records_for_asset(self, asset_symbol: str) -> List[AllocationRecord]:
        return [r for r in self.records() if r.asset_symbol == asset_symbol]

    def records_for_beneficiary(self, beneficiary_id: str) -> List[AllocationRecord]:
        return [r for r in self.records() if r.beneficiary_id == beneficiary_id]

    def total_for_asset(self, asset_symbol: str) -> float:
        """Sum of every beneficiary's percentage on ``asset_symbol``."""
        return sum(
            percentage
            for (symbol, _), percentage in self._percentages.items()
            if symbol == asset_symbol
        )

    def beneficiary_ids(self) -> List[str]:
        """Beneficiaries holding at least one record, in first-write order."""
        seen: Dict[str, None] = {}
        for _, beneficiary_id in self._percentages:
            seen.setdefault(beneficiary_id, None)
        return list(seen)

    def remove_beneficiary(self, beneficiary_id: str) -> int:
        """Delete every record of ``beneficiary_id``.

        Returns:
            Number of records removed
        """
        keys = [key for key in self._percentages if key[1] == beneficiary_id]
        for key in keys:
            del self._percentages[key]

        if keys:
            log_with_context(
                logger,
                "debug",
                "Removed beneficiary allocations",
                beneficiary=beneficiary_id,
                records=len(keys),
            )
        return len(keys)

    def snapshot(self) -> Dict[Tuple[str, str], float]:
        """Copy of the stored percentages, keyed by (asset, beneficiary)."""
        return dict(self._percentages)

    def clear(self) -> None:
        self._percentages.clear()

    def to_frame(self) -> pd.DataFrame:
        """Records as a DataFrame with one row per (asset, beneficiary)."""
        rows = [
            {
                "asset_symbol": r.asset_symbol,
                "beneficiary_id": r.beneficiary_id,
                "percentage": r.percentage,
                "amount": r.amount,
                "usd_value": r.usd_value,
            }
            for r in self.records()
        ]
        return pd.DataFrame(rows, columns=FRAME_COLUMNS)
