"""Will allocation store: the single owner of all mutable allocation state.

UI components receive a ``WillAllocationStore`` and go through its methods
for every change; nothing else writes to the tables. The store wires the
components of the Allocation Layer together:

    AssetRegistry -> AllocationTable -> AllocationValidator
                                     -> PortfolioAggregator
                  -> ShareRedistributor
                  -> CredentialAllocations
                                     -> ReviewProjector (read only)
"""

from typing import Dict, Iterable, List, Optional, Tuple

from src.allocation.base import (
    MAX_PERCENTAGE,
    Beneficiary,
    OverAllocationPolicy,
    PortfolioEditResult,
    ValidationResult,
    round_half_up,
)
from src.allocation.credentials import Credential, CredentialAllocations
from src.allocation.portfolio import PortfolioAggregator
from src.allocation.review import AllocationSummary, ReviewProjector
from src.allocation.shares import ShareRedistributor
from src.allocation.table import AllocationTable
from src.allocation.validation import AllocationValidator
from src.registry.asset_registry import AssetRegistry
from src.utils.config import Config
from src.utils.exceptions import OverAllocationError, StaleAssetDataError
from src.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)


class WillAllocationStore:
    """Explicit store for one will's beneficiaries and allocations.

    Configuration Parameters (``allocation`` section):
        epsilon: Tolerance above 100% (default 0.1)
        portfolio_decimals: Rounding of portfolio percentages (default 1)
        over_allocation_policy: "reject", "clamp" or "warn" (default "reject")

    Example:
        >>> store = WillAllocationStore(registry)
        >>> store.add_beneficiary(Beneficiary("alice", "Alice"))
        True
        >>> store.add_beneficiary(Beneficiary("bob", "Bob"))
        True
        >>> store.set_portfolio_percentage("alice", 40).accepted
        True
        >>> store.update_asset_allocation("BTC", "bob", 70).ok
        False
    """

    def __init__(
        self,
        registry: AssetRegistry,
        config: Optional[Dict] = None,
        credentials: Optional[Iterable[Credential]] = None,
    ):
        """Initialize an empty will over ``registry``.

        Args:
            registry: Source of the asset snapshot
            config: ``allocation`` configuration dictionary
            credentials: Credentials available for allocation
        """
        config = config or {}

        self.registry = registry
        self.table = AllocationTable(registry)
        self.validator = AllocationValidator(self.table, config)
        self.aggregator = PortfolioAggregator(self.table, self.validator, config)
        self.shares = ShareRedistributor(self.table)
        self.credentials = CredentialAllocations(credentials)
        self.projector = ReviewProjector(self.table, self.shares, self.credentials)

        self._beneficiaries: Dict[str, Beneficiary] = {}

        logger.debug(
            "WillAllocationStore initialized with %s policy", self.policy.value
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        registry: AssetRegistry,
        credentials: Optional[Iterable[Credential]] = None,
    ) -> "WillAllocationStore":
        return cls(registry, config.section("allocation"), credentials)

    @property
    def policy(self) -> OverAllocationPolicy:
        return self.aggregator.policy

    # Beneficiaries

    @property
    def beneficiaries(self) -> List[Beneficiary]:
        return list(self._beneficiaries.values())

    @property
    def beneficiary_ids(self) -> List[str]:
        return list(self._beneficiaries)

    def add_beneficiary(self, beneficiary: Beneficiary) -> bool:
        """Add a beneficiary; returns False for a duplicate id."""
        if beneficiary.id in self._beneficiaries:
            return False

        self._beneficiaries[beneficiary.id] = beneficiary
        self.shares.add(beneficiary.id)
        logger.info("Beneficiary %s added", beneficiary.id)
        return True

    def remove_beneficiary(self, beneficiary_id: str) -> bool:
        """Remove a beneficiary with all its allocations.

        Its share is redistributed over the remaining beneficiaries, its
        asset records and credential assignments are deleted.
        """
        if beneficiary_id not in self._beneficiaries:
            return False

        del self._beneficiaries[beneficiary_id]
        self.shares.remove(beneficiary_id)
        self.credentials.remove_beneficiary(beneficiary_id)
        logger.info("Beneficiary %s removed", beneficiary_id)
        return True

    def load_will(self, entries: Iterable[Tuple[Beneficiary, Optional[float]]]) -> None:
        """Replace beneficiaries and shares with those of a saved will."""
        entries = list(entries)
        self.table.clear()
        self.credentials = CredentialAllocations(self.credentials.credentials)
        self.projector.credentials = self.credentials
        self._beneficiaries = {b.id: b for b, _ in entries}
        self.shares.load((b.id, share) for b, share in entries)

    # Per-asset view

    def update_asset_allocation(
        self,
        asset_symbol: str,
        beneficiary_id: str,
        percentage,
        policy: Optional[OverAllocationPolicy] = None,
    ) -> Optional[ValidationResult]:
        """Write one asset percentage and validate the asset.

        With REJECT the write is rolled back when it breaks the cap, with
        CLAMP it is shrunk to the remaining headroom, with WARN it is kept.
        A write that lowers an existing share is always kept.

        Returns:
            The validation result of the attempted write (its total is what
            the asset would hold), or None if the write was ignored
        """
        if beneficiary_id not in self._beneficiaries:
            logger.warning(
                "Beneficiary %s is not part of the will, allocation ignored",
                beneficiary_id,
            )
            return None

        policy = policy or self.policy
        key = (asset_symbol, beneficiary_id)
        had_record = key in self.table
        previous = self.table.get(asset_symbol, beneficiary_id)

        record = self.table.set(asset_symbol, beneficiary_id, percentage)
        if record is None:
            return None

        result = self.validator.validate(asset_symbol)
        # Lowering a share never makes an over-allocation worse
        if result.ok or (had_record and record.percentage <= previous):
            return result

        log_with_context(
            logger,
            "warning",
            "Asset over-allocated",
            asset=asset_symbol,
            beneficiary=beneficiary_id,
            total=round(result.total_percentage, 2),
            policy=policy.value,
        )

        if policy == OverAllocationPolicy.REJECT:
            if had_record:
                self.table.set(asset_symbol, beneficiary_id, previous)
            else:
                self.table.discard(asset_symbol, beneficiary_id)
        elif policy == OverAllocationPolicy.CLAMP:
            headroom = self.validator.headroom(asset_symbol, beneficiary_id)
            self.table.set(asset_symbol, beneficiary_id, headroom)

        return result

    def update_asset_amount(
        self,
        asset_symbol: str,
        beneficiary_id: str,
        amount: float,
        policy: Optional[OverAllocationPolicy] = None,
    ) -> Optional[ValidationResult]:
        """Allocate native units of an asset (converted to a percentage)."""
        percentage = self.aggregator.percentage_from_amount(asset_symbol, amount)
        return self.update_asset_allocation(asset_symbol, beneficiary_id, percentage, policy)

    def update_asset_usd_value(
        self,
        asset_symbol: str,
        beneficiary_id: str,
        usd_value: float,
        policy: Optional[OverAllocationPolicy] = None,
    ) -> Optional[ValidationResult]:
        """Allocate a USD value of an asset (converted to a percentage)."""
        percentage = self.aggregator.percentage_from_usd(asset_symbol, usd_value)
        return self.update_asset_allocation(asset_symbol, beneficiary_id, percentage, policy)

    def validation_errors(self) -> Dict[str, str]:
        return self.validator.validate_all()

    # Portfolio view

    def set_portfolio_percentage(
        self,
        beneficiary_id: str,
        percentage,
        policy: Optional[OverAllocationPolicy] = None,
    ) -> Optional[PortfolioEditResult]:
        """Apply a portfolio-level percentage to every asset for a beneficiary.

        Overwrites any per-asset split the beneficiary had.
        """
        if beneficiary_id not in self._beneficiaries:
            logger.warning(
                "Beneficiary %s is not part of the will, portfolio edit ignored",
                beneficiary_id,
            )
            return None

        return self.aggregator.set_portfolio_percentage(
            beneficiary_id, percentage, self.beneficiary_ids, policy
        )

    def portfolio_percentages(self) -> Dict[str, float]:
        return self.aggregator.portfolio_percentages(self.beneficiary_ids)

    def portfolio_exceeded(self) -> bool:
        """Whether current portfolio percentages sum past 100%."""
        ids = self.beneficiary_ids
        if not ids:
            return False
        return self.validator.portfolio_total(ids) > self.validator.cap

    def is_valid(self) -> bool:
        return self.validator.is_valid() and not self.portfolio_exceeded()

    # Shares

    def update_share(self, beneficiary_id: str, allocation) -> None:
        self.shares.update(beneficiary_id, allocation)

    def reset_shares_to_equal(self) -> None:
        self.shares.reset_to_equal()

    def sync_shares_from_portfolio(self) -> Dict[str, float]:
        """Overwrite shares with integer-rounded portfolio percentages.

        Only a fully allocated portfolio can be synced, since shares always
        sum to 100. The rounding remainder goes to the first beneficiary.
        Otherwise the shares are left untouched.

        Returns:
            The new shares, or an empty dict if nothing was synced
        """
        ids = self.beneficiary_ids
        if not ids:
            return {}

        percentages = self.portfolio_percentages()
        raw_total = sum(percentages.values())
        if abs(raw_total - MAX_PERCENTAGE) > self.validator.epsilon:
            logger.warning(
                "Portfolio is %.1f%% allocated, shares not synced", raw_total
            )
            return {}

        self.shares.assign({b: round_half_up(percentages[b]) for b in ids}, balance=True)
        logger.info("Shares synced from portfolio percentages for %d beneficiaries", len(ids))
        return self.shares.as_dict()

    # Credentials

    def allocate_credential(self, credential_id: str, beneficiary_id: str) -> bool:
        if beneficiary_id not in self._beneficiaries:
            return False
        return self.credentials.allocate(credential_id, beneficiary_id)

    def remove_credential_allocation(self, credential_id: str) -> int:
        return self.credentials.remove_credential(credential_id)

    # Registry and review

    def refresh_assets(self) -> None:
        """Refresh the asset snapshot. Derived values follow on the next read."""
        self.registry.refresh()

    def summary(self) -> AllocationSummary:
        return self.projector.summary(self.beneficiary_ids)

    def ensure_submittable(self) -> None:
        """Raise if the will cannot be handed to the submission step.

        Raises:
            StaleAssetDataError: If no asset snapshot has loaded yet
            OverAllocationError: If an asset, the portfolio, or the shares
                exceed 100%
        """
        if not self.registry.is_loaded:
            raise StaleAssetDataError("Asset balances have not been loaded")

        self.validator.raise_if_invalid(self.beneficiary_ids)

        if self.shares.total() > self.validator.cap:
            raise OverAllocationError(
                f"Beneficiary shares total {self.shares.total():.0f}%, maximum 100%"
            )
