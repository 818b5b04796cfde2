"""Unit tests for PortfolioAggregator."""

import pytest

from src.allocation.base import CurrencyUnit, OverAllocationPolicy
from src.allocation.portfolio import PortfolioAggregator
from src.allocation.table import AllocationTable
from src.registry.asset_registry import AssetRegistry
from src.registry.base import Asset
from src.utils.exceptions import ConfigurationError


@pytest.fixture
def registry() -> AssetRegistry:
    """ALEO worth $10,000 and one BTC worth $60,000."""
    return AssetRegistry.from_assets(
        [
            Asset("ALEO", balance=1000.0, usd_value=10000.0),
            Asset("BTC", balance=1.0, usd_value=60000.0),
        ]
    )


@pytest.fixture
def table(registry: AssetRegistry) -> AllocationTable:
    return AllocationTable(registry)


@pytest.fixture
def aggregator(table: AllocationTable) -> PortfolioAggregator:
    """Aggregator with default configuration."""
    return PortfolioAggregator(table)


class TestPortfolioAggregatorConfig:
    """Test cases for aggregator configuration."""

    def test_default_config(self, aggregator: PortfolioAggregator) -> None:
        """Test aggregator with default configuration."""
        assert aggregator.policy is OverAllocationPolicy.REJECT
        assert aggregator.portfolio_decimals == 1
        assert aggregator.validator.epsilon == 0.1

    def test_custom_policy(self, table: AllocationTable) -> None:
        """Test policy is read from configuration."""
        aggregator = PortfolioAggregator(table, config={"over_allocation_policy": "clamp"})
        assert aggregator.policy is OverAllocationPolicy.CLAMP

    def test_invalid_policy(self, table: AllocationTable) -> None:
        """Test config validation for an unknown policy."""
        with pytest.raises(ConfigurationError, match="over_allocation_policy must be one of"):
            PortfolioAggregator(table, config={"over_allocation_policy": "ignore"})

    def test_invalid_decimals(self, table: AllocationTable) -> None:
        """Test config validation for negative decimals."""
        with pytest.raises(ConfigurationError, match="portfolio_decimals must be >= 0"):
            PortfolioAggregator(table, config={"portfolio_decimals": -2})


class TestPortfolioReadPath:
    """Test cases for portfolio-level reads."""

    def test_empty_table(self, aggregator: PortfolioAggregator) -> None:
        """Test a beneficiary without records reads as 0."""
        assert aggregator.total_portfolio_value() == pytest.approx(70000.0)
        assert aggregator.total_value("alice") == 0.0
        assert aggregator.portfolio_percentage("alice") == 0.0

    def test_mixed_asset_split(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test portfolio percentage weights each asset by its USD value."""
        table.set("BTC", "alice", 50)
        table.set("ALEO", "alice", 100)

        # 30000 + 10000 of 70000
        assert aggregator.total_value("alice") == pytest.approx(40000.0)
        assert aggregator.portfolio_percentage("alice") == 57.1
        assert aggregator.portfolio_percentage("alice", rounded=False) == pytest.approx(
            400.0 / 7.0
        )

    def test_zero_value_portfolio(self) -> None:
        """Test a portfolio worth nothing reads every percentage as 0."""
        registry = AssetRegistry.from_assets([Asset("ALEO", 1000.0, 0.0)])
        table = AllocationTable(registry)
        aggregator = PortfolioAggregator(table)
        table.set("ALEO", "alice", 80)

        assert aggregator.portfolio_percentage("alice") == 0.0
        assert aggregator.value_for_percentage(50) == 0.0

    def test_empty_snapshot(self) -> None:
        """Test an empty snapshot reads as 0 without dividing by zero."""
        aggregator = PortfolioAggregator(AllocationTable(AssetRegistry()))

        assert aggregator.total_portfolio_value() == 0.0
        assert aggregator.portfolio_percentage("alice") == 0.0

    def test_totals(self, aggregator: PortfolioAggregator) -> None:
        """Test total and remaining portfolio percentages."""
        aggregator.set_portfolio_percentage("alice", 40)
        aggregator.set_portfolio_percentage("bob", 25)

        assert aggregator.portfolio_percentages(["alice", "bob"]) == {"alice": 40.0, "bob": 25.0}
        assert aggregator.total_allocated_percentage(["alice", "bob"]) == pytest.approx(65.0)
        assert aggregator.remaining_percentage(["alice", "bob"]) == pytest.approx(35.0)

    def test_value_for_percentage(self, aggregator: PortfolioAggregator) -> None:
        """Test USD value of a slice of the portfolio."""
        assert aggregator.value_for_percentage(10) == pytest.approx(7000.0)

    def test_asset_count(self, table: AllocationTable, aggregator: PortfolioAggregator) -> None:
        """Test only nonzero allocations are counted."""
        table.set("BTC", "alice", 10)
        table.set("ALEO", "alice", 0)

        assert aggregator.asset_count("alice") == 1
        assert aggregator.asset_count("bob") == 0

    def test_value_in_unit(self, table: AllocationTable, aggregator: PortfolioAggregator) -> None:
        """Test one allocation in every currency unit."""
        table.set("BTC", "alice", 40)

        assert aggregator.value_in_unit("BTC", "alice", CurrencyUnit.PERCENTAGE) == 40.0
        assert aggregator.value_in_unit("BTC", "alice", CurrencyUnit.CRYPTO) == pytest.approx(0.4)
        assert aggregator.value_in_unit("BTC", "alice", CurrencyUnit.USD) == pytest.approx(24000.0)
        assert aggregator.value_in_unit("ALEO", "alice", CurrencyUnit.USD) == 0.0


class TestPortfolioWritePath:
    """Test cases for set_portfolio_percentage."""

    def test_uniform_write(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test a portfolio edit writes the same percentage to every asset."""
        result = aggregator.set_portfolio_percentage("alice", 40)

        assert result.accepted
        assert not result.exceeded
        assert result.applied == 40.0
        assert table.get("ALEO", "alice") == 40.0
        assert table.get("BTC", "alice") == 40.0
        assert aggregator.total_value("alice") == pytest.approx(28000.0)
        assert aggregator.portfolio_percentage("alice") == 40.0

    @pytest.mark.parametrize("value", [0, 12.5, 33.3, 40, 66.7, 99.9, 100])
    def test_fixed_point(self, aggregator: PortfolioAggregator, value: float) -> None:
        """Test reading back a written portfolio percentage returns it."""
        aggregator.set_portfolio_percentage("alice", value)
        assert aggregator.portfolio_percentage("alice") == value

    def test_fixed_point_on_skewed_values(self) -> None:
        """Test the fixed point holds however unevenly assets are valued."""
        registry = AssetRegistry.from_assets(
            [
                Asset("ALEO", 2584.75, 27139.875),
                Asset("ETH", 1.28, 4352.0),
                Asset("USDT", 5000.0, 5000.0),
                Asset("BTC", 0.12, 7560.0),
            ]
        )
        aggregator = PortfolioAggregator(AllocationTable(registry))

        aggregator.set_portfolio_percentage("alice", 37.4)

        assert aggregator.portfolio_percentage("alice") == 37.4

    def test_input_rounded_before_write(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test the written value is rounded half up to one decimal."""
        result = aggregator.set_portfolio_percentage("alice", 33.35)

        assert result.applied == 33.4
        assert table.get("BTC", "alice") == 33.4
        assert aggregator.portfolio_percentage("alice") == 33.4

    def test_idempotent(self, table: AllocationTable, aggregator: PortfolioAggregator) -> None:
        """Test writing the same value twice changes nothing."""
        aggregator.set_portfolio_percentage("alice", 25)
        first = table.snapshot()
        aggregator.set_portfolio_percentage("alice", 25)

        assert table.snapshot() == first

    def test_overwrites_per_asset_split(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test a portfolio edit discards a hand-tuned per-asset split."""
        table.set("BTC", "alice", 80)
        table.set("ALEO", "alice", 5)

        aggregator.set_portfolio_percentage("alice", 40)

        assert table.get("BTC", "alice") == 40.0
        assert table.get("ALEO", "alice") == 40.0

    def test_other_beneficiaries_untouched(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test a portfolio edit only writes the edited beneficiary."""
        table.set("BTC", "bob", 30)

        aggregator.set_portfolio_percentage("alice", 40)

        assert table.get("BTC", "bob") == 30.0
        assert ("ALEO", "bob") not in table

    def test_text_input(self, aggregator: PortfolioAggregator) -> None:
        """Test numeric text input is accepted."""
        assert aggregator.set_portfolio_percentage("alice", "40%").applied == 40.0

    def test_invalid_input_ignored(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test non-numeric input writes nothing."""
        result = aggregator.set_portfolio_percentage("alice", "abc")

        assert not result.accepted
        assert result.requested is None
        assert result.notes == ["invalid input ignored"]
        assert len(table) == 0

    def test_zero_value_portfolio_write(self) -> None:
        """Test a write on a worthless portfolio still records percentages."""
        registry = AssetRegistry.from_assets([Asset("ALEO", 1000.0, 0.0)])
        table = AllocationTable(registry)
        aggregator = PortfolioAggregator(table)

        result = aggregator.set_portfolio_percentage("alice", 60)

        assert result.accepted
        assert table.get("ALEO", "alice") == 60.0
        assert aggregator.portfolio_percentage("alice") == 0.0


class TestPortfolioOverAllocation:
    """Test cases for portfolio edits past 100%."""

    def test_reject(self, table: AllocationTable, aggregator: PortfolioAggregator) -> None:
        """Test REJECT leaves the table untouched and reports the total."""
        aggregator.set_portfolio_percentage("alice", 70, ["alice", "bob"])

        result = aggregator.set_portfolio_percentage("bob", 40, ["alice", "bob"])

        assert not result.accepted
        assert result.exceeded
        assert result.applied is None
        assert result.total_percentage == pytest.approx(110.0)
        assert result.notes == ["total would be 110.0%"]
        assert ("BTC", "bob") not in table

    def test_warn_does_not_write(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test WARN on the portfolio path only raises the flag."""
        aggregator.set_portfolio_percentage("alice", 70)

        result = aggregator.set_portfolio_percentage(
            "bob", 40, policy=OverAllocationPolicy.WARN
        )

        assert result.exceeded
        assert not result.accepted
        assert table.get("BTC", "bob") == 0.0

    def test_clamp(self, table: AllocationTable, aggregator: PortfolioAggregator) -> None:
        """Test CLAMP writes the largest percentage that still fits."""
        aggregator.set_portfolio_percentage("alice", 70)

        result = aggregator.set_portfolio_percentage(
            "bob", 40, policy=OverAllocationPolicy.CLAMP
        )

        assert result.accepted
        assert result.exceeded
        assert result.applied == 30.0
        assert result.notes == ["clamped from 40.0 to 30.0"]
        assert table.get("ALEO", "bob") == 30.0
        assert aggregator.total_allocated_percentage(["alice", "bob"]) == pytest.approx(100.0)

    def test_lowering_own_share_allowed(self, aggregator: PortfolioAggregator) -> None:
        """Test the edited beneficiary's current share is not double counted."""
        aggregator.set_portfolio_percentage("alice", 60)
        aggregator.set_portfolio_percentage("bob", 40)

        result = aggregator.set_portfolio_percentage("alice", 55)

        assert result.accepted
        assert result.total_percentage == pytest.approx(95.0)

    def test_within_tolerance(self, table: AllocationTable) -> None:
        """Test totals within epsilon of 100 are accepted."""
        aggregator = PortfolioAggregator(table, config={"epsilon": 0.5})
        aggregator.set_portfolio_percentage("alice", 50)

        result = aggregator.set_portfolio_percentage("bob", 50.3)

        assert result.accepted
        assert not result.exceeded
        assert result.total_percentage == pytest.approx(100.3)

        assert not aggregator.set_portfolio_percentage("carol", 1).accepted


class TestPortfolioAssetCap:
    """Test cases for the per-asset cap on the portfolio write path."""

    @pytest.fixture
    def unpriced(self) -> PortfolioAggregator:
        """Aggregator over assets whose prices failed to load."""
        registry = AssetRegistry.from_assets(
            [Asset("ALEO", 1000.0, 0.0), Asset("BTC", 1.0, 0.0)]
        )
        return PortfolioAggregator(AllocationTable(registry))

    def test_zero_prices_reject(self, unpriced: PortfolioAggregator) -> None:
        """Test two 60% edits cannot share assets that read as worthless."""
        ids = ["alice", "bob"]
        assert unpriced.set_portfolio_percentage("alice", 60, ids).accepted

        result = unpriced.set_portfolio_percentage("bob", 60, ids)

        assert not result.accepted
        assert result.exceeded
        assert result.notes == ["exceeds 100% on ALEO, BTC"]
        assert unpriced.table.total_for_asset("BTC") == 60.0
        assert unpriced.validator.validate_all() == {}

    def test_zero_prices_clamp(self, unpriced: PortfolioAggregator) -> None:
        """Test CLAMP writes what is left on every asset."""
        unpriced.set_portfolio_percentage("alice", 60)

        result = unpriced.set_portfolio_percentage(
            "bob", 60, policy=OverAllocationPolicy.CLAMP
        )

        assert result.accepted
        assert result.exceeded
        assert result.applied == 40.0
        assert unpriced.table.total_for_asset("ALEO") == pytest.approx(100.0)
        assert unpriced.table.total_for_asset("BTC") == pytest.approx(100.0)

    def test_per_asset_split_reject(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test a fully allocated asset blocks a portfolio edit that fits overall."""
        table.set("BTC", "alice", 100)

        # alice reads 85.7%, so 14% fits the portfolio total
        result = aggregator.set_portfolio_percentage("bob", 14, ["alice", "bob"])

        assert not result.accepted
        assert result.exceeded
        assert result.notes == ["exceeds 100% on BTC"]
        assert ("BTC", "bob") not in table
        assert ("ALEO", "bob") not in table
        assert table.total_for_asset("BTC") == 100.0

    def test_per_asset_split_warn(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test WARN reports the asset excess without writing."""
        table.set("BTC", "alice", 100)

        result = aggregator.set_portfolio_percentage(
            "bob", 14, ["alice", "bob"], policy=OverAllocationPolicy.WARN
        )

        assert not result.accepted
        assert result.exceeded
        assert table.total_for_asset("BTC") == 100.0

    def test_per_asset_split_clamp(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test CLAMP falls to the smallest per-asset headroom."""
        table.set("BTC", "alice", 100)

        result = aggregator.set_portfolio_percentage(
            "bob", 14, ["alice", "bob"], policy=OverAllocationPolicy.CLAMP
        )

        assert result.accepted
        assert result.exceeded
        assert result.applied == 0.0
        assert result.notes == ["clamped from 14.0 to 0.0"]
        assert table.total_for_asset("BTC") == 100.0
        assert aggregator.validator.is_valid()


class TestConversions:
    """Test cases for amount and USD conversions."""

    def test_percentage_from_amount(self, aggregator: PortfolioAggregator) -> None:
        """Test native units convert to a percentage of the balance."""
        assert aggregator.percentage_from_amount("BTC", 0.25) == pytest.approx(25.0)
        assert aggregator.percentage_from_amount("BTC", -1) == 0.0
        assert aggregator.percentage_from_amount("DOGE", 5) == 0.0

    def test_percentage_from_usd(self, aggregator: PortfolioAggregator) -> None:
        """Test a USD value converts to a percentage of the asset value."""
        assert aggregator.percentage_from_usd("ALEO", 2500) == pytest.approx(25.0)
        assert aggregator.percentage_from_usd("DOGE", 5) == 0.0

    def test_percentage_from_usd_unpriced(self) -> None:
        """Test an unpriced asset converts any USD value to 0."""
        registry = AssetRegistry.from_assets([Asset("ALEO", 1000.0, 0.0)])
        aggregator = PortfolioAggregator(AllocationTable(registry))

        assert aggregator.percentage_from_usd("ALEO", 100) == 0.0

    def test_set_asset_amount(self, table: AllocationTable, aggregator: PortfolioAggregator) -> None:
        """Test allocating native units stores the matching percentage."""
        record = aggregator.set_asset_amount("ALEO", "alice", 250)

        assert table.get("ALEO", "alice") == pytest.approx(25.0)
        assert record.amount == pytest.approx(250.0)

    def test_set_asset_usd_value(
        self, table: AllocationTable, aggregator: PortfolioAggregator
    ) -> None:
        """Test allocating a USD value stores the matching percentage."""
        record = aggregator.set_asset_usd_value("BTC", "alice", 90000)

        assert table.get("BTC", "alice") == 100.0
        assert record.usd_value == pytest.approx(60000.0)
