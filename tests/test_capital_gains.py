"""Tests for the capital gains reconciler."""

from decimal import Decimal
from typing import Any
from uuid import uuid4

import pytest

from src.calculators.capital_gains import classify, reconcile_entries, reconcile_entry, summarize
from src.db.models import CapitalGainEntry
from src.errors import InvalidTransaction, NoTransactions


def _entry(**overrides: Any) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": uuid4(),
        "description": "100 sh ACME",
        "date_acquired": "2023-01-01",
        "date_sold": "2023-06-01",
        "proceeds": "10000.00",
        "cost_basis": "8000.00",
        "wash_sale": False,
        "wash_sale_amount": None,
        "is_short_term": None,
    }
    entry.update(overrides)
    return entry


class TestWashSale:
    def test_adjusts_cost_basis(self) -> None:
        """proceeds 10000, cost 8000, wash sale 500 -> adjusted 7500, gain 2500."""
        entry = CapitalGainEntry.model_validate(_entry(wash_sale=True, wash_sale_amount="500"))
        txn, warnings = reconcile_entry(entry, 0)
        assert txn.adjusted_cost_basis == Decimal("7500.00")
        assert txn.gain_loss == Decimal("2500.00")
        assert warnings == []

    def test_amount_ignored_without_flag(self) -> None:
        entry = CapitalGainEntry.model_validate(_entry(wash_sale=False, wash_sale_amount="500"))
        txn, warnings = reconcile_entry(entry, 0)
        assert txn.adjusted_cost_basis == Decimal("8000.00")
        assert txn.gain_loss == Decimal("2000.00")
        assert len(warnings) == 1
        assert "ignored" in warnings[0]

    def test_amount_exceeding_cost_warns(self) -> None:
        entry = CapitalGainEntry.model_validate(
            _entry(wash_sale=True, wash_sale_amount="9000")
        )
        txn, warnings = reconcile_entry(entry, 0)
        assert txn.adjusted_cost_basis == Decimal("-1000.00")
        assert any("exceeds cost basis" in w for w in warnings)

    def test_null_flag_means_no_wash_sale(self) -> None:
        entry = CapitalGainEntry.model_validate(_entry(wash_sale=None))
        assert entry.wash_sale is False


class TestClassification:
    def test_short_term_by_dates(self) -> None:
        entry = CapitalGainEntry.model_validate(_entry())
        assert classify(entry) == (True, "dates", 151)

    def test_long_term_by_dates(self) -> None:
        entry = CapitalGainEntry.model_validate(_entry(date_acquired="2022-01-01"))
        assert classify(entry) == (False, "dates", 516)

    def test_365_days_is_short_term(self) -> None:
        entry = CapitalGainEntry.model_validate(_entry(date_sold="2024-01-01"))
        assert classify(entry) == (True, "dates", 365)

    def test_366_days_is_long_term(self) -> None:
        entry = CapitalGainEntry.model_validate(_entry(date_sold="2024-01-02"))
        assert classify(entry) == (False, "dates", 366)

    def test_flag_used_without_dates(self) -> None:
        entry = CapitalGainEntry.model_validate(
            _entry(date_acquired="VARIOUS", is_short_term=False)
        )
        assert classify(entry) == (False, "flag", None)

    def test_default_short_term(self) -> None:
        entry = CapitalGainEntry.model_validate(_entry(date_acquired=None, date_sold=None))
        assert classify(entry) == (True, "default", None)

    def test_dates_win_over_flag(self) -> None:
        entry = CapitalGainEntry.model_validate(
            _entry(date_acquired="2022-01-01", is_short_term=True)
        )
        txn, warnings = reconcile_entry(entry, 0)
        assert txn.is_short_term is False
        assert txn.classification_source == "dates"
        assert any("disagrees" in w for w in warnings)

    def test_sold_before_acquired_warns(self) -> None:
        entry = CapitalGainEntry.model_validate(
            _entry(date_acquired="2023-06-01", date_sold="2023-01-01")
        )
        _, warnings = reconcile_entry(entry, 0)
        assert any("sold before acquired" in w for w in warnings)


class TestReconcileEntries:
    def test_empty_raises_no_transactions(self) -> None:
        with pytest.raises(NoTransactions):
            reconcile_entries([])

    def test_partition_totals(self) -> None:
        entries = [
            _entry(wash_sale=True, wash_sale_amount="500"),
            _entry(date_acquired="2020-03-01", proceeds="5000", cost_basis="6500"),
            _entry(date_acquired=None, date_sold=None, proceeds="1200", cost_basis="1000"),
        ]
        result = reconcile_entries(entries)

        short, long = result.summary.short_term, result.summary.long_term
        assert short.count == 2
        assert short.proceeds == Decimal("11200.00")
        assert short.cost_basis == Decimal("9000.00")
        assert short.wash_sale_adjustments == Decimal("500.00")
        assert short.gain_loss == Decimal("2700.00")
        assert long.count == 1
        assert long.gain_loss == Decimal("-1500.00")
        assert result.summary.total_gain_loss == short.gain_loss + long.gain_loss
        assert result.replaces_previous is True

    def test_gain_identity_per_partition(self) -> None:
        result = reconcile_entries([_entry(wash_sale=True, wash_sale_amount="250")])
        short = result.summary.short_term
        assert short.gain_loss == short.proceeds - (short.cost_basis - short.wash_sale_adjustments)

    def test_invalid_entry_skipped_and_reported(self) -> None:
        bad = _entry(proceeds="N/A", description="Bad row")
        result = reconcile_entries([bad, _entry()])

        assert len(result.transactions) == 1
        assert result.transactions[0].position == 1
        assert len(result.skipped_entries) == 1
        skipped = result.skipped_entries[0]
        assert skipped.position == 0
        assert skipped.entry_id == str(bad["id"])
        assert skipped.description == "Bad row"
        assert "proceeds" in skipped.reason

    def test_all_invalid_raises(self) -> None:
        with pytest.raises(InvalidTransaction) as exc_info:
            reconcile_entries([_entry(cost_basis="abc"), _entry(wash_sale_amount="x")])
        assert len(exc_info.value.details["skipped"]) == 2

    def test_missing_amounts_count_as_zero(self) -> None:
        result = reconcile_entries([_entry(proceeds=None, cost_basis="100", description=None)])
        txn = result.transactions[0]
        assert txn.gain_loss == Decimal("-100.00")
        assert txn.description == "Securities"

    def test_accepts_validated_entries(self) -> None:
        entry = CapitalGainEntry.model_validate(_entry())
        result = reconcile_entries([entry])
        assert result.summary.total_gain_loss == Decimal("2000.00")

    def test_summarize_empty(self) -> None:
        summary = summarize([])
        assert summary.total_gain_loss == 0
        assert summary.short_term.count == 0

    def test_sub_cent_amounts_rounded_per_row(self) -> None:
        """Rows are in cents, so their sum is the summary total."""
        entries = [
            _entry(proceeds="100.005", cost_basis="0"),
            _entry(proceeds="100.005", cost_basis="50.004", wash_sale=True, wash_sale_amount="0.005"),
        ]
        result = reconcile_entries(entries)

        first, second = result.transactions
        assert first.proceeds == Decimal("100.01")
        assert second.cost_basis == Decimal("50.00")
        assert second.wash_sale_amount == Decimal("0.01")
        assert second.adjusted_cost_basis == Decimal("49.99")
        assert second.gain_loss == Decimal("50.02")
        assert result.summary.short_term.proceeds == Decimal("200.02")
        assert result.summary.total_gain_loss == sum(t.gain_loss for t in result.transactions)
        assert result.summary.total_gain_loss == Decimal("150.03")
