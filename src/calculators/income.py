"""Income aggregator: sums parsed income records into one breakdown."""

from collections.abc import Sequence
from decimal import Decimal

from src.calculators.money import ZERO, money, or_zero
from src.db.models import DividendRecord, IncomeBreakdown, InterestRecord, WageRecord


def aggregate_income(
    wages: Sequence[WageRecord],
    dividends: Sequence[DividendRecord],
    interest: Sequence[InterestRecord],
    capital_gains: Decimal = ZERO,
    capital_gain_count: int = 0,
) -> IncomeBreakdown:
    """Total every income category for one return.

    Missing amounts count as zero; an empty input yields a zero breakdown.
    Qualified dividends are a subset of ordinary dividends and are reported,
    not added to total income.

    Args:
        wages: W-2 records.
        dividends: 1099-DIV records.
        interest: 1099-INT records.
        capital_gains: Net gain/loss from the capital gains reconciler
            (wash-sale adjusted), not raw broker totals.
        capital_gain_count: Number of reconciled transactions behind
            capital_gains.
    """
    total_wages = sum((or_zero(w.wages) for w in wages), ZERO)
    ordinary = sum((or_zero(d.ordinary_dividends) for d in dividends), ZERO)
    qualified = sum((or_zero(d.qualified_dividends) for d in dividends), ZERO)
    total_interest = sum((or_zero(i.interest_income) for i in interest), ZERO)

    withheld = (
        sum((or_zero(w.federal_withheld) for w in wages), ZERO)
        + sum((or_zero(d.federal_withheld) for d in dividends), ZERO)
        + sum((or_zero(i.federal_withheld) for i in interest), ZERO)
    )

    total_income = total_wages + ordinary + total_interest + capital_gains

    return IncomeBreakdown(
        wages=money(total_wages),
        ordinary_dividends=money(ordinary),
        qualified_dividends=money(qualified),
        interest_income=money(total_interest),
        capital_gains=money(capital_gains),
        total_income=money(total_income),
        federal_withheld=money(withheld),
        wage_count=len(wages),
        dividend_count=len(dividends),
        interest_count=len(interest),
        capital_gain_count=capital_gain_count,
    )
