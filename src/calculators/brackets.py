"""Progressive bracket tax calculator.

Brackets cover (lower, upper]: income exactly equal to a bracket's upper
bound is taxed entirely inside that bracket.
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from src.calculators.money import ZERO, money
from src.calculators.tax_data import TaxBracket


def calculate_bracket_tax(taxable_income: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
    """Tax owed on taxable_income, rounded half-up to cents.

    Args:
        taxable_income: Income after deductions (must be >= 0).
        brackets: Ordered brackets partitioning [0, inf).

    Raises:
        ValueError: if taxable_income is negative.
    """
    if taxable_income < 0:
        raise ValueError("Taxable income must be non-negative.")

    total = ZERO
    for bracket in brackets:
        if taxable_income > bracket.lower:
            upper = taxable_income if bracket.upper is None else min(taxable_income, bracket.upper)
            total += (upper - bracket.lower) * bracket.rate
        if bracket.upper is None or taxable_income <= bracket.upper:
            break
    return money(total)


def marginal_rate(taxable_income: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
    """Rate of the bracket that contains taxable_income (first bracket at 0)."""
    for bracket in brackets:
        if bracket.upper is None or taxable_income <= bracket.upper:
            return bracket.rate
    return brackets[-1].rate if brackets else ZERO


def bracket_breakdown(taxable_income: Decimal, brackets: Sequence[TaxBracket]) -> dict[str, Any]:
    """Per-bracket breakdown of the tax on taxable_income.

    Returns:
        Dict with total_tax, effective_rate (percent), marginal_rate and
        breakdown rows (lower, upper, rate, taxable_amount, tax).
    """
    if taxable_income < 0:
        raise ValueError("Taxable income must be non-negative.")

    breakdown: list[dict[str, Any]] = []
    for bracket in brackets:
        if taxable_income <= bracket.lower:
            break
        upper = taxable_income if bracket.upper is None else min(taxable_income, bracket.upper)
        taxable = upper - bracket.lower
        breakdown.append({
            "lower": bracket.lower,
            "upper": bracket.upper,
            "rate": bracket.rate,
            "taxable_amount": taxable,
            "tax": money(taxable * bracket.rate),
        })

    total_tax = calculate_bracket_tax(taxable_income, brackets)
    effective_rate = (
        (total_tax / taxable_income * 100).quantize(Decimal("0.01"))
        if taxable_income > 0 else ZERO
    )
    return {
        "taxable_income": taxable_income,
        "total_tax": total_tax,
        "effective_rate": effective_rate,
        "marginal_rate": marginal_rate(taxable_income, brackets),
        "breakdown": breakdown,
    }
