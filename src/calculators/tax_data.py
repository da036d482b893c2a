"""US tax tables: brackets, standard deductions, credit parameters.

Loaded once from config/tax_years.yaml. A published year is never edited in
place; new years are appended to the YAML and seeded into the database with
scripts/seed_tax_rules.py.
"""

from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple

from config import load_yaml_config
from src.db.models import FilingStatus
from src.errors import InvalidConfiguration

FEDERAL = "federal"


class TaxBracket(NamedTuple):
    """A single income tax bracket covering (lower, upper]."""

    lower: Decimal
    upper: Decimal | None  # None = no cap
    rate: Decimal


class StandardDeduction(NamedTuple):
    amount: Decimal
    additional_blind: Decimal = Decimal("0")
    additional_disabled: Decimal = Decimal("0")


class CreditParameters(NamedTuple):
    """Per-year amounts for dependent deductions and the child tax credit."""

    child_tax_credit: Decimal
    child_age_limit: int
    dependent_deduction: Decimal


class JurisdictionTables(NamedTuple):
    brackets: dict[FilingStatus, tuple[TaxBracket, ...]]
    standard_deductions: dict[FilingStatus, StandardDeduction]


class TaxYearData(NamedTuple):
    """All tax parameters for a single tax year."""

    year: int
    is_active: bool
    filing_deadline: date | None
    credits: CreditParameters
    jurisdictions: dict[str, JurisdictionTables]


class CalculationTables(NamedTuple):
    """Everything one calculation needs for a (year, status, jurisdiction)."""

    year: int
    filing_status: FilingStatus
    jurisdiction: str
    brackets: tuple[TaxBracket, ...]
    standard_deduction: StandardDeduction
    credits: CreditParameters


def validate_brackets(brackets: tuple[TaxBracket, ...], label: str = "") -> None:
    """Check that brackets partition [0, inf): ascending, contiguous, last unbounded.

    Raises:
        InvalidConfiguration: if the table is empty or has a gap, overlap,
            inverted range, negative rate, or a bounded final entry.
    """
    where = f" ({label})" if label else ""
    if not brackets:
        raise InvalidConfiguration(f"Empty bracket table{where}")
    if brackets[0].lower != 0:
        raise InvalidConfiguration(f"First bracket must start at 0{where}")

    for i, bracket in enumerate(brackets):
        if bracket.rate < 0:
            raise InvalidConfiguration(f"Negative rate in bracket {i}{where}")
        is_last = i == len(brackets) - 1
        if bracket.upper is None:
            if not is_last:
                raise InvalidConfiguration(f"Unbounded bracket {i} is not last{where}")
            continue
        if is_last:
            raise InvalidConfiguration(f"Last bracket must be unbounded{where}")
        if bracket.upper <= bracket.lower:
            raise InvalidConfiguration(f"Bracket {i} upper <= lower{where}")
        if brackets[i + 1].lower != bracket.upper:
            raise InvalidConfiguration(
                f"Bracket {i + 1} does not start where bracket {i} ends{where}"
            )


def _dec(value: Any) -> Decimal:
    return Decimal(str(value))


def _parse_jurisdiction(year: int, code: str, raw: dict[str, Any]) -> JurisdictionTables:
    brackets: dict[FilingStatus, tuple[TaxBracket, ...]] = {}
    for status, rows in (raw.get("brackets") or {}).items():
        table = tuple(
            TaxBracket(_dec(lower), _dec(upper) if upper is not None else None, _dec(rate))
            for lower, upper, rate in rows
        )
        validate_brackets(table, f"{year} {code} {status}")
        brackets[FilingStatus(status)] = table

    deductions = {
        FilingStatus(status): StandardDeduction(
            amount=_dec(row["amount"]),
            additional_blind=_dec(row.get("additional_blind", "0")),
            additional_disabled=_dec(row.get("additional_disabled", "0")),
        )
        for status, row in (raw.get("standard_deductions") or {}).items()
    }
    return JurisdictionTables(brackets=brackets, standard_deductions=deductions)


def parse_tax_years(raw: dict[str, Any]) -> dict[int, TaxYearData]:
    """Build TaxYearData records from the YAML structure."""
    years: dict[int, TaxYearData] = {}
    for year_key, data in (raw.get("tax_years") or {}).items():
        year = int(year_key)
        credits = data["credits"]
        deadline = data.get("filing_deadline")
        years[year] = TaxYearData(
            year=year,
            is_active=bool(data.get("is_active", False)),
            filing_deadline=date.fromisoformat(deadline) if deadline else None,
            credits=CreditParameters(
                child_tax_credit=_dec(credits["child_tax_credit"]),
                child_age_limit=int(credits.get("child_age_limit", 17)),
                dependent_deduction=_dec(credits.get("dependent_deduction", "0")),
            ),
            jurisdictions={
                str(code): _parse_jurisdiction(year, str(code), tables)
                for code, tables in (data.get("jurisdictions") or {}).items()
            },
        )
    return years


def load_tax_years(filename: str = "tax_years.yaml") -> tuple[dict[int, TaxYearData], frozenset[str]]:
    """Load tax years and the no-income-tax jurisdiction list from config/."""
    raw = load_yaml_config(filename)
    no_tax = frozenset(str(code).upper() for code in raw.get("no_income_tax_jurisdictions") or [])
    return parse_tax_years(raw), no_tax


TAX_YEARS, NO_INCOME_TAX_JURISDICTIONS = load_tax_years()
