"""Tax configuration store: brackets, standard deductions and credits by year.

Two interchangeable stores:
  - PgTaxConfigStore reads the tax_years / tax_brackets / standard_deductions
    tables on every call (no caching across tax-year switches).
  - StaticTaxConfigStore serves the tables loaded from config/tax_years.yaml.
"""

import logging
from decimal import Decimal

import asyncpg

from src.calculators.tax_data import (
    FEDERAL,
    NO_INCOME_TAX_JURISDICTIONS,
    TAX_YEARS,
    CalculationTables,
    CreditParameters,
    StandardDeduction,
    TaxBracket,
    TaxYearData,
    validate_brackets,
)
from src.db.models import FilingStatus, TaxYearSummary
from src.errors import ConfigurationMissing, PersistenceFailure

logger = logging.getLogger(__name__)


def _normalise_jurisdiction(jurisdiction: str | None) -> str:
    if not jurisdiction or jurisdiction.lower() == FEDERAL:
        return FEDERAL
    return jurisdiction.upper()


class StaticTaxConfigStore:
    """In-memory store over the YAML-loaded tax tables."""

    def __init__(
        self,
        tax_years: dict[int, TaxYearData] | None = None,
        no_income_tax: frozenset[str] | None = None,
    ) -> None:
        self._years = TAX_YEARS if tax_years is None else tax_years
        self._no_income_tax = NO_INCOME_TAX_JURISDICTIONS if no_income_tax is None else no_income_tax

    def _year(self, year: int) -> TaxYearData:
        if year not in self._years:
            available = ", ".join(str(y) for y in sorted(self._years))
            raise ConfigurationMissing(
                f"Tax year {year} not found. Available: {available}", tax_year=year
            )
        return self._years[year]

    async def list_tax_years(self) -> list[TaxYearSummary]:
        return [
            TaxYearSummary(year=y.year, is_active=y.is_active, filing_deadline=y.filing_deadline)
            for y in sorted(self._years.values(), key=lambda y: y.year, reverse=True)
        ]

    async def get_active_tax_year(self) -> TaxYearSummary | None:
        active = [y for y in await self.list_tax_years() if y.is_active]
        return active[0] if active else None

    async def get_brackets(
        self, year: int, filing_status: FilingStatus, jurisdiction: str = FEDERAL
    ) -> tuple[TaxBracket, ...]:
        code = _normalise_jurisdiction(jurisdiction)
        tables = self._year(year).jurisdictions.get(code)
        brackets = tables.brackets.get(filing_status) if tables else None
        if not brackets:
            raise ConfigurationMissing(
                f"No {code} tax brackets for {year} / {filing_status.value}",
                tax_year=year, filing_status=filing_status.value, jurisdiction=code,
            )
        return brackets

    async def get_standard_deduction(
        self, year: int, filing_status: FilingStatus, jurisdiction: str = FEDERAL
    ) -> StandardDeduction:
        code = _normalise_jurisdiction(jurisdiction)
        tables = self._year(year).jurisdictions.get(code)
        deduction = tables.standard_deductions.get(filing_status) if tables else None
        if deduction is None:
            raise ConfigurationMissing(
                f"No {code} standard deduction for {year} / {filing_status.value}",
                tax_year=year, filing_status=filing_status.value, jurisdiction=code,
            )
        return deduction

    async def get_credit_parameters(self, year: int) -> CreditParameters:
        return self._year(year).credits

    async def load_calculation_tables(
        self, year: int, filing_status: FilingStatus, jurisdiction: str = FEDERAL
    ) -> CalculationTables:
        return CalculationTables(
            year=year,
            filing_status=filing_status,
            jurisdiction=_normalise_jurisdiction(jurisdiction),
            brackets=await self.get_brackets(year, filing_status, jurisdiction),
            standard_deduction=await self.get_standard_deduction(year, filing_status, jurisdiction),
            credits=await self.get_credit_parameters(year),
        )

    def is_no_income_tax_jurisdiction(self, jurisdiction: str) -> bool:
        return _normalise_jurisdiction(jurisdiction) in self._no_income_tax


class PgTaxConfigStore:
    """Tax tables read from PostgreSQL through an asyncpg pool."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        no_income_tax: frozenset[str] | None = None,
    ) -> None:
        self._pool = pool
        self._no_income_tax = NO_INCOME_TAX_JURISDICTIONS if no_income_tax is None else no_income_tax

    async def _fetch(self, sql: str, *args: object) -> list[asyncpg.Record]:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetch(sql, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            logger.exception("Tax configuration query failed")
            raise PersistenceFailure(f"Tax configuration lookup failed: {exc}") from exc

    async def list_tax_years(self) -> list[TaxYearSummary]:
        rows = await self._fetch(
            "SELECT year, is_active, filing_deadline FROM tax_years ORDER BY year DESC"
        )
        return [
            TaxYearSummary(
                year=r["year"], is_active=r["is_active"], filing_deadline=r["filing_deadline"]
            )
            for r in rows
        ]

    async def get_active_tax_year(self) -> TaxYearSummary | None:
        active = [y for y in await self.list_tax_years() if y.is_active]
        return active[0] if active else None

    async def get_brackets(
        self, year: int, filing_status: FilingStatus, jurisdiction: str = FEDERAL
    ) -> tuple[TaxBracket, ...]:
        code = _normalise_jurisdiction(jurisdiction)
        rows = await self._fetch(
            """
            SELECT b.lower_bound, b.upper_bound, b.rate
            FROM tax_brackets b
            JOIN tax_years y ON y.id = b.tax_year_id
            WHERE y.year = $1 AND b.filing_status = $2 AND b.jurisdiction = $3
            ORDER BY b.sort_order
            """,
            year,
            filing_status.value,
            code,
        )
        if not rows:
            raise ConfigurationMissing(
                f"No {code} tax brackets for {year} / {filing_status.value}",
                tax_year=year, filing_status=filing_status.value, jurisdiction=code,
            )
        brackets = tuple(
            TaxBracket(
                Decimal(r["lower_bound"]),
                Decimal(r["upper_bound"]) if r["upper_bound"] is not None else None,
                Decimal(r["rate"]),
            )
            for r in rows
        )
        validate_brackets(brackets, f"{year} {code} {filing_status.value}")
        return brackets

    async def get_standard_deduction(
        self, year: int, filing_status: FilingStatus, jurisdiction: str = FEDERAL
    ) -> StandardDeduction:
        code = _normalise_jurisdiction(jurisdiction)
        rows = await self._fetch(
            """
            SELECT d.amount, d.additional_blind_amount, d.additional_disabled_amount
            FROM standard_deductions d
            JOIN tax_years y ON y.id = d.tax_year_id
            WHERE y.year = $1 AND d.filing_status = $2 AND d.jurisdiction = $3
            LIMIT 1
            """,
            year,
            filing_status.value,
            code,
        )
        if not rows:
            raise ConfigurationMissing(
                f"No {code} standard deduction for {year} / {filing_status.value}",
                tax_year=year, filing_status=filing_status.value, jurisdiction=code,
            )
        row = rows[0]
        return StandardDeduction(
            amount=Decimal(row["amount"]),
            additional_blind=Decimal(row["additional_blind_amount"] or 0),
            additional_disabled=Decimal(row["additional_disabled_amount"] or 0),
        )

    async def get_credit_parameters(self, year: int) -> CreditParameters:
        rows = await self._fetch(
            """
            SELECT child_tax_credit, child_age_limit, dependent_deduction
            FROM tax_years WHERE year = $1
            """,
            year,
        )
        if not rows:
            raise ConfigurationMissing(f"Tax year {year} not found", tax_year=year)
        row = rows[0]
        return CreditParameters(
            child_tax_credit=Decimal(row["child_tax_credit"]),
            child_age_limit=row["child_age_limit"],
            dependent_deduction=Decimal(row["dependent_deduction"]),
        )

    async def load_calculation_tables(
        self, year: int, filing_status: FilingStatus, jurisdiction: str = FEDERAL
    ) -> CalculationTables:
        # Credits first so an unknown year reports as a missing year
        credits = await self.get_credit_parameters(year)
        return CalculationTables(
            year=year,
            filing_status=filing_status,
            jurisdiction=_normalise_jurisdiction(jurisdiction),
            brackets=await self.get_brackets(year, filing_status, jurisdiction),
            standard_deduction=await self.get_standard_deduction(year, filing_status, jurisdiction),
            credits=credits,
        )

    def is_no_income_tax_jurisdiction(self, jurisdiction: str) -> bool:
        return _normalise_jurisdiction(jurisdiction) in self._no_income_tax
