"""Pydantic models for database rows and calculation data structures."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, Field

from src.calculators.money import ZERO, parse_decimal


class FilingStatus(StrEnum):
    SINGLE = "single"
    MARRIED_JOINT = "married_joint"
    MARRIED_SEPARATE = "married_separate"
    HEAD_OF_HOUSEHOLD = "head_of_household"
    QUALIFYING_WIDOW = "qualifying_widow"


# Statuses whose spouse earns the blind/disabled add-ons
MARRIED_STATUSES = frozenset({FilingStatus.MARRIED_JOINT, FilingStatus.MARRIED_SEPARATE})

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y")


def _parse_date(value: Any) -> date | None:
    """Lenient date parsing for broker-supplied dates.

    Values such as "VARIOUS" or "" resolve to None so the entry falls back
    to its stored holding-period flag.
    """
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _flag(value: Any) -> Any:
    return False if value is None else value


Amount = Annotated[Decimal | None, BeforeValidator(parse_decimal)]
LenientDate = Annotated[date | None, BeforeValidator(_parse_date)]
Flag = Annotated[bool, BeforeValidator(_flag)]


# --- Taxpayer profile ---


class Dependent(BaseModel):
    """A dependent listed on the taxpayer profile."""

    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: LenientDate = None
    relationship: str | None = None
    is_qualifying_child: Flag = False
    is_qualifying_relative: Flag = False


class TaxpayerProfile(BaseModel):
    """Filing status, self/spouse flags and dependents for one return."""

    filing_status: FilingStatus
    is_blind: Flag = False
    is_disabled: Flag = False
    is_veteran: Flag = False
    is_spouse_blind: Flag = False
    is_spouse_disabled: Flag = False
    is_spouse_veteran: Flag = False
    state_code: str | None = None
    dependents: list[Dependent] = []


# --- Income records (parsed document data) ---


class WageRecord(BaseModel):
    """W-2 wage statement."""

    id: UUID | None = None
    employer_name: str | None = None
    wages: Amount = None
    federal_withheld: Amount = None


class DividendRecord(BaseModel):
    """1099-DIV dividend statement."""

    id: UUID | None = None
    payer_name: str | None = None
    ordinary_dividends: Amount = None
    qualified_dividends: Amount = None
    federal_withheld: Amount = None


class InterestRecord(BaseModel):
    """1099-INT interest statement."""

    id: UUID | None = None
    payer_name: str | None = None
    interest_income: Amount = None
    federal_withheld: Amount = None


class CapitalGainEntry(BaseModel):
    """A single brokerage sale as reported on a 1099-B."""

    id: UUID | None = None
    description: str | None = None
    date_acquired: LenientDate = None
    date_sold: LenientDate = None
    proceeds: Amount = None
    cost_basis: Amount = None
    wash_sale: Flag = False
    wash_sale_amount: Amount = None
    is_short_term: bool | None = None


class CapitalGainEntryEdit(BaseModel):
    """A user edit to one capital-gain entry; unset fields are left alone."""

    id: UUID
    description: str | None = None
    date_acquired: LenientDate = None
    date_sold: LenientDate = None
    proceeds: Amount = None
    cost_basis: Amount = None
    wash_sale: Flag = False
    wash_sale_amount: Amount = None
    is_short_term: bool | None = None


class IncomeRecords(BaseModel):
    """Every parsed income record for one return."""

    wages: list[WageRecord] = []
    dividends: list[DividendRecord] = []
    interest: list[InterestRecord] = []
    capital_gains: list[dict[str, Any]] = []


# --- Database row models ---


class TaxReturn(BaseModel):
    """A tax return (maps to tax_returns table)."""

    id: UUID
    tax_year: int
    filing_status: FilingStatus
    status: str = "draft"


class TaxYearSummary(BaseModel):
    """A configured tax year (maps to tax_years table)."""

    year: int
    is_active: bool = False
    filing_deadline: date | None = None


# --- Capital gains reconciliation ---


class ReconciledTransaction(BaseModel):
    """A capital-gain entry with wash-sale adjustment and holding-period class."""

    entry_id: UUID | None = None
    position: int
    description: str
    date_acquired: date | None = None
    date_sold: date | None = None
    proceeds: Decimal
    cost_basis: Decimal
    wash_sale: bool = False
    wash_sale_amount: Decimal = ZERO
    adjusted_cost_basis: Decimal
    gain_loss: Decimal
    is_short_term: bool
    classification_source: Literal["dates", "flag", "default"]
    holding_days: int | None = None


class SkippedEntry(BaseModel):
    """An entry left out of reconciliation, with the reason."""

    position: int
    entry_id: str | None = None
    description: str | None = None
    reason: str


class PartitionTotals(BaseModel):
    """Totals for one holding-period partition.

    gain_loss == proceeds - (cost_basis - wash_sale_adjustments).
    """

    proceeds: Decimal = ZERO
    cost_basis: Decimal = ZERO
    wash_sale_adjustments: Decimal = ZERO
    gain_loss: Decimal = ZERO
    count: int = 0


class ScheduleSummary(BaseModel):
    """Schedule D style short/long-term totals."""

    short_term: PartitionTotals = Field(default_factory=PartitionTotals)
    long_term: PartitionTotals = Field(default_factory=PartitionTotals)
    total_gain_loss: Decimal = ZERO


class ScheduleResult(BaseModel):
    """Response from a capital-gains schedule recompute.

    A recompute replaces every previously generated transaction and the
    summary for the return; edits made directly to generated records are lost.
    """

    return_id: UUID | None = None
    summary: ScheduleSummary
    transactions: list[ReconciledTransaction]
    skipped_entries: list[SkippedEntry] = []
    warnings: list[str] = []
    replaces_previous: bool = True


# --- Computed return ---


class IncomeBreakdown(BaseModel):
    wages: Decimal = ZERO
    ordinary_dividends: Decimal = ZERO
    qualified_dividends: Decimal = ZERO
    interest_income: Decimal = ZERO
    capital_gains: Decimal = ZERO
    total_income: Decimal = ZERO
    federal_withheld: Decimal = ZERO
    wage_count: int = 0
    dividend_count: int = 0
    interest_count: int = 0
    capital_gain_count: int = 0


class DeductionResult(BaseModel):
    """Resolved standard deduction, dependent deduction and credits."""

    base_standard_deduction: Decimal
    additional_amounts: Decimal = ZERO
    standard_deduction: Decimal
    qualifying_dependents: int = 0
    dependent_deduction: Decimal = ZERO
    total_deductions: Decimal
    qualifying_children: int = 0
    child_tax_credit: Decimal = ZERO
    notes: list[str] = []


class StateTaxResult(BaseModel):
    jurisdiction: str
    standard_deduction: Decimal = ZERO
    taxable_income: Decimal = ZERO
    tax: Decimal = ZERO


class ComputedReturnSnapshot(BaseModel):
    """Full result of one return calculation; replaced wholesale on recompute."""

    return_id: UUID | None = None
    tax_year: int
    filing_status: FilingStatus
    filing_status_fallback: bool = False
    income: IncomeBreakdown
    deductions: DeductionResult
    total_income: Decimal
    total_deductions: Decimal
    taxable_income: Decimal
    tax: Decimal
    credits: Decimal
    tax_after_credits: Decimal
    withheld: Decimal
    refund_or_owed: Decimal
    effective_rate: Decimal
    marginal_rate: Decimal
    state: StateTaxResult | None = None
    skipped_entries: list[SkippedEntry] = []
    warnings: list[str] = []
    inputs_digest: str
