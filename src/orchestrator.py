"""Return calculation orchestrator and capital-gains schedule service.

compute_snapshot() is the pure core: given a profile, tax tables and income
records it always yields the same snapshot. ReturnOrchestrator loads those
inputs, computes, and replaces the stored snapshot. ScheduleService owns the
persisted Schedule D style records.
"""

import hashlib
import json
import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any, NamedTuple
from uuid import UUID

from config.settings import Settings
from src.calculators.brackets import calculate_bracket_tax, marginal_rate
from src.calculators.capital_gains import reconcile_entries
from src.calculators.deductions import DeductionCreditResolver
from src.calculators.income import aggregate_income
from src.calculators.money import ZERO, money
from src.calculators.tax_data import FEDERAL, CalculationTables, StandardDeduction, TaxBracket
from src.db.models import (
    CapitalGainEntryEdit,
    ComputedReturnSnapshot,
    FilingStatus,
    IncomeRecords,
    ScheduleResult,
    SkippedEntry,
    StateTaxResult,
    TaxpayerProfile,
)
from src.db.returns import ReturnRepository
from src.db.tax_config import PgTaxConfigStore, StaticTaxConfigStore
from src.errors import ConfigurationMissing, InvalidTransaction

logger = logging.getLogger(__name__)

TaxConfigStore = PgTaxConfigStore | StaticTaxConfigStore


class StateTables(NamedTuple):
    """State tables for one calculation; empty brackets mean no income tax."""

    jurisdiction: str
    brackets: tuple[TaxBracket, ...]
    standard_deduction: StandardDeduction | None


async def load_state_tables(
    store: TaxConfigStore, year: int, filing_status: FilingStatus, jurisdiction: str
) -> StateTables:
    """State brackets and deduction; no-income-tax states need no tables."""
    code = jurisdiction.upper()
    if store.is_no_income_tax_jurisdiction(code):
        return StateTables(code, (), None)
    return StateTables(
        code,
        await store.get_brackets(year, filing_status, code),
        await store.get_standard_deduction(year, filing_status, code),
    )


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def inputs_digest(
    profile: TaxpayerProfile,
    tables: CalculationTables,
    records: IncomeRecords,
    state: StateTables | None = None,
) -> str:
    """SHA-256 over every input that can change the computed return."""
    payload = {
        "profile": profile.model_dump(mode="json"),
        "year": tables.year,
        "filing_status": tables.filing_status.value,
        "brackets": [list(b) for b in tables.brackets],
        "standard_deduction": list(tables.standard_deduction),
        "credits": list(tables.credits),
        "records": records.model_dump(mode="json"),
        "state": None if state is None else {
            "jurisdiction": state.jurisdiction,
            "brackets": [list(b) for b in state.brackets],
            "standard_deduction": (
                list(state.standard_deduction) if state.standard_deduction else None
            ),
        },
    }
    return hashlib.sha256(_canonical(payload).encode()).hexdigest()


def _reconcile_for_income(
    entries: Sequence[Mapping[str, Any]],
) -> tuple[Decimal, int, list[SkippedEntry], list[str]]:
    """Net capital gain for the income aggregator.

    No entries contribute zero. When every entry is invalid the return is
    still computed with zero gains and the skipped entries are reported.
    """
    if not entries:
        return ZERO, 0, [], []
    try:
        result = reconcile_entries(entries)
    except InvalidTransaction as exc:
        skipped = [SkippedEntry.model_validate(s) for s in exc.details.get("skipped", [])]
        return ZERO, 0, skipped, ["No valid capital gain/loss transactions; capital gains taken as 0"]
    return (
        result.summary.total_gain_loss,
        len(result.transactions),
        result.skipped_entries,
        result.warnings,
    )


def _state_tax(state: StateTables, total_income: Decimal) -> StateTaxResult:
    if not state.brackets or state.standard_deduction is None:
        return StateTaxResult(jurisdiction=state.jurisdiction)
    deduction = money(state.standard_deduction.amount)
    taxable = max(ZERO, total_income - deduction)
    return StateTaxResult(
        jurisdiction=state.jurisdiction,
        standard_deduction=deduction,
        taxable_income=taxable,
        tax=calculate_bracket_tax(taxable, state.brackets),
    )


def compute_snapshot(
    profile: TaxpayerProfile,
    tables: CalculationTables,
    records: IncomeRecords,
    *,
    return_id: UUID | None = None,
    filing_status_fallback: bool = False,
    state: StateTables | None = None,
) -> ComputedReturnSnapshot:
    """Compute a full return from already-loaded inputs.

    Args:
        profile: Taxpayer profile; its filing status must match tables.
        tables: Federal brackets, standard deduction and credit parameters.
        records: Income records, capital-gain entries still raw.
        return_id: Stored on the snapshot for persistence.
        filing_status_fallback: Whether tables were loaded for a fallback status.
        state: Optional state tables; state tax is reported, not netted
            against federal withholding.
    """
    gains, gain_count, skipped, warnings = _reconcile_for_income(records.capital_gains)
    income = aggregate_income(
        records.wages, records.dividends, records.interest, gains, gain_count
    )

    resolver = DeductionCreditResolver(tables.credits)
    deductions = resolver.resolve(profile, tables.standard_deduction, tables.year)

    taxable_income = max(ZERO, income.total_income - deductions.total_deductions)
    tax = calculate_bracket_tax(taxable_income, tables.brackets)
    credits = deductions.child_tax_credit
    tax_after_credits = max(ZERO, tax - credits)
    refund_or_owed = income.federal_withheld - tax_after_credits

    effective_rate = (
        (tax_after_credits / income.total_income * 100).quantize(Decimal("0.01"))
        if income.total_income > 0 else ZERO
    )

    return ComputedReturnSnapshot(
        return_id=return_id,
        tax_year=tables.year,
        filing_status=tables.filing_status,
        filing_status_fallback=filing_status_fallback,
        income=income,
        deductions=deductions,
        total_income=income.total_income,
        total_deductions=deductions.total_deductions,
        taxable_income=taxable_income,
        tax=tax,
        credits=credits,
        tax_after_credits=tax_after_credits,
        withheld=income.federal_withheld,
        refund_or_owed=refund_or_owed,
        effective_rate=effective_rate,
        marginal_rate=marginal_rate(taxable_income, tables.brackets),
        state=_state_tax(state, income.total_income) if state else None,
        skipped_entries=skipped,
        warnings=warnings + deductions.notes,
        inputs_digest=inputs_digest(profile, tables, records, state),
    )


class ReturnOrchestrator:
    """Loads a return's inputs, computes it and stores the snapshot."""

    def __init__(
        self,
        config_store: TaxConfigStore,
        repository: ReturnRepository,
        settings: Settings,
    ) -> None:
        self._store = config_store
        self._repository = repository
        self._settings = settings

    async def _load_tables(
        self, year: int, filing_status: FilingStatus
    ) -> tuple[CalculationTables, bool]:
        """Federal tables for the status, or the configured fallback status."""
        try:
            return await self._store.load_calculation_tables(year, filing_status), False
        except ConfigurationMissing:
            fallback = self._settings.fallback_filing_status
            if not fallback or fallback == filing_status.value:
                raise
            logger.warning(
                "No %s tables for %s; falling back to filing status %s",
                year, filing_status.value, fallback,
            )
            tables = await self._store.load_calculation_tables(year, FilingStatus(fallback))
            return tables, True

    async def calculate_return(
        self,
        return_id: UUID,
        filing_status: FilingStatus | None = None,
        tax_year: int | None = None,
        jurisdiction: str | None = None,
    ) -> ComputedReturnSnapshot:
        """Compute a return and replace its stored snapshot.

        Filing status resolves request override, then profile, then the
        return row. Any configuration or persistence failure aborts the
        calculation before anything is written.
        """
        tax_return = await self._repository.get_tax_return(return_id)
        profile = await self._repository.get_profile(return_id)
        if profile is None:
            profile = TaxpayerProfile(filing_status=tax_return.filing_status)
        if filing_status is not None:
            profile = profile.model_copy(update={"filing_status": filing_status})

        year = tax_year or tax_return.tax_year
        tables, used_fallback = await self._load_tables(year, profile.filing_status)
        if used_fallback:
            profile = profile.model_copy(update={"filing_status": tables.filing_status})

        state = (
            await load_state_tables(self._store, year, tables.filing_status, jurisdiction)
            if jurisdiction and jurisdiction.lower() != FEDERAL else None
        )
        records = await self._repository.load_income_records(return_id)

        snapshot = compute_snapshot(
            profile,
            tables,
            records,
            return_id=return_id,
            filing_status_fallback=used_fallback,
            state=state,
        )
        await self._repository.replace_snapshot(return_id, snapshot)

        logger.info(
            "Calculated return %s (%d %s): taxable=%s tax=%s refund_or_owed=%s",
            return_id,
            year,
            snapshot.filing_status.value,
            snapshot.taxable_income,
            snapshot.tax_after_credits,
            snapshot.refund_or_owed,
        )
        return snapshot


class ScheduleService:
    """Recomputes and serves the stored capital-gains schedule."""

    def __init__(self, repository: ReturnRepository) -> None:
        self._repository = repository

    async def recalculate(self, return_id: UUID) -> ScheduleResult:
        """Reconcile every entry and replace the stored schedule.

        Raises:
            NoTransactions: the return has no entries; nothing is deleted.
            InvalidTransaction: no entry could be reconciled; the stored
                schedule is left in place and reported as stale.
        """
        await self._repository.get_tax_return(return_id)
        entries = await self._repository.list_capital_gain_entries(return_id)
        try:
            result = reconcile_entries(entries)
        except InvalidTransaction as exc:
            logger.warning("Schedule for return %s not replaced: %s", return_id, exc.message)
            raise InvalidTransaction(
                f"{exc.message}; the stored schedule was not replaced and no longer "
                "matches the capital gain entries",
                stale_schedule=True,
                **exc.details,
            ) from exc
        result = result.model_copy(update={"return_id": return_id})
        await self._repository.replace_schedule(return_id, result)
        return result

    async def get(self, return_id: UUID) -> ScheduleResult | None:
        await self._repository.get_tax_return(return_id)
        return await self._repository.get_schedule(return_id)

    async def edit_entries(self, return_id: UUID, edits: list[CapitalGainEntryEdit]) -> int:
        await self._repository.get_tax_return(return_id)
        return await self._repository.update_capital_gain_entries(return_id, edits)
