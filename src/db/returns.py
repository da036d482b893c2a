"""Tax return persistence: profiles, income records, schedules and snapshots.

Generated data (reconciled transactions, schedule summary, computed snapshot)
is only ever replaced wholesale, each replacement inside one transaction so
readers never see a half-written schedule or a mixed snapshot.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

import asyncpg

from src.db.models import (
    CapitalGainEntryEdit,
    ComputedReturnSnapshot,
    DividendRecord,
    IncomeRecords,
    InterestRecord,
    ReconciledTransaction,
    ScheduleResult,
    ScheduleSummary,
    SkippedEntry,
    TaxpayerProfile,
    TaxReturn,
    WageRecord,
)
from src.errors import InvalidTransaction, PersistenceFailure, ReturnNotFound

logger = logging.getLogger(__name__)

_EDITABLE_ENTRY_COLUMNS = (
    "description",
    "date_acquired",
    "date_sold",
    "proceeds",
    "cost_basis",
    "wash_sale",
    "wash_sale_amount",
    "is_short_term",
)


@asynccontextmanager
async def _db_errors(action: str) -> AsyncIterator[None]:
    """Translate driver failures into PersistenceFailure."""
    try:
        yield
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        logger.exception("Database error while %s", action)
        raise PersistenceFailure(f"Database error while {action}: {exc}") from exc


def _json(value: Any) -> Any:
    """asyncpg returns jsonb as text unless a codec is registered."""
    return json.loads(value) if isinstance(value, str) else value


def _entry_column_value(value: Any) -> Any:
    """Capital-gain entry amounts and dates are stored as text."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


class ReturnRepository:
    """Reads and replaces per-return data through an asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get_tax_return(self, return_id: UUID) -> TaxReturn:
        async with _db_errors("loading tax return"), self._pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, tax_year, filing_status, status FROM tax_returns WHERE id = $1",
                return_id,
            )
        if row is None:
            raise ReturnNotFound(f"No tax return found: {return_id}", return_id=str(return_id))
        return TaxReturn.model_validate(dict(row))

    async def get_profile(self, return_id: UUID) -> TaxpayerProfile | None:
        async with _db_errors("loading taxpayer profile"), self._pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT filing_status, is_blind, is_disabled, is_veteran,
                       is_spouse_blind, is_spouse_disabled, is_spouse_veteran,
                       state_code, dependents
                FROM taxpayer_profiles WHERE tax_return_id = $1
                """,
                return_id,
            )
        if row is None:
            return None
        data = dict(row)
        data["dependents"] = _json(data["dependents"]) or []
        return TaxpayerProfile.model_validate(data)

    async def load_income_records(self, return_id: UUID) -> IncomeRecords:
        """Read every income record for a return from one consistent snapshot."""
        async with _db_errors("loading income records"), self._pool.acquire() as conn:
            async with conn.transaction(isolation="repeatable_read", readonly=True):
                wages = await conn.fetch(
                    """
                    SELECT id, employer_name, wages, federal_withheld
                    FROM wage_records WHERE tax_return_id = $1 ORDER BY created_at, id
                    """,
                    return_id,
                )
                dividends = await conn.fetch(
                    """
                    SELECT id, payer_name, ordinary_dividends, qualified_dividends,
                           federal_withheld
                    FROM dividend_records WHERE tax_return_id = $1 ORDER BY created_at, id
                    """,
                    return_id,
                )
                interest = await conn.fetch(
                    """
                    SELECT id, payer_name, interest_income, federal_withheld
                    FROM interest_records WHERE tax_return_id = $1 ORDER BY created_at, id
                    """,
                    return_id,
                )
                entries = await self._fetch_entries(conn, return_id)

        return IncomeRecords(
            wages=[WageRecord.model_validate(dict(r)) for r in wages],
            dividends=[DividendRecord.model_validate(dict(r)) for r in dividends],
            interest=[InterestRecord.model_validate(dict(r)) for r in interest],
            capital_gains=entries,
        )

    async def list_capital_gain_entries(self, return_id: UUID) -> list[dict[str, Any]]:
        """Raw capital-gain entries in entry order (unvalidated)."""
        async with _db_errors("loading capital gain entries"), self._pool.acquire() as conn:
            return await self._fetch_entries(conn, return_id)

    @staticmethod
    async def _fetch_entries(conn: asyncpg.Connection, return_id: UUID) -> list[dict[str, Any]]:
        rows = await conn.fetch(
            """
            SELECT id, description, date_acquired, date_sold, proceeds, cost_basis,
                   wash_sale, wash_sale_amount, is_short_term
            FROM capital_gain_entries
            WHERE tax_return_id = $1
            ORDER BY sort_order, created_at, id
            """,
            return_id,
        )
        return [dict(r) for r in rows]

    async def update_capital_gain_entries(
        self, return_id: UUID, edits: list[CapitalGainEntryEdit]
    ) -> int:
        """Apply a batch of entry edits atomically.

        Raises:
            InvalidTransaction: if any edit names an entry that does not belong
                to the return; no edit in the batch is applied.
        """
        async with _db_errors("updating capital gain entries"), self._pool.acquire() as conn:
            async with conn.transaction():
                for edit in edits:
                    columns = [c for c in _EDITABLE_ENTRY_COLUMNS if c in edit.model_fields_set]
                    if not columns:
                        continue
                    assignments = ", ".join(f"{c} = ${i + 3}" for i, c in enumerate(columns))
                    values = [_entry_column_value(getattr(edit, c)) for c in columns]
                    result = await conn.execute(
                        f"""
                        UPDATE capital_gain_entries
                        SET {assignments}, updated_at = NOW()
                        WHERE id = $1 AND tax_return_id = $2
                        """,
                        edit.id,
                        return_id,
                        *values,
                    )
                    if result != "UPDATE 1":
                        raise InvalidTransaction(
                            f"Capital gain entry {edit.id} not found for return {return_id}",
                            entry_id=str(edit.id),
                        )
        logger.info("Applied %d capital gain entry edits for return %s", len(edits), return_id)
        return len(edits)

    async def replace_schedule(self, return_id: UUID, result: ScheduleResult) -> None:
        """Delete every generated transaction and summary, then insert the new ones."""
        async with _db_errors("replacing capital gains schedule"), self._pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    "DELETE FROM reconciled_transactions WHERE tax_return_id = $1", return_id
                )
                await conn.execute(
                    "DELETE FROM schedule_summaries WHERE tax_return_id = $1", return_id
                )
                await conn.executemany(
                    """
                    INSERT INTO reconciled_transactions
                        (tax_return_id, capital_gain_entry_id, position, description,
                         date_acquired, date_sold, proceeds, cost_basis, wash_sale,
                         wash_sale_amount, adjusted_cost_basis, gain_loss, is_short_term,
                         classification_source, holding_days)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
                    """,
                    [
                        (
                            return_id, t.entry_id, t.position, t.description,
                            t.date_acquired, t.date_sold, t.proceeds, t.cost_basis,
                            t.wash_sale, t.wash_sale_amount, t.adjusted_cost_basis,
                            t.gain_loss, t.is_short_term, t.classification_source,
                            t.holding_days,
                        )
                        for t in result.transactions
                    ],
                )
                await conn.execute(
                    """
                    INSERT INTO schedule_summaries
                        (tax_return_id, summary, skipped_entries, warnings)
                    VALUES ($1, $2::jsonb, $3::jsonb, $4::jsonb)
                    """,
                    return_id,
                    result.summary.model_dump_json(),
                    json.dumps([s.model_dump(mode="json") for s in result.skipped_entries]),
                    json.dumps(result.warnings),
                )
        logger.info(
            "Replaced schedule for return %s: %d transactions", return_id, len(result.transactions)
        )

    async def get_schedule(self, return_id: UUID) -> ScheduleResult | None:
        async with _db_errors("loading capital gains schedule"), self._pool.acquire() as conn:
            async with conn.transaction(isolation="repeatable_read", readonly=True):
                summary_row = await conn.fetchrow(
                    """
                    SELECT summary, skipped_entries, warnings
                    FROM schedule_summaries WHERE tax_return_id = $1
                    """,
                    return_id,
                )
                if summary_row is None:
                    return None
                rows = await conn.fetch(
                    """
                    SELECT capital_gain_entry_id AS entry_id, position, description,
                           date_acquired, date_sold, proceeds, cost_basis, wash_sale,
                           wash_sale_amount, adjusted_cost_basis, gain_loss, is_short_term,
                           classification_source, holding_days
                    FROM reconciled_transactions
                    WHERE tax_return_id = $1 ORDER BY position
                    """,
                    return_id,
                )
        return ScheduleResult(
            return_id=return_id,
            summary=ScheduleSummary.model_validate(_json(summary_row["summary"])),
            transactions=[ReconciledTransaction.model_validate(dict(r)) for r in rows],
            skipped_entries=[
                SkippedEntry.model_validate(s) for s in _json(summary_row["skipped_entries"])
            ],
            warnings=_json(summary_row["warnings"]),
        )

    async def replace_snapshot(self, return_id: UUID, snapshot: ComputedReturnSnapshot) -> None:
        """Replace the computed snapshot and mark the return complete, atomically."""
        async with _db_errors("saving computed return"), self._pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO computed_return_snapshots
                        (tax_return_id, tax_year, filing_status, total_income,
                         total_deductions, taxable_income, tax, credits, withheld,
                         refund_or_owed, inputs_digest, snapshot, computed_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12::jsonb, NOW())
                    ON CONFLICT (tax_return_id) DO UPDATE SET
                        tax_year = EXCLUDED.tax_year,
                        filing_status = EXCLUDED.filing_status,
                        total_income = EXCLUDED.total_income,
                        total_deductions = EXCLUDED.total_deductions,
                        taxable_income = EXCLUDED.taxable_income,
                        tax = EXCLUDED.tax,
                        credits = EXCLUDED.credits,
                        withheld = EXCLUDED.withheld,
                        refund_or_owed = EXCLUDED.refund_or_owed,
                        inputs_digest = EXCLUDED.inputs_digest,
                        snapshot = EXCLUDED.snapshot,
                        computed_at = EXCLUDED.computed_at
                    """,
                    return_id,
                    snapshot.tax_year,
                    snapshot.filing_status.value,
                    snapshot.total_income,
                    snapshot.total_deductions,
                    snapshot.taxable_income,
                    snapshot.tax,
                    snapshot.credits,
                    snapshot.withheld,
                    snapshot.refund_or_owed,
                    snapshot.inputs_digest,
                    snapshot.model_dump_json(),
                )
                await conn.execute(
                    """
                    UPDATE tax_returns
                    SET status = 'complete', updated_at = NOW()
                    WHERE id = $1
                    """,
                    return_id,
                )
        logger.info("Saved computed return %s (digest %s)", return_id, snapshot.inputs_digest[:12])

    async def get_snapshot(self, return_id: UUID) -> ComputedReturnSnapshot | None:
        async with _db_errors("loading computed return"), self._pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT snapshot FROM computed_return_snapshots WHERE tax_return_id = $1",
                return_id,
            )
        if row is None:
            return None
        return ComputedReturnSnapshot.model_validate(_json(row["snapshot"]))
