"""Capital gains reconciler: wash-sale adjustment, holding period, Schedule D totals.

Holding period resolution, in order:
  1. both dates present -> short-term iff (date_sold - date_acquired) <= 365 days
  2. otherwise the entry's stored is_short_term flag
  3. otherwise short-term

Dates win over the stored flag; a disagreement is reported as a warning.
Entries whose amounts cannot be parsed are skipped and reported; the rest of
the batch is still reconciled.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from src.calculators.money import ZERO, money, or_zero
from src.db.models import (
    CapitalGainEntry,
    PartitionTotals,
    ReconciledTransaction,
    ScheduleResult,
    ScheduleSummary,
    SkippedEntry,
)
from src.errors import InvalidTransaction, NoTransactions

logger = logging.getLogger(__name__)

SHORT_TERM_MAX_DAYS = 365
DEFAULT_DESCRIPTION = "Securities"


def _describe_validation_error(exc: ValidationError) -> str:
    fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
    return f"Non-numeric or invalid value in: {', '.join(fields)}"


def classify(entry: CapitalGainEntry) -> tuple[bool, str, int | None]:
    """Resolve short/long-term for an entry.

    Returns:
        (is_short_term, source, holding_days) where source is "dates",
        "flag" or "default".
    """
    if entry.date_acquired is not None and entry.date_sold is not None:
        holding_days = (entry.date_sold - entry.date_acquired).days
        return holding_days <= SHORT_TERM_MAX_DAYS, "dates", holding_days
    if entry.is_short_term is not None:
        return entry.is_short_term, "flag", None
    return True, "default", None


def reconcile_entry(entry: CapitalGainEntry, position: int) -> tuple[ReconciledTransaction, list[str]]:
    """Apply the wash-sale adjustment and classify one entry."""
    label = entry.description or f"entry #{position + 1}"
    warnings: list[str] = []

    # Cents, as stored in the NUMERIC(12,2) schedule columns
    proceeds = money(or_zero(entry.proceeds))
    cost_basis = money(or_zero(entry.cost_basis))
    wash_amount = money(or_zero(entry.wash_sale_amount))

    adjustment = wash_amount if entry.wash_sale else ZERO
    if entry.wash_sale and wash_amount > cost_basis:
        warnings.append(f"{label}: wash sale amount {wash_amount} exceeds cost basis {cost_basis}")
    if not entry.wash_sale and wash_amount != 0:
        warnings.append(f"{label}: wash sale amount {wash_amount} ignored (wash sale not flagged)")

    adjusted = cost_basis - adjustment
    is_short_term, source, holding_days = classify(entry)

    if holding_days is not None and holding_days < 0:
        warnings.append(f"{label}: sold before acquired ({holding_days} days)")
    if source == "dates" and entry.is_short_term is not None and entry.is_short_term != is_short_term:
        warnings.append(
            f"{label}: stored term flag disagrees with dates; using "
            f"{'short' if is_short_term else 'long'}-term from {holding_days}-day holding period"
        )

    transaction = ReconciledTransaction(
        entry_id=entry.id,
        position=position,
        description=entry.description or DEFAULT_DESCRIPTION,
        date_acquired=entry.date_acquired,
        date_sold=entry.date_sold,
        proceeds=proceeds,
        cost_basis=cost_basis,
        wash_sale=entry.wash_sale,
        wash_sale_amount=wash_amount,
        adjusted_cost_basis=adjusted,
        gain_loss=proceeds - adjusted,
        is_short_term=is_short_term,
        classification_source=source,
        holding_days=holding_days,
    )
    return transaction, warnings


def _totals(transactions: list[ReconciledTransaction]) -> PartitionTotals:
    return PartitionTotals(
        proceeds=sum((t.proceeds for t in transactions), ZERO),
        cost_basis=sum((t.cost_basis for t in transactions), ZERO),
        wash_sale_adjustments=sum((t.cost_basis - t.adjusted_cost_basis for t in transactions), ZERO),
        gain_loss=sum((t.gain_loss for t in transactions), ZERO),
        count=len(transactions),
    )


def summarize(transactions: Sequence[ReconciledTransaction]) -> ScheduleSummary:
    """Partition by holding period and total each side."""
    short = _totals([t for t in transactions if t.is_short_term])
    long = _totals([t for t in transactions if not t.is_short_term])
    return ScheduleSummary(
        short_term=short,
        long_term=long,
        total_gain_loss=short.gain_loss + long.gain_loss,
    )


def reconcile_entries(entries: Sequence[Mapping[str, Any] | CapitalGainEntry]) -> ScheduleResult:
    """Reconcile a batch of raw capital-gain entries.

    Args:
        entries: Raw entries as supplied by the parser or database (mappings
            with possibly-null decimal strings) or already-validated
            CapitalGainEntry values.

    Returns:
        ScheduleResult with transactions, summary, skipped entries and warnings.

    Raises:
        NoTransactions: if entries is empty.
        InvalidTransaction: if no entry could be reconciled.
    """
    if not entries:
        raise NoTransactions("No capital gain/loss transactions found")

    transactions: list[ReconciledTransaction] = []
    skipped: list[SkippedEntry] = []
    warnings: list[str] = []

    for position, raw in enumerate(entries):
        if isinstance(raw, CapitalGainEntry):
            entry = raw
        else:
            try:
                entry = CapitalGainEntry.model_validate(dict(raw))
            except ValidationError as exc:
                reason = _describe_validation_error(exc)
                entry_id = raw.get("id")
                skipped.append(SkippedEntry(
                    position=position,
                    entry_id=str(entry_id) if entry_id is not None else None,
                    description=raw.get("description"),
                    reason=reason,
                ))
                logger.warning("Skipping capital gain entry %d: %s", position, reason)
                continue

        transaction, entry_warnings = reconcile_entry(entry, position)
        transactions.append(transaction)
        warnings.extend(entry_warnings)

    for warning in warnings:
        logger.warning(warning)

    if not transactions:
        raise InvalidTransaction(
            "No valid capital gain/loss transactions",
            skipped=[s.model_dump(mode="json") for s in skipped],
        )

    summary = summarize(transactions)
    logger.info(
        "Reconciled %d transactions (%d short, %d long, %d skipped): total %s",
        len(transactions),
        summary.short_term.count,
        summary.long_term.count,
        len(skipped),
        summary.total_gain_loss,
    )
    return ScheduleResult(
        summary=summary,
        transactions=transactions,
        skipped_entries=skipped,
        warnings=warnings,
    )
