"""Create generated capital gains tables (reconciled transactions, schedule summary)."""

from yoyo import step

__depends__ = {"0004_income_records"}

steps = [
    step(
        """
        CREATE TABLE reconciled_transactions (
            id                      UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tax_return_id           UUID NOT NULL REFERENCES tax_returns(id) ON DELETE CASCADE,
            capital_gain_entry_id   UUID REFERENCES capital_gain_entries(id) ON DELETE SET NULL,
            position                INTEGER NOT NULL,
            description             TEXT NOT NULL,
            date_acquired           DATE,
            date_sold               DATE,
            proceeds                NUMERIC(12,2) NOT NULL,
            cost_basis              NUMERIC(12,2) NOT NULL,
            wash_sale               BOOLEAN NOT NULL DEFAULT FALSE,
            wash_sale_amount        NUMERIC(12,2) NOT NULL DEFAULT 0,
            adjusted_cost_basis     NUMERIC(12,2) NOT NULL,
            gain_loss               NUMERIC(12,2) NOT NULL,
            is_short_term           BOOLEAN NOT NULL,
            classification_source   TEXT NOT NULL,
            holding_days            INTEGER
        )
        """,
        "DROP TABLE IF EXISTS reconciled_transactions",
    ),
    step(
        """
        CREATE TABLE schedule_summaries (
            id                      UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tax_return_id           UUID NOT NULL UNIQUE REFERENCES tax_returns(id) ON DELETE CASCADE,
            summary                 JSONB NOT NULL,
            skipped_entries         JSONB NOT NULL DEFAULT '[]',
            warnings                JSONB NOT NULL DEFAULT '[]',
            computed_at             TIMESTAMPTZ DEFAULT NOW()
        )
        """,
        "DROP TABLE IF EXISTS schedule_summaries",
    ),
    step(
        "CREATE INDEX idx_reconciled_transactions_return ON reconciled_transactions (tax_return_id, position)",
        "DROP INDEX IF EXISTS idx_reconciled_transactions_return",
    ),
]
