"""Create computed_return_snapshots table (one current snapshot per return)."""

from yoyo import step

__depends__ = {"0005_capital_gains_schedule"}

steps = [
    step(
        """
        CREATE TABLE computed_return_snapshots (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tax_return_id       UUID NOT NULL UNIQUE REFERENCES tax_returns(id) ON DELETE CASCADE,
            tax_year            INTEGER NOT NULL,
            filing_status       TEXT NOT NULL,
            total_income        NUMERIC(12,2) NOT NULL,
            total_deductions    NUMERIC(12,2) NOT NULL,
            taxable_income      NUMERIC(12,2) NOT NULL,
            tax                 NUMERIC(12,2) NOT NULL,
            credits             NUMERIC(12,2) NOT NULL,
            withheld            NUMERIC(12,2) NOT NULL,
            refund_or_owed      NUMERIC(12,2) NOT NULL,
            inputs_digest       TEXT NOT NULL,
            snapshot            JSONB NOT NULL,
            computed_at         TIMESTAMPTZ DEFAULT NOW()
        )
        """,
        "DROP TABLE IF EXISTS computed_return_snapshots",
    ),
]
