"""Create parsed income record tables (W-2, 1099-DIV, 1099-INT, 1099-B)."""

from yoyo import step

__depends__ = {"0003_tax_returns"}

steps = [
    step(
        """
        CREATE TABLE wage_records (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tax_return_id       UUID NOT NULL REFERENCES tax_returns(id) ON DELETE CASCADE,
            document_id         UUID,
            employer_name       TEXT,
            wages               NUMERIC(12,2),
            federal_withheld    NUMERIC(12,2),
            created_at          TIMESTAMPTZ DEFAULT NOW()
        )
        """,
        "DROP TABLE IF EXISTS wage_records",
    ),
    step(
        """
        CREATE TABLE dividend_records (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tax_return_id       UUID NOT NULL REFERENCES tax_returns(id) ON DELETE CASCADE,
            document_id         UUID,
            payer_name          TEXT,
            ordinary_dividends  NUMERIC(12,2),
            qualified_dividends NUMERIC(12,2),
            federal_withheld    NUMERIC(12,2),
            created_at          TIMESTAMPTZ DEFAULT NOW()
        )
        """,
        "DROP TABLE IF EXISTS dividend_records",
    ),
    step(
        """
        CREATE TABLE interest_records (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tax_return_id       UUID NOT NULL REFERENCES tax_returns(id) ON DELETE CASCADE,
            document_id         UUID,
            payer_name          TEXT,
            interest_income     NUMERIC(12,2),
            federal_withheld    NUMERIC(12,2),
            created_at          TIMESTAMPTZ DEFAULT NOW()
        )
        """,
        "DROP TABLE IF EXISTS interest_records",
    ),
    # Amounts and dates are kept as the parser supplied them; they are
    # validated when the schedule is reconciled.
    step(
        """
        CREATE TABLE capital_gain_entries (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tax_return_id       UUID NOT NULL REFERENCES tax_returns(id) ON DELETE CASCADE,
            document_id         UUID,
            description         TEXT,
            date_acquired       TEXT,
            date_sold           TEXT,
            proceeds            TEXT,
            cost_basis          TEXT,
            wash_sale           BOOLEAN NOT NULL DEFAULT FALSE,
            wash_sale_amount    TEXT,
            is_short_term       BOOLEAN,
            sort_order          INTEGER NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
        """,
        "DROP TABLE IF EXISTS capital_gain_entries",
    ),
    step(
        "CREATE INDEX idx_capital_gain_entries_return ON capital_gain_entries (tax_return_id, sort_order)",
        "DROP INDEX IF EXISTS idx_capital_gain_entries_return",
    ),
]
