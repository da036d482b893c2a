"""Create tax_years, tax_brackets and standard_deductions tables."""

from yoyo import step

__depends__ = {"0001_extensions"}

steps = [
    step(
        """
        CREATE TABLE tax_years (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            year                INTEGER NOT NULL UNIQUE,
            is_active           BOOLEAN NOT NULL DEFAULT FALSE,
            filing_deadline     DATE,
            child_tax_credit    NUMERIC(12,2) NOT NULL,
            child_age_limit     INTEGER NOT NULL DEFAULT 17,
            dependent_deduction NUMERIC(12,2) NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ DEFAULT NOW()
        )
        """,
        "DROP TABLE IF EXISTS tax_years",
    ),
    step(
        """
        CREATE TABLE tax_brackets (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tax_year_id     UUID NOT NULL REFERENCES tax_years(id) ON DELETE CASCADE,
            jurisdiction    TEXT NOT NULL DEFAULT 'federal',
            filing_status   TEXT NOT NULL,
            lower_bound     NUMERIC(12,2) NOT NULL,
            upper_bound     NUMERIC(12,2),
            rate            NUMERIC(6,4) NOT NULL,
            sort_order      INTEGER NOT NULL,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            UNIQUE (tax_year_id, jurisdiction, filing_status, sort_order)
        )
        """,
        "DROP TABLE IF EXISTS tax_brackets",
    ),
    step(
        """
        CREATE TABLE standard_deductions (
            id                          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tax_year_id                 UUID NOT NULL REFERENCES tax_years(id) ON DELETE CASCADE,
            jurisdiction                TEXT NOT NULL DEFAULT 'federal',
            filing_status               TEXT NOT NULL,
            amount                      NUMERIC(12,2) NOT NULL,
            additional_blind_amount     NUMERIC(12,2) NOT NULL DEFAULT 0,
            additional_disabled_amount  NUMERIC(12,2) NOT NULL DEFAULT 0,
            created_at                  TIMESTAMPTZ DEFAULT NOW(),
            UNIQUE (tax_year_id, jurisdiction, filing_status)
        )
        """,
        "DROP TABLE IF EXISTS standard_deductions",
    ),
    step(
        """
        CREATE INDEX idx_tax_brackets_lookup
            ON tax_brackets (tax_year_id, jurisdiction, filing_status, sort_order)
        """,
        "DROP INDEX IF EXISTS idx_tax_brackets_lookup",
    ),
]
