"""Create tax_returns and taxpayer_profiles tables."""

from yoyo import step

__depends__ = {"0002_tax_configuration"}

steps = [
    step(
        """
        CREATE TABLE tax_returns (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id         TEXT NOT NULL,
            tax_year        INTEGER NOT NULL,
            filing_status   TEXT NOT NULL,
            status          TEXT NOT NULL DEFAULT 'draft',
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW()
        )
        """,
        "DROP TABLE IF EXISTS tax_returns",
    ),
    step(
        """
        CREATE TABLE taxpayer_profiles (
            id                  UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tax_return_id       UUID NOT NULL UNIQUE REFERENCES tax_returns(id) ON DELETE CASCADE,
            filing_status       TEXT NOT NULL,
            is_blind            BOOLEAN NOT NULL DEFAULT FALSE,
            is_disabled         BOOLEAN NOT NULL DEFAULT FALSE,
            is_veteran          BOOLEAN NOT NULL DEFAULT FALSE,
            is_spouse_blind     BOOLEAN NOT NULL DEFAULT FALSE,
            is_spouse_disabled  BOOLEAN NOT NULL DEFAULT FALSE,
            is_spouse_veteran   BOOLEAN NOT NULL DEFAULT FALSE,
            state_code          TEXT,
            dependents          JSONB NOT NULL DEFAULT '[]',
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
        """,
        "DROP TABLE IF EXISTS taxpayer_profiles",
    ),
]
