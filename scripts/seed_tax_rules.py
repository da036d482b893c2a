"""Seed tax_years, tax_brackets and standard_deductions from config/tax_years.yaml."""

import argparse
import logging
import sys
from pathlib import Path

import psycopg2

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.settings import settings
from src.calculators.tax_data import TAX_YEARS, TaxYearData

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def seed_year(cur, data: TaxYearData) -> int:  # type: ignore[no-untyped-def]
    """Upsert one tax year and replace its bracket and deduction rows."""
    cur.execute(
        """
        INSERT INTO tax_years (
            year, is_active, filing_deadline,
            child_tax_credit, child_age_limit, dependent_deduction
        ) VALUES (%s, %s, %s, %s, %s, %s)
        ON CONFLICT (year) DO UPDATE SET
            is_active = EXCLUDED.is_active,
            filing_deadline = EXCLUDED.filing_deadline,
            child_tax_credit = EXCLUDED.child_tax_credit,
            child_age_limit = EXCLUDED.child_age_limit,
            dependent_deduction = EXCLUDED.dependent_deduction
        RETURNING id
        """,
        (
            data.year,
            data.is_active,
            data.filing_deadline,
            data.credits.child_tax_credit,
            data.credits.child_age_limit,
            data.credits.dependent_deduction,
        ),
    )
    tax_year_id = cur.fetchone()[0]

    # Idempotent re-seed
    cur.execute("DELETE FROM tax_brackets WHERE tax_year_id = %s", (tax_year_id,))
    cur.execute("DELETE FROM standard_deductions WHERE tax_year_id = %s", (tax_year_id,))

    bracket_rows = 0
    for code, tables in data.jurisdictions.items():
        for status, brackets in tables.brackets.items():
            for sort_order, bracket in enumerate(brackets):
                cur.execute(
                    """
                    INSERT INTO tax_brackets (
                        tax_year_id, jurisdiction, filing_status,
                        lower_bound, upper_bound, rate, sort_order
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        tax_year_id, code, status.value,
                        bracket.lower, bracket.upper, bracket.rate, sort_order,
                    ),
                )
                bracket_rows += 1
        for status, deduction in tables.standard_deductions.items():
            cur.execute(
                """
                INSERT INTO standard_deductions (
                    tax_year_id, jurisdiction, filing_status, amount,
                    additional_blind_amount, additional_disabled_amount
                ) VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    tax_year_id, code, status.value, deduction.amount,
                    deduction.additional_blind, deduction.additional_disabled,
                ),
            )
    return bracket_rows


def main() -> None:
    """Insert or refresh tax year seed data."""
    parser = argparse.ArgumentParser(description="Seed tax tables into PostgreSQL")
    parser.add_argument("--year", type=int, action="append", help="Only seed these years")
    args = parser.parse_args()

    years = [TAX_YEARS[y] for y in sorted(TAX_YEARS) if not args.year or y in args.year]
    if not years:
        logger.error("No matching tax years in config (available: %s)", sorted(TAX_YEARS))
        sys.exit(1)

    conn = psycopg2.connect(settings.database_url_sync)
    try:
        # One transaction per year: a failed year leaves its previous rows intact
        for data in years:
            with conn, conn.cursor() as cur:
                bracket_rows = seed_year(cur, data)
            logger.info(
                "Seeded %d (%d jurisdictions, %d brackets)",
                data.year, len(data.jurisdictions), bracket_rows,
            )
    finally:
        conn.close()
    logger.info("Seeded %d tax years.", len(years))


if __name__ == "__main__":
    main()
