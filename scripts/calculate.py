"""Compute a tax return from the command line and print the snapshot as JSON.

Usage:
    # Calculate a stored return and replace its snapshot
    python scripts/calculate.py --return-id 3f1c...

    # Override filing status / year, add state tax
    python scripts/calculate.py --return-id 3f1c... --filing-status married_joint --jurisdiction CA

    # Offline: no database, tables from config/tax_years.yaml
    python scripts/calculate.py --offline --input return.json

The offline input file holds {"tax_year", "profile", "records", "jurisdiction"?},
where records has wages, dividends, interest and capital_gains lists.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any
from uuid import UUID

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.settings import settings
from src.db.models import ComputedReturnSnapshot, FilingStatus, IncomeRecords, TaxpayerProfile
from src.db.returns import ReturnRepository
from src.db.session import close_pool, get_pool
from src.db.tax_config import PgTaxConfigStore, StaticTaxConfigStore
from src.errors import TaxEngineError
from src.orchestrator import ReturnOrchestrator, compute_snapshot, load_state_tables

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Calculate an individual income tax return")
    parser.add_argument("--return-id", type=UUID, help="Stored tax return to calculate")
    parser.add_argument("--offline", action="store_true", help="Calculate from --input, no database")
    parser.add_argument("--input", type=Path, help="JSON input file for --offline")
    parser.add_argument("--filing-status", type=FilingStatus, choices=list(FilingStatus))
    parser.add_argument("--tax-year", type=int)
    parser.add_argument("--jurisdiction", help="State code for an optional state tax block")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)
    if args.offline and args.input is None:
        parser.error("--offline requires --input")
    if not args.offline and args.return_id is None:
        parser.error("--return-id is required unless --offline is given")
    return args


async def calculate_offline(
    payload: dict[str, Any],
    store: StaticTaxConfigStore,
    filing_status: FilingStatus | None = None,
    tax_year: int | None = None,
    jurisdiction: str | None = None,
) -> ComputedReturnSnapshot:
    """Compute a snapshot from a JSON payload against the static tables."""
    profile = TaxpayerProfile.model_validate(payload["profile"])
    if filing_status is not None:
        profile = profile.model_copy(update={"filing_status": filing_status})
    year = tax_year or payload.get("tax_year") or settings.default_tax_year
    records = IncomeRecords.model_validate(payload.get("records") or {})

    tables = await store.load_calculation_tables(year, profile.filing_status)
    code = jurisdiction or payload.get("jurisdiction")
    state = await load_state_tables(store, year, profile.filing_status, code) if code else None
    return compute_snapshot(profile, tables, records, state=state)


async def run(args: argparse.Namespace) -> ComputedReturnSnapshot:
    if args.offline:
        payload = json.loads(args.input.read_text(encoding="utf-8"))
        return await calculate_offline(
            payload, StaticTaxConfigStore(), args.filing_status, args.tax_year, args.jurisdiction
        )

    pool = await get_pool()
    try:
        store = StaticTaxConfigStore() if settings.tax_config_source == "static" else PgTaxConfigStore(pool)
        orchestrator = ReturnOrchestrator(store, ReturnRepository(pool), settings)
        return await orchestrator.calculate_return(
            args.return_id,
            filing_status=args.filing_status,
            tax_year=args.tax_year,
            jurisdiction=args.jurisdiction,
        )
    finally:
        await close_pool()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    try:
        snapshot = asyncio.run(run(args))
    except TaxEngineError as exc:
        logger.error("Calculation failed (%s): %s", exc.kind, exc.message)
        print(json.dumps({"error": exc.to_dict()}, indent=2, default=str))
        sys.exit(1)
    print(snapshot.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
