"""Apply (or roll back) the tax engine schema with yoyo-migrations."""

import argparse
import logging
import sys
from pathlib import Path

from yoyo import get_backend, read_migrations

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.settings import settings

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


def main() -> None:
    parser = argparse.ArgumentParser(description="Manage database schema migrations")
    parser.add_argument("--status", action="store_true", help="List pending migrations and exit")
    parser.add_argument(
        "--rollback", type=int, metavar="N", help="Roll back the N most recent migrations"
    )
    args = parser.parse_args()

    backend = get_backend(settings.database_url_sync)
    migrations = read_migrations(str(MIGRATIONS_DIR))

    with backend.lock():
        if args.rollback:
            applied = backend.to_rollback(migrations)[: args.rollback]
            logger.info("Rolling back %d migration(s)...", len(applied))
            backend.rollback_migrations(applied)
            return

        pending = backend.to_apply(migrations)
        if args.status:
            for migration in pending:
                logger.info("pending: %s", migration.id)
            logger.info("%d pending migration(s).", len(pending))
            return
        if not pending:
            logger.info("Schema is up to date.")
            return

        logger.info("Applying %d migration(s)...", len(pending))
        backend.apply_migrations(pending)
        logger.info("Schema is up to date.")


if __name__ == "__main__":
    main()
