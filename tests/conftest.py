"""Shared test fixtures."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.db.models import (
    Dependent,
    DividendRecord,
    FilingStatus,
    IncomeRecords,
    InterestRecord,
    TaxpayerProfile,
    WageRecord,
)
from src.db.tax_config import StaticTaxConfigStore


@pytest.fixture
def static_store() -> StaticTaxConfigStore:
    """Config store over the tables shipped in config/tax_years.yaml."""
    return StaticTaxConfigStore()


@pytest.fixture
def single_profile() -> TaxpayerProfile:
    return TaxpayerProfile(filing_status=FilingStatus.SINGLE)


@pytest.fixture
def family_profile() -> TaxpayerProfile:
    """Married joint filers with one child under 17 and one dependent parent."""
    return TaxpayerProfile(
        filing_status=FilingStatus.MARRIED_JOINT,
        dependents=[
            Dependent(
                first_name="Ava",
                date_of_birth=date(2014, 5, 1),
                relationship="daughter",
                is_qualifying_child=True,
            ),
            Dependent(
                first_name="Ruth",
                date_of_birth=date(1950, 2, 3),
                relationship="parent",
                is_qualifying_relative=True,
            ),
        ],
    )


@pytest.fixture
def mixed_records() -> IncomeRecords:
    """One record of every kind, some with missing amounts."""
    return IncomeRecords(
        wages=[
            WageRecord(employer_name="Acme Corp", wages="60000", federal_withheld="7000"),
            WageRecord(employer_name="Side Gig", wages=None, federal_withheld=None),
        ],
        dividends=[
            DividendRecord(
                payer_name="Index Fund",
                ordinary_dividends="1200.50",
                qualified_dividends="900.25",
                federal_withheld="50",
            ),
        ],
        interest=[InterestRecord(payer_name="Bank", interest_income="300", federal_withheld=None)],
    )


@pytest.fixture
def mock_conn() -> AsyncMock:
    """asyncpg connection mock; transaction() is an async context manager."""
    conn = AsyncMock()
    conn.fetch.return_value = []
    conn.fetchrow.return_value = None
    conn.execute.return_value = "UPDATE 1"

    tx = MagicMock()
    tx.__aenter__ = AsyncMock(return_value=None)
    tx.__aexit__ = AsyncMock(return_value=False)
    conn.transaction = MagicMock(return_value=tx)
    return conn


@pytest.fixture
def mock_db_pool(mock_conn: AsyncMock) -> MagicMock:
    """Mock of asyncpg.Pool with context-managed acquire().

    asyncpg.Pool.acquire() returns an async context manager (not a coroutine),
    so we use MagicMock for the pool and configure __aenter__/__aexit__ manually.
    """
    acm = MagicMock()
    acm.__aenter__ = AsyncMock(return_value=mock_conn)
    acm.__aexit__ = AsyncMock(return_value=False)

    pool = MagicMock()
    pool.acquire.return_value = acm
    return pool

