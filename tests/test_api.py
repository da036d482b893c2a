"""Tests for the API endpoints."""

from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.app import register_exception_handlers
from src.api.routes import router
from src.calculators.capital_gains import reconcile_entries
from src.calculators.tax_data import FEDERAL, TAX_YEARS, CalculationTables
from src.db.models import FilingStatus, IncomeRecords, TaxpayerProfile, WageRecord
from src.db.tax_config import StaticTaxConfigStore
from src.errors import (
    ConfigurationMissing,
    InvalidTransaction,
    NoTransactions,
    PersistenceFailure,
    ReturnNotFound,
)
from src.orchestrator import compute_snapshot

RETURN_ID = uuid4()


@pytest.fixture
def app() -> FastAPI:
    """Create a test app with the router and error handlers but no lifespan (no DB)."""
    test_app = FastAPI()
    register_exception_handlers(test_app)
    test_app.include_router(router)
    test_app.state.config_store = StaticTaxConfigStore()
    test_app.state.repository = AsyncMock()
    test_app.state.return_orchestrator = AsyncMock()
    test_app.state.schedule_service = AsyncMock()
    return test_app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_tax_years(client: TestClient) -> None:
    response = client.get("/tax-years")
    assert response.status_code == 200
    years = response.json()
    assert [y["year"] for y in years] == [2025, 2024, 2023]
    assert years[1]["is_active"] is True


def test_bracket_calculation(client: TestClient) -> None:
    response = client.post(
        "/tax/calculate",
        json={"taxable_income": "50000", "tax_year": 2024, "filing_status": "single"},
    )
    assert response.status_code == 200
    data = response.json()
    assert Decimal(str(data["total_tax"])) == Decimal("6053")
    assert len(data["breakdown"]) == 3
    assert data["tax_year"] == 2024


def test_bracket_calculation_negative_income(client: TestClient) -> None:
    response = client.post("/tax/calculate", json={"taxable_income": "-5", "tax_year": 2024})
    assert response.status_code == 422


def test_bracket_calculation_unknown_year(client: TestClient) -> None:
    response = client.post("/tax/calculate", json={"taxable_income": "100", "tax_year": 1999})
    assert response.status_code == 404
    error = response.json()["error"]
    assert error["kind"] == "not_found"
    assert "1999" in error["message"]


def test_calculate_return(app: FastAPI, client: TestClient) -> None:
    year = TAX_YEARS[2024]
    federal = year.jurisdictions[FEDERAL]
    tables = CalculationTables(
        2024,
        FilingStatus.SINGLE,
        FEDERAL,
        federal.brackets[FilingStatus.SINGLE],
        federal.standard_deductions[FilingStatus.SINGLE],
        year.credits,
    )
    snapshot = compute_snapshot(
        TaxpayerProfile(filing_status=FilingStatus.SINGLE),
        tables,
        IncomeRecords(wages=[WageRecord(wages="80000", federal_withheld="9000")]),
        return_id=RETURN_ID,
    )
    app.state.return_orchestrator.calculate_return.return_value = snapshot

    response = client.post(
        f"/returns/{RETURN_ID}/calculate", json={"filing_status": "single", "jurisdiction": "CA"}
    )

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["tax"]) == Decimal("9441")
    assert data["inputs_digest"] == snapshot.inputs_digest
    app.state.return_orchestrator.calculate_return.assert_awaited_once_with(
        RETURN_ID, filing_status=FilingStatus.SINGLE, tax_year=None, jurisdiction="CA"
    )


def test_calculate_return_without_body(app: FastAPI, client: TestClient) -> None:
    app.state.return_orchestrator.calculate_return.side_effect = ReturnNotFound("No tax return")
    response = client.post(f"/returns/{RETURN_ID}/calculate")
    assert response.status_code == 404
    app.state.return_orchestrator.calculate_return.assert_awaited_once_with(
        RETURN_ID, filing_status=None, tax_year=None, jurisdiction=None
    )


def test_missing_configuration_is_404(app: FastAPI, client: TestClient) -> None:
    app.state.return_orchestrator.calculate_return.side_effect = ConfigurationMissing(
        "No CA tax brackets for 2024 / married_joint"
    )
    response = client.post(f"/returns/{RETURN_ID}/calculate", json={})
    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "not_found"


def test_persistence_failure_is_500(app: FastAPI, client: TestClient) -> None:
    app.state.return_orchestrator.calculate_return.side_effect = PersistenceFailure("db down")
    response = client.post(f"/returns/{RETURN_ID}/calculate", json={})
    assert response.status_code == 500
    assert response.json() == {"error": {"kind": "internal_error", "message": "db down"}}


def test_invalid_uuid(client: TestClient) -> None:
    response = client.post("/returns/not-a-uuid/calculate", json={})
    assert response.status_code == 422


def test_snapshot_not_found(app: FastAPI, client: TestClient) -> None:
    app.state.repository.get_snapshot.return_value = None
    response = client.get(f"/returns/{RETURN_ID}/snapshot")
    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "not_found"


def test_schedule_recalculate(app: FastAPI, client: TestClient) -> None:
    result = reconcile_entries([
        {"proceeds": "10000", "cost_basis": "8000", "wash_sale": True, "wash_sale_amount": "500"},
        {"proceeds": "bad", "cost_basis": "1"},
    ]).model_copy(update={"return_id": RETURN_ID})
    app.state.schedule_service.recalculate.return_value = result

    response = client.post(f"/returns/{RETURN_ID}/schedule-d/calculate")

    assert response.status_code == 200
    data = response.json()
    assert data["replaces_previous"] is True
    assert Decimal(data["summary"]["total_gain_loss"]) == Decimal("2500")
    assert len(data["skipped_entries"]) == 1


def test_schedule_without_entries_is_400(app: FastAPI, client: TestClient) -> None:
    app.state.schedule_service.recalculate.side_effect = NoTransactions(
        "No capital gain/loss transactions found"
    )
    response = client.post(f"/returns/{RETURN_ID}/schedule-d/calculate")
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "bad_request"


def test_schedule_all_invalid_is_400(app: FastAPI, client: TestClient) -> None:
    app.state.schedule_service.recalculate.side_effect = InvalidTransaction(
        "No valid capital gain/loss transactions; the stored schedule was not replaced",
        stale_schedule=True,
        skipped=[],
    )
    response = client.post(f"/returns/{RETURN_ID}/schedule-d/calculate")
    assert response.status_code == 400
    assert response.json()["error"]["details"]["stale_schedule"] is True


def test_schedule_get_missing(app: FastAPI, client: TestClient) -> None:
    app.state.schedule_service.get.return_value = None
    response = client.get(f"/returns/{RETURN_ID}/schedule-d")
    assert response.status_code == 404


def test_edit_capital_gains(app: FastAPI, client: TestClient) -> None:
    entry_id = uuid4()
    app.state.schedule_service.edit_entries.return_value = 1

    response = client.patch(
        f"/returns/{RETURN_ID}/capital-gains",
        json={"entries": [{"id": str(entry_id), "wash_sale": True, "wash_sale_amount": "120"}]},
    )

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "updated": 1}
    edits = app.state.schedule_service.edit_entries.await_args.args[1]
    assert edits[0].id == entry_id
    assert edits[0].model_fields_set == {"id", "wash_sale", "wash_sale_amount"}


def test_edit_unknown_entry_is_400(app: FastAPI, client: TestClient) -> None:
    app.state.schedule_service.edit_entries.side_effect = InvalidTransaction(
        "Capital gain entry not found", entry_id="x"
    )
    response = client.patch(
        f"/returns/{RETURN_ID}/capital-gains", json={"entries": [{"id": str(uuid4())}]}
    )
    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"entry_id": "x"}


def test_edit_requires_entries(client: TestClient) -> None:
    response = client.patch(f"/returns/{RETURN_ID}/capital-gains", json={"entries": []})
    assert response.status_code == 422
