"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.api.routes import router
from src.db.returns import ReturnRepository
from src.db.session import close_pool, get_pool
from src.db.tax_config import PgTaxConfigStore, StaticTaxConfigStore
from src.errors import TaxEngineError
from src.orchestrator import ReturnOrchestrator, ScheduleService

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "not_found": 404,
    "bad_request": 400,
    "internal_error": 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: init DB pool, build services. Shutdown: close pool."""
    logging.basicConfig(level=logging.INFO)
    logger.info("Starting up (tax config source: %s)...", settings.tax_config_source)

    pool = await get_pool()
    if settings.tax_config_source == "static":
        config_store = StaticTaxConfigStore()
    else:
        config_store = PgTaxConfigStore(pool)
    repository = ReturnRepository(pool)

    app.state.config_store = config_store
    app.state.repository = repository
    app.state.return_orchestrator = ReturnOrchestrator(config_store, repository, settings)
    app.state.schedule_service = ScheduleService(repository)

    yield

    logger.info("Shutting down...")
    await close_pool()


def register_exception_handlers(app: FastAPI) -> None:
    """Map TaxEngineError kinds to HTTP status codes."""

    @app.exception_handler(TaxEngineError)
    async def tax_engine_error_handler(request: Request, exc: TaxEngineError) -> JSONResponse:
        status_code = ERROR_STATUS.get(exc.kind, 500)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse({"error": exc.to_dict()}, status_code=status_code)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="Income Tax Engine", lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(router)
    return app
