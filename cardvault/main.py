import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cardvault.api import cards_router, health_router, imports_router
from cardvault.bootstrap import build_services
from cardvault.config import settings
from cardvault.db.database import get_session_factory, init_db
from cardvault.models.failure import KnownError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables and the shared services; stop running imports on shutdown."""
    await init_db()
    services = build_services(settings, get_session_factory())
    app.state.services = services
    try:
        yield
    finally:
        await services.aclose()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("cardvault"),
    lifespan=lifespan,
)


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    """Answer with the error's status code and its FailureDetail body."""
    if exc.status_code >= 500:
        logger.warning("%s: %s (%s)", exc.kind.value, exc.message, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail().model_dump(mode="json")},
    )


app.include_router(cards_router)
app.include_router(health_router)
app.include_router(imports_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
