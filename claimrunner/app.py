"""FastAPI app for the claims test runner."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import __version__
from .catalog import TestCaseCatalog, get_catalog, set_catalog
from .config import CLAIMS_API_BASE_URL, CORS_ORIGINS, LOG_LEVEL, TEST_CASES_DIR
from .errors import CatalogError
from .orchestrator import get_worker
from .ratelimit import limiter
from .routes import results_router, runs_router, test_cases_router

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the catalog and the run worker on startup."""
    configure_logging()

    try:
        catalog = get_catalog()
        logger.info(f"Loaded {len(catalog)} test case(s) from {TEST_CASES_DIR}")
    except CatalogError as e:
        for error in e.errors:
            logger.error(f"Invalid test case: {error}")
        logger.error(f"Test case catalog not loaded: {e.message}")
        set_catalog(TestCaseCatalog())

    worker = get_worker()
    logger.info(f"Submitting claims to {CLAIMS_API_BASE_URL}")

    yield

    close = getattr(worker.client, "close", None)
    if callable(close):
        close()
        logger.info("Claims API client closed")


app = FastAPI(
    title="Claims Test Runner",
    description="Sequential, paced test execution against a healthcare claims API",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routers
app.include_router(test_cases_router)
app.include_router(runs_router)
app.include_router(results_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "test_cases": len(get_catalog()),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
