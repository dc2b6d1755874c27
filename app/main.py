"""
LedgerFlow - Income, Expense, Invoice and Tax Ledger

Main FastAPI application entry point. Configures routes, error handlers,
and application lifecycle events.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.db import init_db
from app.exceptions import LedgerError, ValidationError
# Import logging configuration (initializes logging)
from app.logging_config import get_logger, startup_summary

# Import route modules
from app.routes import auth
from app.routes import income
from app.routes import expenses
from app.routes import invoices
from app.routes import tax
from app.routes import reports

# Get logger for this module
logger = get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle manager.

    Handles startup and shutdown events for the application.
    """
    # Startup
    logger.info("=" * 60)
    for line in startup_summary(settings):
        logger.info(line)
    logger.info("=" * 60)
    init_db()
    logger.info("Tables ready, accepting requests")

    yield  # Application runs here

    # Shutdown
    logger.info(f"{settings.app_name} Application Shutting Down")
    logger.info("=" * 60)


# Create FastAPI application instance
app = FastAPI(
    title=settings.app_name,
    description="Ledger for incomes, expenses, invoices and annual taxes with automatic invoice sync.",
    version=settings.app_version,
    lifespan=lifespan
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc}")
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies (not a JSON object, bad path/query types) get the same 400 shape
    error = ValidationError.from_pydantic(exc)
    return JSONResponse(error.to_dict(), status_code=error.status_code)


@app.get("/health")
async def health():
    return {"status": "ok", "version": app.version}


# Include route modules
app.include_router(auth.router, tags=["Authentication"])
app.include_router(income.router, tags=["Income"])
app.include_router(expenses.router, tags=["Expenses"])
app.include_router(invoices.router, tags=["Invoices"])
app.include_router(tax.router, tags=["Taxes"])
app.include_router(reports.router, tags=["Reports"])

logger.info("All routes registered successfully")
