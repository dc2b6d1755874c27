"""
Income routes for LedgerFlow.

Every write goes through the sync coordinator, so the linked invoice is
created, updated or deleted together with the income.

Routes:
    GET    /api/income                  - List incomes, newest first
    POST   /api/income                  - Record an income (and its invoice)
    GET    /api/income/stats/summary    - Monthly totals, trailing 12 months
    GET    /api/income/stats/category   - Category totals, trailing 12 months
    GET    /api/income/{id}             - Single income
    PUT    /api/income/{id}             - Partial update
    DELETE /api/income/{id}             - Delete income and linked invoice
"""

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.db import get_db
from app.logging_config import get_logger
from app.routes.auth import require_user
from app.schemas import IncomeOut, InvoiceOut, dump
from app.services import ledger_store, reporting, sync

logger = get_logger(__name__)

router = APIRouter(prefix="/api/income")


def _entry_result(result: dict) -> dict:
    invoice = result["invoice"]
    return {
        "income": dump(IncomeOut, result["income"]),
        "invoice": dump(InvoiceOut, invoice) if invoice is not None else None,
    }


@router.get("")
def list_incomes(request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    incomes = ledger_store.list_incomes(db, user.id)
    return JSONResponse([dump(IncomeOut, income) for income in incomes])


@router.post("")
def add_income(request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    result = sync.create_income(db, user.id, payload)
    return JSONResponse(_entry_result(result), status_code=status.HTTP_201_CREATED)


@router.get("/stats/summary")
def income_summary(request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(jsonable_encoder(reporting.income_by_month(db, user.id)))


@router.get("/stats/category")
def income_categories(request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(jsonable_encoder(reporting.income_by_category(db, user.id)))


@router.get("/{income_id}")
def get_income(income_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(dump(IncomeOut, ledger_store.get_income(db, user.id, income_id)))


@router.put("/{income_id}")
def update_income(income_id: int, request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    result = sync.update_income(db, user.id, income_id, payload)
    return JSONResponse(_entry_result(result))


@router.delete("/{income_id}")
def delete_income(income_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(sync.delete_income(db, user.id, income_id))
