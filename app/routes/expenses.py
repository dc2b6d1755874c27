"""
Expense routes for LedgerFlow.

Same shape as the income routes: each expense owns a linked invoice of
type "expense" whose status follows the expense.

Routes:
    GET    /api/expenses        - List expenses, newest first
    POST   /api/expenses        - Record an expense (and its invoice)
    GET    /api/expenses/{id}   - Single expense
    PUT    /api/expenses/{id}   - Partial update
    DELETE /api/expenses/{id}   - Delete expense and linked invoice
"""

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db import get_db
from app.logging_config import get_logger
from app.routes.auth import require_user
from app.schemas import ExpenseOut, InvoiceOut, dump
from app.services import ledger_store, sync

# Module logger for expense tracking operations
logger = get_logger(__name__)

router = APIRouter(prefix="/api/expenses")


def _entry_result(result: dict) -> dict:
    invoice = result["invoice"]
    return {
        "expense": dump(ExpenseOut, result["expense"]),
        "invoice": dump(InvoiceOut, invoice) if invoice is not None else None,
    }


@router.get("")
def list_expenses(request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    expenses = ledger_store.list_expenses(db, user.id)
    return JSONResponse([dump(ExpenseOut, expense) for expense in expenses])


@router.post("")
def add_expense(request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    result = sync.create_expense(db, user.id, payload)
    return JSONResponse(_entry_result(result), status_code=status.HTTP_201_CREATED)


@router.get("/{expense_id}")
def get_expense(expense_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(dump(ExpenseOut, ledger_store.get_expense(db, user.id, expense_id)))


@router.put("/{expense_id}")
def update_expense(expense_id: int, request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    result = sync.update_expense(db, user.id, expense_id, payload)
    return JSONResponse(_entry_result(result))


@router.delete("/{expense_id}")
def delete_expense(expense_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(sync.delete_expense(db, user.id, expense_id))
