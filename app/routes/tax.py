"""
Tax routes for LedgerFlow.

Annual records are computed from recorded income (``/calculate``) and then
adjusted with deductions, payments and filing details. Tax entries are
standalone one-off records (sales, property, ...).

Routes:
    POST   /api/tax/calculate                   - Compute and upsert a year
    GET    /api/tax/history                     - All annual records, newest first
    GET    /api/tax/stats                       - Per-year totals, trailing 5 years
    GET    /api/tax/year/{year}                 - One annual record
    PUT    /api/tax/{id}                        - Filing details and breakdowns
    PATCH  /api/tax/{id}/status                 - Change status
    POST   /api/tax/{id}/deductions             - Add a deduction
    DELETE /api/tax/{id}/deductions/{did}       - Remove a deduction
    POST   /api/tax/{id}/payments               - Record a payment
    DELETE /api/tax/{id}/payments/{pid}         - Remove a payment
    GET    /api/tax/entries                     - List tax entries
    POST   /api/tax/entries                     - Create a tax entry
    DELETE /api/tax/entries/{id}                - Delete a tax entry
"""

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db import get_db
from app.logging_config import get_logger
from app.routes.auth import require_user
from app.schemas import TaxCalculateRequest, TaxEntryOut, TaxOut, TaxStatusUpdate, dump
from app.services import reporting, tax_ledger
from app.services.ledger_store import validate_input

logger = get_logger(__name__)

router = APIRouter(prefix="/api/tax")


@router.post("/calculate")
def calculate_tax(request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    year = validate_input(TaxCalculateRequest, payload).year
    return JSONResponse(dump(TaxOut, tax_ledger.calculate_tax(db, user.id, year)))


@router.get("/history")
def tax_history(request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse([dump(TaxOut, tax) for tax in tax_ledger.get_tax_history(db, user.id)])


@router.get("/stats")
def tax_stats(request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(jsonable_encoder(reporting.tax_stats(db, user.id)))


# Tax entries: registered before /{tax_id} routes

@router.get("/entries")
def list_tax_entries(request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse([dump(TaxEntryOut, entry) for entry in tax_ledger.list_tax_entries(db, user.id)])


@router.post("/entries")
def create_tax_entry(request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    entry = tax_ledger.create_tax_entry(db, user.id, payload)
    return JSONResponse(dump(TaxEntryOut, entry), status_code=status.HTTP_201_CREATED)


@router.delete("/entries/{entry_id}")
def delete_tax_entry(entry_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(tax_ledger.delete_tax_entry(db, user.id, entry_id))


@router.get("/year/{year}")
def get_tax_by_year(year: int, request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(dump(TaxOut, tax_ledger.get_tax_by_year(db, user.id, year)))


@router.put("/{tax_id}")
def update_tax(tax_id: int, request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(dump(TaxOut, tax_ledger.update_tax(db, user.id, tax_id, payload)))


@router.patch("/{tax_id}/status")
def update_tax_status(tax_id: int, request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    new_status = validate_input(TaxStatusUpdate, payload).status
    return JSONResponse(dump(TaxOut, tax_ledger.update_tax_status(db, user.id, tax_id, new_status)))


@router.post("/{tax_id}/deductions")
def add_deduction(tax_id: int, request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    tax = tax_ledger.add_deduction(db, user.id, tax_id, payload)
    return JSONResponse(dump(TaxOut, tax), status_code=status.HTTP_201_CREATED)


@router.delete("/{tax_id}/deductions/{deduction_id}")
def remove_deduction(tax_id: int, deduction_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(dump(TaxOut, tax_ledger.remove_deduction(db, user.id, tax_id, deduction_id)))


@router.post("/{tax_id}/payments")
def add_payment(tax_id: int, request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    tax = tax_ledger.add_payment(db, user.id, tax_id, payload)
    return JSONResponse(dump(TaxOut, tax), status_code=status.HTTP_201_CREATED)


@router.delete("/{tax_id}/payments/{payment_id}")
def remove_payment(tax_id: int, payment_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(dump(TaxOut, tax_ledger.remove_payment(db, user.id, tax_id, payment_id)))
