"""
Invoice routes for LedgerFlow.

Routes:
    GET    /api/invoices              - List invoices (optional ?status= / ?type=)
    POST   /api/invoices              - Create an invoice; paid ones get an entry
    GET    /api/invoices/stats        - Count and total per status, trailing 12 months
    GET    /api/invoices/{id}         - Single invoice
    PUT    /api/invoices/{id}         - Partial update
    PATCH  /api/invoices/{id}/status  - Change status only
    DELETE /api/invoices/{id}         - Delete invoice and linked entry
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db import get_db
from app.logging_config import get_logger
from app.routes.auth import require_user
from app.schemas import InvoiceOut, InvoiceStatusUpdate, dump
from app.services import ledger_store, reporting, sync

logger = get_logger(__name__)

router = APIRouter(prefix="/api/invoices")


@router.get("")
def list_invoices(
    request: Request,
    status_filter: Optional[str] = Query(None, alias="status"),
    type_filter: Optional[str] = Query(None, alias="type"),
    db: Session = Depends(get_db)
):
    user = require_user(request, db)
    invoices = ledger_store.list_invoices(db, user.id, status=status_filter, type=type_filter)
    return JSONResponse([dump(InvoiceOut, invoice) for invoice in invoices])


@router.post("")
def create_invoice(request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    invoice = sync.create_invoice(db, user.id, payload)
    return JSONResponse(dump(InvoiceOut, invoice), status_code=status.HTTP_201_CREATED)


@router.get("/stats")
def invoice_stats(request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(jsonable_encoder(reporting.invoice_stats(db, user.id)))


@router.get("/{invoice_id}")
def get_invoice(invoice_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(dump(InvoiceOut, ledger_store.get_invoice(db, user.id, invoice_id)))


@router.put("/{invoice_id}")
def update_invoice(invoice_id: int, request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    invoice = sync.update_invoice(db, user.id, invoice_id, payload)
    return JSONResponse(dump(InvoiceOut, invoice))


@router.patch("/{invoice_id}/status")
def update_invoice_status(invoice_id: int, request: Request, payload: dict = Body(...), db: Session = Depends(get_db)):
    user = require_user(request, db)
    new_status = ledger_store.validate_input(InvoiceStatusUpdate, payload).status
    invoice = sync.update_invoice_status(db, user.id, invoice_id, new_status)
    return JSONResponse(dump(InvoiceOut, invoice))


@router.delete("/{invoice_id}")
def delete_invoice(invoice_id: int, request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(sync.delete_invoice(db, user.id, invoice_id))
