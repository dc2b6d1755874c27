"""
Reporting routes for LedgerFlow.

Routes:
    GET /api/reports/expenses/category - Expense totals per category, trailing 12 months
"""

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db import get_db
from app.routes.auth import require_user
from app.services import reporting

router = APIRouter(prefix="/api/reports")


@router.get("/expenses/category")
def expenses_by_category(request: Request, db: Session = Depends(get_db)):
    user = require_user(request, db)
    return JSONResponse(jsonable_encoder(reporting.expense_by_category(db, user.id)))
