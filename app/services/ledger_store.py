"""
Owner-scoped storage helpers for incomes, expenses and invoices.

Every lookup filters on ``user_id``: an entity that does not exist and an
entity that belongs to another owner both raise the same NotFoundError.

None of these functions commit. Single-entity reads are used directly by
the routes; writes go through the sync coordinator, which wraps them in a
unit of work.
"""

from typing import Any, Callable, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.exceptions import NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.expense import Expense
from app.models.income import Income
from app.models.invoice import Invoice

logger = get_logger(__name__)


def validate_input(schema: type[BaseModel], data: Any, message: str = "Validation error"):
    """
    Validate ``data`` against ``schema``.

    Accepts a mapping or an already-built pydantic model. Pydantic failures are
    re-raised as ValidationError with one message per offending field.
    """
    if isinstance(data, schema):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        error = ValidationError.from_pydantic(exc, message)
        logger.warning(f"{schema.__name__} rejected: {error.details}")
        raise error from exc


def get_owned(db: Session, model, owner_id: int, entity_id: int):
    """Fetch one entity of ``model`` owned by ``owner_id`` or raise NotFoundError."""
    entity = db.query(model).filter(
        model.id == entity_id,
        model.user_id == owner_id
    ).first()
    if entity is None:
        logger.warning(f"{model.__name__} {entity_id} not found for user {owner_id}")
        raise NotFoundError(model.__name__)
    return entity


def list_owned(db: Session, model, owner_id: int) -> list:
    """All entities of ``model`` for an owner, newest date first."""
    return db.query(model).filter(
        model.user_id == owner_id
    ).order_by(model.date.desc(), model.id.desc()).all()


def snapshot(entity, schema: type[BaseModel]) -> dict:
    """Current values of ``entity`` for every field ``schema`` declares."""
    values = {}
    for name in schema.model_fields:
        value = getattr(entity, name, None)
        if name == "items" and value is not None:
            value = [
                {"description": item.description, "quantity": item.quantity, "price": item.price}
                for item in value
            ]
        values[name] = value
    return values


def apply_patch(
    entity,
    patch_schema: type[BaseModel],
    full_schema: type[BaseModel],
    data: Any,
    skip: tuple = (),
    snapshot_fn: Optional[Callable] = None,
):
    """
    Merge an allow-listed partial update into ``entity``.

    The patch is validated on its own (unknown fields are rejected), then the
    merged result is validated against ``full_schema`` so cross-field rules
    (required fields, totals) still hold after the change.

    Returns:
        Tuple of (validated merged model, dict of fields the patch set)
    """
    patch = validate_input(patch_schema, data)
    changes = patch.model_dump(exclude_unset=True)

    current = (snapshot_fn or snapshot)(entity, full_schema)
    merged = validate_input(full_schema, {**current, **changes})

    for name in changes:
        if name in skip:
            continue
        setattr(entity, name, getattr(merged, name))
    return merged, changes


def create_owned(db: Session, model, owner_id: int, payload: BaseModel, exclude: set = frozenset(), **extra):
    """Insert a ``model`` row for ``owner_id`` from a validated payload and flush it."""
    entity = model(user_id=owner_id, **payload.model_dump(exclude=set(exclude)), **extra)
    db.add(entity)
    db.flush()
    logger.info(f"{model.__name__} {entity.id} created for user {owner_id}")
    return entity


def delete_owned(db: Session, entity) -> None:
    label = f"{type(entity).__name__} {entity.id}"
    owner_id = entity.user_id
    db.delete(entity)
    db.flush()
    logger.info(f"{label} deleted for user {owner_id}")


# ==================== READS ====================

def get_income(db: Session, owner_id: int, income_id: int) -> Income:
    return get_owned(db, Income, owner_id, income_id)


def list_incomes(db: Session, owner_id: int) -> list[Income]:
    return list_owned(db, Income, owner_id)


def get_expense(db: Session, owner_id: int, expense_id: int) -> Expense:
    return get_owned(db, Expense, owner_id, expense_id)


def list_expenses(db: Session, owner_id: int) -> list[Expense]:
    return list_owned(db, Expense, owner_id)


def get_invoice(db: Session, owner_id: int, invoice_id: int) -> Invoice:
    return get_owned(db, Invoice, owner_id, invoice_id)


def list_invoices(db: Session, owner_id: int, status: Optional[str] = None, type: Optional[str] = None) -> list[Invoice]:
    query = db.query(Invoice).filter(Invoice.user_id == owner_id)
    if status:
        query = query.filter(Invoice.status == status)
    if type:
        query = query.filter(Invoice.type == type)
    return query.order_by(Invoice.date.desc(), Invoice.id.desc()).all()
