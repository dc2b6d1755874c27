"""
Keeps Income/Expense entries and their invoices consistent.

Every income or expense recorded through this module owns exactly one
invoice, linked through ``Invoice.source_entity_type`` and
``Invoice.source_entity_id``. Changes flow both ways:

- entry side: create/update/delete an entry and its invoice follows
- invoice side: a paid invoice synthesizes its entry, edits to a linked
  invoice are pushed back to the entry, deleting it deletes the entry

Each public operation runs inside one ``unit_of_work``: either every row it
touches is written or none is.

Invoices created before links existed are matched once by counterpart name
and amount (``find_legacy_invoice``); the link is stored on match so the
heuristic never runs twice for the same entry.
"""

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db import unit_of_work
from app.exceptions import ConflictError
from app.logging_config import get_logger
from app.models.expense import Expense
from app.models.income import Income
from app.models.invoice import INVOICE_CATEGORIES, Invoice, InvoiceItem
from app.schemas import (
    ExpenseCreate, ExpensePatch, IncomeCreate, IncomePatch, InvoiceCreate, InvoicePatch,
)
from app.services.ledger_store import (
    apply_patch, create_owned, delete_owned, get_owned, validate_input,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class EntryKind:
    """How one entry model maps onto its invoice."""
    name: str
    model: type
    create_schema: type
    patch_schema: type
    counterpart_field: str
    number_prefix: str
    label: str


INCOME = EntryKind("income", Income, IncomeCreate, IncomePatch, "source", "INC", "Income")
EXPENSE = EntryKind("expense", Expense, ExpenseCreate, ExpensePatch, "payee", "EXP", "Expense")

KINDS = {kind.name: kind for kind in (INCOME, EXPENSE)}


def _kind_of(entry) -> EntryKind:
    return INCOME if isinstance(entry, Income) else EXPENSE


def derived_invoice_number(kind: EntryKind, entry_id: int) -> str:
    return f"{kind.number_prefix}-{entry_id:06d}"


# ==================== LOOKUPS ====================

def find_linked_invoice(db: Session, owner_id: int, entry_type: str, entry_id: int) -> Optional[Invoice]:
    return db.query(Invoice).filter(
        Invoice.user_id == owner_id,
        Invoice.source_entity_type == entry_type,
        Invoice.source_entity_id == entry_id
    ).first()


def find_legacy_invoice(db: Session, owner_id: int, entry_type: str, name: str, amount) -> Optional[Invoice]:
    """
    Match an unlinked invoice by counterpart name and amount.

    Only invoices without a link are considered. When several match, the
    oldest wins.
    """
    matches = db.query(Invoice).filter(
        Invoice.user_id == owner_id,
        Invoice.source_entity_id.is_(None),
        Invoice.type == entry_type,
        Invoice.client_name == name,
        Invoice.amount == amount
    ).order_by(Invoice.id).all()
    if len(matches) > 1:
        logger.warning(
            f"{len(matches)} unlinked {entry_type} invoices match '{name}' / {amount}; "
            f"using invoice {matches[0].id}"
        )
    return matches[0] if matches else None


def find_legacy_entry(db: Session, owner_id: int, kind: EntryKind, name: str, amount):
    """
    Match an entry that no invoice links to by counterpart name and amount.

    The counterpart of ``find_legacy_invoice``, used when an unlinked invoice
    is marked paid so an existing entry is linked instead of duplicated.
    """
    linked_ids = select(Invoice.source_entity_id).where(
        Invoice.user_id == owner_id,
        Invoice.source_entity_type == kind.name,
        Invoice.source_entity_id.isnot(None)
    )
    return db.query(kind.model).filter(
        kind.model.user_id == owner_id,
        getattr(kind.model, kind.counterpart_field) == name,
        kind.model.amount == amount,
        kind.model.id.notin_(linked_ids)
    ).order_by(kind.model.id).first()


def load_linked_entry(db: Session, owner_id: int, invoice: Invoice):
    """The entry a linked invoice points at, or None for unlinked/dangling links."""
    if not invoice.is_linked:
        return None
    kind = KINDS.get(invoice.source_entity_type)
    if kind is None:
        return None
    return db.query(kind.model).filter(
        kind.model.id == invoice.source_entity_id,
        kind.model.user_id == owner_id
    ).first()


def _number_taken(db: Session, owner_id: int, invoice_number: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(Invoice.id).filter(
        Invoice.user_id == owner_id,
        Invoice.invoice_number == invoice_number
    )
    if exclude_id is not None:
        query = query.filter(Invoice.id != exclude_id)
    return query.first() is not None


def _ensure_unique_number(db: Session, owner_id: int, invoice_number: str, exclude_id: Optional[int] = None):
    if _number_taken(db, owner_id, invoice_number, exclude_id):
        raise ConflictError(
            "Invoice number already exists",
            details={"invoice_number": f"'{invoice_number}' is already in use"},
        )


def _free_invoice_number(db: Session, owner_id: int, base: str) -> str:
    """The derived number, or the first of ``base-2``, ``base-3``... not already in use."""
    number, suffix = base, 1
    while _number_taken(db, owner_id, number):
        suffix += 1
        number = f"{base}-{suffix}"
    return number


# ==================== MIRRORING ====================

def _single_line(invoice: Invoice, description: Optional[str], amount):
    invoice.amount = amount
    invoice.items = [InvoiceItem(description=description, quantity=1, price=amount)]
    invoice.subtotal = amount
    invoice.tax = invoice.tax or 0
    invoice.total = invoice.subtotal + invoice.tax


def _mirror_entry_to_invoice(invoice: Invoice, entry, kind: EntryKind, created: bool):
    name = getattr(entry, kind.counterpart_field)
    invoice.client_name = name
    invoice.due_date = entry.date
    if created:
        invoice.description = entry.description or f"{kind.label} entry from {name}"
        invoice.date = entry.date
    else:
        invoice.description = entry.description
        invoice.tax = 0

    if created or invoice.amount != entry.amount:
        _single_line(invoice, invoice.description, entry.amount)

    if kind is EXPENSE:
        # A pending expense leaves an already overdue invoice overdue
        if not (entry.status == "pending" and invoice.status == "overdue"):
            invoice.status = entry.status
        invoice.category = entry.category
        invoice.payment_method = entry.payment_method
    elif created:
        invoice.status = "paid"
        invoice.category = entry.category if entry.category in INVOICE_CATEGORIES else "other"


def _mirror_invoice_to_entry(invoice: Invoice, entry, kind: EntryKind, changes):
    setattr(entry, kind.counterpart_field, invoice.client_name)
    entry.amount = invoice.amount
    # The invoice may still carry its generated description
    if "description" in changes:
        entry.description = invoice.description
    entry.date = invoice.due_date
    if kind is EXPENSE and invoice.status in ("pending", "paid", "cancelled"):
        entry.status = invoice.status


def reconcile_invoice(db: Session, owner_id: int, entry, invoice: Optional[Invoice] = None):
    """
    Make sure ``entry`` has exactly one linked invoice carrying its values.

    Uses ``invoice`` when given, otherwise the invoice already linked to the
    entry, otherwise creates one. Safe to call repeatedly: a second call
    updates the same invoice.

    Returns:
        Tuple of (invoice, created)
    """
    kind = _kind_of(entry)
    if invoice is None:
        invoice = find_linked_invoice(db, owner_id, kind.name, entry.id)

    created = invoice is None
    if created:
        invoice = Invoice(
            user_id=owner_id,
            invoice_number=_free_invoice_number(db, owner_id, derived_invoice_number(kind, entry.id)),
            type=kind.name,
        )
        db.add(invoice)

    _mirror_entry_to_invoice(invoice, entry, kind, created)
    invoice.source_entity_type = kind.name
    invoice.source_entity_id = entry.id
    db.flush()

    logger.info(
        f"Invoice {invoice.id} {'created for' if created else 'synced with'} "
        f"{kind.name} {entry.id}"
    )
    return invoice, created


def _synthesize_entry(db: Session, owner_id: int, invoice: Invoice):
    """Create and link the entry for a paid invoice that has none."""
    kind = KINDS[invoice.type]
    if kind is INCOME:
        entry = Income(
            user_id=owner_id,
            source=invoice.client_name,
            amount=invoice.amount,
            date=invoice.due_date,
            category="salary" if invoice.category == "salary" else "other",
            description=invoice.description,
        )
    else:
        entry = Expense(
            user_id=owner_id,
            payee=invoice.client_name,
            amount=invoice.amount,
            date=invoice.due_date,
            status="paid",
            category=invoice.category or "other",
            payment_method=invoice.payment_method,
            description=invoice.description,
        )
    db.add(entry)
    db.flush()
    reconcile_invoice(db, owner_id, entry, invoice=invoice)
    logger.info(f"{kind.label} {entry.id} synthesized from paid invoice {invoice.id}")
    return entry


# ==================== ENTRY-SIDE OPERATIONS ====================

def _create_entry(db: Session, owner_id: int, kind: EntryKind, data: Any) -> dict:
    with unit_of_work(db, f"create_{kind.name}") as uow:
        uow.step("validate")
        payload = validate_input(kind.create_schema, data)

        uow.step(f"insert_{kind.name}")
        entry = create_owned(db, kind.model, owner_id, payload)

        uow.step("insert_invoice")
        invoice, _ = reconcile_invoice(db, owner_id, entry)

    return {kind.name: entry, "invoice": invoice}


def _update_entry(db: Session, owner_id: int, kind: EntryKind, entry_id: int, patch: Any) -> dict:
    with unit_of_work(db, f"update_{kind.name}") as uow:
        uow.step(f"load_{kind.name}")
        entry = get_owned(db, kind.model, owner_id, entry_id)
        old_name = getattr(entry, kind.counterpart_field)
        old_amount = entry.amount

        uow.step("apply_patch")
        _, changes = apply_patch(entry, kind.patch_schema, kind.create_schema, patch)
        db.flush()

        uow.step("locate_invoice")
        invoice = find_linked_invoice(db, owner_id, kind.name, entry.id)
        if invoice is None:
            invoice = find_legacy_invoice(db, owner_id, kind.name, old_name, old_amount)

        uow.step("sync_invoice")
        if invoice is not None:
            invoice, _ = reconcile_invoice(db, owner_id, entry, invoice=invoice)
        elif kind.counterpart_field in changes or "amount" in changes:
            invoice, _ = reconcile_invoice(db, owner_id, entry)

    logger.info(f"{kind.label} {entry_id} updated for user {owner_id}: {sorted(changes)}")
    return {kind.name: entry, "invoice": invoice}


def _delete_entry(db: Session, owner_id: int, kind: EntryKind, entry_id: int) -> dict:
    with unit_of_work(db, f"delete_{kind.name}") as uow:
        uow.step(f"load_{kind.name}")
        entry = get_owned(db, kind.model, owner_id, entry_id)

        uow.step("locate_invoice")
        invoice = find_linked_invoice(db, owner_id, kind.name, entry.id)
        if invoice is None:
            invoice = find_legacy_invoice(
                db, owner_id, kind.name, getattr(entry, kind.counterpart_field), entry.amount
            )
        linked_invoice_id = invoice.id if invoice is not None else None

        uow.step(f"delete_{kind.name}")
        delete_owned(db, entry)

        if invoice is not None:
            uow.step("delete_invoice")
            delete_owned(db, invoice)

    return {"deleted": True, "id": entry_id, "linked_invoice_id": linked_invoice_id}


def create_income(db: Session, owner_id: int, data: Any) -> dict:
    """
    Record an income and its paid invoice.

    Returns:
        {"income": Income, "invoice": Invoice}
    """
    return _create_entry(db, owner_id, INCOME, data)


def update_income(db: Session, owner_id: int, income_id: int, patch: Any) -> dict:
    """
    Apply a partial update to an income and carry it over to its invoice.

    When no invoice is found and the patch changed the source or the amount,
    a new linked invoice is created.
    """
    return _update_entry(db, owner_id, INCOME, income_id, patch)


def delete_income(db: Session, owner_id: int, income_id: int) -> dict:
    return _delete_entry(db, owner_id, INCOME, income_id)


def create_expense(db: Session, owner_id: int, data: Any) -> dict:
    return _create_entry(db, owner_id, EXPENSE, data)


def update_expense(db: Session, owner_id: int, expense_id: int, patch: Any) -> dict:
    return _update_entry(db, owner_id, EXPENSE, expense_id, patch)


def delete_expense(db: Session, owner_id: int, expense_id: int) -> dict:
    return _delete_entry(db, owner_id, EXPENSE, expense_id)


# ==================== INVOICE-SIDE OPERATIONS ====================

def create_invoice(db: Session, owner_id: int, fields: Any) -> Invoice:
    """
    Create an invoice entered directly by the user.

    A paid invoice synthesizes its Income (type "income") or paid Expense
    (type "expense") and links to it in the same transaction.
    """
    with unit_of_work(db, "create_invoice") as uow:
        uow.step("validate")
        payload = validate_input(InvoiceCreate, fields, "Please provide all required fields")

        uow.step("check_invoice_number")
        _ensure_unique_number(db, owner_id, payload.invoice_number)

        uow.step("insert_invoice")
        invoice = create_owned(
            db, Invoice, owner_id, payload,
            exclude={"items"},
            items=[InvoiceItem(**item.model_dump()) for item in payload.items],
        )

        if invoice.status == "paid":
            uow.step(f"insert_{invoice.type}")
            _synthesize_entry(db, owner_id, invoice)

    return invoice


def update_invoice(db: Session, owner_id: int, invoice_id: int, patch: Any) -> Invoice:
    """
    Apply a partial update to an invoice.

    ``type`` and the link fields are not patchable. A linked invoice pushes
    client name, amount and due date back to its entry, and description when
    the patch sets it. An unlinked invoice marked paid by this patch is linked
    to a matching unlinked entry, or gets one synthesized.
    """
    with unit_of_work(db, "update_invoice") as uow:
        uow.step("load_invoice")
        invoice = get_owned(db, Invoice, owner_id, invoice_id)
        was_paid = invoice.status == "paid"

        uow.step("apply_patch")
        merged, changes = apply_patch(invoice, InvoicePatch, InvoiceCreate, patch, skip=("items",))
        if "invoice_number" in changes:
            _ensure_unique_number(db, owner_id, merged.invoice_number, exclude_id=invoice.id)
        if "items" in changes:
            invoice.items = [InvoiceItem(**item.model_dump()) for item in merged.items]
        db.flush()

        if invoice.is_linked:
            uow.step("sync_entry")
            entry = load_linked_entry(db, owner_id, invoice)
            if entry is not None:
                _mirror_invoice_to_entry(invoice, entry, KINDS[invoice.source_entity_type], changes)
                db.flush()
            else:
                logger.warning(f"Invoice {invoice.id} links to a missing {invoice.source_entity_type}")
        elif "status" in changes and invoice.status == "paid" and not was_paid:
            kind = KINDS[invoice.type]
            uow.step("locate_entry")
            entry = find_legacy_entry(db, owner_id, kind, invoice.client_name, invoice.amount)
            if entry is not None:
                uow.step(f"link_{kind.name}")
                invoice.source_entity_type = kind.name
                invoice.source_entity_id = entry.id
                _mirror_invoice_to_entry(invoice, entry, kind, changes)
                db.flush()
                logger.info(f"Invoice {invoice.id} linked to existing {kind.name} {entry.id}")
            else:
                uow.step(f"insert_{kind.name}")
                _synthesize_entry(db, owner_id, invoice)

    logger.info(f"Invoice {invoice_id} updated for user {owner_id}: {sorted(changes)}")
    return invoice


def update_invoice_status(db: Session, owner_id: int, invoice_id: int, status: str) -> Invoice:
    return update_invoice(db, owner_id, invoice_id, {"status": status})


def delete_invoice(db: Session, owner_id: int, invoice_id: int) -> dict:
    """Delete an invoice; a linked invoice takes its entry with it."""
    with unit_of_work(db, "delete_invoice") as uow:
        uow.step("load_invoice")
        invoice = get_owned(db, Invoice, owner_id, invoice_id)
        entry = load_linked_entry(db, owner_id, invoice)
        linked_entry = None
        if entry is not None:
            linked_entry = {"type": invoice.source_entity_type, "id": entry.id}

        uow.step("delete_invoice")
        delete_owned(db, invoice)

        if entry is not None:
            uow.step(f"delete_{linked_entry['type']}")
            delete_owned(db, entry)

    return {"deleted": True, "id": invoice_id, "linked_entry": linked_entry}


# ==================== MIGRATION ====================

def backfill_invoice_links(db: Session, owner_id: int) -> int:
    """
    Link legacy invoices to their entries by counterpart name and amount.

    Entries that already have a linked invoice are skipped, as are invoices
    that are already linked, so running it again links nothing new.

    Returns:
        Number of invoices linked
    """
    linked_count = 0
    with unit_of_work(db, "backfill_invoice_links") as uow:
        uow.step("load_links")
        linked = {
            (entity_type, entity_id)
            for entity_type, entity_id in db.query(Invoice.source_entity_type, Invoice.source_entity_id).filter(
                Invoice.user_id == owner_id,
                Invoice.source_entity_id.isnot(None)
            )
        }

        for kind in (INCOME, EXPENSE):
            uow.step(f"link_{kind.name}")
            entries = db.query(kind.model).filter(
                kind.model.user_id == owner_id
            ).order_by(kind.model.id).all()
            for entry in entries:
                if (kind.name, entry.id) in linked:
                    continue
                invoice = find_legacy_invoice(
                    db, owner_id, kind.name, getattr(entry, kind.counterpart_field), entry.amount
                )
                if invoice is None:
                    continue
                invoice.source_entity_type = kind.name
                invoice.source_entity_id = entry.id
                db.flush()
                linked_count += 1

    logger.info(f"Backfilled {linked_count} invoice links for user {owner_id}")
    return linked_count
