from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from app.config import get_settings
from app.exceptions import ConflictError, LedgerError, StorageError
from app.logging_config import get_logger
from app.models import Base
from app.models.user import User
from app.models.income import Income
from app.models.expense import Expense
from app.models.invoice import Invoice, InvoiceItem
from app.models.tax import Tax, TaxDeduction, TaxPayment, TaxEntry

logger = get_logger(__name__)

SQLALCHEMY_DATABASE_URL = get_settings().database_url

_connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """
    Create tables if they don't exist.
    For schema changes, use Alembic migrations instead:
        alembic revision --autogenerate -m "Description of change"
        alembic upgrade head
    """
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class UnitOfWork:
    """
    Tracks the step a coordinated mutation is on.

    Only used through ``unit_of_work``; the step name ends up in the
    context of whatever error aborts the transaction.
    """

    def __init__(self, db: Session, operation: str):
        self.db = db
        self.operation = operation
        self.current_step = "begin"

    def step(self, name: str):
        self.current_step = name
        logger.debug(f"{self.operation}: {name}")


@contextmanager
def unit_of_work(db: Session, operation: str):
    """
    Run a multi-entity mutation as one transaction.

    Commits when the block exits cleanly. On any exception every write made
    inside the block is rolled back and the error is re-raised with
    ``context["failed_step"]`` set. Integrity violations surface as
    ConflictError, other database failures as StorageError.

    Usage:
        with unit_of_work(db, "create_income") as uow:
            uow.step("insert_income")
            ...
    """
    uow = UnitOfWork(db, operation)
    try:
        yield uow
        uow.step("commit")
        db.commit()
    except LedgerError as exc:
        db.rollback()
        exc.context.setdefault("failed_step", uow.current_step)
        exc.context.setdefault("operation", operation)
        logger.warning(f"{operation} rolled back at step '{uow.current_step}': {exc}")
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.error(f"{operation} rolled back at step '{uow.current_step}': integrity violation")
        raise ConflictError(
            "The change conflicts with existing data",
            context={"failed_step": uow.current_step, "operation": operation},
            cause=exc,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"{operation} rolled back at step '{uow.current_step}': {exc}")
        raise StorageError(
            "The database could not complete the operation",
            context={"failed_step": uow.current_step, "operation": operation},
            cause=exc,
        ) from exc
    except Exception:
        db.rollback()
        logger.exception(f"{operation} rolled back at step '{uow.current_step}'")
        raise
