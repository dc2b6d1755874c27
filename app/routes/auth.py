"""
Authentication routes for LedgerFlow.

Login sets a ``username`` cookie; every other router resolves the owner of
a request from that cookie through ``require_user``.

Routes:
    POST /api/auth/register - Create an account
    POST /api/auth/login    - Check credentials and set the session cookie
    POST /api/auth/logout   - Clear the session cookie
"""

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db import get_db
from app.exceptions import ConflictError, UnauthorizedError, ValidationError
from app.logging_config import get_logger
from app.models.user import User
from app.schemas import LoginRequest, RegisterRequest, UserOut, dump
from app.services.ledger_store import validate_input
from app.utils.auth import hash_password, verify_password

# Module logger for authentication operations
logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth")


def get_current_user(request: Request, db: Session):
    """Get the logged-in user from cookies."""
    username = request.cookies.get("username")
    if not username:
        return None
    return db.query(User).filter(User.username == username).first()


def require_user(request: Request, db: Session) -> User:
    """Like get_current_user, but raises UnauthorizedError when nobody is logged in."""
    user = get_current_user(request, db)
    if user is None:
        raise UnauthorizedError("Not authenticated")
    return user


def unique_username(db: Session, username: str):
    return db.query(User).filter(User.username == username).first() is None


@router.post("/register")
def register(payload: dict = Body(...), db: Session = Depends(get_db)):
    data = validate_input(RegisterRequest, payload)
    logger.info(f"Registration attempt for username: {data.username}")
    if not unique_username(db, data.username):
        logger.warning(f"Registration failed - username already taken: {data.username}")
        raise ConflictError("Username already taken", details={"username": "Username already taken"})
    try:
        password_hash = hash_password(data.password)
    except ValueError as exc:
        raise ValidationError("Validation error", details={"password": str(exc)}) from exc

    user = User(name=data.name, username=data.username, password_hash=password_hash)
    db.add(user)
    db.commit()
    logger.info(f"New user registered successfully: {data.username}")
    return JSONResponse(dump(UserOut, user), status_code=status.HTTP_201_CREATED)


@router.post("/login")
def login(payload: dict = Body(...), db: Session = Depends(get_db)):
    data = validate_input(LoginRequest, payload)
    logger.info(f"Login attempt for username: {data.username}")
    user = db.query(User).filter(User.username == data.username).first()
    if user and verify_password(data.password, user.password_hash):
        logger.info(f"Login successful for user: {data.username}")
        response = JSONResponse(dump(UserOut, user))
        response.set_cookie(key="username", value=user.username, httponly=True)
        return response
    logger.warning(f"Login failed for username: {data.username} - invalid credentials")
    raise UnauthorizedError("Invalid credentials")


@router.post("/logout")
def logout(request: Request):
    username = request.cookies.get("username", "unknown")
    logger.info(f"User logged out: {username}")
    response = JSONResponse({"success": True})
    response.delete_cookie("username")
    return response
