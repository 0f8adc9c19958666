"""Authentication routes and helpers.

Bearer tokens are HS256 JWTs carrying the user id (``sub``), a unique token
id (``jti``) and a ``scope``. Logging out or refreshing revokes the current
``jti`` for the rest of its lifetime.
"""

import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, BackgroundTasks, status
from fastapi.security import OAuth2PasswordBearer
from fastapi_limiter.depends import RateLimiter
from fastapi_mail import MessageSchema, FastMail
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from . import schemas, crud
from .cache import is_token_revoked, revoke_token
from .core import get_settings, get_mail_config
from .database import get_db
from .errors import AuthenticationError, NotFoundError, ValidationError
from .logger import get_logger
from .models import User
from .policy import Caller, enforce, user_management
from .validation import parse_payload

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
router = APIRouter(prefix="/auth", tags=["auth"])

settings = get_settings()
auth_rate_limit = Depends(
    RateLimiter(
        times=settings.AUTH_RATE_LIMIT_TIMES,
        seconds=settings.AUTH_RATE_LIMIT_SECONDS,
    )
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a plain password with its hashed value."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate a password hash using the configured context."""
    return pwd_context.hash(password)


def create_access_token(
    data: dict, expires_delta: timedelta | None = None, scope: str = "access"
) -> str:
    """Create a signed JWT with a fresh token id."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "scope": scope, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_verification_token(user: User) -> str:
    """Generate verification JWT token for email confirmation."""
    return create_access_token(
        {"sub": str(user.id)},
        expires_delta=timedelta(hours=get_settings().VERIFICATION_TOKEN_EXPIRE_HOURS),
        scope="verification",
    )


def decode_token(token: str) -> schemas.TokenData:
    """
    Decode and verify a JWT.

    Raises:
        AuthenticationError: If the signature is invalid or the token expired.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthenticationError()
    return schemas.TokenData(**payload)


def token_response(user: User) -> schemas.Token:
    """Issue a bearer token for ``user``."""
    settings = get_settings()
    return schemas.Token(
        access_token=create_access_token({"sub": str(user.id)}),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def send_verification_email(background_tasks: BackgroundTasks, email: str, token: str):
    """Schedule sending of email verification message."""
    background_tasks.add_task(send_verification_email_task, email, token)


async def send_verification_email_task(email: str, token: str):
    """
    Send verification email asynchronously.

    Args:
        email (str): Recipient email address.
        token (str): Verification token.
    """
    settings = get_settings()
    verification_link = f"{settings.BASE_URL}/auth/verify?token={token}"
    message = MessageSchema(
        subject="Confirm your CarHub account",
        recipients=[email],
        body=f"""
        <html>
          <body>
            <h2>Welcome to CarHub!</h2>
            <p>To confirm your email address, follow the link:</p>
            <a href="{verification_link}">Confirm email</a>
          </body>
        </html>
        """,
        subtype="html",
    )
    fm = FastMail(get_mail_config())
    try:
        await fm.send_message(message)
    except Exception as exc:
        logger.warning("Could not send verification email to %s: %s", email, exc)


async def get_current_token(token: str = Depends(oauth2_scheme)) -> schemas.TokenData:
    """Dependency returning the claims of a valid, unrevoked access token."""
    token_data = decode_token(token)
    if token_data.sub is None or token_data.jti is None or token_data.scope != "access":
        raise AuthenticationError()
    if await is_token_revoked(token_data.jti):
        raise AuthenticationError()
    return token_data


def get_current_user(
    token_data: schemas.TokenData = Depends(get_current_token),
    db: Session = Depends(get_db),
) -> User:
    """Dependency that returns the active user owning the bearer token."""
    user = crud.get_user_by_id(db, int(token_data.sub))
    if user is None or not user.is_active:
        raise AuthenticationError()
    return user


def get_caller(current_user: User = Depends(get_current_user)) -> Caller:
    """Dependency exposing the authenticated identity to policy checks."""
    return Caller.from_user(current_user)


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Dependency rejecting non-admin callers with 403."""
    enforce(
        user_management(Caller.from_user(current_user)),
        forbidden_detail="Admin access required",
    )
    return current_user


async def _revoke(token_data: schemas.TokenData) -> None:
    remaining = int(token_data.exp.timestamp() - time.time()) if token_data.exp else 0
    await revoke_token(token_data.jti, remaining)


@router.post(
    "/register",
    response_model=schemas.UserOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[auth_rate_limit],
)
def register(
    background_tasks: BackgroundTasks,
    payload: Any = Body(None),
    db: Session = Depends(get_db),
):
    """
    Register a new user and send a verification email.

    Validation failures are reported with status 400, including a missing
    body or one that is not a JSON object.
    """
    user_in = parse_payload(
        schemas.UserRegister, payload, status_code=status.HTTP_400_BAD_REQUEST
    )
    hashed_password = get_password_hash(user_in.password)
    user = crud.create_user(
        db, user_in, hashed_password, error_status=status.HTTP_400_BAD_REQUEST
    )
    logger.info("User %s registered", user.id)
    send_verification_email(background_tasks, user.email, create_verification_token(user))
    return user


@router.post("/login", response_model=schemas.Token, dependencies=[auth_rate_limit])
def login(payload: Any = Body(None), db: Session = Depends(get_db)):
    """
    Authenticate with email and password and return a bearer token.

    Any failure, a malformed body included, is a plain 401 without field
    details.
    """
    try:
        credentials = schemas.LoginRequest.model_validate(payload)
    except PydanticValidationError:
        raise AuthenticationError("Unauthorized")

    user = crud.get_user_by_email(db, credentials.email)
    if user is None:
        # equalizes response time with the wrong-password path
        pwd_context.dummy_verify()
    if (
        user is None
        or not verify_password(credentials.password, user.hashed_password)
        or not user.is_active
    ):
        logger.warning("Failed login attempt for %s", credentials.email)
        raise AuthenticationError("Unauthorized")
    crud.record_login(db, user)
    return token_response(user)


@router.post("/logout")
async def logout(token_data: schemas.TokenData = Depends(get_current_token)):
    """Invalidate the bearer token used for this request."""
    await _revoke(token_data)
    logger.info("User %s logged out", token_data.sub)
    return {"message": "Successfully logged out"}


@router.post("/refresh", response_model=schemas.Token)
async def refresh_token(
    token_data: schemas.TokenData = Depends(get_current_token),
    current_user: User = Depends(get_current_user),
):
    """Exchange a still valid token for a new one and revoke the old one."""
    await _revoke(token_data)
    return token_response(current_user)


@router.api_route("/me", methods=["GET", "POST"], response_model=schemas.UserOut)
def read_me(current_user: User = Depends(get_current_user)):
    """
    Retrieve details of the currently authenticated user.

    Args:
        current_user (User): Authenticated user obtained from JWT token.

    Returns:
        UserOut: User profile information.
    """
    return current_user


@router.get("/verify")
def verify_email(token: str, db: Session = Depends(get_db)):
    """Verify email address using token."""

    try:
        token_data = decode_token(token)
    except AuthenticationError:
        raise ValidationError({"token": ["Invalid token"]}, status_code=status.HTTP_400_BAD_REQUEST)
    if token_data.scope != "verification" or token_data.sub is None:
        raise ValidationError(
            {"token": ["Invalid token scope"]}, status_code=status.HTTP_400_BAD_REQUEST
        )
    user = crud.get_user_by_id(db, int(token_data.sub))
    if not user:
        raise NotFoundError("User not found")
    if user.email_verified_at:
        return {"message": "Email already verified"}
    crud.mark_email_verified(db, user)
    return {"message": "Email verified successfully"}


@router.post("/verify", status_code=status.HTTP_200_OK)
def resend_verification(
    request: schemas.EmailRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """Resend verification token to provided email."""

    user = crud.get_user_by_email(db, request.email)
    if not user:
        raise NotFoundError("User not found")
    send_verification_email(background_tasks, user.email, create_verification_token(user))
    return {"message": "Verification email sent"}
