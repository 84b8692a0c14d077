"""
Authentication router — JWT cookie / bearer token handling.

The rest of the app only needs "who is calling" as a user id.

Endpoints:
    POST /auth/signup      → create an email/password account and set the JWT cookie
    POST /auth/login       → verify email/password and set the JWT cookie
    GET  /auth/me          → the signed-in user
    POST /auth/dev-login   → (non-production) upsert a user and set the JWT cookie
    POST /auth/logout      → clear JWT cookie
"""

import logging
from typing import Optional

from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.schemas.user import DevLogin, Login, SignUp, Token, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

COOKIE_KEY = "access_token"


# ═══════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════

def create_access_token(data: dict) -> str:
    """Create a signed JWT with an expiry claim."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))


def _set_auth_cookie(response: Response, user_id: int) -> str:
    """Attach the JWT cookie to a response and return the token."""
    token = create_access_token({"sub": str(user_id)})
    response.set_cookie(
        key=COOKIE_KEY,
        value=token,
        httponly=True,
        secure=not settings.DEBUG,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="lax",
    )
    return token


def _extract_token(request: Request) -> Optional[str]:
    token = request.cookies.get(COOKIE_KEY)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


async def get_current_user(request: Request) -> Optional[User]:
    """
    Extract the JWT from the cookie or Authorization header, decode it,
    and return the User.  Returns None when no valid token is present
    (allows public pages).

    The lookup runs in its own short-lived session so no read transaction
    stays open while a service runs its own.
    """
    token = _extract_token(request)
    if not token:
        return None
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        user_id: int = int(payload.get("sub", 0))
        if not user_id:
            return None
    except (JWTError, ValueError):
        return None

    async with request.app.state.session_factory() as db:
        return await db.get(User, user_id)


async def require_user(current_user: Optional[User] = Depends(get_current_user)) -> User:
    """Like ``get_current_user`` but rejects anonymous callers with 401."""
    if current_user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return current_user


# ═══════════════════════════════════════════════════════════════
#  Email / password
# ═══════════════════════════════════════════════════════════════

@router.post("/signup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: SignUp,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create an account and sign it in."""
    result = await db.execute(select(User).where(User.email == payload.email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already exists")

    user = User(
        email=payload.email,
        full_name=payload.full_name,
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    await db.flush()  # to get user.id

    _set_auth_cookie(response, user.id)
    logger.info(f"User {user.id} signed up")
    return user


@router.post("/login", response_model=Token)
async def login(
    payload: Login,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).where(User.email == payload.email))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=400, detail="Invalid email or password")
    if not user.password_hash:
        raise HTTPException(status_code=400, detail="This account has no password set")
    if not verify_password(payload.password, user.password_hash):
        logger.warning(f"Failed login for user {user.id}")
        raise HTTPException(status_code=400, detail="Invalid email or password")

    token = _set_auth_cookie(response, user.id)
    return Token(access_token=token)


@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(require_user)):
    """Who the current cookie or bearer token belongs to."""
    return current_user


# ═══════════════════════════════════════════════════════════════
#  Dev sign-in
# ═══════════════════════════════════════════════════════════════

@router.post("/dev-login", response_model=Token)
async def dev_login(
    payload: DevLogin,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Sign in by email without credentials. Disabled in production."""
    if settings.is_production:
        raise HTTPException(status_code=404, detail="Not found")

    result = await db.execute(select(User).where(User.email == payload.email))
    user = result.scalar_one_or_none()
    if not user:
        user = User(email=payload.email, full_name=payload.full_name)
        db.add(user)
        await db.flush()  # to get user.id

    token = _set_auth_cookie(response, user.id)
    return Token(access_token=token)


# ═══════════════════════════════════════════════════════════════
#  Logout
# ═══════════════════════════════════════════════════════════════

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response):
    response.delete_cookie(COOKIE_KEY)
