import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from reise.core.settings import Settings
from reise.core.trips.entitlements import Entitlements
from reise.db.models import User
from reise.db.session import get_session

logger = logging.getLogger(__name__)

settings = Settings()
ACCESS_TOKEN_EXPIRE_MINUTES = 60

# Tokens are issued by the account service; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def create_access_token(user_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token (tests and internal tooling)"""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": str(user_id), "exp": expire, "type": "access"}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_user_id(token: str) -> Optional[UUID]:
    """Return the user id of a valid access token, else None"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        return None
    if payload.get("type", "access") != "access":
        return None
    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        logger.warning("Token subject is not a user id")
        return None


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Get current user from JWT token"""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = decode_user_id(token)
    if user_id is None:
        raise credentials_exc

    user = await session.get(User, user_id)
    if not user:
        logger.warning(f"User not found for token: {user_id}")
        raise credentials_exc
    return user


def get_entitlements(user: User = Depends(get_current_user)) -> Entitlements:
    return Entitlements.from_user(user)


def require_pro(entitlements: Entitlements = Depends(get_entitlements)) -> Entitlements:
    if not entitlements.is_pro:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Krever Pro-abonnement",
        )
    return entitlements
