"""
Authentication dependencies.

Users sign in with the identity provider; this service only verifies the
bearer tokens it issues (HS256, `sub` = user id, audience `authenticated`).
"""
import hmac
import jwt
from fastapi import Depends, HTTPException, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from .config import settings
from .logger import logger

security = HTTPBearer(auto_error=False)

def decode_access_token(token: str) -> Optional[str]:
    """Decode an identity-provider JWT and return the user id"""
    if not settings.JWT_SECRET_KEY:
        logger.error("JWT_SECRET_KEY is not set, rejecting token")
        return None
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        return None
    return user_id

async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Dependency to get the authenticated user id from the bearer token
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return user_id

async def get_current_user_id_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    """
    Optional authentication - returns the user id if authenticated, None otherwise
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return decode_access_token(authorization.split(" ", 1)[1])

async def require_trigger_secret(authorization: Optional[str] = Header(None)) -> None:
    """
    Guard for the trigger webhook. Open when TRIGGER_WEBHOOK_SECRET is empty.
    """
    secret = settings.TRIGGER_WEBHOOK_SECRET
    if not secret:
        return
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")
