"""
Bearer-token identity and role checks
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Dict, Any
from uuid import UUID
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from app.config import settings
from app.exceptions import Unauthenticated, Forbidden

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is reported as Unauthenticated, not 403
security = HTTPBearer(auto_error=False)


class Role(str, Enum):
    SYSTEM_ADMIN = "System Admin"
    EXAM_MANAGER = "Exam Manager"
    QUESTION_MANAGER = "Question Manager"
    RESULT_MANAGER = "Result Manager"
    STUDENT = "Student"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller attached to a request"""
    user_id: UUID
    role: Role


def create_access_token(
    user_id: UUID,
    role: Role,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Issue a signed access token for a user"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode: Dict[str, Any] = {
        "sub": str(user_id),
        "role": Role(role).value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Identity:
    """Validate a token and turn its claims into an Identity"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise Unauthenticated()
    
    if payload.get("type") != "access":
        raise Unauthenticated("Invalid token type")
    
    try:
        return Identity(user_id=UUID(payload["sub"]), role=Role(payload["role"]))
    except (KeyError, ValueError, TypeError):
        raise Unauthenticated("Malformed token claims")


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """Resolve the caller from the Authorization header"""
    if credentials is None:
        raise Unauthenticated("Missing bearer token")
    
    return decode_token(credentials.credentials)


def require_roles(*roles: Role):
    """
    Dependency factory declaring which roles may call an endpoint

    Usage:
        identity: Identity = Depends(require_roles(Role.STUDENT))
    """
    allowed = frozenset(roles)
    
    async def checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            logger.warning(f"Role {identity.role.value} denied; requires {[r.value for r in roles]}")
            raise Forbidden()
        return identity
    
    return checker
