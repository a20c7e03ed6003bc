"""Bearer token verification and access dependencies

Tokens are issued by the identity service; this service only verifies
them and turns the claims into a CallerIdentity.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from catering.config import settings
from catering.identity import CallerIdentity, UserRole
from catering.schemas.auth import TokenPayload

# OAuth2 scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def create_access_token(
    user_id: UUID,
    role: UserRole,
    business_id: Optional[UUID] = None,
    employee_id: Optional[UUID] = None,
) -> str:
    """Create JWT access token (used by scripts and tests)"""
    expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "business_id": str(business_id) if business_id else None,
        "employee_id": str(employee_id) if employee_id else None,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


async def get_current_identity(token: str = Depends(oauth2_scheme)) -> CallerIdentity:
    """Resolve the caller identity from the bearer token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = TokenPayload(**jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        ))
        if payload.type != "access":
            raise credentials_exception
        return CallerIdentity(
            user_id=UUID(payload.sub),
            role=UserRole(payload.role),
            business_id=UUID(payload.business_id) if payload.business_id else None,
            employee_id=UUID(payload.employee_id) if payload.employee_id else None,
        )
    except (JWTError, ValidationError, ValueError):
        raise credentials_exception


def require_role(*roles: UserRole):
    """Dependency factory for role-based access control"""
    async def role_checker(identity: CallerIdentity = Depends(get_current_identity)) -> CallerIdentity:
        if identity.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return identity
    return role_checker


async def verify_business_access(
    business_id: UUID,
    identity: CallerIdentity = Depends(get_current_identity),
) -> CallerIdentity:
    """Verify the caller may act on the business in the path"""
    if not identity.can_access_business(business_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this business",
        )
    return identity
