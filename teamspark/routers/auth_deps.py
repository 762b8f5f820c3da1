"""
Authentication and RBAC dependencies.
Resolves the acting user from the bearer token and builds organization-bound services.
"""
import logging
from typing import Callable, List, Type

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from teamspark.core.logging import actor_id_var
from teamspark.database import get_db
from teamspark.models.user import User, UserRole
from teamspark.schemas.auth import TokenData
from teamspark.services import auth as auth_service
from teamspark.services.audit import request_context

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """
    Extracts and validates the current user from the JWT token.
    The token's organization must still match the user's organization.
    """
    payload = auth_service.decode_access_token(token)

    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise _unauthorized("Could not validate credentials")

    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise _unauthorized("TOKEN_EXPIRED")

    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise _unauthorized("Invalid token type")

    token_data = TokenData(email=payload.get("sub"), role=payload.get("role"), org_id=payload.get("org_id"))
    if token_data.email is None:
        logger.warning("Authentication failed: Missing subject (email) in token")
        raise _unauthorized("Missing subject in token")

    user = db.query(User).filter(User.email == token_data.email).first()
    if user is None:
        logger.warning(f"Authentication failed: User {token_data.email} not found in database")
        raise _unauthorized("User not found")
    if token_data.org_id is not None and token_data.org_id != user.organization_id:
        logger.warning(f"Authentication failed: organization mismatch for user {user.id}")
        raise _unauthorized("Could not validate credentials")
    if not user.is_active:
        logger.warning(f"Authentication failed: User {user.id} is inactive")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")

    actor_id_var.set(str(user.id))
    return user


def require_role(allowed_roles: List[UserRole]) -> Callable:
    """
    Dependency factory that checks if the user has one of the allowed roles.

    Usage:
        @router.get("/admin-only")
        def admin_endpoint(user: User = Depends(require_role([UserRole.ADMIN]))):
            ...
    """
    def role_checker(current_user: User = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}",
            )
        return current_user
    return role_checker


def require_admin():
    """Shorthand for requiring the admin role."""
    return require_role([UserRole.ADMIN])


def get_service(service_cls: Type) -> Callable:
    """
    Dependency factory returning ``service_cls`` bound to the actor's organization,
    with the request's IP address and user agent for audit entries.
    """
    def build(
        request: Request,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
    ):
        return service_cls(db, current_user.organization_id, current_user, request_context(request))
    return build
