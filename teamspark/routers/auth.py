import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from teamspark.core.config import settings
from teamspark.core.exceptions import AuthenticationError
from teamspark.core.limiter import limiter
from teamspark.database import get_db
from teamspark.models.audit_log import AuditAction
from teamspark.models.user import User
from teamspark.routers.auth_deps import get_current_user
from teamspark.schemas.auth import LoginRequest, Token, UserResponse
from teamspark.services import auth as auth_service
from teamspark.services.audit import AuditService, request_context

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/login", response_model=Token)
@limiter.limit(settings.rate_limit.auth_limit)
def login(request: Request, login_data: LoginRequest, db: Session = Depends(get_db)):
    email = login_data.email.lower()
    user = db.query(User).filter(User.email == email).first()
    meta = request_context(request)

    if not user or not auth_service.verify_password(login_data.password, user.hashed_password):
        if user is not None:
            AuditService(db, user.organization_id, request_meta=meta).log_failure(
                AuditAction.LOGIN, "user", user.id, "Invalid credentials", user_id=user.id
            )
        logger.warning("Failed login attempt", extra={"reason": "invalid_credentials"})
        raise AuthenticationError("Incorrect email or password")

    if not user.is_active:
        AuditService(db, user.organization_id, request_meta=meta).log_failure(
            AuditAction.LOGIN, "user", user.id, "Account is deactivated", user_id=user.id
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")

    access_token = auth_service.create_access_token(data={
        "sub": user.email,
        "role": user.role.value,
        "user_id": user.id,
        "org_id": user.organization_id,
    })

    AuditService(db, user.organization_id, actor=user, request_meta=meta).log_action(
        AuditAction.LOGIN, "user", user.id, new_values={"email": user.email}
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
            "organization_id": user.organization_id,
        },
    }


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user
