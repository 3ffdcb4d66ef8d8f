from fastapi import APIRouter
from sqlalchemy import select
from datetime import timedelta
import logging

from repair_api.api.deps import (
    DbSession,
    CurrentUser,
    verify_password,
    create_access_token,
)
from repair_api.config import settings
from repair_api.exceptions import UnauthorizedError
from repair_api.models.user import User
from repair_api.schemas.auth import UserResponse, Token, LoginRequest, AuthMeResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=Token)
async def login(
    login_data: LoginRequest,
    db: DbSession,
):
    """Authenticate user and return JWT token."""
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("Failed login attempt")
        raise UnauthorizedError("Incorrect email or password")

    if not user.is_active:
        raise UnauthorizedError("User account is disabled")

    access_token = create_access_token(
        data={"sub": str(user.id), "email": user.email},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return Token(access_token=access_token, token_type="bearer")


@router.get("/me", response_model=AuthMeResponse)
async def get_current_user_info(current_user: CurrentUser):
    """Get current authenticated user information."""
    return AuthMeResponse(user=UserResponse.model_validate(current_user))
