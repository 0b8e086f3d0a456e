from fastapi import APIRouter, HTTPException, status, Response
from sqlalchemy import select

from app.api.deps import (
    DbSession,
    CurrentUser,
    verify_password,
    create_access_token,
)
from app.config import settings
from app.models.user import User
from app.schemas.auth import UserResponse, Token, LoginRequest, AuthMeResponse
from app.security.rbac import get_effective_permissions

router = APIRouter()


@router.post("/login", response_model=Token)
async def login(
    response: Response,
    login_data: LoginRequest,
    db: DbSession,
):
    """Authenticate user and return JWT token (also set as session cookie)."""
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )

    access_token = create_access_token(data={"sub": str(user.id), "email": user.email})

    response.set_cookie(
        key="session",
        value=access_token,
        httponly=True,
        secure=settings.ENVIRONMENT != "development",
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )

    return Token(access_token=access_token)


@router.post("/logout")
async def logout(response: Response):
    """Logout user by clearing session cookie."""
    response.delete_cookie(key="session")
    return {"message": "Successfully logged out"}


@router.get("/me", response_model=AuthMeResponse)
async def get_current_user_info(current_user: CurrentUser, db: DbSession):
    """Current user with the permissions their role grants."""
    permissions = await get_effective_permissions(db, current_user)
    user_response = UserResponse.model_validate(current_user).model_copy(
        update={"permissions": sorted(p.value for p in permissions)}
    )
    return AuthMeResponse(user=user_response)
