"""
Authentication API endpoints.

Provides register, login, logout and current-user endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.schemas.auth import UserRegister, UserLogin, TokenData, UserData, UserResponse
from backend.app.schemas.common import ApiResponse
from backend.app.core.actor import Actor
from backend.app.core.security import get_password_hash, verify_password
from backend.app.core.jwt import create_user_token
from backend.app.core.dependencies import get_current_user, security
from backend.app.core.token_revocation import revoke_token
from backend.app.services.audit import log_auth_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _issue_token(user: User) -> TokenData:
    return TokenData(
        access_token=create_user_token(user),
        token_type="bearer",
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=ApiResponse[TokenData], status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new donor, volunteer or charity.

    Admin accounts cannot be created via the API.
    """
    if user_data.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin users cannot be registered via API"
        )

    result = await db.execute(
        select(User).where(
            or_(User.username == user_data.username, User.email == user_data.email)
        )
    )
    existing_user = result.scalars().first()

    if existing_user:
        if existing_user.username == user_data.username:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username already registered"
            )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    new_user = User(
        email=user_data.email,
        username=user_data.username,
        hashed_password=get_password_hash(user_data.password),
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        organization=user_data.organization,
        phone=user_data.phone,
        role=user_data.role,
        latitude=user_data.latitude,
        longitude=user_data.longitude,
        city=user_data.city,
        is_active=True,
    )

    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)

    await log_auth_event(
        db=db,
        action=AuditAction.USER_REGISTERED,
        user_id=new_user.id,
        username=new_user.username,
        ip_address=request.client.host if request.client else None,
        metadata={"role": new_user.role.value}
    )

    return ApiResponse(message="User registered successfully", data=_issue_token(new_user))


@router.post("/login", response_model=ApiResponse[TokenData])
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Login user and return JWT token.

    Accepts username or email for login.
    Logs successful and failed login attempts.
    """
    ip_address = request.client.host if request.client else None

    result = await db.execute(
        select(User).where(
            or_(User.username == credentials.username, User.email == credentials.username)
        )
    )
    user = result.scalars().first()

    if not user or not verify_password(credentials.password, user.hashed_password):
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=user.id if user else None,
            username=credentials.username,
            ip_address=ip_address,
            metadata={"reason": "Invalid password" if user else "User not found"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        await log_auth_event(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            user_id=user.id,
            username=user.username,
            ip_address=ip_address,
            metadata={"reason": "Account is inactive/blocked"}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account"
        )

    await log_auth_event(
        db=db,
        action=AuditAction.LOGIN_SUCCESS,
        user_id=user.id,
        username=user.username,
        ip_address=ip_address
    )

    return ApiResponse(message="Login successful", data=_issue_token(user))


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the presented token."""
    await revoke_token(credentials.credentials, current_user.user_id)
    await log_auth_event(
        db=db,
        action=AuditAction.LOGOUT,
        user_id=current_user.user_id,
        username=current_user.username
    )
    return ApiResponse(message="Logged out successfully", data={})


@router.get("/me", response_model=ApiResponse[UserData])
async def get_current_user_info(
    current_user: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get current authenticated user information.

    Raises:
        404: If user not found in database
    """
    user = await db.get(User, current_user.user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return ApiResponse(data=UserData(user=UserResponse.model_validate(user)))
