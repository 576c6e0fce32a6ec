from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime

from campus_erp.core.database import get_db, atomic
from campus_erp.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    decode_token
)
from campus_erp.core.logging_config import logger, set_user_id
from campus_erp.core.rate_limiter import auth_rate_limit
from campus_erp.models.user import User
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.auth import UserRegister, UserLogin, RefreshTokenRequest, Token, LoginResponse, UserResponse
from campus_erp.modules.auth.dependencies import get_current_user, get_current_admin
from campus_erp.services.audit_service import audit_service

router = APIRouter()


def _tokens_for(user: User) -> dict:
    claims = {"sub": str(user.id), "email": user.email, "role": user.role.value}
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token({"sub": str(user.id)}),
        "token_type": "bearer",
    }


@router.post("/login", response_model=LoginResponse)
@auth_rate_limit()
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login with email and password (rate limited: 5/min)"""
    client_ip = request.client.host if request.client else "unknown"

    user = await db.scalar(select(User).where(User.email == credentials.email))
    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    if not user.is_active:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Account inactive",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    async with atomic(db):
        user.last_login = datetime.utcnow()
        await audit_service.log(db, AuditAction.LOGIN, "user", user.id, user.id)

    set_user_id(user.id)
    logger.log_auth_event(
        event="login",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    return {**_tokens_for(user), "user": user}


@router.post("/refresh", response_model=Token)
@auth_rate_limit()
async def refresh_token(
    request: Request,
    body: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
):
    """Exchange a refresh token for a new token pair"""
    payload = decode_token(body.refresh_token)

    if payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user = await db.scalar(select(User).where(User.id == payload.get("sub")))
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    logger.log_auth_event(event="refresh", success=True, user_email=user.email)
    return _tokens_for(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user info"""
    return current_user


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create a user account with the given role (admin only)"""
    existing = await db.scalar(select(User).where(User.email == user_data.email))
    if existing:
        logger.log_auth_event(
            event="register",
            success=False,
            user_email=user_data.email,
            reason="Email already registered"
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )

    user = User(
        email=user_data.email,
        full_name=user_data.full_name,
        hashed_password=get_password_hash(user_data.password),
        role=user_data.role,
        is_active=True,
    )
    async with atomic(db):
        db.add(user)
        await db.flush()
        await audit_service.log(
            db, AuditAction.CREATE, "user", user.id, current_user.id,
            new_values={"email": user.email, "role": user.role},
        )

    logger.log_auth_event(
        event="register",
        success=True,
        user_email=user.email,
        user_role=user.role.value
    )
    return user
