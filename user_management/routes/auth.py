from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from user_management.config import AUTH_RATE_LIMIT
from user_management.deps.auth import get_account_service
from user_management.limiter import limiter
from user_management.schemas.user_schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResendVerificationRequest,
    UserDetailOut,
    UserOut,
    VerifiedUserOut,
    VerifyResponse,
)
from user_management.services.account_service import AccountService

router = APIRouter(tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_RATE_LIMIT)
async def register(
    request: Request,
    payload: RegisterRequest,
    service: AccountService = Depends(get_account_service),
):
    user = await service.register(payload.name, payload.email, payload.password)
    # the verification email is already queued; we don't wait for it
    return RegisterResponse(
        message="Registration successful! A verification email has been sent to your email address.",
        user=UserOut.model_validate(user),
    )


@router.post("/login", response_model=LoginResponse)
@limiter.limit(AUTH_RATE_LIMIT)
async def login(
    request: Request,
    payload: LoginRequest,
    service: AccountService = Depends(get_account_service),
):
    token, user = await service.login(payload.email, payload.password)
    return LoginResponse(
        message="Login successful",
        token=token,
        user=UserDetailOut.model_validate(user),
    )


@router.get("/verify", response_model=VerifyResponse)
async def verify(
    token: Optional[str] = Query(None),
    service: AccountService = Depends(get_account_service),
):
    user_id, email, user_status = await service.verify(token)
    return VerifyResponse(
        message="Email verified successfully! You can now login.",
        user=VerifiedUserOut(id=user_id, email=email, status=user_status),
    )


@router.post("/resend-verification", response_model=MessageResponse)
@limiter.limit(AUTH_RATE_LIMIT)
async def resend_verification(
    request: Request,
    payload: ResendVerificationRequest,
    service: AccountService = Depends(get_account_service),
):
    # Same answer whether or not the account exists
    message = await service.resend_verification(payload.email)
    return MessageResponse(message=message)
