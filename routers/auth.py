from fastapi import APIRouter, Depends, HTTPException, status, Request, BackgroundTasks
from sqlalchemy.orm import Session
import logging

from db.database import get_db
from db import crud
from models.models import User, utcnow
from schemas.common_schemas import MessageResponse
from schemas.user_schemas import (
    UserCreate,
    LoginRequest,
    VerifyEmailRequest,
    EmailRequest,
    GoogleLoginRequest,
    ResetPasswordRequest,
    RegisterResponse,
    TokenResponse,
    CurrentUserResponse,
    OTP_PATTERN,
)
from auth_utils import verify_password, create_user_token, get_current_user
from rate_limiter import limiter, get_dynamic_rate_limit

from services.email_service import EmailService
from services.google_auth import verify_google_id_token, GoogleAuthError
from dependencies import get_email_service

# Initialize logger for this module
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
    responses={404: {"description": "Not found"}},
)

DELETED_ACCOUNT_DETAIL = (
    "This email was previously used by a deleted account. "
    "Please contact an administrator to recover your account."
)


def _queue_otp_email(background_tasks: BackgroundTasks, email_service: EmailService, user: User) -> None:
    email_content = email_service.get_otp_email_template(name=user.name, otp=user.email_verification_otp)
    background_tasks.add_task(
        email_service.send_email,
        to_address=user.email,
        subject=email_content["subject"],
        html_body=email_content["html_body"],
        text_body=email_content["text_body"]
    )
    logger.info(f"Verification code email task added for user: {user.email}")


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_dynamic_rate_limit)
def register_user(
    request: Request,
    background_tasks: BackgroundTasks,
    user: UserCreate,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """
    Registers a new, unverified user and emails them a six digit verification code.
    """
    logger.info(f"Registration attempt for email: {user.email}")

    # Deleted accounts keep their email; only an admin can bring them back
    db_user = crud.get_user_by_email(db, email=user.email)
    if db_user:
        if db_user.is_deleted:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=DELETED_ACCOUNT_DETAIL,
            )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email",
        )

    created_user = crud.create_user(db=db, user=user)
    logger.info(f"User created successfully with ID: {created_user.id}")

    _queue_otp_email(background_tasks, email_service, created_user)

    return RegisterResponse(
        message="Registration successful! Please check your email for the verification code.",
        requires_verification=True,
        email=created_user.email,
    )


@router.post("/verify-email", response_model=TokenResponse)
@limiter.limit(get_dynamic_rate_limit)
def verify_user_email(
    request: Request,
    payload: VerifyEmailRequest,
    db: Session = Depends(get_db)
):
    logger.info(f"Attempting email verification for: {payload.email}")

    user = crud.get_active_user_by_email(db, email=payload.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if user.is_email_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already verified")

    if not OTP_PATTERN.match(payload.otp or ""):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please enter a valid 6-digit OTP")

    if not user.email_verification_otp or not user.email_verification_expires_at:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No verification code found. Please request a new one.",
        )

    if user.email_verification_expires_at < utcnow():
        logger.warning(f"Verification code for user {user.email} has expired.")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OTP has expired. Please request a new one.",
        )

    if user.email_verification_otp != payload.otp:
        logger.warning(f"Invalid verification code submitted for user {user.email}.")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid OTP. Please check your email and try again.",
        )

    updated_user = crud.mark_user_as_verified(db, user=user)
    logger.info(f"User {updated_user.email} successfully verified.")

    return TokenResponse(
        message="Email verified successfully! Welcome to Media Gallery.",
        token=create_user_token(updated_user),
        user=updated_user,
    )


@router.post("/resend-otp", response_model=MessageResponse)
@limiter.limit(get_dynamic_rate_limit)
def resend_otp(
    request: Request,
    background_tasks: BackgroundTasks,
    payload: EmailRequest,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    user = crud.get_active_user_by_email(db, email=payload.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if user.is_email_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already verified")

    user = crud.refresh_verification_otp(db, user=user)
    _queue_otp_email(background_tasks, email_service, user)

    return {"message": "New verification code sent to your email."}


@router.post("/login", response_model=TokenResponse)
@limiter.limit(get_dynamic_rate_limit)
def login_for_access_token(
    request: Request,
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    user = crud.get_active_user_by_email(db, email=credentials.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account is deactivated")

    if not verify_password(credentials.password, user.hashed_password):
        logger.info(f"Failed login for user: {user.email}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    if not user.is_email_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please verify your email first")

    user = crud.record_login(db, user=user)
    logger.info(f"User {user.id} logged in.")

    return TokenResponse(message="Login successful", token=create_user_token(user), user=user)


@router.post("/google-login", response_model=TokenResponse)
@limiter.limit(get_dynamic_rate_limit)
def google_login(
    request: Request,
    payload: GoogleLoginRequest,
    db: Session = Depends(get_db)
):
    try:
        identity = verify_google_id_token(payload.token)
    except GoogleAuthError as e:
        logger.warning(f"Google login failed: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Google login failed")

    existing = crud.get_user_by_email(db, email=identity["email"])
    if existing and existing.is_deleted:
        logger.warning(f"Google login refused for deleted account {existing.id}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DELETED_ACCOUNT_DETAIL)

    user = crud.upsert_google_user(
        db,
        email=identity["email"],
        name=identity["name"],
        google_id=identity["sub"],
        avatar=identity["picture"],
    )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account is deactivated")

    logger.info(f"User {user.id} logged in with Google.")
    return TokenResponse(message="Google login successful", token=create_user_token(user), user=user)


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(get_dynamic_rate_limit)
def forgot_password(
    request: Request,
    payload: EmailRequest,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    user = crud.get_active_user_by_email(db, email=payload.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    user = crud.set_password_reset_token(db, user=user)

    # Sent inline: the caller is told whether the email went out
    email_content = email_service.get_password_reset_email_template(name=user.name, reset_token=user.reset_password_token)
    sent = email_service.send_email(
        to_address=user.email,
        subject=email_content["subject"],
        html_body=email_content["html_body"],
        text_body=email_content["text_body"]
    )
    if not sent:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send reset email")

    return {"message": "Password reset email sent"}


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit(get_dynamic_rate_limit)
def reset_password(
    request: Request,
    payload: ResetPasswordRequest,
    db: Session = Depends(get_db)
):
    user = crud.get_user_by_valid_reset_token(db, token=payload.token)
    if not user or user.is_deleted:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    crud.reset_password(db, user=user, new_password=payload.new_password)
    logger.info(f"Password reset for user {user.id}.")
    return {"message": "Password reset successful"}


@router.get("/me", response_model=CurrentUserResponse)
def read_current_user(current_user: User = Depends(get_current_user)):
    return {"user": current_user}
