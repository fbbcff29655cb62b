import uuid
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from models.models import User
from schemas.common_schemas import MessageResponse, page_count
from schemas import user_schemas
from auth_utils import get_current_user, get_current_admin, verify_password
from db import crud
from db.database import get_db
from dependencies import get_user_or_404, get_storage_service
from services.storage_service import StorageService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    responses={404: {"description": "Not found"}},
)


def _check_email_available(db: Session, email: Optional[str], user: User) -> None:
    if not email or email == user.email:
        return
    existing = crud.get_user_by_email(db, email=email)
    if existing and existing.id != user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")


def _user_page(users, total: int, page: int, limit: int) -> dict:
    return {
        "users": users,
        "total_pages": page_count(total, limit),
        "current_page": page,
        "total": total,
    }


@router.get("/profile", response_model=user_schemas.ProfileResponse)
def read_profile(current_user: User = Depends(get_current_user)):
    """
    Get the full profile of the current authenticated user.
    """
    return {"user": current_user}


@router.put("/profile", response_model=user_schemas.ProfileUpdateResponse)
def update_profile(
    profile_update: user_schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    _check_email_available(db, profile_update.email, current_user)
    updated = crud.update_user(db, current_user, profile_update.model_dump(exclude_unset=True, exclude_none=True))
    return {"message": "Profile updated successfully", "user": updated}


@router.put("/change-password", response_model=MessageResponse)
def change_password(
    password_change: user_schemas.ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if not current_user.hashed_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This account signs in with Google and has no password to change"
        )
    if not verify_password(password_change.current_password, current_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")

    crud.update_password(db, current_user, password_change.new_password)
    logger.info(f"User {current_user.id} changed their password.")
    return {"message": "Password changed successfully"}


@router.get("/stats", response_model=user_schemas.UserStatsResponse)
def read_my_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"stats": crud.get_user_stats(db, user_id=current_user.id)}


# --- Admin ---

@router.get("/admin/all", response_model=user_schemas.UserListResponse)
def admin_list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    users, total = crud.list_users(
        db, search=search, role=role, is_active=is_active, skip=(page - 1) * limit, limit=limit
    )
    return _user_page(users, total, page, limit)


@router.get("/admin/deleted", response_model=user_schemas.UserListResponse)
def admin_list_deleted_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin)
):
    users, total = crud.list_users(
        db, deleted=True, search=search, role=role, skip=(page - 1) * limit, limit=limit
    )
    return _user_page(users, total, page, limit)


@router.get("/admin/{user_id}", response_model=user_schemas.ProfileResponse)
def admin_read_user(
    admin: User = Depends(get_current_admin),
    user: User = Depends(get_user_or_404)
):
    return {"user": user}


@router.put("/admin/{user_id}", response_model=user_schemas.ProfileUpdateResponse)
def admin_update_user(
    user_update: user_schemas.AdminUserUpdate,
    admin: User = Depends(get_current_admin),
    user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db)
):
    _check_email_available(db, user_update.email, user)

    if user.id == admin.id:
        if user_update.role is not None and user_update.role != "admin":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot remove your own admin role")
        if user_update.is_active is False:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot deactivate your own account")

    updated = crud.update_user(db, user, user_update.model_dump(exclude_unset=True, exclude_none=True))
    logger.info(f"User {updated.id} updated by admin {admin.id}.")
    return {"message": "User updated successfully", "user": updated}


@router.delete("/admin/{user_id}", response_model=MessageResponse)
def admin_soft_delete_user(
    admin: User = Depends(get_current_admin),
    user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db)
):
    if user.id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    if user.is_deleted:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is already deleted")

    crud.soft_delete_user(db, user)
    logger.info(f"User {user.id} soft-deleted by admin {admin.id}.")
    return {"message": "User deleted successfully"}


@router.put("/admin/{user_id}/recover", response_model=user_schemas.ProfileUpdateResponse)
def admin_recover_user(
    admin: User = Depends(get_current_admin),
    user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db)
):
    if not user.is_deleted:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is not deleted")

    recovered = crud.recover_user(db, user)
    logger.info(f"User {recovered.id} recovered by admin {admin.id}.")
    return {"message": "User recovered successfully", "user": recovered}


@router.delete("/admin/{user_id}/permanent", response_model=MessageResponse)
def admin_delete_user_permanently(
    admin: User = Depends(get_current_admin),
    user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service)
):
    if user.id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")

    user_id = user.id
    storage_keys = crud.delete_user_permanently(db, user)
    for key in storage_keys:
        storage.delete_file(key)
    logger.info(f"User {user_id} permanently deleted by admin {admin.id}; {len(storage_keys)} file(s) removed.")
    return {"message": "User permanently deleted"}


@router.put("/admin/{user_id}/reactivate", response_model=user_schemas.ProfileUpdateResponse)
def admin_reactivate_user(
    admin: User = Depends(get_current_admin),
    user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db)
):
    reactivated = crud.update_user(db, user, {"is_active": True})
    return {"message": "User reactivated successfully", "user": reactivated}


@router.get("/admin/{user_id}/stats", response_model=user_schemas.UserStatsResponse)
def admin_read_user_stats(
    admin: User = Depends(get_current_admin),
    user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db)
):
    return {"stats": crud.get_user_stats(db, user_id=user.id)}
