# routers/galleries.py
import uuid
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from db import crud
from db.database import get_db
from models import models as db_models
from schemas.common_schemas import MessageResponse
from schemas import gallery_schemas
from auth_utils import get_current_user
from permissions import can_modify, can_view_gallery, ensure
from dependencies import get_gallery_or_404

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/galleries",
    tags=["Galleries"]
)


def _check_name_available(db: Session, owner_id: uuid.UUID, name: str, current_id: Optional[uuid.UUID] = None) -> None:
    existing = crud.get_gallery_by_name(db, user_id=owner_id, name=name)
    if existing and existing.id != current_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You already have a gallery with this name"
        )


@router.post("", response_model=gallery_schemas.GalleryMutationResponse, status_code=status.HTTP_201_CREATED)
def create_gallery(
    gallery: gallery_schemas.GalleryCreate,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user)
):
    if not gallery.name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Gallery name is required")
    _check_name_available(db, current_user.id, gallery.name)

    db_gallery = crud.create_gallery(db, gallery=gallery, user_id=current_user.id)
    logger.info(f"Gallery {db_gallery.id} created by user {current_user.id}.")
    return {"message": "Gallery created successfully", "gallery": db_gallery}


@router.get("", response_model=gallery_schemas.GalleryListResponse)
def list_galleries(
    search: Optional[str] = None,
    is_public: Optional[bool] = Query(None, alias="isPublic"),
    owned_only: bool = Query(False, alias="ownedOnly"),
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user)
):
    """Own galleries, newest first, plus the galleries other users shared with the caller."""
    galleries = crud.list_galleries_for_user(
        db,
        user_id=current_user.id,
        search=search,
        is_public=is_public,
        owned_only=owned_only,
    )
    counts = crud.count_media_by_gallery(db, (g.id for g in galleries))

    items = []
    for g in galleries:
        is_owner = g.user_id == current_user.id
        items.append({
            **gallery_schemas.GallerySchema.model_validate(g).model_dump(),
            "is_owner": is_owner,
            "is_shared": not is_owner,
            "media_count": counts.get(g.id, 0),
        })
    return {"galleries": items}


@router.get("/{gallery_id}", response_model=gallery_schemas.GalleryResponse)
def read_gallery(
    current_user: db_models.User = Depends(get_current_user),
    db_gallery: db_models.Gallery = Depends(get_gallery_or_404),
    db: Session = Depends(get_db)
):
    ensure(can_view_gallery(db, current_user, db_gallery), current_user, action=f"gallery {db_gallery.id}")
    return {"gallery": db_gallery}


@router.put("/{gallery_id}", response_model=gallery_schemas.GalleryMutationResponse)
def update_gallery(
    gallery_update: gallery_schemas.GalleryUpdate,
    current_user: db_models.User = Depends(get_current_user),
    db_gallery: db_models.Gallery = Depends(get_gallery_or_404),
    db: Session = Depends(get_db)
):
    ensure(can_modify(current_user, db_gallery), current_user, action=f"gallery {db_gallery.id}")

    if gallery_update.name is not None:
        if not gallery_update.name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Gallery name is required")
        # Names are unique per owner, not per editor
        _check_name_available(db, db_gallery.user_id, gallery_update.name, current_id=db_gallery.id)

    updated = crud.update_gallery(db, db_gallery, gallery_update)
    logger.info(f"Gallery {updated.id} updated by user {current_user.id}.")
    return {"message": "Gallery updated successfully", "gallery": updated}


@router.delete("/{gallery_id}", response_model=MessageResponse)
def delete_gallery(
    current_user: db_models.User = Depends(get_current_user),
    db_gallery: db_models.Gallery = Depends(get_gallery_or_404),
    db: Session = Depends(get_db)
):
    ensure(can_modify(current_user, db_gallery), current_user, action=f"gallery {db_gallery.id}")

    gallery_id = db_gallery.id
    crud.delete_gallery(db, db_gallery)
    logger.info(f"Gallery {gallery_id} deleted by user {current_user.id}.")
    return {"message": "Gallery deleted successfully"}


# --- Sharing ---

@router.post("/{gallery_id}/share", response_model=gallery_schemas.ShareResponse, status_code=status.HTTP_201_CREATED)
def share_gallery(
    share_request: gallery_schemas.ShareRequest,
    current_user: db_models.User = Depends(get_current_user),
    db_gallery: db_models.Gallery = Depends(get_gallery_or_404),
    db: Session = Depends(get_db)
):
    ensure(can_modify(current_user, db_gallery), current_user, action=f"sharing gallery {db_gallery.id}")

    target = crud.get_active_user_by_email(db, email=share_request.email)
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if target.id == db_gallery.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot share a gallery with its owner")
    if crud.get_share(db, gallery_id=db_gallery.id, user_id=target.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Gallery already shared with this user")

    share = crud.create_share(db, gallery=db_gallery, shared_by=current_user, shared_with=target)
    logger.info(f"Gallery {db_gallery.id} shared with user {target.id} by user {current_user.id}.")
    return {"message": "Gallery shared successfully", "share": share}


@router.get("/{gallery_id}/shares", response_model=gallery_schemas.ShareListResponse)
def list_gallery_shares(
    current_user: db_models.User = Depends(get_current_user),
    db_gallery: db_models.Gallery = Depends(get_gallery_or_404),
    db: Session = Depends(get_db)
):
    ensure(can_modify(current_user, db_gallery), current_user, action=f"shares of gallery {db_gallery.id}")
    return {"shares": crud.list_shares(db, gallery_id=db_gallery.id)}


@router.delete("/{gallery_id}/share/{user_id}", response_model=MessageResponse)
def unshare_gallery(
    user_id: uuid.UUID,
    current_user: db_models.User = Depends(get_current_user),
    db_gallery: db_models.Gallery = Depends(get_gallery_or_404),
    db: Session = Depends(get_db)
):
    # The recipient may leave a share on their own
    ensure(
        can_modify(current_user, db_gallery) or current_user.id == user_id,
        current_user,
        action=f"sharing gallery {db_gallery.id}",
    )

    share = crud.get_share(db, gallery_id=db_gallery.id, user_id=user_id)
    if not share:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Share not found")

    crud.delete_share(db, share)
    logger.info(f"Gallery {db_gallery.id} no longer shared with user {user_id}.")
    return {"message": "Gallery unshared successfully"}
