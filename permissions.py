# permissions.py
"""
Authorization predicates shared by every router.

Each predicate answers one question about a (user, record) pair; routers turn a
False answer into a 403 with `ensure`. `user` may be None for anonymous callers.
"""
import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from db import crud
from models.models import Gallery, Media, User

logger = logging.getLogger(__name__)


def is_admin(user: Optional[User]) -> bool:
    return user is not None and user.role == "admin"


def is_owner(user: Optional[User], record) -> bool:
    return user is not None and record.user_id == user.id


def can_modify(user: Optional[User], record) -> bool:
    return is_owner(user, record) or is_admin(user)


def is_shared_with(db: Session, gallery: Gallery, user: Optional[User]) -> bool:
    if user is None:
        return False
    return crud.get_share(db, gallery_id=gallery.id, user_id=user.id) is not None


def can_view_gallery(db: Session, user: Optional[User], gallery: Gallery) -> bool:
    if gallery.is_public or can_modify(user, gallery):
        return True
    return is_shared_with(db, gallery, user)


def can_view_media(db: Session, user: Optional[User], media: Media) -> bool:
    if media.is_public or can_modify(user, media):
        return True
    if user is None or media.gallery_id is None:
        return False
    gallery = crud.get_gallery(db, media.gallery_id)
    return gallery is not None and is_shared_with(db, gallery, user)


def ensure(allowed: bool, user: Optional[User] = None, action: str = "access") -> None:
    """Raises the standard 403 when a predicate fails."""
    if not allowed:
        logger.info(f"Permission denied for user {getattr(user, 'id', 'anonymous')} on {action}.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
