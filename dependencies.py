# dependencies.py
import uuid
import logging
from functools import lru_cache

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from db import crud
from db.database import get_db
from models import models as db_models
from services.storage_service import StorageService
from services.email_service import EmailService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _storage_service() -> StorageService:
    return StorageService()

@lru_cache(maxsize=1)
def _email_service() -> EmailService:
    return EmailService()

def get_storage_service() -> StorageService:
    """Dependency to provide the process-wide StorageService instance."""
    return _storage_service()

def get_email_service() -> EmailService:
    return _email_service()


def get_media_or_404(media_id: uuid.UUID, db: Session = Depends(get_db)) -> db_models.Media:
    """
    A dependency that retrieves a Media record from the database.
    It handles the 404 case if the media is not found.
    """
    db_media = crud.get_media(db, media_id=media_id)
    if not db_media:
        logger.warning(f"Media not found in DB for id: {media_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")
    return db_media

def get_gallery_or_404(gallery_id: uuid.UUID, db: Session = Depends(get_db)) -> db_models.Gallery:
    db_gallery = crud.get_gallery(db, gallery_id=gallery_id)
    if not db_gallery:
        logger.warning(f"Gallery not found in DB for id: {gallery_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gallery not found")
    return db_gallery

def get_contact_or_404(contact_id: uuid.UUID, db: Session = Depends(get_db)) -> db_models.Contact:
    db_contact = crud.get_contact(db, contact_id=contact_id)
    if not db_contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return db_contact

def get_user_or_404(user_id: uuid.UUID, db: Session = Depends(get_db)) -> db_models.User:
    db_user = crud.get_user_by_id(db, user_id=user_id)
    if not db_user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return db_user
