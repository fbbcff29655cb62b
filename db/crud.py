# db/crud.py

import uuid
import secrets
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

# SQLAlchemy models live in 'models'; Pydantic request shapes in 'schemas'.
from models import models as db_models
from models.models import utcnow
from schemas import user_schemas, gallery_schemas, contact_schemas

from auth_utils import hash_password
from config import OTP_EXPIRE_MINUTES, RESET_TOKEN_EXPIRE_MINUTES

# Columns a client may sort media listings by (camelCase, as sent by the frontend)
MEDIA_SORT_COLUMNS = {
    "createdAt": db_models.Media.created_at,
    "updatedAt": db_models.Media.updated_at,
    "title": db_models.Media.title,
    "views": db_models.Media.views,
    "downloads": db_models.Media.downloads,
    "fileSize": db_models.Media.file_size,
}


def generate_otp() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


# --- User CRUD ---
def get_user_by_email(db: Session, email: str) -> Optional[db_models.User]:
    return db.query(db_models.User).filter(db_models.User.email == email.lower()).first()

def get_active_user_by_email(db: Session, email: str) -> Optional[db_models.User]:
    """Lookup that ignores soft-deleted accounts."""
    return db.query(db_models.User).filter(
        db_models.User.email == email.lower(),
        db_models.User.deleted_at.is_(None),
    ).first()

def get_user_by_id(db: Session, user_id: uuid.UUID) -> Optional[db_models.User]:
    return db.query(db_models.User).filter(db_models.User.id == user_id).first()

def create_user(db: Session, user: user_schemas.UserCreate) -> db_models.User:
    db_user = db_models.User(
        name=user.name,
        email=user.email.lower(),
        hashed_password=hash_password(user.password),
        is_email_verified=False,
        email_verification_otp=generate_otp(),
        email_verification_expires_at=utcnow() + timedelta(minutes=OTP_EXPIRE_MINUTES),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user

def refresh_verification_otp(db: Session, user: db_models.User) -> db_models.User:
    user.email_verification_otp = generate_otp()
    user.email_verification_expires_at = utcnow() + timedelta(minutes=OTP_EXPIRE_MINUTES)
    db.commit()
    db.refresh(user)
    return user

def mark_user_as_verified(db: Session, user: db_models.User) -> db_models.User:
    user.is_email_verified = True
    user.email_verification_otp = None
    user.email_verification_expires_at = None
    db.commit()
    db.refresh(user)
    return user

def record_login(db: Session, user: db_models.User) -> db_models.User:
    user.last_login = utcnow()
    db.commit()
    db.refresh(user)
    return user

def upsert_google_user(db: Session, email: str, name: str, google_id: str, avatar: Optional[str]) -> db_models.User:
    """
    Creates a verified, password-less account or links Google to an existing one.
    Callers must refuse soft-deleted accounts first; their email stays taken.
    """
    user = get_user_by_email(db, email)
    if user is None:
        user = db_models.User(
            name=name or email.split("@")[0],
            email=email.lower(),
            google_id=google_id,
            avatar=avatar,
            is_email_verified=True,
        )
        db.add(user)
    else:
        user.google_id = google_id
        if avatar:
            user.avatar = avatar
        user.is_email_verified = True
    user.last_login = utcnow()
    db.commit()
    db.refresh(user)
    return user

def set_password_reset_token(db: Session, user: db_models.User) -> db_models.User:
    user.reset_password_token = secrets.token_hex(32)
    user.reset_password_expires_at = utcnow() + timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES)
    db.commit()
    db.refresh(user)
    return user

def get_user_by_valid_reset_token(db: Session, token: str) -> Optional[db_models.User]:
    return db.query(db_models.User).filter(
        db_models.User.reset_password_token == token,
        db_models.User.reset_password_expires_at > utcnow(),
    ).first()

def reset_password(db: Session, user: db_models.User, new_password: str) -> db_models.User:
    user.hashed_password = hash_password(new_password)
    user.reset_password_token = None
    user.reset_password_expires_at = None
    db.commit()
    db.refresh(user)
    return user

def update_password(db: Session, user: db_models.User, new_password: str) -> db_models.User:
    user.hashed_password = hash_password(new_password)
    db.commit()
    db.refresh(user)
    return user

def update_user(db: Session, user: db_models.User, update_data: dict) -> db_models.User:
    """Applies already-validated field changes to a user."""
    for key, value in update_data.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user

def list_users(
    db: Session,
    deleted: bool = False,
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    skip: int = 0,
    limit: int = 20,
) -> Tuple[List[db_models.User], int]:
    query = db.query(db_models.User)
    if deleted:
        query = query.filter(db_models.User.deleted_at.isnot(None))
    else:
        query = query.filter(db_models.User.deleted_at.is_(None))
    if search:
        query = query.filter(or_(
            db_models.User.name.icontains(search, autoescape=True),
            db_models.User.email.icontains(search, autoescape=True),
        ))
    if role:
        query = query.filter(db_models.User.role == role)
    if is_active is not None:
        query = query.filter(db_models.User.is_active.is_(is_active))
    total = query.count()
    order = db_models.User.deleted_at.desc() if deleted else db_models.User.created_at.desc()
    users = query.order_by(order).offset(skip).limit(limit).all()
    return users, total

def soft_delete_user(db: Session, user: db_models.User) -> db_models.User:
    user.deleted_at = utcnow()
    user.is_active = False
    db.commit()
    db.refresh(user)
    return user

def recover_user(db: Session, user: db_models.User) -> db_models.User:
    user.deleted_at = None
    user.is_active = True
    db.commit()
    db.refresh(user)
    return user

def delete_user_permanently(db: Session, user: db_models.User) -> List[str]:
    """
    Hard-deletes a user together with their media, galleries and shares.
    Contact messages are kept but detached. Returns the storage keys of the
    deleted media so the caller can remove the files.
    """
    user_id = user.id
    storage_keys = [
        key for (key,) in db.query(db_models.Media.filename).filter(db_models.Media.user_id == user_id).all()
    ]

    db.query(db_models.Contact).filter(db_models.Contact.user_id == user_id).update(
        {db_models.Contact.user_id: None}, synchronize_session=False
    )
    db.query(db_models.SharedGallery).filter(or_(
        db_models.SharedGallery.shared_with_id == user_id,
        db_models.SharedGallery.shared_by_id == user_id,
    )).delete(synchronize_session=False)

    for media in db.query(db_models.Media).filter(db_models.Media.user_id == user_id).all():
        db.delete(media)
    db.flush()

    for gallery in db.query(db_models.Gallery).filter(db_models.Gallery.user_id == user_id).all():
        _detach_gallery_media(db, gallery.id)
        db.delete(gallery)

    db.delete(user)
    db.commit()
    return storage_keys

def ensure_admin_user(db: Session, name: str, email: str, password: str) -> Tuple[db_models.User, bool]:
    """Creates the admin account or promotes an existing one. Returns (user, created)."""
    user = get_user_by_email(db, email)
    created = user is None
    if created:
        user = db_models.User(name=name, email=email.lower(), hashed_password=hash_password(password))
        db.add(user)
    user.role = "admin"
    user.is_email_verified = True
    user.is_active = True
    user.deleted_at = None
    db.commit()
    db.refresh(user)
    return user, created

def get_user_stats(db: Session, user_id: uuid.UUID) -> Dict[str, int]:
    stats = get_media_totals(db, user_id)
    stats["total_galleries"] = db.query(db_models.Gallery).filter(db_models.Gallery.user_id == user_id).count()
    stats["total_shared_galleries"] = db.query(db_models.SharedGallery).filter(
        db_models.SharedGallery.shared_with_id == user_id
    ).count()
    stats["total_messages"] = db.query(db_models.Contact).filter(db_models.Contact.user_id == user_id).count()
    return stats


# --- Gallery CRUD ---
def get_gallery(db: Session, gallery_id: uuid.UUID) -> Optional[db_models.Gallery]:
    return db.query(db_models.Gallery).filter(db_models.Gallery.id == gallery_id).first()

def get_gallery_by_name(db: Session, user_id: uuid.UUID, name: str) -> Optional[db_models.Gallery]:
    return db.query(db_models.Gallery).filter(
        db_models.Gallery.user_id == user_id,
        db_models.Gallery.name == name,
    ).first()

def create_gallery(db: Session, gallery: gallery_schemas.GalleryCreate, user_id: uuid.UUID) -> db_models.Gallery:
    db_gallery = db_models.Gallery(
        name=gallery.name,
        description=gallery.description or "",
        is_public=gallery.is_public,
        user_id=user_id,
    )
    db.add(db_gallery)
    db.commit()
    db.refresh(db_gallery)
    return db_gallery

def list_galleries_for_user(
    db: Session,
    user_id: uuid.UUID,
    search: Optional[str] = None,
    is_public: Optional[bool] = None,
    owned_only: bool = False,
) -> List[db_models.Gallery]:
    """Galleries owned by the user, plus the ones shared with them unless owned_only."""
    query = db.query(db_models.Gallery)
    if owned_only:
        query = query.filter(db_models.Gallery.user_id == user_id)
    else:
        shared_ids = db.query(db_models.SharedGallery.gallery_id).filter(
            db_models.SharedGallery.shared_with_id == user_id
        )
        query = query.filter(or_(
            db_models.Gallery.user_id == user_id,
            db_models.Gallery.id.in_(shared_ids),
        ))
    if search:
        query = query.filter(or_(
            db_models.Gallery.name.icontains(search, autoescape=True),
            db_models.Gallery.description.icontains(search, autoescape=True),
        ))
    if is_public is not None:
        query = query.filter(db_models.Gallery.is_public.is_(is_public))
    return query.order_by(db_models.Gallery.created_at.desc()).all()

def count_media_by_gallery(db: Session, gallery_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, int]:
    gallery_ids = list(gallery_ids)
    if not gallery_ids:
        return {}
    rows = db.query(db_models.Media.gallery_id, func.count(db_models.Media.id)).filter(
        db_models.Media.gallery_id.in_(gallery_ids)
    ).group_by(db_models.Media.gallery_id).all()
    return {gallery_id: count for gallery_id, count in rows}

def update_gallery(db: Session, db_gallery: db_models.Gallery, gallery_data: gallery_schemas.GalleryUpdate) -> db_models.Gallery:
    """Updates a gallery record from a Pydantic schema."""
    update_data = gallery_data.model_dump(exclude_unset=True, exclude_none=True)
    for key, value in update_data.items():
        setattr(db_gallery, key, value)
    db.commit()
    db.refresh(db_gallery)
    return db_gallery

def _detach_gallery_media(db: Session, gallery_id: uuid.UUID) -> None:
    db.query(db_models.Media).filter(db_models.Media.gallery_id == gallery_id).update(
        {db_models.Media.gallery_id: None}, synchronize_session=False
    )

def delete_gallery(db: Session, db_gallery: db_models.Gallery) -> None:
    """Deletes a gallery; its media stay in the library, its shares go with it."""
    _detach_gallery_media(db, db_gallery.id)
    db.delete(db_gallery)
    db.commit()
    db.expire_all()


# --- SharedGallery CRUD ---
def get_share(db: Session, gallery_id: uuid.UUID, user_id: uuid.UUID) -> Optional[db_models.SharedGallery]:
    return db.query(db_models.SharedGallery).filter(
        db_models.SharedGallery.gallery_id == gallery_id,
        db_models.SharedGallery.shared_with_id == user_id,
    ).first()

def create_share(db: Session, gallery: db_models.Gallery, shared_by: db_models.User, shared_with: db_models.User) -> db_models.SharedGallery:
    share = db_models.SharedGallery(
        gallery_id=gallery.id,
        shared_by_id=shared_by.id,
        shared_with_id=shared_with.id,
    )
    db.add(share)
    db.commit()
    db.refresh(share)
    return share

def list_shares(db: Session, gallery_id: uuid.UUID) -> List[db_models.SharedGallery]:
    return db.query(db_models.SharedGallery).filter(
        db_models.SharedGallery.gallery_id == gallery_id
    ).order_by(db_models.SharedGallery.shared_at.desc()).all()

def delete_share(db: Session, share: db_models.SharedGallery) -> None:
    db.delete(share)
    db.commit()


# --- Media CRUD ---
def _tag_links(tags: Iterable[str]) -> List[db_models.MediaTag]:
    return [db_models.MediaTag(name=name, position=index) for index, name in enumerate(tags)]

def create_media(db: Session, media_data: dict, tags: List[str]) -> db_models.Media:
    db_media = db_models.Media(**media_data)
    db_media.tag_links = _tag_links(tags)
    db.add(db_media)
    db.commit()
    db.refresh(db_media)
    return db_media

def get_media(db: Session, media_id: uuid.UUID) -> Optional[db_models.Media]:
    return db.query(db_models.Media).filter(db_models.Media.id == media_id).first()

def get_media_by_ids(db: Session, media_ids: Iterable[uuid.UUID]) -> List[db_models.Media]:
    return db.query(db_models.Media).filter(db_models.Media.id.in_(list(media_ids))).all()

def list_media(
    db: Session,
    owner_id: Optional[uuid.UUID] = None,
    gallery_id: Optional[uuid.UUID] = None,
    public_only: bool = False,
    is_public: Optional[bool] = None,
    search: Optional[str] = None,
    tags: Optional[List[str]] = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
    skip: int = 0,
    limit: int = 12,
) -> Tuple[List[db_models.Media], int]:
    query = db.query(db_models.Media)
    if owner_id is not None:
        query = query.filter(db_models.Media.user_id == owner_id)
    if gallery_id is not None:
        query = query.filter(db_models.Media.gallery_id == gallery_id)
    if public_only:
        query = query.filter(db_models.Media.is_public.is_(True))
    if is_public is not None:
        query = query.filter(db_models.Media.is_public.is_(is_public))
    if search:
        query = query.filter(or_(
            db_models.Media.title.icontains(search, autoescape=True),
            db_models.Media.description.icontains(search, autoescape=True),
            db_models.Media.tag_links.any(db_models.MediaTag.name.icontains(search, autoescape=True)),
        ))
    if tags:
        query = query.filter(db_models.Media.tag_links.any(db_models.MediaTag.name.in_(tags)))

    total = query.count()
    column = MEDIA_SORT_COLUMNS.get(sort_by, db_models.Media.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    items = query.order_by(ordering, db_models.Media.id).offset(skip).limit(limit).all()
    return items, total

def update_media(db: Session, db_media: db_models.Media, update_data: dict) -> db_models.Media:
    tags = update_data.pop("tags", None)
    for key, value in update_data.items():
        setattr(db_media, key, value)
    if tags is not None:
        db_media.tag_links = _tag_links(tags)
    db_media.updated_at = utcnow()
    db.commit()
    db.refresh(db_media)
    return db_media

def delete_media(db: Session, db_media: db_models.Media) -> None:
    db.delete(db_media)
    db.commit()

def increment_views(db: Session, db_media: db_models.Media) -> db_models.Media:
    db_media.views = (db_media.views or 0) + 1
    db.commit()
    db.refresh(db_media)
    return db_media

def increment_downloads(db: Session, media_items: Iterable[db_models.Media]) -> None:
    for item in media_items:
        item.downloads = (item.downloads or 0) + 1
    db.commit()

def get_media_totals(db: Session, user_id: uuid.UUID) -> Dict[str, int]:
    total_media, total_size, total_views, total_downloads = db.query(
        func.count(db_models.Media.id),
        func.coalesce(func.sum(db_models.Media.file_size), 0),
        func.coalesce(func.sum(db_models.Media.views), 0),
        func.coalesce(func.sum(db_models.Media.downloads), 0),
    ).filter(db_models.Media.user_id == user_id).one()
    return {
        "total_media": int(total_media),
        "total_size": int(total_size),
        "total_views": int(total_views),
        "total_downloads": int(total_downloads),
    }

def get_recent_media(db: Session, user_id: uuid.UUID, limit: int = 5) -> List[db_models.Media]:
    return db.query(db_models.Media).filter(db_models.Media.user_id == user_id).order_by(
        db_models.Media.created_at.desc()
    ).limit(limit).all()


# --- Contact CRUD ---
def create_contact(db: Session, contact: contact_schemas.ContactCreate, user_id: Optional[uuid.UUID]) -> db_models.Contact:
    db_contact = db_models.Contact(
        name=contact.name,
        email=contact.email.lower(),
        message=contact.message,
        user_id=user_id,
    )
    db.add(db_contact)
    db.commit()
    db.refresh(db_contact)
    return db_contact

def get_contact(db: Session, contact_id: uuid.UUID) -> Optional[db_models.Contact]:
    return db.query(db_models.Contact).filter(db_models.Contact.id == contact_id).first()

def list_contacts(
    db: Session,
    user_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
) -> Tuple[List[db_models.Contact], int]:
    query = db.query(db_models.Contact)
    if user_id is not None:
        query = query.filter(db_models.Contact.user_id == user_id)
    if status:
        query = query.filter(db_models.Contact.status == status)
    if search:
        query = query.filter(or_(
            db_models.Contact.name.icontains(search, autoescape=True),
            db_models.Contact.email.icontains(search, autoescape=True),
            db_models.Contact.message.icontains(search, autoescape=True),
        ))
    total = query.count()
    items = query.order_by(db_models.Contact.created_at.desc()).offset(skip).limit(limit).all()
    return items, total

def update_contact(db: Session, db_contact: db_models.Contact, update_data: dict) -> db_models.Contact:
    for key, value in update_data.items():
        setattr(db_contact, key, value)
    db.commit()
    db.refresh(db_contact)
    return db_contact

def delete_contact(db: Session, db_contact: db_models.Contact) -> None:
    db.delete(db_contact)
    db.commit()
