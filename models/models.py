# models/models.py
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# Constants for validation
MAX_STRING_LENGTH = 255

USER_ROLES = ("user", "admin")
CONTACT_STATUSES = ("unread", "read", "replied")


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite does not keep tzinfo, so every stored datetime is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(MAX_STRING_LENGTH), nullable=False)
    email = Column(String(MAX_STRING_LENGTH), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=True)  # Google accounts have no password
    role = Column(String(16), default="user", nullable=False)
    avatar = Column(String, nullable=True)
    google_id = Column(String, nullable=True, index=True)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)
    email_verification_otp = Column(String(6), nullable=True)
    email_verification_expires_at = Column(DateTime, nullable=True)
    reset_password_token = Column(String, nullable=True, index=True, unique=True)
    reset_password_expires_at = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Gallery(Base):
    __tablename__ = "galleries"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_gallery_owner_name"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(MAX_STRING_LENGTH), nullable=False)
    description = Column(Text, default="", nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    is_public = Column(Boolean, default=False, nullable=False)
    cover_image = Column(String, default="", nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", lazy="joined")
    shares = relationship("SharedGallery", back_populates="gallery", cascade="all, delete-orphan")


class SharedGallery(Base):
    __tablename__ = "shared_galleries"
    __table_args__ = (UniqueConstraint("gallery_id", "shared_with_id", name="uq_share_gallery_user"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gallery_id = Column(Uuid, ForeignKey("galleries.id"), nullable=False, index=True)
    shared_by_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    shared_with_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    shared_at = Column(DateTime, default=utcnow)

    gallery = relationship("Gallery", back_populates="shares")
    shared_by = relationship("User", foreign_keys=[shared_by_id], lazy="joined")
    shared_with = relationship("User", foreign_keys=[shared_with_id], lazy="joined")


class Media(Base):
    __tablename__ = "media"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(MAX_STRING_LENGTH), nullable=False)
    description = Column(Text, default="", nullable=False)
    filename = Column(String, nullable=False)  # storage key
    original_name = Column(String, nullable=False)
    file_url = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    gallery_id = Column(Uuid, ForeignKey("galleries.id"), nullable=True, index=True)
    views = Column(Integer, default=0, nullable=False)
    downloads = Column(Integer, default=0, nullable=False)
    is_public = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", lazy="joined")
    tag_links = relationship(
        "MediaTag", cascade="all, delete-orphan", lazy="selectin", order_by="MediaTag.position"
    )

    @property
    def tags(self) -> list:
        return [tag.name for tag in self.tag_links]

    @property
    def dimensions(self) -> dict:
        return {"width": self.width, "height": self.height}

    @property
    def formatted_size(self) -> str:
        size = self.file_size or 0
        if size == 0:
            return "0 Bytes"
        units = ["Bytes", "KB", "MB", "GB"]
        index = 0
        value = float(size)
        while value >= 1024 and index < len(units) - 1:
            value /= 1024
            index += 1
        return f"{round(value, 2):g} {units[index]}"


class MediaTag(Base):
    __tablename__ = "media_tags"
    id = Column(Integer, primary_key=True, autoincrement=True)
    media_id = Column(Uuid, ForeignKey("media.id"), nullable=False, index=True)
    name = Column(String(MAX_STRING_LENGTH), nullable=False, index=True)
    position = Column(Integer, default=0, nullable=False)


class Contact(Base):
    __tablename__ = "contacts"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(MAX_STRING_LENGTH), nullable=False)
    email = Column(String(MAX_STRING_LENGTH), nullable=False)
    message = Column(Text, nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(String(16), default="unread", nullable=False)
    is_resolved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", lazy="joined")
