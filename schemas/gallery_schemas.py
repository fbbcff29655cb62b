# schemas/gallery_schemas.py
import uuid
from datetime import datetime
from typing import List, Optional
from pydantic import EmailStr, field_validator

from schemas.common_schemas import CamelModel
from schemas.user_schemas import UserBrief


class GalleryCreate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = ""
    is_public: bool = False

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        return v.strip() if v is not None else v


class GalleryUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_public: Optional[bool] = None
    cover_image: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        return v.strip() if v is not None else v


class GallerySchema(CamelModel):
    id: uuid.UUID
    name: str
    description: str = ""
    is_public: bool
    cover_image: str = ""
    user: Optional[UserBrief] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class GalleryListItem(GallerySchema):
    is_owner: bool = False
    is_shared: bool = False
    media_count: int = 0


class GalleryResponse(CamelModel):
    gallery: GallerySchema


class GalleryMutationResponse(CamelModel):
    message: str
    gallery: GallerySchema


class GalleryListResponse(CamelModel):
    galleries: List[GalleryListItem]


class ShareRequest(CamelModel):
    email: EmailStr

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()


class ShareSchema(CamelModel):
    id: uuid.UUID
    gallery_id: uuid.UUID
    shared_by: UserBrief
    shared_with: UserBrief
    shared_at: datetime


class ShareResponse(CamelModel):
    message: str
    share: ShareSchema


class ShareListResponse(CamelModel):
    shares: List[ShareSchema]
