# schemas/media_schemas.py
import uuid
from datetime import datetime
from typing import List, Optional, Union
from pydantic import constr, field_validator

from schemas.common_schemas import CamelModel
from schemas.user_schemas import UserBrief

MAX_STRING_LENGTH = 255


def split_tags(value) -> List[str]:
    """Accepts a list or a comma separated string; blank entries are dropped."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(tag).strip() for tag in value if str(tag).strip()]


class Dimensions(CamelModel):
    width: Optional[int] = None
    height: Optional[int] = None


class MediaSchema(CamelModel):
    id: uuid.UUID
    title: str
    description: str = ""
    tags: List[str] = []
    filename: str
    original_name: str
    file_url: str
    file_size: int
    formatted_size: str
    mime_type: str
    dimensions: Dimensions
    is_public: bool
    views: int
    downloads: int
    gallery_id: Optional[uuid.UUID] = None
    user: Optional[UserBrief] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class UploadedMedia(CamelModel):
    id: uuid.UUID
    title: str
    description: str
    tags: List[str]
    file_url: str
    file_size: str  # human readable
    dimensions: Dimensions
    is_public: bool
    gallery_id: Optional[uuid.UUID] = None
    created_at: datetime


class MediaUploadResponse(CamelModel):
    message: str
    media: UploadedMedia


class MediaUpdate(CamelModel):
    title: Optional[constr(strip_whitespace=True, min_length=1, max_length=MAX_STRING_LENGTH)] = None
    description: Optional[str] = None
    tags: Optional[Union[List[str], str]] = None
    is_public: Optional[bool] = None
    gallery: Optional[str] = None

    @field_validator('tags')
    @classmethod
    def normalize_tags(cls, v):
        return None if v is None else split_tags(v)


class UpdatedMedia(CamelModel):
    id: uuid.UUID
    title: str
    description: str
    tags: List[str]
    is_public: bool
    gallery_id: Optional[uuid.UUID] = None
    updated_at: Optional[datetime] = None


class MediaUpdateResponse(CamelModel):
    message: str
    media: UpdatedMedia


class MediaDetailResponse(CamelModel):
    media: MediaSchema


class MediaListResponse(CamelModel):
    media: List[MediaSchema]
    total_pages: int
    current_page: int
    total: int


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    has_next: bool
    has_prev: bool


class GalleryMediaResponse(CamelModel):
    media: List[MediaSchema]
    pagination: Pagination


class ZipDownloadRequest(CamelModel):
    media_ids: Optional[List[uuid.UUID]] = None


class RecentMedia(CamelModel):
    id: uuid.UUID
    title: str
    file_url: str
    created_at: datetime


class MediaStats(CamelModel):
    total_media: int = 0
    total_size: int = 0
    total_views: int = 0
    total_downloads: int = 0
    total_galleries: int = 0
    total_shared_galleries: int = 0


class MediaStatsResponse(CamelModel):
    stats: MediaStats
    recent_media: List[RecentMedia]
