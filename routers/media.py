# routers/media.py
import os
import uuid
import logging
import zipfile
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form, Query, status, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from werkzeug.utils import secure_filename

from db import crud
from db.database import get_db
from models import models as db_models
from schemas.common_schemas import MessageResponse, page_count
from schemas.media_schemas import (
    split_tags,
    MediaUpdate,
    MediaUploadResponse,
    MediaUpdateResponse,
    MediaDetailResponse,
    MediaListResponse,
    GalleryMediaResponse,
    MediaStatsResponse,
    ZipDownloadRequest,
)
from auth_utils import get_current_user, get_optional_user
from permissions import is_admin, can_modify, can_view_gallery, can_view_media, ensure
from rate_limiter import limiter, get_dynamic_rate_limit
from config import MAX_UPLOAD_SIZE_MB

from dependencies import get_storage_service, get_media_or_404, get_gallery_or_404
from services.storage_service import StorageService
from services.image_inspection import (
    ALLOWED_MIME_TYPES,
    MIME_TYPE_TO_EXTENSION,
    ImageValidationError,
    inspect_image,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/media",
    tags=["Media"]
)

MAX_FILE_SIZE_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024
ZIP_FILENAME = "media-gallery.zip"


def _resolve_target_gallery(db: Session, user: db_models.User, raw_gallery_id: Optional[str]) -> Optional[db_models.Gallery]:
    """
    Looks up the gallery a media item is being placed into.
    Blank means no gallery; otherwise it must exist and belong to the caller (or the caller is an admin).
    """
    if raw_gallery_id is None or not raw_gallery_id.strip():
        return None
    try:
        gallery_id = uuid.UUID(raw_gallery_id.strip())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gallery not found")

    gallery = crud.get_gallery(db, gallery_id=gallery_id)
    if gallery is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gallery not found")
    ensure(can_modify(user, gallery), user, action=f"gallery {gallery.id}")
    return gallery


def _unique_archive_name(name: str, used: set) -> str:
    candidate = name
    stem, ext = os.path.splitext(name)
    counter = 1
    while candidate in used:
        candidate = f"{stem} ({counter}){ext}"
        counter += 1
    used.add(candidate)
    return candidate


@router.get("", response_model=MediaListResponse)
def list_media(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = None,
    tags: Optional[str] = None,
    user_id: Optional[uuid.UUID] = Query(None, alias="userId"),
    is_public: Optional[bool] = Query(None, alias="isPublic"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user)
):
    """
    Lists media visible to the caller.
    Admins see everything (or one user's media via `userId`); other users see their own
    media, or only the public media of the user named by `userId`.
    """
    owner_id = current_user.id
    public_only = False
    if is_admin(current_user):
        owner_id = user_id
    elif user_id is not None and user_id != current_user.id:
        owner_id = user_id
        public_only = True

    items, total = crud.list_media(
        db,
        owner_id=owner_id,
        public_only=public_only,
        is_public=is_public,
        search=search,
        tags=split_tags(tags),
        sort_by=sort_by,
        sort_order=sort_order,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return {
        "media": items,
        "total_pages": page_count(total, limit),
        "current_page": page,
        "total": total,
    }


@router.get("/stats", response_model=MediaStatsResponse)
def get_media_stats(
    user_id: Optional[uuid.UUID] = Query(None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user)
):
    target_id = user_id if (user_id is not None and is_admin(current_user)) else current_user.id
    return {
        "stats": crud.get_user_stats(db, user_id=target_id),
        "recent_media": crud.get_recent_media(db, user_id=target_id, limit=5),
    }


@router.get("/gallery/{gallery_id}", response_model=GalleryMediaResponse)
def list_gallery_media(
    current_user: db_models.User = Depends(get_current_user),
    gallery: db_models.Gallery = Depends(get_gallery_or_404),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = None,
    tags: Optional[str] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db)
):
    ensure(can_view_gallery(db, current_user, gallery), current_user, action=f"gallery {gallery.id}")

    items, total = crud.list_media(
        db,
        gallery_id=gallery.id,
        search=search,
        tags=split_tags(tags),
        sort_by=sort_by,
        sort_order=sort_order,
        skip=(page - 1) * limit,
        limit=limit,
    )
    total_pages = page_count(total, limit)
    return {
        "media": items,
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_items": total,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


@router.post(
    "/upload",
    response_model=MediaUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload, Validate, and Store a New Image"
)
@limiter.limit(get_dynamic_rate_limit)
async def upload_media(
    request: Request,
    media: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(""),
    tags: Optional[str] = Form(None),
    is_public: Optional[str] = Form("false", alias="isPublic"),
    gallery: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service)
):
    """
    Handles the full upload process:
    1.  Validates the declared content type and the file size.
    2.  Checks the target gallery, if any.
    3.  Stores the file, then decodes it to confirm it really is a JPEG or PNG image.
    4.  Creates the media record.
    """
    if media is None or not media.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please select a file to upload")

    # 1. Declared type and size
    if media.content_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only JPG, JPEG, and PNG files are allowed"
        )

    contents = await media.read()
    file_size = len(contents)
    if file_size > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Maximum size is {MAX_UPLOAD_SIZE_MB}MB."
        )

    # 2. Target gallery
    target_gallery = _resolve_target_gallery(db, current_user, gallery)

    # 3. Store, then verify the content
    declared_type = "image/jpeg" if media.content_type == "image/jpg" else media.content_type
    object_key = f"media-{uuid.uuid4().hex}{MIME_TYPE_TO_EXTENSION[declared_type]}"
    storage.upload_file(file_obj=BytesIO(contents), object_key=object_key, content_type=declared_type)

    try:
        image_info = inspect_image(contents)
    except ImageValidationError as e:
        logger.info(f"Rejected upload '{media.filename}' from user {current_user.id}: {e}")
        storage.delete_file(object_key)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid image file")

    # 4. Record
    original_name = secure_filename(media.filename) or f"upload{MIME_TYPE_TO_EXTENSION[image_info.mime_type]}"
    media_data = {
        "title": (title or "").strip() or original_name,
        "description": (description or "").strip(),
        "filename": object_key,
        "original_name": original_name,
        "file_url": storage.get_file_url(object_key),
        "file_size": file_size,
        "mime_type": image_info.mime_type,
        "width": image_info.width,
        "height": image_info.height,
        "user_id": current_user.id,
        "gallery_id": target_gallery.id if target_gallery else None,
        "is_public": (is_public or "").lower() == "true",
    }
    db_media = crud.create_media(db, media_data=media_data, tags=split_tags(tags))
    logger.info(f"Media {db_media.id} uploaded by user {current_user.id} with key: {object_key}")

    return {
        "message": "Media uploaded successfully",
        "media": {
            "id": db_media.id,
            "title": db_media.title,
            "description": db_media.description,
            "tags": db_media.tags,
            "file_url": db_media.file_url,
            "file_size": db_media.formatted_size,
            "dimensions": db_media.dimensions,
            "is_public": db_media.is_public,
            "gallery_id": db_media.gallery_id,
            "created_at": db_media.created_at,
        },
    }


@router.post("/download-zip")
def download_zip(
    payload: ZipDownloadRequest,
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user),
    storage: StorageService = Depends(get_storage_service)
):
    if not payload.media_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please select media to download")

    selected = [
        item for item in crud.get_media_by_ids(db, payload.media_ids)
        if can_view_media(db, current_user, item)
    ]
    if not selected:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No media found")

    zip_buffer = BytesIO()
    included = []
    used_names = set()
    with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for item in selected:
            if not storage.exists(item.filename):
                logger.warning(f"Skipping media {item.id} in zip download: stored file is missing.")
                continue
            archive.writestr(_unique_archive_name(item.original_name, used_names), storage.read_bytes(item.filename))
            included.append(item)

    crud.increment_downloads(db, included)
    zip_buffer.seek(0)
    logger.info(f"User {current_user.id} downloaded {len(included)} media item(s) as zip.")

    return StreamingResponse(
        zip_buffer,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{ZIP_FILENAME}"'}
    )


@router.get("/{media_id}", response_model=MediaDetailResponse)
def read_media(
    db_media: db_models.Media = Depends(get_media_or_404),
    db: Session = Depends(get_db),
    current_user: Optional[db_models.User] = Depends(get_optional_user)
):
    ensure(can_view_media(db, current_user, db_media), current_user, action=f"media {db_media.id}")
    if current_user is not None:
        db_media = crud.increment_views(db, db_media)
    return {"media": db_media}


@router.put("/{media_id}", response_model=MediaUpdateResponse)
def update_media(
    media_update: MediaUpdate,
    current_user: db_models.User = Depends(get_current_user),
    db_media: db_models.Media = Depends(get_media_or_404),
    db: Session = Depends(get_db)
):
    ensure(can_modify(current_user, db_media), current_user, action=f"media {db_media.id}")

    update_data = media_update.model_dump(exclude_unset=True)
    if "gallery" in update_data:
        target_gallery = _resolve_target_gallery(db, current_user, update_data.pop("gallery"))
        update_data["gallery_id"] = target_gallery.id if target_gallery else None
    # null leaves these fields unchanged
    for key in ("title", "is_public", "description"):
        if key in update_data and update_data[key] is None:
            update_data.pop(key)
    if "description" in update_data:
        update_data["description"] = update_data["description"].strip()

    updated = crud.update_media(db, db_media, update_data)
    logger.info(f"Media {updated.id} updated by user {current_user.id}.")
    return {"message": "Media updated successfully", "media": updated}


@router.delete("/{media_id}", response_model=MessageResponse)
def delete_media(
    current_user: db_models.User = Depends(get_current_user),
    db_media: db_models.Media = Depends(get_media_or_404),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service)
):
    ensure(can_modify(current_user, db_media), current_user, action=f"media {db_media.id}")

    storage.delete_file(db_media.filename)
    media_id = db_media.id
    crud.delete_media(db, db_media)
    logger.info(f"Media {media_id} deleted by user {current_user.id}.")
    return {"message": "Media deleted successfully"}


@router.get("/{media_id}/download")
def download_media(
    current_user: db_models.User = Depends(get_current_user),
    db_media: db_models.Media = Depends(get_media_or_404),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service)
):
    ensure(can_view_media(db, current_user, db_media), current_user, action=f"media {db_media.id}")

    # Raises 404 before anything is counted when the stored file is gone
    stream = storage.iter_file(db_media.filename)
    crud.increment_downloads(db, [db_media])

    return StreamingResponse(
        stream,
        media_type=db_media.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{db_media.original_name}"'}
    )
