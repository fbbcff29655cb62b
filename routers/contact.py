# routers/contact.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from db import crud
from db.database import get_db
from models import models as db_models
from schemas.common_schemas import MessageResponse, page_count
from schemas import contact_schemas
from auth_utils import get_current_user, get_optional_user, get_current_admin
from permissions import is_owner, ensure
from dependencies import get_contact_or_404

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/contact",
    tags=["Contact"]
)


@router.post("", response_model=contact_schemas.ContactResponse, status_code=status.HTTP_201_CREATED)
def submit_contact_message(
    contact: contact_schemas.ContactCreate,
    db: Session = Depends(get_db),
    current_user: Optional[db_models.User] = Depends(get_optional_user)
):
    """Anyone may write in; signed-in senders get the message linked to their account."""
    db_contact = crud.create_contact(db, contact=contact, user_id=current_user.id if current_user else None)
    logger.info(f"Contact message {db_contact.id} received.")
    return {"message": "Message sent successfully", "contact": db_contact}


@router.get("/my-messages", response_model=contact_schemas.ContactListResponse)
def read_my_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: db_models.User = Depends(get_current_user)
):
    items, total = crud.list_contacts(db, user_id=current_user.id, skip=(page - 1) * limit, limit=limit)
    return {
        "messages": items,
        "total_pages": page_count(total, limit),
        "current_page": page,
        "total": total,
    }


# --- Admin ---
# Declared before the /{contact_id} routes so "admin" is never read as an id

@router.get("/admin/all", response_model=contact_schemas.ContactListResponse)
def read_all_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[contact_schemas.ContactStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: db_models.User = Depends(get_current_admin)
):
    items, total = crud.list_contacts(
        db,
        status=status_filter,
        search=search,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return {
        "messages": items,
        "total_pages": page_count(total, limit),
        "current_page": page,
        "total": total,
    }


@router.delete("/admin/{contact_id}", response_model=MessageResponse)
def admin_delete_message(
    admin: db_models.User = Depends(get_current_admin),
    db_contact: db_models.Contact = Depends(get_contact_or_404),
    db: Session = Depends(get_db)
):
    contact_id = db_contact.id
    crud.delete_contact(db, db_contact)
    logger.info(f"Contact message {contact_id} deleted by admin {admin.id}.")
    return {"message": "Message deleted successfully"}


@router.put("/admin/{contact_id}/status", response_model=contact_schemas.ContactResponse)
def admin_update_status(
    status_update: contact_schemas.ContactStatusUpdate,
    admin: db_models.User = Depends(get_current_admin),
    db_contact: db_models.Contact = Depends(get_contact_or_404),
    db: Session = Depends(get_db)
):
    update_data = status_update.model_dump(exclude_unset=True, exclude_none=True)
    updated = crud.update_contact(db, db_contact, update_data)
    logger.info(f"Contact message {updated.id} set to '{updated.status}' by admin {admin.id}.")
    return {"message": "Message status updated successfully", "contact": updated}


# --- Sender ---

@router.put("/{contact_id}", response_model=contact_schemas.ContactResponse)
def update_my_message(
    message_update: contact_schemas.ContactMessageUpdate,
    current_user: db_models.User = Depends(get_current_user),
    db_contact: db_models.Contact = Depends(get_contact_or_404),
    db: Session = Depends(get_db)
):
    ensure(is_owner(current_user, db_contact), current_user, action=f"contact {db_contact.id}")
    updated = crud.update_contact(db, db_contact, {"message": message_update.message})
    return {"message": "Message updated successfully", "contact": updated}


@router.delete("/{contact_id}", response_model=MessageResponse)
def delete_my_message(
    current_user: db_models.User = Depends(get_current_user),
    db_contact: db_models.Contact = Depends(get_contact_or_404),
    db: Session = Depends(get_db)
):
    ensure(is_owner(current_user, db_contact), current_user, action=f"contact {db_contact.id}")
    crud.delete_contact(db, db_contact)
    return {"message": "Message deleted successfully"}
