# schemas/contact_schemas.py
import uuid
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import EmailStr, constr

from schemas.common_schemas import CamelModel
from schemas.user_schemas import UserBrief

ContactStatus = Literal["unread", "read", "replied"]


class ContactCreate(CamelModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=100)
    email: EmailStr
    message: constr(strip_whitespace=True, min_length=1, max_length=5000)


class ContactMessageUpdate(CamelModel):
    message: constr(strip_whitespace=True, min_length=1, max_length=5000)


class ContactStatusUpdate(CamelModel):
    status: Optional[ContactStatus] = None
    is_resolved: Optional[bool] = None


class ContactSchema(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    message: str
    user_id: Optional[uuid.UUID] = None
    user: Optional[UserBrief] = None
    status: ContactStatus
    is_resolved: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class ContactResponse(CamelModel):
    message: str
    contact: ContactSchema


class ContactListResponse(CamelModel):
    messages: List[ContactSchema]
    total_pages: int
    current_page: int
    total: int
