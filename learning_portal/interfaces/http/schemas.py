from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, EmailStr, Field, StringConstraints

from ...domain.entities import StudentStatus, Track

NonEmpty = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def envelope(data=None, message: str | None = None, **extra) -> dict:
    body = {"success": True}
    if message is not None:
        body["message"] = message
    body.update(extra)
    body["data"] = data
    return body


class RegisterReq(BaseModel):
    full_name: NonEmpty
    email: EmailStr
    whatsapp_number: NonEmpty
    password: str = Field(min_length=6)
    track: Track

class LoginReq(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

class StatusUpdateReq(BaseModel):
    status: str

class HandbookUpdateReq(BaseModel):
    title: NonEmpty | None = None
    description: str | None = None
    total_pages: int | None = Field(default=None, ge=0)

class ProgressReq(BaseModel):
    handbook_id: NonEmpty
    last_page_read: int = Field(default=1, ge=0)
    time_spent: int = Field(default=0, ge=0)


class StudentBrief(BaseModel):
    id: str
    full_name: str
    email: EmailStr
    track: Track
    class Config: from_attributes = True

class StudentOut(StudentBrief):
    whatsapp_number: str
    status: StudentStatus
    registration_date: datetime | None = None
    last_login: datetime | None = None

class AdminOut(BaseModel):
    id: str
    name: str
    email: EmailStr
    permission: str
    class Config: from_attributes = True

class HandbookOut(BaseModel):
    id: str
    title: str
    description: str | None = None
    track: Track
    file_name: str
    total_pages: int
    view_count: int
    upload_date: datetime | None = None
    class Config: from_attributes = True

class HandbookRef(BaseModel):
    id: str
    title: str
    track: Track
    total_pages: int
    class Config: from_attributes = True

class ProgressOut(BaseModel):
    id: str
    handbook_id: str
    last_page_read: int
    total_time_spent: int
    completion_percentage: int
    last_accessed: datetime | None = None
    handbook: HandbookRef | None = None
    class Config: from_attributes = True
