from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Union


class Role(str, Enum):
    STUDENT = "student"
    ADMIN = "admin"


class Track(str, Enum):
    FINANCIAL_MARKETS = "Financial Markets"
    WEB_DEVELOPMENT = "Web Development"
    PHOTOGRAPHY = "Photography"


class StudentStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


@dataclass(frozen=True)
class Student:
    role: ClassVar[Role] = Role.STUDENT

    id: str
    full_name: str
    email: str
    whatsapp_number: str
    track: Track
    status: StudentStatus = StudentStatus.ACTIVE
    registration_date: datetime | None = None
    last_login: datetime | None = None
    password_hash: str | None = field(default=None, repr=False, compare=False)

    @property
    def is_active(self) -> bool:
        return self.status == StudentStatus.ACTIVE


@dataclass(frozen=True)
class Admin:
    role: ClassVar[Role] = Role.ADMIN

    id: str
    name: str
    email: str
    permission: str = "admin"
    created_at: datetime | None = None
    password_hash: str | None = field(default=None, repr=False, compare=False)


Identity = Union[Student, Admin]


@dataclass(frozen=True)
class Claims:
    """Decoded session token payload."""
    subject_id: str
    role: Role


@dataclass(frozen=True)
class Handbook:
    id: str
    title: str
    track: Track
    file_path: str
    file_name: str
    description: str | None = None
    total_pages: int = 0
    view_count: int = 0
    upload_date: datetime | None = None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def completion_percentage(last_page_read: int, total_pages: int) -> int:
    """Share of the handbook read, halves rounded up; 0 when the page count is unknown."""
    if total_pages <= 0:
        return 0
    return int((last_page_read / total_pages) * 100 + 0.5)
