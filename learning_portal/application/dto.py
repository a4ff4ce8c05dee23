from dataclasses import dataclass

from ..domain.entities import Track


@dataclass
class RegisterStudentInput:
    full_name: str
    email: str
    whatsapp_number: str
    password: str
    track: Track


@dataclass
class ProgressUpdateInput:
    handbook_id: str
    last_page_read: int = 1
    time_spent: int = 0


@dataclass
class StudentFilter:
    track: Track | None = None
    status: str | None = None
    search: str | None = None
