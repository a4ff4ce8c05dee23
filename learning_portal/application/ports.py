from datetime import datetime

from ..domain.entities import Admin, Claims, Handbook, Role, Student, StudentStatus
from .dto import RegisterStudentInput, StudentFilter


class IPasswordHasher:
    def hash(self, plain: str) -> str: ...
    def verify(self, plain: str, hashed: str) -> bool: ...
    def dummy_verify(self) -> bool: ...


class ITokenService:
    def issue(self, subject_id: str, role: Role) -> str: ...
    def verify(self, token: str) -> Claims: ...


class IStudentRepository:
    def find_by_id(self, student_id: str) -> Student | None: ...
    def find_by_email(self, email: str, include_password: bool = False) -> Student | None: ...
    def create(self, data: RegisterStudentInput) -> Student: ...
    def compare_password(self, student: Student, plain: str) -> bool: ...
    def update_status(self, student_id: str, status: StudentStatus) -> Student | None: ...
    def touch_last_login(self, student_id: str) -> None: ...
    def delete(self, student_id: str) -> bool: ...
    def list(self, flt: StudentFilter) -> list[Student]: ...


class IAdminRepository:
    def find_by_id(self, admin_id: str) -> Admin | None: ...
    def find_by_email(self, email: str, include_password: bool = False) -> Admin | None: ...
    def create(self, name: str, email: str, password: str, permission: str = "admin") -> Admin: ...
    def compare_password(self, admin: Admin, plain: str) -> bool: ...


class IHandbookRepository:
    def get(self, handbook_id: str) -> Handbook | None: ...


class IProgressRepository:
    def upsert(self, student_id: str, handbook_id: str, *, last_page_read: int,
               time_spent: int, completion_percentage: int, accessed_at: datetime): ...
