from calendar import monthrange
from collections import Counter
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..application.dto import RegisterStudentInput, StudentFilter
from ..application.ports import (
    IAdminRepository,
    IHandbookRepository,
    IPasswordHasher,
    IProgressRepository,
    IStudentRepository,
)
from ..domain.entities import Admin, Handbook, Student, StudentStatus, Track, normalize_email
from ..domain.errors import ValidationFailed
from .models import AdminORM, HandbookORM, ReadingProgressORM, StudentORM, VisitorORM


def student_to_domain(s: StudentORM, include_password: bool = False) -> Student:
    return Student(
        id=s.id,
        full_name=s.full_name,
        email=s.email,
        whatsapp_number=s.whatsapp_number,
        track=Track(s.track),
        status=StudentStatus(s.status),
        registration_date=s.registration_date,
        last_login=s.last_login,
        password_hash=s.password_hash if include_password else None,
    )


def admin_to_domain(a: AdminORM, include_password: bool = False) -> Admin:
    return Admin(
        id=a.id,
        name=a.name,
        email=a.email,
        permission=a.permission,
        created_at=a.created_at,
        password_hash=a.password_hash if include_password else None,
    )


def handbook_to_domain(h: HandbookORM) -> Handbook:
    return Handbook(
        id=h.id,
        title=h.title,
        description=h.description,
        track=Track(h.track),
        file_path=h.file_path,
        file_name=h.file_name,
        total_pages=h.total_pages,
        view_count=h.view_count,
        upload_date=h.upload_date,
    )


class StudentRepository(IStudentRepository):
    def __init__(self, db: Session, hasher: IPasswordHasher):
        self.db = db
        self.hasher = hasher

    def find_by_id(self, student_id: str) -> Student | None:
        row = self.db.get(StudentORM, student_id)
        return student_to_domain(row) if row else None

    def find_by_email(self, email: str, include_password: bool = False) -> Student | None:
        row = self.db.query(StudentORM).filter(StudentORM.email == normalize_email(email)).first()
        return student_to_domain(row, include_password) if row else None

    def create(self, data: RegisterStudentInput) -> Student:
        row = StudentORM(
            full_name=data.full_name.strip(),
            email=normalize_email(data.email),
            whatsapp_number=data.whatsapp_number.strip(),
            password_hash=self.hasher.hash(data.password),
            track=Track(data.track).value,
            status=StudentStatus.ACTIVE.value,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            # a concurrent registration took the email first
            self.db.rollback()
            raise ValidationFailed("Email already registered")
        self.db.refresh(row)
        return student_to_domain(row)

    def compare_password(self, student: Student, plain: str) -> bool:
        hashed = student.password_hash
        if hashed is None:
            hashed = self.db.scalar(select(StudentORM.password_hash).where(StudentORM.id == student.id))
        return self.hasher.verify(plain, hashed)

    def update_status(self, student_id: str, status: StudentStatus) -> Student | None:
        row = self.db.get(StudentORM, student_id)
        if not row:
            return None
        row.status = StudentStatus(status).value
        self.db.commit(); self.db.refresh(row)
        return student_to_domain(row)

    def touch_last_login(self, student_id: str) -> None:
        self.db.execute(
            update(StudentORM)
            .where(StudentORM.id == student_id)
            .values(last_login=datetime.now(timezone.utc))
        )
        self.db.commit()

    def delete(self, student_id: str) -> bool:
        row = self.db.get(StudentORM, student_id)
        if not row:
            return False
        self.db.execute(delete(ReadingProgressORM).where(ReadingProgressORM.student_id == student_id))
        self.db.delete(row)
        self.db.commit()
        return True

    def list(self, flt: StudentFilter) -> list[Student]:
        q = self.db.query(StudentORM)
        if flt.track:
            q = q.filter(StudentORM.track == Track(flt.track).value)
        if flt.status:
            q = q.filter(StudentORM.status == flt.status)
        if flt.search:
            pattern = f"%{flt.search.lower()}%"
            q = q.filter(or_(func.lower(StudentORM.full_name).like(pattern),
                             func.lower(StudentORM.email).like(pattern)))
        rows = q.order_by(StudentORM.registration_date.desc()).all()
        return [student_to_domain(r) for r in rows]


class AdminRepository(IAdminRepository):
    def __init__(self, db: Session, hasher: IPasswordHasher):
        self.db = db
        self.hasher = hasher

    def find_by_id(self, admin_id: str) -> Admin | None:
        row = self.db.get(AdminORM, admin_id)
        return admin_to_domain(row) if row else None

    def find_by_email(self, email: str, include_password: bool = False) -> Admin | None:
        row = self.db.query(AdminORM).filter(AdminORM.email == normalize_email(email)).first()
        return admin_to_domain(row, include_password) if row else None

    def create(self, name: str, email: str, password: str, permission: str = "admin") -> Admin:
        row = AdminORM(
            name=name,
            email=normalize_email(email),
            password_hash=self.hasher.hash(password),
            permission=permission,
        )
        self.db.add(row); self.db.commit(); self.db.refresh(row)
        return admin_to_domain(row)

    def compare_password(self, admin: Admin, plain: str) -> bool:
        hashed = admin.password_hash
        if hashed is None:
            hashed = self.db.scalar(select(AdminORM.password_hash).where(AdminORM.id == admin.id))
        return self.hasher.verify(plain, hashed)


class HandbookRepository(IHandbookRepository):
    def __init__(self, db: Session): self.db = db

    def get(self, handbook_id: str) -> Handbook | None:
        row = self.db.get(HandbookORM, handbook_id)
        return handbook_to_domain(row) if row else None

    def get_row(self, handbook_id: str) -> HandbookORM | None:
        return self.db.get(HandbookORM, handbook_id)

    def list(self, track: Track | None = None) -> list[HandbookORM]:
        q = self.db.query(HandbookORM)
        if track:
            q = q.filter(HandbookORM.track == Track(track).value)
        return q.order_by(HandbookORM.upload_date.desc()).all()

    def create(self, *, title: str, description: str | None, track: Track,
               file_path: str, file_name: str, total_pages: int = 0) -> HandbookORM:
        row = HandbookORM(
            title=title.strip(),
            description=description.strip() if description else None,
            track=Track(track).value,
            file_path=file_path,
            file_name=file_name,
            total_pages=total_pages,
        )
        self.db.add(row); self.db.commit(); self.db.refresh(row)
        return row

    def update(self, handbook_id: str, **fields) -> HandbookORM | None:
        row = self.get_row(handbook_id)
        if not row:
            return None
        for name, value in fields.items():
            if value is not None:
                setattr(row, name, value)
        self.db.commit(); self.db.refresh(row)
        return row

    def delete(self, handbook_id: str) -> bool:
        row = self.get_row(handbook_id)
        if not row:
            return False
        self.db.execute(delete(ReadingProgressORM).where(ReadingProgressORM.handbook_id == handbook_id))
        self.db.delete(row)
        self.db.commit()
        return True

    def increment_views(self, handbook_id: str) -> HandbookORM | None:
        self.db.execute(
            update(HandbookORM)
            .where(HandbookORM.id == handbook_id)
            .values(view_count=HandbookORM.view_count + 1)
        )
        self.db.commit()
        row = self.get_row(handbook_id)
        if row is not None:
            self.db.refresh(row)
        return row


class ProgressRepository(IProgressRepository):
    def __init__(self, db: Session): self.db = db

    def _find(self, student_id: str, handbook_id: str) -> ReadingProgressORM | None:
        return (self.db.query(ReadingProgressORM)
                .options(joinedload(ReadingProgressORM.handbook))
                .filter(ReadingProgressORM.student_id == student_id,
                        ReadingProgressORM.handbook_id == handbook_id)
                .first())

    def _update(self, student_id: str, handbook_id: str, *, last_page_read: int,
                time_spent: int, completion_percentage: int, accessed_at: datetime) -> int:
        result = self.db.execute(
            update(ReadingProgressORM)
            .where(ReadingProgressORM.student_id == student_id,
                   ReadingProgressORM.handbook_id == handbook_id)
            .values(
                last_page_read=last_page_read,
                total_time_spent=ReadingProgressORM.total_time_spent + time_spent,
                completion_percentage=completion_percentage,
                last_accessed=accessed_at,
            )
        )
        return result.rowcount

    def upsert(self, student_id: str, handbook_id: str, *, last_page_read: int,
               time_spent: int, completion_percentage: int, accessed_at: datetime) -> ReadingProgressORM:
        """Update the (student, handbook) row if present, otherwise insert it."""
        values = dict(last_page_read=last_page_read, time_spent=time_spent,
                      completion_percentage=completion_percentage, accessed_at=accessed_at)
        if not self._update(student_id, handbook_id, **values):
            self.db.add(ReadingProgressORM(
                student_id=student_id,
                handbook_id=handbook_id,
                last_page_read=last_page_read,
                total_time_spent=time_spent,
                completion_percentage=completion_percentage,
                last_accessed=accessed_at,
            ))
            try:
                self.db.flush()
            except IntegrityError:
                # another request inserted the pair first
                self.db.rollback()
                self._update(student_id, handbook_id, **values)
        self.db.commit()
        self.db.expire_all()
        return self._find(student_id, handbook_id)

    def get(self, student_id: str, handbook_id: str) -> ReadingProgressORM | None:
        return self._find(student_id, handbook_id)

    def for_student(self, student_id: str) -> list[ReadingProgressORM]:
        return (self.db.query(ReadingProgressORM)
                .options(joinedload(ReadingProgressORM.handbook))
                .filter(ReadingProgressORM.student_id == student_id)
                .order_by(ReadingProgressORM.last_accessed.desc())
                .all())


class VisitorRepository:
    def __init__(self, db: Session): self.db = db

    def record_visit(self, ip: str, user_agent: str | None) -> None:
        now = datetime.now(timezone.utc)
        updated = self.db.execute(
            update(VisitorORM)
            .where(VisitorORM.ip == ip)
            .values(visit_count=VisitorORM.visit_count + 1, last_visited=now, user_agent=user_agent)
        ).rowcount
        if not updated:
            self.db.add(VisitorORM(ip=ip, user_agent=user_agent, first_visited=now, last_visited=now))
        self.db.commit()

    def global_stats(self) -> dict:
        unique_visitors = self.db.scalar(select(func.count(VisitorORM.id))) or 0
        total_visits = self.db.scalar(select(func.coalesce(func.sum(VisitorORM.visit_count), 0))) or 0
        return {"unique_visitors": unique_visitors, "total_visits": total_visits}


def months_before(moment: datetime, months: int) -> datetime:
    """Calendar-month shift; a day missing in the target month rolls over into the next one."""
    year, month = divmod(moment.month - 1 - months, 12)
    year, month = moment.year + year, month + 1
    try:
        return moment.replace(year=year, month=month)
    except ValueError:
        last_day = monthrange(year, month)[1]
        return moment.replace(year=year, month=month, day=last_day) + timedelta(days=moment.day - last_day)


class AnalyticsRepository:
    def __init__(self, db: Session): self.db = db

    def _count_students(self, *where) -> int:
        q = select(func.count(StudentORM.id))
        if where:
            q = q.where(*where)
        return self.db.scalar(q) or 0

    def summary(self, now: datetime | None = None) -> dict:
        now = now or datetime.now(timezone.utc)

        by_track = self.db.execute(
            select(StudentORM.track, func.count(StudentORM.id)).group_by(StudentORM.track)
        ).all()

        twelve_months_ago = months_before(now, 12)
        dates = self.db.scalars(
            select(StudentORM.registration_date).where(StudentORM.registration_date >= twelve_months_ago)
        ).all()
        trend = Counter((d.year, d.month) for d in dates if d is not None)

        return {
            "total_students": self._count_students(),
            "students_by_track": [{"track": t, "count": c} for t, c in by_track],
            "total_handbooks": self.db.scalar(select(func.count(HandbookORM.id))) or 0,
            "recent_registrations": self._count_students(StudentORM.registration_date >= now - timedelta(days=30)),
            "active_students": self._count_students(StudentORM.last_login >= now - timedelta(days=7)),
            "total_handbook_views": self.db.scalar(
                select(func.coalesce(func.sum(HandbookORM.view_count), 0))) or 0,
            "registrations_trend": [
                {"year": y, "month": m, "count": trend[(y, m)]} for y, m in sorted(trend)
            ],
        }
