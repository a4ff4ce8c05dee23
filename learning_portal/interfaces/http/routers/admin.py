import structlog
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from ....application.dto import StudentFilter
from ....application.use_cases.login import LoginAdmin
from ....domain.entities import StudentStatus, Track
from ....domain.errors import NotFound, ValidationFailed
from ....infrastructure.db import get_db
from ....infrastructure.repositories import (
    AdminRepository,
    AnalyticsRepository,
    HandbookRepository,
    ProgressRepository,
    StudentRepository,
    VisitorRepository,
)
from ....infrastructure.security import PasswordHasher, TokenService
from ....infrastructure.storage import HandbookStorage
from ..authz import require_admin
from ..deps import get_admins, get_handbooks, get_hasher, get_progress, get_storage, get_students, get_tokens
from ..schemas import (
    AdminOut,
    HandbookOut,
    HandbookUpdateReq,
    LoginReq,
    ProgressOut,
    StatusUpdateReq,
    StudentOut,
    envelope,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])
guarded = [Depends(require_admin)]


@router.post("/login")
def login(
    payload: LoginReq,
    admins: AdminRepository = Depends(get_admins),
    hasher: PasswordHasher = Depends(get_hasher),
    tokens: TokenService = Depends(get_tokens),
):
    uc = LoginAdmin(repo=admins, hasher=hasher, tokens=tokens)
    admin, token = uc.execute(payload.email, payload.password)
    return envelope(message="Login successful", token=token, admin=AdminOut.model_validate(admin))

# --- Students:

@router.get("/students", dependencies=guarded)
def list_students(
    track: Track | None = Query(None),
    status_: StudentStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=100),
    students: StudentRepository = Depends(get_students),
):
    rows = students.list(StudentFilter(track=track, status=status_.value if status_ else None, search=search))
    return envelope([StudentOut.model_validate(s) for s in rows], count=len(rows))


@router.get("/students/{student_id}", dependencies=guarded)
def get_student(
    student_id: str,
    students: StudentRepository = Depends(get_students),
    progress: ProgressRepository = Depends(get_progress),
):
    student = students.find_by_id(student_id)
    if not student: raise NotFound("Student not found")
    records = progress.for_student(student.id)
    return envelope({
        "student": StudentOut.model_validate(student),
        "progress": [ProgressOut.model_validate(p) for p in records],
    })


@router.put("/students/{student_id}", dependencies=guarded)
def update_student_status(
    student_id: str,
    payload: StatusUpdateReq,
    students: StudentRepository = Depends(get_students),
):
    try:
        new_status = StudentStatus(payload.status)
    except ValueError:
        raise ValidationFailed("Invalid status value")
    student = students.update_status(student_id, new_status)
    if not student: raise NotFound("Student not found")
    logger.info("student_status_changed", student_id=student_id, status=new_status.value)
    return envelope(StudentOut.model_validate(student), message="Student status updated")


@router.delete("/students/{student_id}", dependencies=guarded)
def delete_student(student_id: str, students: StudentRepository = Depends(get_students)):
    if not students.delete(student_id):
        raise NotFound("Student not found")
    logger.info("student_deleted", student_id=student_id)
    return envelope(message="Student deleted successfully")

# --- Handbooks:

@router.post("/handbooks", status_code=status.HTTP_201_CREATED, dependencies=guarded)
def upload_handbook(
    handbook: UploadFile | None = File(None),
    title: str | None = Form(None),
    description: str | None = Form(None),
    track: str | None = Form(None),
    total_pages: int = Form(0, ge=0),
    handbooks: HandbookRepository = Depends(get_handbooks),
    storage: HandbookStorage = Depends(get_storage),
):
    if handbook is None or not handbook.filename:
        raise ValidationFailed("Please upload a PDF file")
    if not title or not title.strip() or not track:
        raise ValidationFailed("Title and track are required")
    try:
        track_value = Track(track)
    except ValueError:
        raise ValidationFailed("Invalid track selected")

    file_path, file_name = storage.save(handbook)
    try:
        row = handbooks.create(
            title=title,
            description=description,
            track=track_value,
            file_path=file_path,
            file_name=file_name,
            total_pages=total_pages,
        )
    except Exception:
        storage.remove(file_path)
        raise
    logger.info("handbook_uploaded", handbook_id=row.id, track=row.track)
    return envelope(HandbookOut.model_validate(row), message="Handbook uploaded successfully")


@router.get("/handbooks", dependencies=guarded)
def list_handbooks(
    track: Track | None = Query(None),
    handbooks: HandbookRepository = Depends(get_handbooks),
):
    rows = handbooks.list(track)
    return envelope([HandbookOut.model_validate(h) for h in rows], count=len(rows))


@router.put("/handbooks/{handbook_id}", dependencies=guarded)
def update_handbook(
    handbook_id: str,
    payload: HandbookUpdateReq,
    handbooks: HandbookRepository = Depends(get_handbooks),
):
    row = handbooks.update(handbook_id, **payload.model_dump())
    if not row: raise NotFound("Handbook not found")
    return envelope(HandbookOut.model_validate(row), message="Handbook updated successfully")


@router.delete("/handbooks/{handbook_id}", dependencies=guarded)
def delete_handbook(
    handbook_id: str,
    handbooks: HandbookRepository = Depends(get_handbooks),
    storage: HandbookStorage = Depends(get_storage),
):
    row = handbooks.get_row(handbook_id)
    if not row: raise NotFound("Handbook not found")
    storage.remove(row.file_path)
    handbooks.delete(handbook_id)
    logger.info("handbook_deleted", handbook_id=handbook_id)
    return envelope(message="Handbook deleted successfully")

# --- Analytics:

@router.get("/analytics", dependencies=guarded)
def analytics(db: Session = Depends(get_db)):
    data = AnalyticsRepository(db).summary()
    data["visitors"] = VisitorRepository(db).global_stats()
    return envelope(data)
