from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from ....application.dto import ProgressUpdateInput
from ....application.use_cases.record_progress import RecordProgress, handbook_for_student
from ....domain.entities import Student
from ....domain.errors import NotFound
from ....infrastructure.repositories import HandbookRepository, ProgressRepository
from ....infrastructure.storage import HandbookStorage
from ..authz import require_student
from ..deps import get_handbooks, get_progress, get_storage
from ..schemas import HandbookOut, ProgressOut, ProgressReq, envelope

router = APIRouter(prefix="/api/student", tags=["student"])


@router.get("/dashboard")
def dashboard(
    student: Student = Depends(require_student),
    handbooks: HandbookRepository = Depends(get_handbooks),
    progress: ProgressRepository = Depends(get_progress),
):
    return envelope({
        "student": {
            "full_name": student.full_name,
            "track": student.track,
            "registration_date": student.registration_date,
        },
        "handbooks": [HandbookOut.model_validate(h) for h in handbooks.list(student.track)],
        "progress": [ProgressOut.model_validate(p) for p in progress.for_student(student.id)],
    })


@router.get("/handbooks")
def my_handbooks(
    student: Student = Depends(require_student),
    handbooks: HandbookRepository = Depends(get_handbooks),
):
    rows = handbooks.list(student.track)
    return envelope([HandbookOut.model_validate(h) for h in rows], count=len(rows))


@router.get("/handbook/{handbook_id}")
def handbook_detail(
    handbook_id: str,
    student: Student = Depends(require_student),
    handbooks: HandbookRepository = Depends(get_handbooks),
):
    handbook_for_student(handbooks, student, handbook_id)
    row = handbooks.increment_views(handbook_id)
    return envelope(HandbookOut.model_validate(row))


@router.get("/handbook/{handbook_id}/file")
def handbook_file(
    handbook_id: str,
    student: Student = Depends(require_student),
    handbooks: HandbookRepository = Depends(get_handbooks),
    storage: HandbookStorage = Depends(get_storage),
):
    handbook = handbook_for_student(handbooks, student, handbook_id)
    if not storage.exists(handbook.file_path):
        raise NotFound("Handbook file not found")
    return FileResponse(handbook.file_path, media_type="application/pdf", filename=handbook.file_name)


@router.post("/progress")
def update_progress(
    payload: ProgressReq,
    student: Student = Depends(require_student),
    handbooks: HandbookRepository = Depends(get_handbooks),
    progress: ProgressRepository = Depends(get_progress),
):
    uc = RecordProgress(handbooks=handbooks, progress=progress)
    row = uc.execute(student, ProgressUpdateInput(
        handbook_id=payload.handbook_id,
        last_page_read=payload.last_page_read,
        time_spent=payload.time_spent,
    ))
    return envelope(ProgressOut.model_validate(row), message="Progress updated")


@router.get("/progress/{handbook_id}")
def get_progress_for_handbook(
    handbook_id: str,
    student: Student = Depends(require_student),
    progress: ProgressRepository = Depends(get_progress),
):
    row = progress.get(student.id, handbook_id)
    if row is None:
        return envelope(None, message="No progress found for this handbook")
    return envelope(ProgressOut.model_validate(row))
