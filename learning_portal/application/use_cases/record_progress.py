from datetime import datetime, timezone

from ...domain.entities import Handbook, Student, completion_percentage
from ...domain.errors import Forbidden, NotFound
from ..dto import ProgressUpdateInput
from ..ports import IHandbookRepository, IProgressRepository

NO_ACCESS = "You do not have access to this handbook"


def handbook_for_student(handbooks: IHandbookRepository, student: Student, handbook_id: str) -> Handbook:
    handbook = handbooks.get(handbook_id)
    if handbook is None:
        raise NotFound("Handbook not found")
    if handbook.track != student.track:
        raise Forbidden(NO_ACCESS)
    return handbook


class RecordProgress:
    def __init__(self, handbooks: IHandbookRepository, progress: IProgressRepository):
        self.handbooks = handbooks
        self.progress = progress

    def execute(self, student: Student, data: ProgressUpdateInput):
        handbook = handbook_for_student(self.handbooks, student, data.handbook_id)
        return self.progress.upsert(
            student.id,
            handbook.id,
            last_page_read=data.last_page_read,
            time_spent=data.time_spent,
            completion_percentage=completion_percentage(data.last_page_read, handbook.total_pages),
            accessed_at=datetime.now(timezone.utc),
        )
