import structlog
from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...infrastructure.db import get_db
from ...infrastructure.mailer import SmtpMailer
from ...infrastructure.repositories import (
    AdminRepository,
    HandbookRepository,
    ProgressRepository,
    StudentRepository,
    VisitorRepository,
)
from ...infrastructure.security import PasswordHasher, TokenService
from ...infrastructure.storage import HandbookStorage

logger = structlog.get_logger(__name__)


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens

def get_hasher(request: Request) -> PasswordHasher:
    return request.app.state.hasher

def get_storage(request: Request) -> HandbookStorage:
    return request.app.state.storage

def get_mailer(request: Request) -> SmtpMailer:
    return request.app.state.mailer


def get_students(db: Session = Depends(get_db), hasher: PasswordHasher = Depends(get_hasher)) -> StudentRepository:
    return StudentRepository(db, hasher)

def get_admins(db: Session = Depends(get_db), hasher: PasswordHasher = Depends(get_hasher)) -> AdminRepository:
    return AdminRepository(db, hasher)

def get_handbooks(db: Session = Depends(get_db)) -> HandbookRepository:
    return HandbookRepository(db)

def get_progress(db: Session = Depends(get_db)) -> ProgressRepository:
    return ProgressRepository(db)


def track_visitor(request: Request, db: Session = Depends(get_db)) -> None:
    """Counts a visit per client address; never fails the request."""
    ip = request.client.host if request.client else "unknown"
    try:
        VisitorRepository(db).record_visit(ip, request.headers.get("user-agent"))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("visitor_tracking_failed", ip=ip, error=str(e))
