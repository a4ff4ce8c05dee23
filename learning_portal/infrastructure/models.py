from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase): pass


def _uuid() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StudentORM(Base):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    whatsapp_number: Mapped[str] = mapped_column(String(64), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    track: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    registration_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, index=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    progress: Mapped[list["ReadingProgressORM"]] = relationship(
        "ReadingProgressORM",
        back_populates="student",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"StudentORM(id={self.id!r}, email={self.email!r})"


class AdminORM(Base):
    __tablename__ = "admins"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    permission: Mapped[str] = mapped_column(String(32), nullable=False, default="admin")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    def __repr__(self) -> str:
        return f"AdminORM(id={self.id!r}, email={self.email!r})"


class HandbookORM(Base):
    __tablename__ = "handbooks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    track: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_pages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upload_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)

    progress: Mapped[list["ReadingProgressORM"]] = relationship(
        "ReadingProgressORM",
        back_populates="handbook",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"HandbookORM(id={self.id!r}, title={self.title!r})"


class ReadingProgressORM(Base):
    __tablename__ = "reading_progress"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    handbook_id: Mapped[str] = mapped_column(
        ForeignKey("handbooks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    last_page_read: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_time_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # minutes
    last_accessed: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    student: Mapped["StudentORM"] = relationship("StudentORM", back_populates="progress")
    handbook: Mapped["HandbookORM"] = relationship("HandbookORM", back_populates="progress")

    __table_args__ = (UniqueConstraint("student_id", "handbook_id", name="uq_student_handbook"),)


class VisitorORM(Base):
    __tablename__ = "visitors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ip: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    visit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    first_visited: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    last_visited: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


__all__ = [
    "Base",
    "StudentORM",
    "AdminORM",
    "HandbookORM",
    "ReadingProgressORM",
    "VisitorORM",
]
