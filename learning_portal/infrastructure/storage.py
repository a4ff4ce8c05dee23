import os
import secrets
import time
from pathlib import Path

import structlog
from fastapi import UploadFile

from ..domain.errors import ValidationFailed

logger = structlog.get_logger(__name__)

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}


class HandbookStorage:
    """Keeps uploaded handbook PDFs under a single directory."""

    def __init__(self, root: str, max_bytes: int):
        self.root = Path(root)
        self.max_bytes = max_bytes

    def _ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def is_pdf(upload: UploadFile) -> bool:
        name = (upload.filename or "").lower()
        return name.endswith(".pdf") or (upload.content_type or "").lower() in PDF_CONTENT_TYPES

    def save(self, upload: UploadFile, chunk_size: int = 1024 * 1024) -> tuple[str, str]:
        """Write the upload to disk and return (file_path, file_name)."""
        if not self.is_pdf(upload):
            raise ValidationFailed("Only PDF files are allowed")

        self._ensure_root()
        file_name = f"handbook-{int(time.time() * 1000)}-{secrets.token_hex(6)}.pdf"
        target = self.root / file_name
        written = 0
        try:
            with target.open("wb") as buffer:
                while chunk := upload.file.read(chunk_size):
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise ValidationFailed(
                            f"File too large (max {self.max_bytes // (1024 * 1024)} MB)"
                        )
                    buffer.write(chunk)
        except Exception:
            self.remove(str(target))
            raise
        logger.info("handbook_file_saved", file_name=file_name, size=written)
        return str(target), file_name

    def remove(self, file_path: str) -> bool:
        """Best-effort delete; failures are logged, never raised."""
        try:
            os.remove(file_path)
            return True
        except FileNotFoundError:
            logger.warning("handbook_file_missing", file_path=file_path)
        except OSError as e:
            logger.error("handbook_file_delete_failed", file_path=file_path, error=str(e))
        return False

    def exists(self, file_path: str) -> bool:
        return Path(file_path).is_file()

