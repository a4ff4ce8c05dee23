import structlog

from ...domain.entities import Admin, normalize_email
from ..ports import IAdminRepository

logger = structlog.get_logger(__name__)


class SeedAdmin:
    """Creates the configured admin account on first run."""

    def __init__(self, repo: IAdminRepository):
        self.repo = repo

    def execute(self, email: str | None, password: str | None) -> Admin | None:
        if not email or not password:
            logger.info("admin_seed_skipped", reason="ADMIN_EMAIL/ADMIN_PASSWORD not configured")
            return None
        email = normalize_email(email)
        if self.repo.find_by_email(email):
            return None
        admin = self.repo.create(name="Super Admin", email=email, password=password, permission="super-admin")
        logger.warning("admin_seeded", email=email, hint="change the password after first login")
        return admin
