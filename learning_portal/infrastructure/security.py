from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..domain.entities import Claims, Role
from ..domain.errors import Unauthorized


class PasswordHasher:
    def __init__(self, rounds: int = 12):
        self.pwd = CryptContext(
            schemes=["bcrypt_sha256"],
            deprecated="auto",
            bcrypt_sha256__rounds=rounds,
            bcrypt_sha256__truncate_error=False,
        )

    def hash(self, plain: str) -> str: return self.pwd.hash(plain)
    def verify(self, plain: str, hashed: str) -> bool:
        if not plain or not hashed:
            return False
        try:
            return self.pwd.verify(plain, hashed)
        except ValueError:
            # unrecognised hash format
            return False

    def dummy_verify(self) -> bool: return self.pwd.dummy_verify()


class TokenService:
    """Signs and checks session tokens carrying `{id, type}`."""

    def __init__(self, secret: str, algorithm: str = "HS256", expire_minutes: int = 60):
        if not secret:
            raise ValueError("secret must not be empty")
        self.secret = secret
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def issue(self, subject_id: str, role: Role, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        payload = {
            "id": subject_id,
            "type": Role(role).value,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Claims:
        """Bad signature, expiry and malformed payloads all surface as the same Unauthorized."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            raise Unauthorized()
        subject_id = payload.get("id")
        if not isinstance(subject_id, str) or not subject_id:
            raise Unauthorized()
        try:
            role = Role(payload.get("type"))
        except ValueError:
            raise Unauthorized()
        return Claims(subject_id=subject_id, role=role)
