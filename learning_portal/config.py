from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./portal.db"
    SECRET_KEY: str = "dev-secret-portal"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7
    BCRYPT_ROUNDS: int = 12
    LOG_LEVEL: str = "INFO"

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT: str = "100/15 minutes"

    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_MB: int = 20

    ADMIN_EMAIL: str | None = None
    ADMIN_PASSWORD: str | None = None

    EMAIL_ENABLED: bool = False
    EMAIL_HOST: str | None = None
    EMAIL_PORT: int = 587
    EMAIL_USER: str | None = None
    EMAIL_PASSWORD: str | None = None
    EMAIL_FROM: str | None = None
    APP_URL: str = "http://localhost:5000"

    PORT: int = 5000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
