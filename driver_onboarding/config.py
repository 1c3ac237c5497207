# driver_onboarding/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices


class Settings(BaseSettings):
    # read .env, ignore unknown keys
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    # Storage
    DATABASE_URL: str = "sqlite:///./onboarding.db"

    # Onboarding rules
    BACKGROUND_CHECK_REQUIRED: bool = False
    MAX_DOCUMENT_FILE_SIZE_BYTES: int = 5 * 1024 * 1024
    ALLOWED_DOCUMENT_MIME_TYPES: str = "image/jpeg,image/jpg,image/png,application/pdf"
    ALLOWED_IMAGE_MIME_TYPES: str = "image/jpeg,image/jpg,image/png"

    # Plate claim transaction retries
    PLATE_CLAIM_MAX_ATTEMPTS: int = 5
    PLATE_CLAIM_BACKOFF_SEC: float = 0.05

    # Admin
    ADMIN_TOKEN: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ADMIN_TOKEN", "admin_token"),
    )

    # Sessions and cookies
    SECRET_KEY: str = "dev-secret"
    COOKIE_NAME: str = "onboarding_session"
    COOKIE_SECURE: bool = False
    COOKIE_SAMESITE: str = "lax"

    # CORS
    ALLOWED_ORIGINS: str = "*"

    LOG_LEVEL: str = "INFO"

    @property
    def document_mime_types(self) -> list[str]:
        return [m.strip().lower() for m in self.ALLOWED_DOCUMENT_MIME_TYPES.split(",") if m.strip()]

    @property
    def image_mime_types(self) -> list[str]:
        return [m.strip().lower() for m in self.ALLOWED_IMAGE_MIME_TYPES.split(",") if m.strip()]


settings = Settings()
