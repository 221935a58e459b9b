from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_origins(raw: Any) -> List[str]:
    """
    Normalize CORS allow origins from env.

    Supports:
      - list[str] (already parsed)
      - "*"
      - comma-separated string: "https://a.com, https://b.com"
    """
    if raw is None:
        return ["*"]

    if isinstance(raw, list):
        items = [str(x).strip() for x in raw]
        items = [x for x in items if x]
        return items or ["*"]

    s = str(raw).strip()
    if not s or s == "*":
        return ["*"]

    parts = [p.strip() for p in s.split(",")]
    parts = [p for p in parts if p]
    return parts or ["*"]


class Settings(BaseSettings):
    """
    Central app settings.

    - Env var names match the ones the deployed containers already set
      (DB_PATH / DATABASE_URL, EMAIL_*, FRONTEND_BASE_URL).
    - Values are normalized here so the rest of the app never re-parses env strings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # App identity
    env: str = Field(default="local", alias="APP_ENV")
    app_name: str = Field(default="rsvp-manager", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server runtime (uvicorn)
    host: str = Field(default="127.0.0.1", alias="HOST")
    port: int = Field(default=5000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # NoDecode: comma-separated strings reach the validator unparsed
    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS")

    # Preferred: a real SQLAlchemy URL. DB_PATH is the sqlite fallback.
    database_url: str = Field(default="", alias="DATABASE_URL")
    db_path: str = Field(default="./data/rsvp.sqlite", alias="DB_PATH")

    # Wallpaper uploads land in UPLOAD_DIR/wallpapers and are served from /uploads
    upload_dir: str = Field(default="./uploads", alias="UPLOAD_DIR")

    # Used to build links inside outgoing mail
    frontend_base_url: str = Field(default="", alias="FRONTEND_BASE_URL")

    # SMTP
    email_enabled: bool = Field(default=True, alias="EMAIL_ENABLED")
    email_host: str = Field(default="", alias="EMAIL_HOST")
    email_port: int = Field(default=587, alias="EMAIL_PORT")
    email_secure: bool = Field(default=False, alias="EMAIL_SECURE")  # implicit TLS (port 465)
    email_user: str = Field(default="", alias="EMAIL_USER")
    email_pass: str = Field(default="", alias="EMAIL_PASS")
    email_from_name: str = Field(default="", alias="EMAIL_FROM_NAME")
    email_from_address: str = Field(default="", alias="EMAIL_FROM_ADDRESS")
    email_timeout_s: float = Field(default=20.0, alias="EMAIL_TIMEOUT")

    # Daily conclusion-email sweep
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    # Naive event dates, cutoffs and the sweep schedule are all read in this zone
    event_timezone: str = Field(default="UTC", alias="EVENT_TIMEZONE")
    conclusion_sweep_hour: int = Field(default=8, ge=0, le=23, alias="CONCLUSION_SWEEP_HOUR")
    conclusion_sweep_minute: int = Field(default=0, ge=0, le=59, alias="CONCLUSION_SWEEP_MINUTE")

    # -------------------------
    # Validators / normalizers
    # -------------------------

    @field_validator("log_level", mode="before")
    @classmethod
    def _norm_log_level(cls, v: Any) -> str:
        s = ("" if v is None else str(v)).strip().upper()
        return s or "INFO"

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _norm_cors_allow_origins(cls, v: Any) -> list[str]:
        return _split_origins(v)

    @field_validator("host", mode="before")
    @classmethod
    def _norm_host(cls, v: Any) -> str:
        s = ("" if v is None else str(v)).strip()
        return s or "127.0.0.1"

    @field_validator("frontend_base_url", mode="before")
    @classmethod
    def _norm_frontend_base_url(cls, v: Any) -> str:
        return ("" if v is None else str(v)).strip().rstrip("/")

    @field_validator("database_url", "email_host", "email_user", "email_from_address", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return ("" if v is None else str(v)).strip()

    @field_validator("db_path", mode="before")
    @classmethod
    def _norm_db_path(cls, v: Any) -> str:
        s = ("" if v is None else str(v)).strip()
        return s or "./data/rsvp.sqlite"

    @field_validator("upload_dir", mode="before")
    @classmethod
    def _norm_upload_dir(cls, v: Any) -> str:
        s = ("" if v is None else str(v)).strip()
        return s or "./uploads"

    # -------------------------
    # Derived helpers
    # -------------------------

    @property
    def sender_address(self) -> str:
        return self.email_from_address or self.email_user

    @property
    def wallpaper_dir(self) -> Path:
        return Path(self.upload_dir) / "wallpapers"

    @property
    def resolved_database_url(self) -> str:
        """
        Priority:
        1) DATABASE_URL if provided
        2) Build sqlite:/// URL from DB_PATH

        DB_PATH may itself be a sqlite URL or a plain file path.
        """
        if self.database_url:
            return self.database_url

        path = (self.db_path or "").strip() or "./data/rsvp.sqlite"

        if path.startswith("sqlite:"):
            return path

        p = Path(path)
        if not p.is_absolute():
            return f"sqlite:///./{p.as_posix()}"

        # Absolute path needs 4 slashes after scheme (sqlite:////abs/path)
        return f"sqlite:////{p.as_posix().lstrip('/')}"


settings = Settings()
