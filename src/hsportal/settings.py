"""Configuration helpers for hsportal."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_DATA_DIR = Path.home() / ".hsportal"


class Settings(BaseModel):
    """Runtime configuration loaded from env vars with sensible defaults."""

    data_dir: Path = Field(default_factory=lambda: DEFAULT_DATA_DIR)
    db_filename: str = "session.sqlite3"
    log_level: str = "INFO"
    hydroshare_api_url: str = "https://www.hydroshare.org/hsapi"
    hydroshare_host: str = "www.hydroshare.org"
    s3_bucket: str | None = None
    s3_region: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    hs_client_id: str = "dummy"
    hs_scopes: list[str] = Field(default_factory=lambda: ["read", "write"])
    hs_authorize_url: str = "https://www.hydroshare.org/o/authorize/"
    hs_token_url: str = "https://www.hydroshare.org/o/token/"
    hs_redirect_uri: str = "https://portal.ciroh.org/contribute"

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename

    def ensure_directories(self) -> None:
        """Create data directories if they are missing."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Settings":
        load_dotenv()
        data_dir = Path(os.environ.get("HSPORTAL_DATA_DIR", DEFAULT_DATA_DIR))
        scopes = os.environ.get("HS_SCOPES", "read write").split()
        return cls(
            data_dir=data_dir,
            db_filename=os.environ.get("HSPORTAL_DB_FILENAME", "session.sqlite3"),
            log_level=os.environ.get("HSPORTAL_LOG_LEVEL", "INFO"),
            hydroshare_api_url=os.environ.get(
                "HSPORTAL_HYDROSHARE_API_URL", "https://www.hydroshare.org/hsapi"
            ),
            hydroshare_host=os.environ.get("HSPORTAL_HYDROSHARE_HOST", "www.hydroshare.org"),
            s3_bucket=os.environ.get("S3_BUCKET_NAME"),
            s3_region=os.environ.get("S3_REGION"),
            s3_access_key=os.environ.get("S3_ACCESS_KEY"),
            s3_secret_key=os.environ.get("S3_SECRET_KEY"),
            hs_client_id=os.environ.get("HS_CLIENT_ID", "dummy"),
            hs_scopes=scopes,
            hs_authorize_url=os.environ.get(
                "HS_AUTHORIZE_URL", "https://www.hydroshare.org/o/authorize/"
            ),
            hs_token_url=os.environ.get("HS_TOKEN_URL", "https://www.hydroshare.org/o/token/"),
            hs_redirect_uri=os.environ.get(
                "HS_REDIRECT_URI", "https://portal.ciroh.org/contribute"
            ),
        )


def _stderr_logger(*_args) -> structlog.PrintLogger:
    return structlog.PrintLogger(sys.stderr)


def configure_logging(level: str) -> None:
    """Send structlog events at ``level`` and above to stderr."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=_stderr_logger,
    )


def get_settings() -> Settings:
    """Convenience accessor for lazy modules."""
    settings = Settings.load()
    settings.ensure_directories()
    configure_logging(settings.log_level)
    return settings
