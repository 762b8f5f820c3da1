import os
import logging
from pydantic import BaseModel, Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()

class RateLimitSettings(BaseModel):
    enabled: bool = Field(default=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true")
    # limits storage URI: "memory://" or "redis://host:6379/0"
    storage_uri: str = Field(default=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"))
    requests_per_window: int = Field(default=int(os.getenv("RATE_LIMIT_PER_MINUTE", "100")))
    window_seconds: int = Field(default=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60")))
    auth_limit: str = Field(default=os.getenv("AUTH_RATE_LIMIT", "5/15minutes"))

class SlackSettings(BaseModel):
    signing_secret: Optional[str] = Field(default=os.getenv("SLACK_SIGNING_SECRET"))
    # Requests older than this are rejected as replays
    max_request_age_seconds: int = 60 * 5

class Config(BaseModel):
    app_name: str = "TeamSpark API"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./teamspark.db")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 24 hours

    version: str = "1.0.0"
    build_id: str = os.getenv("BUILD_ID", "local")
    request_id_header: str = "X-Request-ID"

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    rate_limit: RateLimitSettings = RateLimitSettings()
    slack: SlackSettings = SlackSettings()

    # Domain rules
    audit_retention_days: int = int(os.getenv("AUDIT_RETENTION_DAYS", "365"))
    audit_export_max_rows: int = 10000
    kudos_max_message_length: int = 1000
    max_peer_evaluators: int = 3

settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    _critical_missing = []
    if "dev-only" in settings.secret_key:
        _critical_missing.append("SECRET_KEY")
    if not settings.slack.signing_secret:
        _logger.warning("SLACK_SIGNING_SECRET is not set; Slack commands will be rejected.")
    if _critical_missing:
        raise RuntimeError(
            f"FATAL: The following secrets must be set for non-development environments: "
            f"{', '.join(_critical_missing)}. Set them as environment variables."
        )
else:
    if "dev-only" in settings.secret_key:
        _logger.warning("Using insecure default SECRET_KEY; only acceptable in development.")
