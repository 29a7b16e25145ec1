import os
from dataclasses import dataclass, field
from typing import List


def _origins() -> List[str]:
    origins = [
        os.getenv("CLIENT_URL", ""),
        "http://localhost:5173",
        "http://localhost:5174",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:5174",
    ]
    return [o for o in origins if o]


@dataclass(frozen=True)
class Settings:
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "eduspace"
    secret_key: str = "supersecretkey"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    frontend_url: str = "http://localhost:5173"
    allowed_origins: List[str] = field(default_factory=_origins)
    # Vercel and Render preview deployments
    allowed_origin_regex: str = r"^https://.*\.(vercel\.app|onrender\.com)$"
    google_client_id: str = ""
    google_client_secret: str = ""
    google_callback_url: str = "http://localhost:5000/api/auth/google/callback"
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    smtp_email: str = ""
    smtp_password: str = ""
    environment: str = "development"
    log_level: str = "INFO"
    rate_limit_max: int = 100
    rate_limit_window_seconds: int = 600
    reset_token_expire_minutes: int = 15

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def google_enabled(self) -> bool:
        return bool(self.google_client_id) and self.google_client_id != "your-google-client-id"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_name=os.getenv("DATABASE_NAME", cls.database_name),
            secret_key=os.getenv("SECRET_KEY", cls.secret_key),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", cls.access_token_expire_minutes)),
            frontend_url=os.getenv("FRONTEND_URL", cls.frontend_url).rstrip("/"),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
            google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", ""),
            google_callback_url=os.getenv("GOOGLE_CALLBACK_URL", cls.google_callback_url),
            smtp_host=os.getenv("SMTP_HOST", cls.smtp_host),
            smtp_port=int(os.getenv("SMTP_PORT", cls.smtp_port)),
            smtp_email=os.getenv("SMTP_EMAIL", ""),
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            environment=os.getenv("ENVIRONMENT", cls.environment),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", cls.rate_limit_max)),
            rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", cls.rate_limit_window_seconds)),
        )
