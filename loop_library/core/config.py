"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment ("production" enables captcha enforcement and email delivery)
    ENV: str = "dev"

    VERSION: str = "1.0.0"

    # Proxy/Load Balancer Settings
    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./loop_library.db"

    # Object storage (S3-compatible, e.g. MinIO)
    S3_ENDPOINT_URL: str = ""
    S3_REGION: str = ""
    S3_URL_STYLE: str = "path"
    S3_USE_SSL: bool = True
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    S3_SUBMISSIONS_BUCKET: str = "submissions"
    S3_LOOPS_BUCKET: str = "loops"

    # Moderation (shared secret sent in the Authorization header)
    ADMIN_SECRET: str = ""

    # Cloudflare Turnstile
    TURNSTILE_SECRET: str = ""
    TURNSTILE_VERIFY_URL: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    CAPTCHA_MIN_SCORE: float = 0.5
    CAPTCHA_BYPASS: bool = False  # Ignored in production

    # Transactional email (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "Loop Library <hi@example.org>"

    # Used to build the confirmation link
    PUBLIC_API_URL: str = "http://localhost:8000"

    # External audio processing; MIDI uploads are only accepted when set
    PROCESSING_URL: str = ""
    PROCESSING_TIMEOUT_SECONDS: float = 60.0

    MAX_UPLOAD_BYTES: int = 16 * 1024 * 1024  # 16 MB
    CONFIRMATION_TOKEN_TTL_HOURS: int = 24

    # CORS (public API)
    CORS_ORIGINS: str = "*"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting
    RATE_LIMIT_API: int = 60  # General API, per minute
    RATE_LIMIT_PUBLIC_READ: int = 120  # Loop listing/downloads, per minute
    RATE_LIMIT_SUBMISSIONS: int = 20  # Uploads, per hour
    RATE_LIMIT_PENALTY_BUDGET: int = 64  # Penalty weight per hour before lockout

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def captcha_bypass_active(self) -> bool:
        """Captcha may only be skipped outside production."""
        return self.CAPTCHA_BYPASS and not self.is_production


settings = Settings()
