"""
Central configuration for the course shop API
Reads and validates environment variables once at process start
"""
import os
import sys
from typing import Optional, List

from dotenv import load_dotenv


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration object built once and passed to the app and its services"""

    def __init__(self, **overrides):
        # Environment
        self.ENV: str = os.getenv("ENV", "dev").lower()

        # Core
        self.SECRET_KEY: str = os.getenv("SECRET_KEY", "")
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./course_shop.db")
        self.REDIS_URL: Optional[str] = os.getenv("REDIS_URL")
        self.PORT: int = int(os.getenv("PORT", "8000"))
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Session tokens
        self.ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(90 * 24 * 60)))
        self.BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

        # CORS
        self.CORS_ORIGINS: List[str] = self._load_cors_origins()

        # Request limits
        self.MAX_REQUESTS_PER_HOUR: int = int(os.getenv("MAX_REQUESTS_PER_HOUR", "1000"))
        self.MAX_REQUEST_BYTES: int = int(os.getenv("MAX_REQUEST_BYTES", str(10 * 1024)))
        self.TRUST_PROXY: bool = _env_bool("TRUST_PROXY")

        # Responses at least this large are gzip compressed
        self.GZIP_MIN_BYTES: int = int(os.getenv("GZIP_MIN_BYTES", "1000"))

        # Password reset
        self.PASSWORD_RESET_TTL_MINUTES: int = int(os.getenv("PASSWORD_RESET_TTL_MINUTES", "10"))
        self.PASSWORD_RESET_CODE_LENGTH: int = int(os.getenv("PASSWORD_RESET_CODE_LENGTH", "8"))
        self.PASSWORD_RESET_MAX_ATTEMPTS: int = int(os.getenv("PASSWORD_RESET_MAX_ATTEMPTS", "5"))

        # Email (SMTP)
        self.SMTP_HOST: Optional[str] = os.getenv("SMTP_HOST")
        self.SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
        self.SMTP_USER: Optional[str] = os.getenv("SMTP_USER")
        self.SMTP_PASSWORD: Optional[str] = os.getenv("SMTP_PASSWORD")
        self.SMTP_FROM_ADDRESS: str = os.getenv("SMTP_FROM_ADDRESS", "noreply@example.com")

        # Payment gateway (Monobank acquiring)
        self.MONOBANK_TOKEN: Optional[str] = os.getenv("MONOBANK_TOKEN")
        self.MONOBANK_TOKEN_DEV: Optional[str] = os.getenv("MONOBANK_TOKEN_DEV")
        self.MONOBANK_API_URL: str = os.getenv("MONOBANK_API_URL", "https://api.monobank.ua")
        self.MERCHANT_REFERENCE: str = os.getenv("MERCHANT_REFERENCE", "course-shop")
        self.PAYMENT_CURRENCY: str = os.getenv("PAYMENT_CURRENCY", "uah").lower()
        self.PAYMENT_REDIRECT_URL: str = os.getenv("PAYMENT_REDIRECT_URL", "http://localhost:3000")
        self.PAYMENT_WEBHOOK_URL: str = os.getenv(
            "PAYMENT_WEBHOOK_URL",
            "http://localhost:8000/api/v1/courses/payment/callback"
        )
        self.PAYMENT_INVOICE_VALIDITY: int = int(os.getenv("PAYMENT_INVOICE_VALIDITY", "3600"))
        self.GATEWAY_MAX_RETRIES: int = int(os.getenv("GATEWAY_MAX_RETRIES", "3"))
        self.GATEWAY_TIMEOUT: float = float(os.getenv("GATEWAY_TIMEOUT", "10"))

        # File sharing (Google Drive service account)
        self.SERVICE_ACCOUNT_EMAIL: Optional[str] = os.getenv("SERVICE_ACCOUNT_EMAIL")
        self.SERVICE_ACCOUNT_PRIVATE_KEY: Optional[str] = (
            os.getenv("SERVICE_ACCOUNT_PRIVATE_KEY", "").replace("\\n", "\n") or None
        )
        self.REQUIRE_PURCHASE_FOR_FILE_ACCESS: bool = _env_bool("REQUIRE_PURCHASE_FOR_FILE_ACCESS")

        # External sign-in
        self.GOOGLE_CLIENT_ID: Optional[str] = os.getenv("GOOGLE_CLIENT_ID")

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown configuration key: {key}")
            setattr(self, key, value)

        self._validate()

    def _load_cors_origins(self) -> List[str]:
        """Load CORS origins from environment variable"""
        default_origins = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
        cors_env = os.getenv("CORS_ORIGINS", "")
        if cors_env:
            env_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
            return default_origins + env_origins
        return default_origins

    def _validate(self):
        """Validate required configuration based on environment"""
        errors = []

        if self.ENV not in ["dev", "test", "staging", "prod"]:
            errors.append(f"Invalid ENV value: {self.ENV}. Must be 'dev', 'test', 'staging', or 'prod'")

        if not self.SECRET_KEY:
            errors.append("SECRET_KEY is required but not set")
        elif len(self.SECRET_KEY) < 32:
            errors.append(f"SECRET_KEY must be at least 32 characters (current: {len(self.SECRET_KEY)})")

        if not self.DATABASE_URL:
            errors.append("DATABASE_URL is required but not set")

        if self.PASSWORD_RESET_CODE_LENGTH < 6:
            errors.append("PASSWORD_RESET_CODE_LENGTH must be at least 6")

        if self.ENV in ["staging", "prod"]:
            if not self.payment_token:
                errors.append(f"{'MONOBANK_TOKEN' if self.is_prod else 'MONOBANK_TOKEN_DEV'} is required in {self.ENV}")
            if not self.PAYMENT_WEBHOOK_URL.startswith("https://"):
                errors.append("PAYMENT_WEBHOOK_URL must use HTTPS in staging/production")
            if not (self.SMTP_HOST and self.SMTP_USER and self.SMTP_PASSWORD):
                errors.append("SMTP_HOST, SMTP_USER and SMTP_PASSWORD are required in staging/production")

        # Fail fast in staging/prod
        if errors and self.ENV in ["staging", "prod"]:
            print("=" * 60, file=sys.stderr)
            print("CONFIGURATION VALIDATION FAILED", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            for error in errors:
                print(f"  - {error}", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            sys.exit(1)

        if errors:
            print("CONFIGURATION WARNINGS (continuing)", file=sys.stderr)
            for error in errors:
                print(f"  - {error}", file=sys.stderr)

    @property
    def is_dev(self) -> bool:
        return self.ENV == "dev"

    @property
    def is_prod(self) -> bool:
        return self.ENV == "prod"

    @property
    def payment_token(self) -> Optional[str]:
        """Acquiring token for the current environment"""
        return self.MONOBANK_TOKEN if self.is_prod else self.MONOBANK_TOKEN_DEV

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_HOST and self.SMTP_USER and self.SMTP_PASSWORD)

    @property
    def file_sharing_configured(self) -> bool:
        return bool(self.SERVICE_ACCOUNT_EMAIL and self.SERVICE_ACCOUNT_PRIVATE_KEY)


def load_config(**overrides) -> Config:
    """
    Build the process configuration

    Loads a .env file in development before reading the environment.
    """
    if os.getenv("ENV", "dev").lower() == "dev":
        load_dotenv()
    return Config(**overrides)
