import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./user_management.db")
DB_ECHO = _as_bool(os.getenv("DB_ECHO", "0"))

SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "10080"))  # 7 days
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Unset means verification links never expire; the status check makes them single-use.
_max_age = os.getenv("VERIFICATION_TOKEN_MAX_AGE", "").strip()
VERIFICATION_TOKEN_MAX_AGE = int(_max_age) if _max_age else None

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_TLS = _as_bool(os.getenv("SMTP_TLS", "1"))
FROM_EMAIL = os.getenv("FROM_EMAIL", "noreply@usermanagement.com")

_raw_origins = os.getenv("CORS_ORIGINS", "*")
if _raw_origins.strip() == "*":
    CORS_ORIGINS = ["*"]
else:
    CORS_ORIGINS = [o.strip() for o in _raw_origins.split(",") if o.strip()]

RATE_LIMIT_ENABLED = _as_bool(os.getenv("RATE_LIMIT_ENABLED", "1"))
AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "10/minute")

ENVIRONMENT = os.getenv("ENVIRONMENT", "production").strip().lower()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5000"))

ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin User")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com").strip().lower()
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin")


def get_secret_key() -> str:
    secret = os.getenv("SECRET_KEY") or SECRET_KEY
    if not secret:
        # Fail fast instead of signing tokens with a guessable default
        raise RuntimeError("SECRET_KEY is not configured in the backend environment")
    if len(secret) < 32:
        raise RuntimeError("SECRET_KEY is too short; use at least 32 characters")
    return secret


def is_development() -> bool:
    return ENVIRONMENT == "development"
