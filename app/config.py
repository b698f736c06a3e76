import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_DIR = None if DATABASE_URL else os.path.join(BASE_DIR, "database")
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "procurement.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", False)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-procurement")
    AUTH_ENABLED = _bool_env("AUTH_ENABLED", True)
    # Lets trusted gateways (and tests) pass the caller through X-User-Id.
    AUTH_TRUST_USER_HEADER = _bool_env("AUTH_TRUST_USER_HEADER", False)

    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    SECURITY_HEADERS_ENABLED = _bool_env("SECURITY_HEADERS_ENABLED", True)
    RATE_LIMIT_ENABLED = _bool_env("RATE_LIMIT_ENABLED", True)
    RATE_LIMIT_WINDOW_SECONDS = _int_env("RATE_LIMIT_WINDOW_SECONDS", 60)
    RATE_LIMIT_MAX_REQUESTS = _int_env("RATE_LIMIT_MAX_REQUESTS", 300)

    NUMBERING_MAX_ATTEMPTS = _int_env("NUMBERING_MAX_ATTEMPTS", 3)

    EMAIL_MODE = os.environ.get("EMAIL_MODE", "outbox")
    # Outbox keeps the most recent messages in memory; development and tests only.
    EMAIL_OUTBOX_LIMIT = _int_env("EMAIL_OUTBOX_LIMIT", 200)
    EMAIL_HOST = os.environ.get("EMAIL_HOST", "smtp.example.com")
    EMAIL_PORT = _int_env("EMAIL_PORT", 587)
    EMAIL_USER = os.environ.get("EMAIL_USER", "noreply@civcon.example.com")
    EMAIL_PASS = os.environ.get("EMAIL_PASS", "")
    EMAIL_USE_SSL = _bool_env("EMAIL_USE_SSL", False)
    EMAIL_TIMEOUT_SECONDS = _int_env("EMAIL_TIMEOUT_SECONDS", 20)
    EMAIL_MAX_RETRIES = _int_env("EMAIL_MAX_RETRIES", 2)
    EMAIL_FROM = os.environ.get("EMAIL_FROM", "Civcon Office <noreply@civcon.example.com>")
    FINANCE_EMAIL = os.environ.get("FINANCE_EMAIL", "finance@civcon.example.com")
    COMPANY_NAME = os.environ.get("COMPANY_NAME", "Civcon Office")

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not set for the production environment.")
        if env == "production" and self.SECRET_KEY == "dev-secret-procurement":
            raise RuntimeError("SECRET_KEY is insecure for production.")
        if env == "production" and self.AUTH_TRUST_USER_HEADER:
            raise RuntimeError("AUTH_TRUST_USER_HEADER must be disabled in production.")
        if env == "production" and str(self.EMAIL_MODE or "").strip().lower() != "smtp":
            raise RuntimeError("EMAIL_MODE must be smtp in production.")
