import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL")

CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:5173").rstrip("/")
CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), [CLIENT_URL])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

BOOKING_DAYS_AHEAD = int(os.getenv("BOOKING_DAYS_AHEAD", "7"))
BOOKING_MIN_SLOTS = int(os.getenv("BOOKING_MIN_SLOTS", "5"))
BOOKING_SLOT_MINUTES = int(os.getenv("BOOKING_SLOT_MINUTES", "30"))
BOOKING_MAX_OFFERED_SLOTS = int(os.getenv("BOOKING_MAX_OFFERED_SLOTS", "10"))
QUESTIONNAIRE_TOKEN_DAYS = int(os.getenv("QUESTIONNAIRE_TOKEN_DAYS", "7"))

TOKEN_SWEEP_ENABLED = _get_bool(os.getenv("TOKEN_SWEEP_ENABLED"), default=True)
TOKEN_SWEEP_INTERVAL_MINUTES = int(os.getenv("TOKEN_SWEEP_INTERVAL_MINUTES", "60"))

MEETING_BASE_URL = os.getenv("MEETING_BASE_URL", "").rstrip("/")
DEFERRED_MEETING_LINK = os.getenv("DEFERRED_MEETING_LINK", f"{CLIENT_URL}/meeting-pending")


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if BOOKING_SLOT_MINUTES <= 0:
        raise RuntimeError("BOOKING_SLOT_MINUTES must be positive.")
