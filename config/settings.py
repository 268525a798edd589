# config/settings.py
#
#   loading environment variables (timezone, store path, notification API) from .env

import os
from dotenv import load_dotenv

load_dotenv()  # loads .env into environment


def _number_env(name: str, default: str, cast=float):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}!")


# business calendar
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "America/Regina")
DEFAULT_JOB_TIME = os.getenv("DEFAULT_JOB_TIME", "09:00")
DEFAULT_DURATION_HOURS = _number_env("DEFAULT_DURATION_HOURS", "1.0")

# local schedule store
DB_PATH = os.getenv("DB_PATH", "fieldsched_calendar.db")

# persistence call in the Applying state
PERSIST_TIMEOUT_SECONDS = _number_env("PERSIST_TIMEOUT_SECONDS", "15")

# technician notifications
NOTIFY_API_BASE = os.getenv("NOTIFY_API_BASE", "https://api.getjobber.com/api")
NOTIFY_API_KEY = os.getenv("NOTIFY_API_KEY")
NOTIFY_MAX_RETRIES = _number_env("NOTIFY_MAX_RETRIES", "2", cast=int)
NOTIFY_TIMEOUT_SECONDS = _number_env("NOTIFY_TIMEOUT_SECONDS", "10")

# open reschedule sessions in the web app
SESSION_TTL_SECONDS = _number_env("SESSION_TTL_SECONDS", "1800")
MAX_SESSIONS = _number_env("MAX_SESSIONS", "100", cast=int)

# checks
if DEFAULT_DURATION_HOURS <= 0:
    raise RuntimeError("DEFAULT_DURATION_HOURS must be positive!")
if PERSIST_TIMEOUT_SECONDS <= 0:
    raise RuntimeError("PERSIST_TIMEOUT_SECONDS must be positive!")
if NOTIFY_MAX_RETRIES < 0:
    raise RuntimeError("NOTIFY_MAX_RETRIES cannot be negative!")
if NOTIFY_TIMEOUT_SECONDS <= 0:
    raise RuntimeError("NOTIFY_TIMEOUT_SECONDS must be positive!")
if SESSION_TTL_SECONDS <= 0 or MAX_SESSIONS < 1:
    raise RuntimeError("SESSION_TTL_SECONDS and MAX_SESSIONS must be positive!")


def in_test_mode() -> bool:
    return os.getenv("TEST_MODE", "False").lower() == "true"
