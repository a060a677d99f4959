"""
Application configuration from environment variables.

.env is loaded with python-dotenv outside release mode so local runs pick up
credentials; release deployments set env vars directly.
Validates critical secrets at module load; missing values raise RuntimeError.
"""
import os
from datetime import timedelta

from dotenv import load_dotenv

# debug | test | release (release forces Secure/HttpOnly cookies)
APP_MODE = os.getenv("APP_MODE", "debug").lower()
if APP_MODE not in ("debug", "test", "release"):
    raise RuntimeError(f"APP_MODE must be debug, test or release, got {APP_MODE!r}")
IS_RELEASE = APP_MODE == "release"

if not IS_RELEASE:
    load_dotenv()

# --- Required (raise if missing) ---
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
# Fernet key for session payloads at rest (Fernet.generate_key())
TOKEN_ENCRYPTION_KEY = os.getenv("TOKEN_ENCRYPTION_KEY")

for name, val in [
    ("GOOGLE_CLIENT_ID", GOOGLE_CLIENT_ID),
    ("GOOGLE_CLIENT_SECRET", GOOGLE_CLIENT_SECRET),
    ("TOKEN_ENCRYPTION_KEY", TOKEN_ENCRYPTION_KEY),
]:
    if not val or not str(val).strip():
        raise RuntimeError(f"Required env var {name} is missing or empty")

# --- Optional with defaults ---
def _int_env(key: str, default: int, minimum: int = 0) -> int:
    try:
        return max(minimum, int(os.getenv(key, str(default))))
    except ValueError:
        return default

SERVER_PORT = _int_env("SERVER_PORT", 8080, minimum=1)

# CORS: explicit origins only, cookies are credentialed
ALLOW_ORIGINS = [
    origin.strip().rstrip("/")
    for origin in os.getenv("ALLOW_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# debug | info | warn | error
_LOG_LEVELS = {"debug": "DEBUG", "info": "INFO", "warn": "WARNING", "error": "ERROR"}
LOG_LEVEL = _LOG_LEVELS.get(os.getenv("LOG_LEVEL", "info").lower(), "INFO")

# Session store (SQLite default; use Postgres URL in production)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./sessions.db")

# Skip create_all at startup (set in production when the table is provisioned separately)
SKIP_DB_INIT = os.getenv("SKIP_DB_INIT", "false").lower() in ("1", "true", "yes")

# Seconds between TTL sweeps of the session table; 0 disables the sweeper
SESSION_SWEEP_INTERVAL = _int_env("SESSION_SWEEP_INTERVAL", 3600)

# Session cookie and sliding window
SESSION_COOKIE_NAME = "session_id"
SESSION_LIFETIME = timedelta(hours=24)
SESSION_COOKIE_MAX_AGE = int(SESSION_LIFETIME.total_seconds())

# Access tokens are refreshed this long before Google says they expire
TOKEN_EXPIRY_SKEW = timedelta(minutes=5)

# Google endpoints
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_PEOPLE_URL = "https://people.googleapis.com/v1/people/me"
GOOGLE_CALENDAR_URL = "https://www.googleapis.com/calendar/v3/calendars"

# Request timeouts in seconds
TOKEN_REQUEST_TIMEOUT = 10
CALENDAR_REQUEST_TIMEOUT = 30
