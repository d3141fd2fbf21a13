"""Environment-driven settings for the Card Snaps API and its sync client."""
import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Card Snaps configuration."""

    # Sync client
    API_URL = os.environ.get("CARDSNAPS_API_URL", "http://localhost:3001/api")
    LOCAL_STORE_DIR = os.environ.get(
        "CARDSNAPS_STORE_DIR", os.path.join(os.path.expanduser("~"), ".cardsnaps")
    )
    REQUEST_TIMEOUT = float(os.environ.get("CARDSNAPS_REQUEST_TIMEOUT", "10"))
    # a slow community read counts as offline
    COMMUNITY_TIMEOUT = float(os.environ.get("CARDSNAPS_COMMUNITY_TIMEOUT", "2.5"))
    START_OFFLINE = _flag("CARDSNAPS_OFFLINE")

    # REST API
    SECRET_KEY = os.environ.get("JWT_SECRET", "super-secret-key-change-this-in-prod")
    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))
    DATABASE_FILE = os.environ.get("DATABASE_FILE", os.path.join(BASE_DIR, "database.json"))
    PORT = int(os.environ.get("PORT", "3001"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
