"""
Environment configuration.

Values are read lazily so that dotenv has loaded (and tests can patch
``os.environ``) by the time they are needed.
"""
import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./tripmate.db"
DEFAULT_LLM_MODEL = "gemini/gemini-2.0-flash"
DEFAULT_USER_ID = "anonymous-user"


class MissingCredentialsError(RuntimeError):
    """A provider key is not configured. Reported once, never retried."""

    status_code = 500

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"{provider} API key is not configured.")


def get_maps_key() -> str:
    """Google Maps/Places key. The browser-side key is accepted as a fallback."""
    return os.getenv("GOOGLE_MAPS_API_KEY") or os.getenv("NEXT_PUBLIC_GOOGLE_MAPS_API_KEY", "")


def get_gemini_key() -> str:
    return os.getenv("GEMINI_API_KEY", "")


def require_maps_key() -> str:
    key = get_maps_key()
    if not key:
        raise MissingCredentialsError("Google Maps")
    return key


def require_gemini_key() -> str:
    key = get_gemini_key()
    if not key:
        raise MissingCredentialsError("Gemini")
    return key


def llm_model() -> str:
    """Return the litellm model string (provider/model format)."""
    return os.getenv("LLM_MODEL", DEFAULT_LLM_MODEL)


def database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def places_language() -> str:
    return os.getenv("PLACES_LANGUAGE", "en")


def http_timeout() -> float:
    try:
        return float(os.getenv("HTTP_TIMEOUT", "10"))
    except ValueError:
        return 10.0


def default_user_id() -> str:
    return os.getenv("DEFAULT_USER_ID", DEFAULT_USER_ID)


def store_cache_size() -> int:
    """How many per-user trip stores the API keeps in memory."""
    try:
        return max(1, int(os.getenv("STORE_CACHE_SIZE", "256")))
    except ValueError:
        return 256
