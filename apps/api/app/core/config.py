import os
from dotenv import load_dotenv

DEFAULT_TIMEZONE_FALLBACK = "America/Toronto"


def load_env() -> str:
    """
    Load the .env that lives in apps/api/.env deterministically.
    Returns the absolute env path used (useful for debug).
    """
    # app/core/config.py -> app/core -> app -> (apps/api/app) -> (apps/api)
    api_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
    env_path = os.path.join(api_root, ".env")
    load_dotenv(dotenv_path=env_path, override=False)
    return env_path

def getenv_required(key: str) -> str:
    val = os.getenv(key)
    if not val:
        raise RuntimeError(f"{key} missing. Put it in apps/api/.env")
    return val

def getenv_default(key: str, default: str) -> str:
    return os.getenv(key, default)

def getenv_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer, got {raw!r}")

def default_timezone() -> str:
    # couples without a configured timezone fall back to this one
    return getenv_default("DEFAULT_TIMEZONE", DEFAULT_TIMEZONE_FALLBACK)
