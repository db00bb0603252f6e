import os

from dotenv import load_dotenv

from .errors import ConfigError

load_dotenv()


def require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ConfigError(f"{name} is not configured")
    return value


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return _parse_int(name, raw)


def require_int_env(name: str) -> int:
    return _parse_int(name, require_env(name))


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "AUD")
STORE_NAME = os.getenv("STORE_NAME", "Audiophile")
