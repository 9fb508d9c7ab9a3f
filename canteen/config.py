"""Runtime configuration for the canteen API (read from the environment, overridable in tests)."""
import os
from typing import NamedTuple, Optional


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default) in ("1", "true", "True", "yes", "on")


class Settings(NamedTuple):
    jwt_secret: str
    admin_key: str
    token_ttl_days: int
    pin_ttl_minutes: int
    hash_pins: bool
    expose_test_pin: bool
    mail_host: Optional[str]
    mail_port: int
    mail_username: Optional[str]
    mail_password: Optional[str]
    mail_from: str
    mail_use_tls: bool
    log_level: str
    cors_origins: tuple


def load_settings() -> Settings:
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        admin_key=os.getenv("ADMIN_KEY", ""),
        token_ttl_days=int(os.getenv("TOKEN_TTL_DAYS", "7")),
        pin_ttl_minutes=int(os.getenv("PIN_TTL_MINUTES", "15")),
        hash_pins=_flag("HASH_PINS", "0"),
        # Degraded mode: when no mail transport is configured the PIN is returned to the caller.
        expose_test_pin=_flag("EXPOSE_TEST_PIN", "1"),
        mail_host=os.getenv("MAIL_HOST") or None,
        mail_port=int(os.getenv("MAIL_PORT", "587")),
        mail_username=os.getenv("MAIL_USERNAME") or None,
        mail_password=os.getenv("MAIL_PASSWORD") or None,
        mail_from=os.getenv("MAIL_FROM", "no-reply@cansnteens.local"),
        mail_use_tls=_flag("MAIL_USE_TLS", "1"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )


state = load_settings()


def get_settings() -> Settings:
    return state


def override(**changes) -> Settings:
    global state
    state = state._replace(**changes)
    return state


def reset() -> Settings:
    global state
    state = load_settings()
    return state
