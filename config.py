import re
from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "secret"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-z]*)\s*$", re.IGNORECASE)
_DURATION_UNITS = {
    "": 1,
    "s": 1,
    "sec": 1,
    "secs": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
    "y": 31557600,
    "year": 31557600,
    "years": 31557600,
}


def parse_duration(value: str) -> timedelta:
    """Parse "90d", "12h", "30m" or a bare number of seconds."""
    match = _DURATION_RE.match(str(value))
    if not match or match.group(2).lower() not in _DURATION_UNITS:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    seconds = float(amount) * _DURATION_UNITS[unit.lower()]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return timedelta(seconds=seconds)


class Settings(BaseSettings):
    """Process configuration, loaded once at startup."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./expendi.db"
    # Falls back to a well-known value when unset; create_app logs a warning.
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_expires_in: str = "90d"
    environment: str = "development"
    require_auth: bool = False
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @field_validator("jwt_expires_in")
    @classmethod
    def validate_expires_in(cls, v: str) -> str:
        parse_duration(v)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def token_lifetime(self) -> timedelta:
        return parse_duration(self.jwt_expires_in)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEFAULT_JWT_SECRET


@lru_cache
def get_settings() -> Settings:
    return Settings()
