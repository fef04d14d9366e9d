import logging
import os
from typing import Optional

import dotenv
import pydantic

dotenv.load_dotenv()


class Settings(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", frozen=True)

    # seconds
    LIST_CACHE_TIMEOUT: float = 5 * 60
    CI_CACHE_TIMEOUT: float = 2 * 60
    DELTA_THROTTLE_WINDOW: float = 0.1

    OVERRIDE_LOGGING: int = logging.WARNING

    TELEGRAM_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None

    @pydantic.field_validator(
        "LIST_CACHE_TIMEOUT", "CI_CACHE_TIMEOUT", "DELTA_THROTTLE_WINDOW"
    )
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Timeouts must not be negative")
        return value

    @pydantic.field_validator("OVERRIDE_LOGGING", mode="before")
    @classmethod
    def _level_from_name(cls, value):
        if isinstance(value, str) and not value.isdigit():
            level = logging.getLevelName(value.upper())
            if not isinstance(level, int):
                raise ValueError(f"Unknown log level {value}")
            return level
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        values = {}
        for name in cls.model_fields:
            raw = os.environ.get(name)
            if raw is not None:
                values[name] = raw
        return cls.model_validate(values)


SETTINGS = Settings.from_env()
