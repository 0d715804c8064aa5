"""Runtime settings, read from ``ORDERLY_*`` environment variables."""
from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ALLOWED_CURRENCIES = {"AED", "INR", "USD", "EUR", "GBP"}
ENV_PREFIX = "ORDERLY_"


class Settings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    currency: str = "AED"
    low_stock_threshold: int = Field(default=5, ge=0)
    legacy_tax_label: str = "Tax"
    log_level: str = "INFO"

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: str) -> str:
        value = value.upper()
        if value not in ALLOWED_CURRENCIES:
            raise ValueError(f"unsupported currency: {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw:
                values[name] = raw
        return cls.model_validate(values)
