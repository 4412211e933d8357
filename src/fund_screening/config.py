"""Runtime settings read from the environment.

FUND_API_BASE_URL  research backend root (default http://localhost:4869)
FUND_API_TIMEOUT   request timeout in seconds (default 30)
LOG_LEVEL          logging level for the server (default INFO)
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

DEFAULT_API_BASE_URL = "http://localhost:4869"
DEFAULT_TIMEOUT_SECONDS = 30.0


class Settings(BaseModel):
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout_seconds: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            api_base_url=os.environ.get("FUND_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
            timeout_seconds=float(os.environ.get("FUND_API_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
