"""Shared configuration for the claims test runner.

This module centralizes environment variable access and default values
to prevent drift between modules.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

# Claims API
CLAIMS_API_BASE_URL = os.getenv("CLAIMS_API_BASE_URL", "http://localhost:5000")
CLAIMS_API_AUTH_TYPE = os.getenv("CLAIMS_API_AUTH_TYPE", "none")
CLAIMS_API_KEY = os.getenv("CLAIMS_API_KEY")
CLAIMS_API_BEARER_TOKEN = os.getenv("CLAIMS_API_BEARER_TOKEN")
CLAIMS_API_TIMEOUT = float(os.getenv("CLAIMS_API_TIMEOUT", "30"))
CLAIMS_API_MAX_RETRIES = int(os.getenv("CLAIMS_API_MAX_RETRIES", "2"))
CLAIMS_API_RETRY_DELAY = float(os.getenv("CLAIMS_API_RETRY_DELAY", "1"))

# Wait before re-reading a claim whose first outcome was still "Pending"
OUTCOME_POLL_DELAY = float(os.getenv("OUTCOME_POLL_DELAY", "1"))

# Pacing between sequential submissions (rate limit against the claims API)
TEST_EXECUTION_DELAY_MS = int(os.getenv("TEST_EXECUTION_DELAY_MS", "3000"))

# Sanity runs sample this many positive and negative cases per intervention
MAX_RANDOM_TEST_CASES_PER_TYPE = int(os.getenv("MAX_RANDOM_TEST_CASES_PER_TYPE", "2"))

# Test case catalog
TEST_CASES_DIR = os.getenv("TEST_CASES_DIR", "./config/test_cases")

# Result persistence
DB_PATH = os.getenv("DB_PATH", "./data/claimrunner.db")

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "KES")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")
    if origin.strip()
]


@dataclass
class ClientSettings:
    """Connection settings for the remote claims API."""

    base_url: str = CLAIMS_API_BASE_URL
    auth_type: str = CLAIMS_API_AUTH_TYPE  # none, api_key, basic, bearer
    api_key: str | None = CLAIMS_API_KEY
    api_key_header: str = "X-API-Key"
    bearer_token: str | None = CLAIMS_API_BEARER_TOKEN
    username: str | None = None
    password: str | None = None
    timeout: float = CLAIMS_API_TIMEOUT
    max_retries: int = CLAIMS_API_MAX_RETRIES
    retry_delay: float = CLAIMS_API_RETRY_DELAY
    outcome_poll_delay: float = OUTCOME_POLL_DELAY
    verify_ssl: bool = True
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> ClientSettings:
        """Build settings from the current environment."""
        return cls(
            base_url=os.getenv("CLAIMS_API_BASE_URL", CLAIMS_API_BASE_URL),
            auth_type=os.getenv("CLAIMS_API_AUTH_TYPE", CLAIMS_API_AUTH_TYPE),
            api_key=os.getenv("CLAIMS_API_KEY", CLAIMS_API_KEY),
            bearer_token=os.getenv("CLAIMS_API_BEARER_TOKEN", CLAIMS_API_BEARER_TOKEN),
            username=os.getenv("CLAIMS_API_USERNAME"),
            password=os.getenv("CLAIMS_API_PASSWORD"),
            timeout=float(os.getenv("CLAIMS_API_TIMEOUT", str(CLAIMS_API_TIMEOUT))),
            max_retries=int(
                os.getenv("CLAIMS_API_MAX_RETRIES", str(CLAIMS_API_MAX_RETRIES))
            ),
            retry_delay=float(
                os.getenv("CLAIMS_API_RETRY_DELAY", str(CLAIMS_API_RETRY_DELAY))
            ),
            outcome_poll_delay=float(
                os.getenv("OUTCOME_POLL_DELAY", str(OUTCOME_POLL_DELAY))
            ),
            verify_ssl=os.getenv("CLAIMS_API_VERIFY_SSL", "true").lower() != "false",
        )
