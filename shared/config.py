"""Application configuration with startup validation.

All config is validated at import time via pydantic-settings.
Missing required values cause an immediate, clear error.
When a remote store URL is configured, its API key is required.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "BT_", "env_file": ".env"}

    # Remote store (PostgREST / Supabase)
    remote_base_url: str = ""
    remote_api_key: str = ""
    assessments_table: str = "burnout_assessments"
    reflections_table: str = "reflection_entries"
    remote_row_limit: int = 30
    reflections_row_limit: int = 30

    # Timeouts
    credential_timeout_seconds: float = 5.0
    fetch_timeout_seconds: float = 10.0

    # Device-local store
    local_store_path: str = "data/local_store.json"
    local_store_key: str = "burnoutAssessments"

    # API
    api_version: str = "v1"
    default_lookback_days: int = 30
    max_lookback_days: int = 366
    problem_base_uri: str = "https://api.interpreter-wellness.app/problems"

    # Service
    host: str = "0.0.0.0"
    port: int = 8000
    log_json: bool = True
    log_level: str = "INFO"

    @model_validator(mode="after")
    def validate_remote_secrets(self) -> "Settings":
        """Fail fast at startup if a remote store is configured without its key."""
        if self.remote_base_url and not self.remote_api_key:
            raise ValueError(
                "remote_base_url is set but the remote store API key is missing. "
                "Missing: BT_REMOTE_API_KEY"
            )
        return self


settings = Settings()
