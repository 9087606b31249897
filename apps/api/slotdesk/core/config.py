"""Application configuration."""

from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    ledger_base_url: str | None = None
    ledger_secret: str | None = None
    ledger_timeout_seconds: float = Field(default=10.0, gt=0)

    github_token: str | None = None
    github_owner: str | None = None
    github_repo: str | None = None
    github_branch: str = "main"
    github_api_url: str = "https://api.github.com"
    store_timeout_seconds: float = Field(default=10.0, gt=0)

    centres_path: str = "data/test_centres.json"
    admin_records_path: str = "data/admin_tokens.json"
    coverage_dir: str = "data/admin_coverage"
    audit_path: str = "log/audit.json"

    # Static actor records used when the records document does not exist yet.
    admin_tokens_json: dict[str, Any] | None = None
    master_token: str | None = None

    job_cache_ttl_seconds: float = Field(default=15.0, ge=0)
    claim_rate_limit: int = Field(default=5, ge=1)
    claim_rate_window_seconds: float = Field(default=10.0, gt=0)
    action_rate_limit: int = Field(default=10, ge=1)
    action_rate_window_seconds: float = Field(default=30.0, gt=0)
    idempotency_ttl_seconds: float = Field(default=600.0, gt=0)
    idempotency_sweep_seconds: float = Field(default=60.0, gt=0)

    offer_ttl_minutes: int = Field(default=120, ge=1)
    timezone: str = "Europe/London"
    payout_per_job: int = Field(default=70, ge=0)

    notify_webhook_url: str | None = None
    notify_timeout_seconds: float = Field(default=5.0, gt=0)

    keepalive_enabled: bool = False
    keepalive_interval_seconds: float = Field(default=300.0, gt=0)

    model_config = SettingsConfigDict(env_prefix="SLOTDESK_", extra="ignore")

    @property
    def github_configured(self) -> bool:
        return bool(self.github_token and self.github_owner and self.github_repo)

    @property
    def ledger_configured(self) -> bool:
        return bool(self.ledger_base_url and self.ledger_secret)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
