"""
Runtime configuration.
Everything comes from environment variables (a .env file is loaded at app start).

Nothing here is secret-aware beyond reading keys - the Supabase keys are
passed straight to the client factories in db/client.py.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple

ADMIN_POLICIES = frozenset({"rpc", "role", "email"})
CONTENT_GATES = frozenset({"unlock", "open"})


def _split_csv(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    """Service settings with production defaults."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    supabase_service_key: Optional[str] = None
    storage_bucket: str = "prompt-images"

    admin_policy: str = "rpc"
    admin_emails: Tuple[str, ...] = field(default_factory=tuple)
    content_gate: str = "unlock"

    default_prompt_cost: int = 1
    reward_timezone: str = "UTC"
    prompts_page_size: int = 12

    ad_sdk_entry: Optional[str] = None
    ad_poll_interval: float = 0.5
    ad_inapp_settle_seconds: float = 2.0

    session_timeout_seconds: float = 10.0
    cache_max_entries: int = 10_000
    cache_ttl_seconds: float = 3600.0
    log_level: str = "INFO"
    app_env: str = "production"

    def __post_init__(self):
        if self.admin_policy not in ADMIN_POLICIES:
            raise ValueError(
                f"ADMIN_POLICY must be one of {sorted(ADMIN_POLICIES)}, got {self.admin_policy!r}"
            )
        if self.content_gate not in CONTENT_GATES:
            raise ValueError(
                f"CONTENT_GATE must be one of {sorted(CONTENT_GATES)}, got {self.content_gate!r}"
            )
        if self.prompts_page_size <= 0:
            raise ValueError("PROMPTS_PAGE_SIZE must be positive")
        if self.cache_max_entries <= 0 or self.cache_ttl_seconds <= 0:
            raise ValueError("CACHE_MAX_ENTRIES and CACHE_TTL_SECONDS must be positive")

    @property
    def gate_content(self) -> bool:
        return self.content_gate == "unlock"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load configuration from environment variables with defaults."""
        return cls(
            supabase_url=os.environ.get("SUPABASE_URL"),
            supabase_key=os.environ.get("SUPABASE_KEY"),
            supabase_service_key=os.environ.get("SUPABASE_SERVICE_KEY"),
            storage_bucket=os.environ.get("STORAGE_BUCKET", "prompt-images"),
            admin_policy=os.environ.get("ADMIN_POLICY", "rpc").lower(),
            admin_emails=_split_csv(os.environ.get("ADMIN_EMAILS")),
            content_gate=os.environ.get("CONTENT_GATE", "unlock").lower(),
            default_prompt_cost=int(os.environ.get("DEFAULT_PROMPT_COST", "1")),
            reward_timezone=os.environ.get("REWARD_TIMEZONE", "UTC"),
            prompts_page_size=int(os.environ.get("PROMPTS_PAGE_SIZE", "12")),
            ad_sdk_entry=os.environ.get("AD_SDK_ENTRY") or None,
            ad_poll_interval=float(os.environ.get("AD_POLL_INTERVAL", "0.5")),
            ad_inapp_settle_seconds=float(os.environ.get("AD_INAPP_SETTLE_SECONDS", "2.0")),
            session_timeout_seconds=float(os.environ.get("SESSION_TIMEOUT_SECONDS", "10")),
            cache_max_entries=int(os.environ.get("CACHE_MAX_ENTRIES", "10000")),
            cache_ttl_seconds=float(os.environ.get("CACHE_TTL_SECONDS", "3600")),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            app_env=os.environ.get("APP_ENV", "production"),
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
