import os
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

# Load environment variables from .env file
load_dotenv()


DEFAULT_NOSTR_RELAYS = [
    "wss://relay.nostr.band",
    "wss://relay.damus.io",
    "wss://sources.nostr1.com",
    "wss://relay.nos.social",
    "wss://nostr-relay.app",
    "wss://nostr.land",
    "wss://nos.lol",
    "wss://relay.nostr.bg",
    "wss://relay.current.fyi",
    "wss://relay.snort.social",
    "wss://relay.nostr.info",
]


class FeedConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class FeedSettings(BaseModel):
    """Runtime configuration consumed by the aggregation engine and the API."""

    # Bluesky (AT Protocol)
    bluesky_service: str = "https://bsky.social"
    bluesky_identifier: Optional[str] = None
    bluesky_password: Optional[str] = None
    bluesky_feed_limit: int = Field(50, ge=1, le=100)
    bluesky_rate_capacity: int = Field(5, ge=1)
    bluesky_refill_interval_seconds: float = Field(60.0, gt=0)
    bluesky_profile_base_url: str = "https://my-bsky-app.com/user"

    # Nostr relays
    nostr_relays: List[str] = Field(default_factory=lambda: list(DEFAULT_NOSTR_RELAYS))
    nostr_lookback_days: int = Field(14, ge=1)
    nostr_collection_window_seconds: float = Field(10.0, gt=0)
    nostr_cache_ttl_seconds: int = Field(600, ge=1)

    # Mastodon
    mastodon_base_url: str = "https://mastodon.social"
    mastodon_access_token: Optional[str] = None
    mastodon_page_size: int = Field(40, ge=1, le=40)
    mastodon_max_pages: int = Field(10, ge=1)

    # Shared
    request_timeout_seconds: float = Field(30.0, gt=0)
    redis_url: Optional[str] = None
    tabs_file: Optional[str] = None

    # Logging / HTTP
    log_level: str = "INFO"
    log_json: bool = True
    log_file: Optional[str] = None
    frontend_url: str = "*"
    port: int = 3001

    class Config:
        frozen = True


# Environment variable -> settings field
_ENV_FIELDS = {
    "BLUESKY_SERVICE": "bluesky_service",
    "BLUESKY_IDENTIFIER": "bluesky_identifier",
    "BLUESKY_PASSWORD": "bluesky_password",
    "BLUESKY_FEED_LIMIT": "bluesky_feed_limit",
    "BLUESKY_RATE_CAPACITY": "bluesky_rate_capacity",
    "BLUESKY_REFILL_INTERVAL_SECONDS": "bluesky_refill_interval_seconds",
    "BLUESKY_PROFILE_BASE_URL": "bluesky_profile_base_url",
    "NOSTR_RELAYS": "nostr_relays",
    "NOSTR_LOOKBACK_DAYS": "nostr_lookback_days",
    "NOSTR_COLLECTION_WINDOW_SECONDS": "nostr_collection_window_seconds",
    "NOSTR_CACHE_TTL_SECONDS": "nostr_cache_ttl_seconds",
    "MASTODON_BASE_URL": "mastodon_base_url",
    "MASTODON_ACCESS_TOKEN": "mastodon_access_token",
    "MASTODON_PAGE_SIZE": "mastodon_page_size",
    "MASTODON_MAX_PAGES": "mastodon_max_pages",
    "FEED_REQUEST_TIMEOUT_SECONDS": "request_timeout_seconds",
    "FEED_REDIS_URL": "redis_url",
    "FEED_TABS_FILE": "tabs_file",
    "LOG_LEVEL": "log_level",
    "LOG_JSON": "log_json",
    "LOG_FILE": "log_file",
    "FRONTEND_URL": "frontend_url",
    "PORT": "port",
}


# Cache for loaded settings
_settings_cache: Optional[FeedSettings] = None


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> FeedSettings:
    """
    Build settings from environment variables.

    Empty variables are treated as unset. ``NOSTR_RELAYS`` is a comma
    separated list.

    Raises:
        FeedConfigError: If a value fails validation
    """
    env = os.environ if environ is None else environ

    values = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = (env.get(env_name) or "").strip()
        if not raw:
            continue
        if field_name == "nostr_relays":
            values[field_name] = [r.strip() for r in raw.split(",") if r.strip()]
        else:
            values[field_name] = raw

    try:
        return FeedSettings.model_validate(values)
    except ValidationError as e:
        raise FeedConfigError(_format_validation_errors(e)) from e


def load_settings(force_reload: bool = False) -> FeedSettings:
    """
    Load settings from the process environment.

    Args:
        force_reload: If True, re-read the environment even if cached

    Returns:
        Validated FeedSettings
    """
    global _settings_cache

    if _settings_cache is not None and not force_reload:
        return _settings_cache

    _settings_cache = settings_from_env()
    return _settings_cache


def _format_validation_errors(err: ValidationError) -> str:
    lines = ["Invalid feed configuration:"]
    for item in err.errors():
        field_name = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        env_name = next(
            (k for k, v in _ENV_FIELDS.items() if v == field_name), field_name
        )
        lines.append(f"- {env_name}: {item.get('msg', 'invalid value')}")
    return "\n".join(lines)
