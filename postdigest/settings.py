from dataclasses import dataclass
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    return float(value)


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip() or default


def _env_list(name: str) -> tuple[str, ...]:
    raw = os.getenv(name) or ""
    parts = [part.strip().lstrip("@") for part in raw.split(",")]
    return tuple(part for part in parts if part)


@dataclass(frozen=True)
class Settings:
    app_name: str = os.getenv("APP_NAME", "postdigest")
    database_url: str = os.getenv("DATABASE_URL", "")
    database_pool_mode: str = _env_str("DATABASE_POOL_MODE", "queue")
    database_pool_size: int = _env_int("DATABASE_POOL_SIZE", 5)
    database_pool_max_overflow: int = _env_int("DATABASE_POOL_MAX_OVERFLOW", 10)
    database_pool_timeout_seconds: int = _env_int("DATABASE_POOL_TIMEOUT_SECONDS", 30)
    log_level: str = _env_str("LOG_LEVEL", "INFO")
    log_format: str = _env_str("LOG_FORMAT", "console")
    log_requests: bool = _env_bool("LOG_REQUESTS", True)
    log_uvicorn_access: bool = _env_bool("LOG_UVICORN_ACCESS", False)
    log_request_skip_paths: str = _env_str("LOG_REQUEST_SKIP_PATHS", "/healthz")
    log_redact_fields: str = os.getenv("LOG_REDACT_FIELDS", "")
    target_identities: tuple[str, ...] = _env_list("TARGET_IDENTITIES")
    scheduler_enabled: bool = _env_bool("SCHEDULER_ENABLED", True)
    scheduler_interval_minutes: int = _env_int("SCHEDULER_INTERVAL_MINUTES", 30)
    ingestion_item_delay_seconds: float = _env_float("INGESTION_ITEM_DELAY_SECONDS", 2.0)
    ingestion_max_items_per_identity: int = _env_int("INGESTION_MAX_ITEMS_PER_IDENTITY", 5)
    scrape_default_save_count: int = _env_int("SCRAPE_DEFAULT_SAVE_COUNT", 5)
    scrape_max_save_count: int = _env_int("SCRAPE_MAX_SAVE_COUNT", 25)
    feed_target_count: int = _env_int("FEED_TARGET_COUNT", 40)
    feed_base_url: str = _env_str("FEED_BASE_URL", "https://x.com")
    feed_wait_timeout_seconds: float = _env_float("FEED_WAIT_TIMEOUT_SECONDS", 25.0)
    feed_scroll_offset_px: int = _env_int("FEED_SCROLL_OFFSET_PX", 2500)
    feed_scroll_settle_seconds: float = _env_float("FEED_SCROLL_SETTLE_SECONDS", 2.0)
    feed_max_scroll_iterations: int = _env_int("FEED_MAX_SCROLL_ITERATIONS", 10)
    browser_headless: bool = _env_bool("BROWSER_HEADLESS", True)
    cookies_file_path: str = _env_str("COOKIES_FILE_PATH", "./cookies.json")
    twitter_cookies: str | None = os.getenv("TWITTER_COOKIES")
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_model: str = _env_str("GEMINI_MODEL", "gemini-1.5-flash")
    gemini_base_url: str = _env_str("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com")
    gemini_timeout_seconds: float = _env_float("GEMINI_TIMEOUT_SECONDS", 30.0)
    summary_language: str = _env_str("SUMMARY_LANGUAGE", "English")
    summarizer_max_attempts: int = _env_int("SUMMARIZER_MAX_ATTEMPTS", 3)
    summarizer_initial_backoff_seconds: float = _env_float("SUMMARIZER_INITIAL_BACKOFF_SECONDS", 1.0)


class ConfigurationError(RuntimeError):
    """Mandatory configuration is missing; the process must not start a run."""


def validate_required_settings(value: Settings) -> None:
    missing: list[str] = []
    if not (value.gemini_api_key or "").strip():
        missing.append("GEMINI_API_KEY")
    if not value.database_url.strip():
        missing.append("DATABASE_URL")
    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")


def clamp_save_count(value: int | None, *, max_count: int | None = None) -> int:
    upper = max(1, int(settings.scrape_max_save_count if max_count is None else max_count))
    if value is None:
        value = settings.scrape_default_save_count
    return min(max(int(value), 1), upper)


settings = Settings()
