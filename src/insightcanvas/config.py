"""Configuration helpers for the InsightCanvas analysis service."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Final

from dotenv import load_dotenv

load_dotenv()

_DEFAULT_ANTHROPIC_BASE_URL: Final[str] = "https://api.anthropic.com"
_DEFAULT_ANTHROPIC_VERSION: Final[str] = "2023-06-01"
_DEFAULT_ANALYSIS_MODEL: Final[str] = "claude-3-opus-20240229"
_DEFAULT_ANALYSIS_MAX_TOKENS: Final[int] = 800
_DEFAULT_REQUEST_TIMEOUT: Final[float] = 180.0
_MIN_REQUEST_TIMEOUT: Final[float] = 60.0
_DEFAULT_CHUNK_THRESHOLD_WORDS: Final[int] = 3000
_DEFAULT_CHUNK_TARGET_WORDS: Final[int] = 800
_DEFAULT_CHUNK_CONCURRENCY: Final[int] = 1
_DEFAULT_TRANSPORT_RETRIES: Final[int] = 2
_DEFAULT_RETRY_BACKOFF: Final[float] = 1.0
_DEFAULT_PARSE_RETRIES: Final[int] = 0
_DEFAULT_DATA_DIR: Final[str] = "data"
_DEFAULT_LOG_LEVEL: Final[str] = "INFO"
_LOG_LEVELS: Final[frozenset[str]] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def _env_optional_bool(name: str) -> bool | None:
    """Read an optional boolean environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    msg = f"Environment variable {name} must be a boolean value (true/false)."
    raise ValueError(msg)


def _env_bool(name: str, default: bool) -> bool:
    value = _env_optional_bool(name)
    return default if value is None else value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable with a fallback (preserving zero)."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


@dataclass(slots=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    anthropic_api_key: str | None = None
    anthropic_base_url: str = _DEFAULT_ANTHROPIC_BASE_URL
    anthropic_version: str = _DEFAULT_ANTHROPIC_VERSION
    analysis_model: str = _DEFAULT_ANALYSIS_MODEL
    analysis_max_tokens: int = _DEFAULT_ANALYSIS_MAX_TOKENS
    request_timeout: float = _DEFAULT_REQUEST_TIMEOUT
    chunk_threshold_words: int = _DEFAULT_CHUNK_THRESHOLD_WORDS
    chunk_target_words: int = _DEFAULT_CHUNK_TARGET_WORDS
    chunk_concurrency: int = _DEFAULT_CHUNK_CONCURRENCY
    transport_retries: int = _DEFAULT_TRANSPORT_RETRIES
    retry_backoff: float = _DEFAULT_RETRY_BACKOFF
    parse_retries: int = _DEFAULT_PARSE_RETRIES
    data_dir: str = _DEFAULT_DATA_DIR
    observability_metrics_enabled: bool = True
    observability_namespace: str = "insightcanvas"
    observability_prometheus_enabled: bool = False
    log_level: str = _DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        self.request_timeout = max(_MIN_REQUEST_TIMEOUT, self.request_timeout)
        self.chunk_target_words = max(1, self.chunk_target_words)
        self.chunk_concurrency = max(1, self.chunk_concurrency)
        self.transport_retries = max(0, self.transport_retries)
        self.parse_retries = max(0, self.parse_retries)
        self.retry_backoff = max(0.0, self.retry_backoff)
        self.log_level = self.log_level.strip().upper()
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got {self.log_level!r}")

    @property
    def messages_url(self) -> str:
        return f"{self.anthropic_base_url.rstrip('/')}/v1/messages"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings by reading environment variables."""

        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            anthropic_base_url=os.getenv("ANTHROPIC_BASE_URL", _DEFAULT_ANTHROPIC_BASE_URL),
            anthropic_version=os.getenv("ANTHROPIC_VERSION", _DEFAULT_ANTHROPIC_VERSION),
            analysis_model=os.getenv("ANALYSIS_MODEL", _DEFAULT_ANALYSIS_MODEL),
            analysis_max_tokens=_env_int("ANALYSIS_MAX_TOKENS", _DEFAULT_ANALYSIS_MAX_TOKENS),
            request_timeout=_env_float("ANALYSIS_REQUEST_TIMEOUT", _DEFAULT_REQUEST_TIMEOUT),
            chunk_threshold_words=_env_int(
                "ANALYSIS_CHUNK_THRESHOLD_WORDS", _DEFAULT_CHUNK_THRESHOLD_WORDS
            ),
            chunk_target_words=_env_int("ANALYSIS_CHUNK_TARGET_WORDS", _DEFAULT_CHUNK_TARGET_WORDS),
            chunk_concurrency=_env_int("ANALYSIS_CHUNK_CONCURRENCY", _DEFAULT_CHUNK_CONCURRENCY),
            transport_retries=_env_int("ANALYSIS_TRANSPORT_RETRIES", _DEFAULT_TRANSPORT_RETRIES),
            retry_backoff=_env_float("ANALYSIS_RETRY_BACKOFF", _DEFAULT_RETRY_BACKOFF),
            parse_retries=_env_int("ANALYSIS_PARSE_RETRIES", _DEFAULT_PARSE_RETRIES),
            data_dir=os.getenv("DATA_DIR", _DEFAULT_DATA_DIR),
            observability_metrics_enabled=_env_bool("OBSERVABILITY_METRICS_ENABLED", True),
            observability_namespace=os.getenv("OBSERVABILITY_NAMESPACE", "insightcanvas"),
            observability_prometheus_enabled=_env_bool("OBSERVABILITY_PROMETHEUS_ENABLED", False),
            log_level=os.getenv("LOG_LEVEL", _DEFAULT_LOG_LEVEL),
        )


__all__ = ["Settings"]
