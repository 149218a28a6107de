"""Configuration module for sheetify."""

import os
from dataclasses import dataclass
from typing import Optional

from .exceptions import ConfigurationError

SESSION_TTL_SECONDS = 60 * 60 * 5
BATCH_TTL_SECONDS = 60 * 60 * 24


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


@dataclass
class Config:
    """Configuration class for page extraction jobs."""

    model: str = "gpt-4o-mini"
    temperature: float = 0.1
    max_tokens: Optional[int] = None
    max_retries: int = 3
    retry_delay: float = 1.0  # base delay, multiplied by the attempt number
    concurrent_requests: int = 3  # one-shot batch extraction only
    render_scale: float = 1.0
    line_memory_limit: int = 15  # turn pairs kept for dialogue extraction
    name_memory_limit: int = 100  # turn pairs kept for name extraction
    session_ttl: int = SESSION_TTL_SECONDS
    batch_ttl: int = BATCH_TTL_SECONDS
    redis_url: Optional[str] = "redis://localhost:6379"
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ConfigurationError("max_retries must be at least 1")
        if self.concurrent_requests < 1:
            raise ConfigurationError("concurrent_requests must be at least 1")
        if self.line_memory_limit < 1 or self.name_memory_limit < 1:
            raise ConfigurationError("memory limits must be at least 1")
        if self.render_scale <= 0:
            raise ConfigurationError("render_scale must be positive")

    def memory_limit(self, key: str) -> int:
        """Return the conversation limit named by a mode's ``memory_limit_key``."""
        try:
            return int(getattr(self, key))
        except AttributeError:
            raise ConfigurationError(f"Unknown memory limit setting: {key}")

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration from ``SHEETIFY_*`` environment variables."""
        defaults = cls()
        try:
            max_tokens = os.getenv("SHEETIFY_MAX_TOKENS")
            return cls(
                model=os.getenv("SHEETIFY_MODEL", defaults.model),
                temperature=float(
                    os.getenv("SHEETIFY_TEMPERATURE", str(defaults.temperature))
                ),
                max_tokens=int(max_tokens) if max_tokens else None,
                max_retries=int(
                    os.getenv("SHEETIFY_MAX_RETRIES", str(defaults.max_retries))
                ),
                retry_delay=float(
                    os.getenv("SHEETIFY_RETRY_DELAY", str(defaults.retry_delay))
                ),
                concurrent_requests=int(
                    os.getenv(
                        "SHEETIFY_CONCURRENCY", str(defaults.concurrent_requests)
                    )
                ),
                render_scale=float(
                    os.getenv("SHEETIFY_RENDER_SCALE", str(defaults.render_scale))
                ),
                line_memory_limit=int(
                    os.getenv("SHEETIFY_LINE_MEMORY", str(defaults.line_memory_limit))
                ),
                name_memory_limit=int(
                    os.getenv("SHEETIFY_NAME_MEMORY", str(defaults.name_memory_limit))
                ),
                session_ttl=int(
                    os.getenv("SHEETIFY_SESSION_TTL", str(defaults.session_ttl))
                ),
                batch_ttl=int(os.getenv("SHEETIFY_BATCH_TTL", str(defaults.batch_ttl))),
                redis_url=os.getenv("REDIS_URL", defaults.redis_url) or None,
                verbose=_env_bool(os.getenv("SHEETIFY_VERBOSE", "false")),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}")

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "max_retries": self.max_retries,
            "retry_delay": self.retry_delay,
            "concurrent_requests": self.concurrent_requests,
            "render_scale": self.render_scale,
            "line_memory_limit": self.line_memory_limit,
            "name_memory_limit": self.name_memory_limit,
            "session_ttl": self.session_ttl,
            "batch_ttl": self.batch_ttl,
            "redis_url": self.redis_url,
            "verbose": self.verbose,
        }
