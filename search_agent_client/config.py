"""
Client configuration.
Plain env-driven classes; pick one with APP_ENV.
"""
from __future__ import annotations

import logging
import os

log = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in _TRUTHY


class BaseConfig:
    # Backend
    AGENT_CHAT_URL: str = os.getenv("AGENT_CHAT_URL", "http://localhost:8003/chat").strip()
    REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
    # Per-read timeout while consuming a streamed body; 0 disables it
    STREAM_READ_TIMEOUT_SECONDS: float = float(os.getenv("STREAM_READ_TIMEOUT_SECONDS", "120"))

    # Conversation
    FALLBACK_REPLY: str = os.getenv("FALLBACK_REPLY", "I'm not sure how to respond to that.")
    # Drop responses that arrive for a session that was refreshed away
    DISCARD_STALE_RESPONSES: bool = _env_flag("DISCARD_STALE_RESPONSES")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_PAYLOADS: bool = _env_flag("LOG_PAYLOADS")
    MAX_LOG_BYTES: int = int(os.getenv("MAX_LOG_BYTES", "2000"))


class DevelopmentConfig(BaseConfig):
    DEBUG: bool = True
    LOG_PAYLOADS: bool = _env_flag("LOG_PAYLOADS", "true")


class ProductionConfig(BaseConfig):
    DEBUG: bool = False


class TestingConfig(BaseConfig):
    TESTING: bool = True
    AGENT_CHAT_URL: str = "http://127.0.0.1:8003/chat"
    REQUEST_TIMEOUT_SECONDS: float = 5.0
    STREAM_READ_TIMEOUT_SECONDS: float = 5.0
    DISCARD_STALE_RESPONSES: bool = False


def get_config() -> BaseConfig:
    """Get configuration instance directly - no complex manager."""
    env = os.getenv("APP_ENV", "development").lower()
    mapping = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = mapping.get(env, DevelopmentConfig)
    cfg = config_class()

    if not hasattr(get_config, "_logged_startup"):
        log.info(f"CONFIG_STARTUP | env={env} | config_class={config_class.__name__}")
        log.info(
            f"AGENT_CONFIG | url={cfg.AGENT_CHAT_URL} | timeout={cfg.REQUEST_TIMEOUT_SECONDS}s"
            f" | stream_read_timeout={cfg.STREAM_READ_TIMEOUT_SECONDS}s"
        )
        log.info(f"SESSION_CONFIG | discard_stale_responses={cfg.DISCARD_STALE_RESPONSES}")
        get_config._logged_startup = True

    return cfg
