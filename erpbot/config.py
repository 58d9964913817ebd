"""
Centralized configuration with environment variable overrides.

Transport token, NLU endpoint, ERPNext credentials, guardrail limits and
report display settings are all configurable here. Nothing is hardcoded
in handler or service logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from erpbot.logging_context import SessionIdFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class TelegramConfig:
    """Chat transport settings."""

    token: str = os.getenv("TELEGRAM_TOKEN", "")
    parse_mode: str = os.getenv("TELEGRAM_PARSE_MODE", "Markdown")


@dataclass(frozen=True)
class NLUConfig:
    """Rasa endpoint settings."""

    rasa_url: str = os.getenv("RASA_URL", "http://localhost:5005")
    webhook_path: str = os.getenv("RASA_WEBHOOK_PATH", "/webhooks/rest/webhook")
    timeout_sec: float = _safe_float("NLU_TIMEOUT", "5.0")


@dataclass(frozen=True)
class BackendConfig:
    """ERPNext connection and document defaults."""

    url: str = os.getenv("ERPNext_URL", "")
    api_key: str = os.getenv("ERPNext_API_KEY", "")
    api_secret: str = os.getenv("ERPNext_API_SECRET", "")
    company: str = os.getenv("ERPNext_COMPANY", "Your Company")
    timeout_sec: float = _safe_float("BACKEND_TIMEOUT", "15.0")
    reprobe_failures: int = _safe_int("BACKEND_REPROBE_FAILURES", "3")
    reprobe_interval_sec: float = _safe_float("BACKEND_REPROBE_INTERVAL", "60.0")
    quotation_validity_days: int = _safe_int("QUOTATION_VALIDITY_DAYS", "30")
    currency: str = os.getenv("CURRENCY", "TND")

    @property
    def configured(self) -> bool:
        return bool(self.url and self.api_key and self.api_secret)


@dataclass(frozen=True)
class GuardrailConfig:
    """Inbound message limits."""

    rate_limit_max_messages: int = _safe_int("RATE_LIMIT_MAX_MESSAGES", "10")
    rate_limit_window_sec: float = _safe_float("RATE_LIMIT_WINDOW", "60.0")
    max_message_length: int = _safe_int("MAX_MESSAGE_LENGTH", "4096")


@dataclass(frozen=True)
class ReportConfig:
    """Report rendering settings."""

    display_limit: int = _safe_int("REPORT_DISPLAY_LIMIT", "50")
    low_stock_threshold: float = _safe_float("LOW_STOCK_THRESHOLD", "10")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    nlu: NLUConfig = field(default_factory=NLUConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    guardrails: GuardrailConfig = field(default_factory=GuardrailConfig)
    reports: ReportConfig = field(default_factory=ReportConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    bot_name: str = os.getenv("BOT_NAME", "erp-assistant")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.nlu.timeout_sec <= 0:
        raise ValueError(f"NLU_TIMEOUT must be > 0, got {config.nlu.timeout_sec}")
    if config.backend.timeout_sec <= 0:
        raise ValueError(
            f"BACKEND_TIMEOUT must be > 0, got {config.backend.timeout_sec}"
        )
    if config.backend.reprobe_failures < 1:
        raise ValueError(
            f"BACKEND_REPROBE_FAILURES must be >= 1, got {config.backend.reprobe_failures}"
        )
    if config.backend.reprobe_interval_sec < 0:
        raise ValueError(
            "BACKEND_REPROBE_INTERVAL must be >= 0, "
            f"got {config.backend.reprobe_interval_sec}"
        )
    if config.backend.quotation_validity_days < 1:
        raise ValueError(
            "QUOTATION_VALIDITY_DAYS must be >= 1, "
            f"got {config.backend.quotation_validity_days}"
        )
    if config.guardrails.rate_limit_max_messages < 1:
        raise ValueError(
            "RATE_LIMIT_MAX_MESSAGES must be >= 1, "
            f"got {config.guardrails.rate_limit_max_messages}"
        )
    if config.guardrails.rate_limit_window_sec <= 0:
        raise ValueError(
            f"RATE_LIMIT_WINDOW must be > 0, got {config.guardrails.rate_limit_window_sec}"
        )
    if config.guardrails.max_message_length < 1:
        raise ValueError(
            f"MAX_MESSAGE_LENGTH must be >= 1, got {config.guardrails.max_message_length}"
        )
    if config.reports.display_limit < 1:
        raise ValueError(
            f"REPORT_DISPLAY_LIMIT must be >= 1, got {config.reports.display_limit}"
        )
    if config.reports.low_stock_threshold < 0:
        raise ValueError(
            f"LOW_STOCK_THRESHOLD must be >= 0, got {config.reports.low_stock_threshold}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
            handler.addFilter(SessionIdFilter())
    if config.backend.configured:
        logger.info("Configuration loaded, ERPNext at %s", config.backend.url)
    else:
        logger.info("Configuration loaded, ERPNext not configured")
    return config


# Singleton instance
settings = load_config()
