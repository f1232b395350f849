"""Pipeline configuration.

Every tunable of the processing pipeline lives here. Values come from
``FINLEDGER_*`` environment variables, falling back to the defaults below.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

ENV_PREFIX = "FINLEDGER_"

DEFAULT_AI_MODELS = (
    "claude-3-5-sonnet-latest",
    "claude-3-5-haiku-latest",
)


class ConfigValidationError(ValueError):
    """Raised when configuration validation fails."""


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigValidationError(f"{ENV_PREFIX}{name} must be an integer, got '{raw}'") from e


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigValidationError(f"{ENV_PREFIX}{name} must be a number, got '{raw}'") from e


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class PipelineSettings:
    """Settings for document processing."""

    # Pipeline confidence below this value triggers enhanced extraction
    escalation_threshold: int = 60
    # Enhanced extractions per owner per calendar month
    default_monthly_quota: int = 20
    review_all_ai_results: bool = True
    reference_currency: str = "USD"
    default_currency: str = "ARS"
    ai_api_key: Optional[str] = None
    ai_api_url: str = "https://api.anthropic.com/v1/messages"
    ai_models: tuple[str, ...] = field(default=DEFAULT_AI_MODELS)
    ai_timeout_seconds: float = 120.0
    ai_max_tokens: int = 8192
    rate_api_url: str = "https://dolarapi.com/v1/dolares/oficial"
    rate_timeout_seconds: float = 5.0

    def __post_init__(self):
        if not 0 <= self.escalation_threshold <= 100:
            raise ConfigValidationError("escalation_threshold must be between 0 and 100")
        if self.default_monthly_quota <= 0:
            raise ConfigValidationError("default_monthly_quota must be greater than 0")
        if not self.ai_models:
            raise ConfigValidationError("At least one AI model must be configured")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "PipelineSettings":
        """Build settings from environment variables."""
        env = os.environ if env is None else env
        models = env.get(ENV_PREFIX + "AI_MODELS")
        return cls(
            escalation_threshold=_env_int(env, "ESCALATION_THRESHOLD", cls.escalation_threshold),
            default_monthly_quota=_env_int(env, "MONTHLY_QUOTA", cls.default_monthly_quota),
            review_all_ai_results=_env_bool(env, "REVIEW_ALL_AI_RESULTS", cls.review_all_ai_results),
            reference_currency=env.get(ENV_PREFIX + "REFERENCE_CURRENCY", cls.reference_currency).upper(),
            default_currency=env.get(ENV_PREFIX + "DEFAULT_CURRENCY", cls.default_currency).upper(),
            ai_api_key=env.get(ENV_PREFIX + "AI_API_KEY") or None,
            ai_api_url=env.get(ENV_PREFIX + "AI_API_URL", cls.ai_api_url),
            ai_models=(
                tuple(m.strip() for m in models.split(",") if m.strip()) if models else DEFAULT_AI_MODELS
            ),
            ai_timeout_seconds=_env_float(env, "AI_TIMEOUT", cls.ai_timeout_seconds),
            ai_max_tokens=_env_int(env, "AI_MAX_TOKENS", cls.ai_max_tokens),
            rate_api_url=env.get(ENV_PREFIX + "RATE_API_URL", cls.rate_api_url),
            rate_timeout_seconds=_env_float(env, "RATE_TIMEOUT", cls.rate_timeout_seconds),
        )
