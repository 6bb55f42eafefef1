"""
zapvault Configuration

Environment-driven settings for the vault, its swap path and logging.
Every value can be overridden with a ZAPVAULT_* environment variable; the
selected environment class is returned by get_config().
"""

from __future__ import annotations

import logging
import os
from enum import Enum

logger = logging.getLogger(__name__)


class EnvironmentType(Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


# Uniswap V3 style fee tiers, in hundredths of a basis point
ALLOWED_FEE_TIERS = (100, 500, 3000, 10000)


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Read an integer setting, rejecting garbage and values below minimum."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{env_var} must be >= {minimum}, got {value}")
    return value


def _get_fee_tier(env_var: str, default: int) -> int:
    fee = _get_int(env_var, default)
    if fee not in ALLOWED_FEE_TIERS:
        raise ConfigurationError(
            f"{env_var} must be one of {ALLOWED_FEE_TIERS}, got {fee}"
        )
    return fee


ENVIRONMENT = os.getenv("ZAPVAULT_ENV", "development").strip().lower()

LOG_LEVEL = os.getenv("ZAPVAULT_LOG_LEVEL", "INFO").strip().upper()
LOG_FILE = os.getenv("ZAPVAULT_LOG_FILE", "").strip()

DEFAULT_FEE_TIER = _get_fee_tier("ZAPVAULT_DEFAULT_FEE_TIER", 3000)
SWAP_DEADLINE_SECONDS = _get_int("ZAPVAULT_SWAP_DEADLINE_SECONDS", 300, minimum=1)


class DevelopmentConfig:
    """Development configuration (local simulation and tests)"""

    ENVIRONMENT_TYPE = EnvironmentType.DEVELOPMENT

    LOG_LEVEL = LOG_LEVEL
    LOG_FILE = LOG_FILE
    LOG_TO_FILE = bool(LOG_FILE)

    DEFAULT_FEE_TIER = DEFAULT_FEE_TIER
    ALLOWED_FEE_TIERS = ALLOWED_FEE_TIERS
    SWAP_DEADLINE_SECONDS = SWAP_DEADLINE_SECONDS


class ProductionConfig:
    """Production configuration"""

    ENVIRONMENT_TYPE = EnvironmentType.PRODUCTION

    LOG_LEVEL = LOG_LEVEL
    LOG_FILE = LOG_FILE or os.path.join(os.getcwd(), "logs", "zapvault.json")
    LOG_TO_FILE = True

    DEFAULT_FEE_TIER = DEFAULT_FEE_TIER
    ALLOWED_FEE_TIERS = ALLOWED_FEE_TIERS
    SWAP_DEADLINE_SECONDS = SWAP_DEADLINE_SECONDS


def get_config(environment: str | None = None) -> type[DevelopmentConfig] | type[ProductionConfig]:
    """Return the configuration class for the given (or current) environment."""
    name = (environment or ENVIRONMENT).strip().lower()
    if name == EnvironmentType.PRODUCTION.value:
        return ProductionConfig
    if name == EnvironmentType.DEVELOPMENT.value:
        return DevelopmentConfig
    raise ConfigurationError(f"Unknown ZAPVAULT_ENV: {name!r}")


Config = get_config()

logger.debug(
    "Configuration loaded",
    extra={
        "event": "config.loaded",
        "environment": Config.ENVIRONMENT_TYPE.value,
        "default_fee_tier": Config.DEFAULT_FEE_TIER,
        "swap_deadline_seconds": Config.SWAP_DEADLINE_SECONDS,
    },
)
