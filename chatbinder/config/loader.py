"""
Config Loader — Load bot configuration from environment variables.

A .env file in the working directory is loaded by the CLI before this
module is used, so every value can live there as well.

## Environment Variables

- BOT_TOKEN: Telegram bot token (TELOXIDE_TOKEN accepted as an alias)
- DB: Path to the bindings store file (CHATBINDER_DB accepted as an alias)
- TELEGRAM_API_BASE: Bot API base URL (default: https://api.telegram.org)
- CHATBINDER_POLL_TIMEOUT: Long-poll timeout in seconds (default: 30)
- CHATBINDER_FANOUT_POLICY: abort | best_effort (default: abort)
- CHATBINDER_SHUTDOWN_GRACE_SECONDS: Wait for in-flight updates (default: 10)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from ..mirror.membership import FanoutPolicy
from ..transport.telegram import DEFAULT_API_BASE

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """A configuration value is present but invalid."""


@dataclass
class BotConfig:
    """All runtime settings in one place."""

    bot_token: Optional[str] = None
    db_path: Optional[Path] = None
    api_base: str = DEFAULT_API_BASE
    poll_timeout: int = 30
    fanout_policy: FanoutPolicy = FanoutPolicy.ABORT
    shutdown_grace_seconds: float = 10

    def has_token(self) -> bool:
        return bool(self.bot_token)

    def has_db(self) -> bool:
        return self.db_path is not None

    def missing(self, need_token: bool = True) -> List[str]:
        """Names of required settings that are not set."""
        missing = []
        if need_token and not self.has_token():
            missing.append("BOT_TOKEN")
        if not self.has_db():
            missing.append("DB")
        return missing


def _first(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value:
            return value
    return None


def _parse_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None) -> BotConfig:
    """
    Build a BotConfig from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Raises:
        ConfigError: If a value is present but invalid
    """
    env = os.environ if env is None else env

    db = _first(env, "DB", "CHATBINDER_DB")

    raw_policy = (env.get("CHATBINDER_FANOUT_POLICY") or FanoutPolicy.ABORT.value).lower()
    try:
        policy = FanoutPolicy(raw_policy)
    except ValueError:
        choices = ", ".join(p.value for p in FanoutPolicy)
        raise ConfigError(f"CHATBINDER_FANOUT_POLICY must be one of {choices}, got {raw_policy!r}")

    config = BotConfig(
        bot_token=_first(env, "BOT_TOKEN", "TELOXIDE_TOKEN"),
        db_path=Path(db) if db else None,
        api_base=env.get("TELEGRAM_API_BASE") or DEFAULT_API_BASE,
        poll_timeout=_parse_number(env, "CHATBINDER_POLL_TIMEOUT", 30, int),
        fanout_policy=policy,
        shutdown_grace_seconds=_parse_number(env, "CHATBINDER_SHUTDOWN_GRACE_SECONDS", 10, float),
    )

    logger.debug(
        f"Config loaded: db={config.db_path}, policy={config.fanout_policy.value}, "
        f"token={'set' if config.has_token() else 'missing'}"
    )
    return config
