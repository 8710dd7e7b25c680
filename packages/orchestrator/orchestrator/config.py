"""Orchestrator configuration.

Every option has a default; ``from_env`` lets deployments override them
through ``AGENT_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _read_bool_env(name: str, default: bool) -> bool:
    """Read boolean environment variable."""
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"0", "false", "off", "no"}:
        return False
    if normalized in {"1", "true", "on", "yes"}:
        return True
    return default


def _read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class OrchestratorConfig:
    max_retries: int = 3
    retry_delay_ms: int = 1000
    # Accepted but not consulted by any handler yet.
    validation_timeout_ms: int = 5000
    enable_auto_retry: bool = True

    @property
    def retry_delay_seconds(self) -> float:
        return max(0, self.retry_delay_ms) / 1000

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        defaults = cls()
        return cls(
            max_retries=_read_int_env("AGENT_MAX_RETRIES", defaults.max_retries),
            retry_delay_ms=_read_int_env("AGENT_RETRY_DELAY_MS", defaults.retry_delay_ms),
            validation_timeout_ms=_read_int_env(
                "AGENT_VALIDATION_TIMEOUT_MS", defaults.validation_timeout_ms
            ),
            enable_auto_retry=_read_bool_env("AGENT_ENABLE_AUTO_RETRY", defaults.enable_auto_retry),
        )
