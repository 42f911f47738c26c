"""
Codeact Configuration

Engine settings with environment-variable overrides:

    CODEACT_ALLOW_IO             guest may open files and import I/O modules
    CODEACT_ALLOW_NATIVE_ACCESS  guest may import ctypes/cffi/mmap
    CODEACT_ALLOW_HOST_ACCESS    guest may import any module and use dunders
    CODEACT_TIMEOUT_SECONDS      wall-clock budget per execution
    CODEACT_LOG_LEVEL            level of the "codeact" logger
    CODEACT_JSON_LOGS            emit JSON log lines
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

from codeact.executor.sandbox import SandboxConfig
from codeact.logging import configure_logging
from codeact.models import Language

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


class CodeactConfig(BaseModel):
    """Top-level engine configuration."""

    language: Language = Language.PYTHON
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    log_level: str = "INFO"
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> CodeactConfig:
        """Build a config from CODEACT_* environment variables."""
        defaults = SandboxConfig()
        sandbox = SandboxConfig(
            allow_io=_env_flag("CODEACT_ALLOW_IO", defaults.allow_io),
            allow_native_access=_env_flag("CODEACT_ALLOW_NATIVE_ACCESS", defaults.allow_native_access),
            allow_host_access=_env_flag("CODEACT_ALLOW_HOST_ACCESS", defaults.allow_host_access),
            timeout_seconds=float(os.environ.get("CODEACT_TIMEOUT_SECONDS", defaults.timeout_seconds)),
        )
        return cls(
            sandbox=sandbox,
            log_level=os.environ.get("CODEACT_LOG_LEVEL", "INFO"),
            json_logs=_env_flag("CODEACT_JSON_LOGS", False),
        )

    def apply_logging(self) -> None:
        configure_logging(level=self.log_level, json_output=self.json_logs)
