"""
volenlarge configuration management.

Provides one validated configuration value, built once per run,
using Pydantic.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["debug", "info", "warn", "error"] = "info"
    console_enabled: bool = True
    file_enabled: bool = False
    json_format: bool = False
    log_directory: Path = Field(default_factory=lambda: Path.home() / ".volenlarge" / "logs")

    @field_validator("level", mode="before")
    @classmethod
    def lower_level(cls, v: str) -> str:
        return v.lower().strip() if isinstance(v, str) else v

    @field_validator("log_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()

    @property
    def stdlib_level(self) -> str:
        """Level name understood by the logging module."""
        return "WARNING" if self.level == "warn" else self.level.upper()


class WaitConfig(BaseModel):
    """Timing for the modification waiters."""

    poll_interval_seconds: int = Field(default=15, ge=1)
    poll_max_attempts: int = Field(default=40, ge=1)
    ebs_timeout_seconds: int = Field(default=900, ge=1)
    pvc_timeout_seconds: int = Field(default=300, ge=1)


class EnlargeConfig(BaseModel):
    """Main volenlarge configuration."""

    sys_path: Path = Path("/sys")
    proc_path: Path = Path("/proc")
    dev_path: Path = Path("/dev")

    mount_point: str | None = None
    pvc: str | None = None
    pvc_namespace: str | None = None

    percents: int = Field(default=20, ge=1)
    snapshot: bool = False
    dry_run: bool = False
    wait_for_modifying: bool = False

    k8s_snapshot_class: str = "csi-aws-vsc"
    snapshot_api_group: str = "snapshot.storage.k8s.io"
    snapshot_api_version: str = "v1"

    aws_region: str | None = None
    kubeconfig: Path | None = None

    wait: WaitConfig = Field(default_factory=WaitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("kubeconfig", mode="before")
    @classmethod
    def expand_kubeconfig(cls, v: str | Path | None) -> Path | None:
        return Path(v).expanduser() if v else None

    @property
    def mode(self) -> str:
        """'pvc' when enlarging a claim, 'mount-point' otherwise."""
        return "pvc" if self.pvc else "mount-point"

    @property
    def mount_table(self) -> Path:
        return self.proc_path / "self" / "mounts"

    def validate_target(self) -> EnlargeConfig:
        """Check that exactly one enlargement target is configured."""
        if self.mount_point and self.pvc:
            raise ValueError("mount-point and pvc cannot be defined together.")
        if not self.mount_point and not self.pvc:
            raise ValueError("Either mount-point or pvc has to be defined.")
        if self.pvc and not self.pvc_namespace:
            raise ValueError("pvc-namespace must be defined if pvc is defined.")
        return self

    @classmethod
    def load(cls, config_path: Path | None = None) -> EnlargeConfig:
        """Load configuration from a JSON file or create default."""
        if config_path is not None and config_path.exists():
            with open(config_path) as f:
                data = json.load(f)
            return cls.model_validate(data)

        return cls()

    def with_overrides(self, **overrides: object) -> EnlargeConfig:
        """Return a validated copy with the non-None overrides applied."""
        data = self.model_dump()
        for key, value in overrides.items():
            if value is not None:
                data[key] = value
        return type(self).model_validate(data)


def load_config(config_path: Path | None = None) -> EnlargeConfig:
    """Load or create configuration."""
    return EnlargeConfig.load(config_path)
