"""
volenlarge Core - configuration, logging, errors and run sequencing.
"""

from volenlarge.core.config import EnlargeConfig, LoggingConfig, WaitConfig
from volenlarge.core.errors import (
    ContextTimeout,
    DryRunOperation,
    ResolutionError,
    TransportError,
    VolumeEnlargeError,
    WaitFailedError,
)
from volenlarge.core.logging import bind_run_context, get_logger, setup_logging
from volenlarge.core.models import WaitOutcome, WaitResult
from volenlarge.core.session import Session

__all__ = [
    "EnlargeConfig",
    "LoggingConfig",
    "WaitConfig",
    "ContextTimeout",
    "DryRunOperation",
    "ResolutionError",
    "TransportError",
    "VolumeEnlargeError",
    "WaitFailedError",
    "bind_run_context",
    "get_logger",
    "setup_logging",
    "WaitOutcome",
    "WaitResult",
    "Session",
]
