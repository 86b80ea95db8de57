"""
volenlarge Platform Layer.

Device discovery is only implemented for Linux.
"""

from __future__ import annotations

import platform

from volenlarge.core.errors import VolumeEnlargeError


class UnsupportedPlatformError(VolumeEnlargeError):
    code = "UnsupportedPlatform"


def get_platform_name() -> str:
    """Get the current platform name."""
    return platform.system().lower()


def is_linux() -> bool:
    """Check if running on Linux."""
    return get_platform_name() == "linux"


def require_linux() -> None:
    """Refuse to run anywhere but Linux."""
    if not is_linux():
        raise UnsupportedPlatformError("The program only runs on Linux.")


__all__ = [
    "UnsupportedPlatformError",
    "get_platform_name",
    "is_linux",
    "require_linux",
]
