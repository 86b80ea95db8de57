"""
volenlarge error taxonomy.

Library code raises these; the CLI is the single place that maps them
to messages and exit codes.
"""

from __future__ import annotations


class VolumeEnlargeError(Exception):
    """Base class for all volenlarge failures."""

    code = "VolumeEnlargeError"
    exit_code = 1


# ==================== Resolution Errors ====================


class ResolutionError(VolumeEnlargeError):
    """Device discovery failed; the run cannot safely continue."""

    code = "ResolutionError"
    exit_code = 2


class MountNotFoundError(ResolutionError):
    code = "MountNotFound"

    def __init__(self, mount_point: str, mount_table: str) -> None:
        super().__init__(f'Mount point "{mount_point}" not found in {mount_table}')
        self.mount_point = mount_point
        self.mount_table = mount_table


class NotADeviceFileError(ResolutionError):
    code = "NotADeviceFile"

    def __init__(self, path: str) -> None:
        super().__init__(f'"{path}" is not a device file')
        self.path = path


class DeviceStatError(ResolutionError):
    code = "DeviceStatFailed"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f'Cannot stat device "{path}": {reason}')
        self.path = path


class SysfsReadError(ResolutionError):
    code = "SysfsReadFailed"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path


class NoParentDevicesError(ResolutionError):
    code = "NoParentDevicesFound"

    def __init__(self, device: str) -> None:
        super().__init__(
            f'No parental devices of "{device}" found. '
            "Try to run the program with --log-level=debug."
        )
        self.device = device


class NotACloudVolumeError(ResolutionError):
    code = "NotACloudVolume"

    def __init__(self, device: str, serial: str) -> None:
        super().__init__(f'Device "{device}" is not an EBS volume (serial "{serial}")')
        self.device = device
        self.serial = serial


# ==================== API / Wait Errors ====================


class TransportError(VolumeEnlargeError):
    """A cloud or cluster API call failed."""

    code = "TransportError"
    exit_code = 5


class DryRunOperation(VolumeEnlargeError):
    """The backend accepted the request but dry-run was set."""

    code = "DryRunOperation"
    exit_code = 0

    def __init__(self, message: str = "DryRunOperation") -> None:
        super().__init__(message)


class ContextTimeout(VolumeEnlargeError):
    """The wait deadline passed before the backend reported completion."""

    code = "ContextTimeout"
    exit_code = 3

    def __init__(self, message: str = "ContextTimeout") -> None:
        super().__init__(message)


class WaitFailedError(VolumeEnlargeError):
    """The backend reported that the modification failed."""

    code = "WaitFailed"
    exit_code = 4


class SizeNotIncreasedError(VolumeEnlargeError):
    """The computed size would not grow the volume."""

    code = "SizeNotIncreased"

    def __init__(self, target: str, current: str, requested: str) -> None:
        super().__init__(
            f"Refusing to resize {target}: {requested} is not larger than {current}"
        )
        self.target = target
