"""
Linux parsers.

Pure string parsers for the mount table, sysfs device paths and
hardware serial numbers.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from volenlarge.core.errors import NotACloudVolumeError
from volenlarge.core.models import MountEntry

# getmntent(3) escapes space, tab, newline and backslash as \ooo
_MOUNT_ESCAPE = re.compile(r"\\([0-7]{3})")

# EBS puts "vol" + hex ID into the serial, without the hyphen
_EBS_SERIAL = re.compile(r"^vol([0-9A-Za-z]+)$")


def decode_mount_field(value: str) -> str:
    """Decode the octal escapes used in /proc/*/mounts fields."""
    return _MOUNT_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), value)


def parse_mount_table(output: str) -> list[MountEntry]:
    """
    Parse the contents of /proc/self/mounts.

    Example input:
    /dev/xvdf /data ext4 rw,relatime 0 0
    """
    entries: list[MountEntry] = []

    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 3:
            continue

        entries.append(
            MountEntry(
                device_path=decode_mount_field(parts[0]),
                mount_point=decode_mount_field(parts[1]),
                filesystem=parts[2],
            )
        )

    return entries


def find_mount_entry(entries: list[MountEntry], mount_point: str) -> MountEntry | None:
    """Return the first entry mounted exactly at mount_point."""
    for entry in entries:
        if entry.mount_point == mount_point:
            return entry
    return None


def parse_parent_device_name(real_path: str, is_partition: bool) -> str:
    """
    Get the block device name that owns a resolved sysfs node.

    Partitions live at .../block/<disk>/<partition>, so their disk is the
    second-to-last segment. A whole disk is its own parent.
    """
    path = PurePosixPath(real_path)
    if is_partition:
        return path.parent.name
    return path.name


def normalize_volume_id(serial: str, device: str = "") -> str:
    """
    Turn an EBS hardware serial into a volume ID.

    vol0abcd1234 -> vol-0abcd1234
    """
    serial = serial.strip()
    match = _EBS_SERIAL.match(serial)
    if not match:
        raise NotACloudVolumeError(device or serial, serial)
    return f"vol-{match.group(1)}"
