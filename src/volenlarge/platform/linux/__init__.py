"""
volenlarge Linux Platform Backend.

Resolves mount points to EBS volume IDs using:
- /proc/self/mounts for the mounted device
- /sys/dev/block and slaves links for the device stack
- /sys/class/block/<disk>/device/serial for the volume ID
"""

from volenlarge.platform.linux.backend import LinuxDeviceResolver
from volenlarge.platform.linux.parsers import (
    normalize_volume_id,
    parse_mount_table,
)
from volenlarge.platform.linux.sysfs import extract_parent_devices, walk_leaf_devices

__all__ = [
    "LinuxDeviceResolver",
    "normalize_volume_id",
    "parse_mount_table",
    "extract_parent_devices",
    "walk_leaf_devices",
]
