"""
Linux device resolver.

Finds the EBS volumes behind a mount point using procfs and sysfs.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from volenlarge.core.errors import MountNotFoundError, NotADeviceFileError, SysfsReadError
from volenlarge.core.logging import get_logger
from volenlarge.core.models import MountEntry
from volenlarge.platform.linux import devices
from volenlarge.platform.linux.parsers import find_mount_entry, parse_mount_table
from volenlarge.platform.linux.sysfs import (
    extract_parent_devices,
    volume_id_for_device,
    walk_leaf_devices,
)

if TYPE_CHECKING:
    from volenlarge.core.config import EnlargeConfig

logger = get_logger(__name__)

DEV_ROOT = PurePosixPath("/dev")


class LinuxDeviceResolver:
    """Resolves mount points to EBS volume IDs."""

    def __init__(
        self,
        sys_path: Path = Path("/sys"),
        proc_path: Path = Path("/proc"),
        dev_path: Path = Path("/dev"),
    ) -> None:
        self.sys_path = sys_path
        self.proc_path = proc_path
        self.dev_path = dev_path

    @classmethod
    def from_config(cls, config: EnlargeConfig) -> LinuxDeviceResolver:
        return cls(config.sys_path, config.proc_path, config.dev_path)

    @property
    def mount_table(self) -> Path:
        return self.proc_path / "self" / "mounts"

    def find_mount(self, mount_point: str) -> MountEntry:
        """Find the mount table record for mount_point."""
        try:
            content = self.mount_table.read_text()
        except OSError as e:
            raise SysfsReadError(str(self.mount_table), e.strerror or str(e)) from e

        entry = find_mount_entry(parse_mount_table(content), mount_point)
        if entry is None:
            raise MountNotFoundError(mount_point, str(self.mount_table))

        logger.info(
            f'Found the device "{entry.device_path}" with {entry.filesystem} '
            f'filesystem matching the mount point "{mount_point}".',
            device=entry.device_path,
            filesystem=entry.filesystem,
        )
        return entry

    def host_device_file(self, device_path: str) -> Path:
        """Map a /dev path from the mount table onto dev_path."""
        path = PurePosixPath(device_path)
        if not path.is_relative_to(DEV_ROOT) or path == DEV_ROOT:
            raise NotADeviceFileError(device_path)
        return self.dev_path / path.relative_to(DEV_ROOT)

    def device_sysfs_path(self, device_path: str) -> Path:
        """Get the /sys/dev/block/<major>:<minor> node of a device file."""
        node = devices.stat_device_node(str(self.host_device_file(device_path)))
        logger.debug("Device major and minor numbers", device=device_path, node=node.sysfs_name)

        sysfs_path = self.sys_path / "dev" / "block" / node.sysfs_name
        if not sysfs_path.is_dir():
            raise SysfsReadError(str(sysfs_path), "not a directory or does not exist")

        return sysfs_path

    def parent_devices(self, device_path: str) -> list[str]:
        """Get the physical disks underneath a device file."""
        top = self.device_sysfs_path(device_path)
        leaves = walk_leaf_devices(top)
        logger.debug(
            "Secondary devices",
            device=device_path,
            leaves=[str(leaf) for leaf in leaves],
        )
        return extract_parent_devices(leaves, self.dev_path, device_path)

    def volume_ids(self, mount_point: str) -> list[str]:
        """Get the EBS volume IDs backing mount_point."""
        entry = self.find_mount(mount_point)
        return [
            volume_id_for_device(self.sys_path, name)
            for name in self.parent_devices(entry.device_path)
        ]
