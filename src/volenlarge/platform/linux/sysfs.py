"""
sysfs block device tree traversal.

Stacked block devices (LVM, dm-crypt, md RAID, multipath) list the
devices they are built on in their "slaves" directory. Walking those
links down from a mounted device yields the physical disks, whose
serial attribute carries the EBS volume ID.
"""

from __future__ import annotations

import os
from collections import deque
from pathlib import Path

from volenlarge.core.errors import NoParentDevicesError, SysfsReadError
from volenlarge.core.logging import get_logger
from volenlarge.platform.linux import devices
from volenlarge.platform.linux.parsers import normalize_volume_id, parse_parent_device_name

logger = get_logger(__name__)

SECONDARIES_DIR = "slaves"
PARTITION_ATTR = "partition"


def list_secondaries(device: Path) -> list[Path]:
    """
    List the devices a sysfs block node is built on.

    A missing or empty slaves directory both mean "none".
    """
    secondaries_dir = device / SECONDARIES_DIR
    try:
        with os.scandir(secondaries_dir) as entries:
            names = sorted(entry.name for entry in entries)
    except FileNotFoundError:
        return []
    except OSError as e:
        raise SysfsReadError(str(secondaries_dir), e.strerror or str(e)) from e

    return [secondaries_dir / name for name in names]


def walk_leaf_devices(top: Path) -> list[Path]:
    """
    Collect every leaf device reachable from top.

    The stacking graph is a finite DAG, so the worklist always drains.
    A secondary shared by two branches is reported once.
    """
    worklist: deque[Path] = deque([top])
    leaves: dict[Path, None] = {}

    while worklist:
        device = worklist.popleft()
        logger.debug("Expanding device", path=str(device), pending=len(worklist))

        secondaries = list_secondaries(device)
        if not secondaries:
            logger.debug("Found leaf device", path=str(device))
            leaves.setdefault(device)
            continue

        worklist.extend(secondaries)
        logger.debug(
            "Queued secondaries",
            path=str(device),
            secondaries=[str(s) for s in secondaries],
        )

    return list(leaves)


def extract_parent_devices(leaves: list[Path], dev_path: Path, device: str) -> list[str]:
    """
    Map leaf sysfs nodes to the names of the disks that hold them.

    Leaves that cannot be resolved, or whose disk has no block device
    node under dev_path, are skipped.
    """
    parents: list[str] = []

    for leaf in leaves:
        try:
            real_path = leaf.resolve(strict=True)
        except OSError as e:
            logger.debug("Cannot resolve device link", path=str(leaf), error=str(e))
            continue

        is_partition = (real_path / PARTITION_ATTR).exists()
        name = parse_parent_device_name(str(real_path), is_partition)
        logger.debug("Parental device", link=str(real_path), parent=name)

        if not devices.is_block_device(str(dev_path / name)):
            logger.debug("Skipping device without block node", parent=name)
            continue

        if name not in parents:
            parents.append(name)

    logger.debug("Parental devices list", device=device, parents=parents)
    if not parents:
        raise NoParentDevicesError(device)

    return parents


def read_serial(sys_path: Path, name: str) -> str:
    """Read the hardware serial of a block device."""
    serial_path = sys_path / "class" / "block" / name / "device" / "serial"
    try:
        return serial_path.read_text().strip()
    except OSError as e:
        raise SysfsReadError(str(serial_path), e.strerror or str(e)) from e


def volume_id_for_device(sys_path: Path, name: str) -> str:
    """Get the EBS volume ID of a block device from its serial."""
    serial = read_serial(sys_path, name)
    logger.info(f'Device "{name}" serial is {serial}.', device=name, serial=serial)
    return normalize_volume_id(serial, name)
