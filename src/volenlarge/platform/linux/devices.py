"""
Device file helpers.

Thin wrappers around stat(2) so the rest of the resolver can be
exercised against fake /dev trees.
"""

from __future__ import annotations

import os
import stat

from volenlarge.core.errors import DeviceStatError, NotADeviceFileError
from volenlarge.core.models import DeviceNode


def stat_device_node(path: str) -> DeviceNode:
    """Get the major/minor numbers of a block device file."""
    try:
        st = os.stat(path)
    except OSError as e:
        raise DeviceStatError(path, e.strerror or str(e)) from e

    if not stat.S_ISBLK(st.st_mode):
        raise NotADeviceFileError(path)

    return DeviceNode(major=os.major(st.st_rdev), minor=os.minor(st.st_rdev))


def is_block_device(path: str) -> bool:
    """Check that path exists and is a block device."""
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False
