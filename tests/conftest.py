"""
Pytest configuration and fixtures for volenlarge tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from volenlarge.core.errors import DeviceStatError, NotADeviceFileError  # noqa: E402
from volenlarge.core.models import DeviceNode  # noqa: E402


class FakeHost:
    """
    A throwaway /sys, /proc and /dev tree.

    Block device nodes cannot be created without root, so the device
    files are plain files and their major/minor numbers are kept here.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.sys_path = root / "sys"
        self.proc_path = root / "proc"
        self.dev_path = root / "dev"
        self.nodes: dict[str, DeviceNode] = {}

        for path in (
            self.sys_path / "dev" / "block",
            self.sys_path / "class" / "block",
            self.sys_path / "devices" / "virtual" / "block",
            self.proc_path / "self",
            self.dev_path,
        ):
            path.mkdir(parents=True, exist_ok=True)
        (self.proc_path / "self" / "mounts").write_text("")

    # ==================== Builders ====================

    def _register(self, name: str, real_dir: Path, major: int, minor: int) -> Path:
        node = DeviceNode(major, minor)
        (self.sys_path / "dev" / "block" / node.sysfs_name).symlink_to(real_dir)
        (self.sys_path / "class" / "block" / name).symlink_to(real_dir)
        dev_file = self.dev_path / name
        dev_file.parent.mkdir(parents=True, exist_ok=True)
        dev_file.touch()
        self.nodes[str(dev_file)] = node
        return real_dir

    def add_disk(self, name: str, major: int, minor: int, serial: str | None = None) -> Path:
        """A physical disk, e.g. xvdf under a Xen vbd."""
        real_dir = self.sys_path / "devices" / f"vbd-{major}{minor}" / "block" / name
        (real_dir / "device").mkdir(parents=True)
        if serial is not None:
            (real_dir / "device" / "serial").write_text(f"{serial}\n")
        return self._register(name, real_dir, major, minor)

    def add_partition(self, disk: str, name: str, major: int, minor: int) -> Path:
        disk_dir = (self.sys_path / "class" / "block" / disk).resolve()
        real_dir = disk_dir / name
        real_dir.mkdir()
        (real_dir / "partition").write_text(f"{minor}\n")
        return self._register(name, real_dir, major, minor)

    def add_stacked(
        self,
        name: str,
        major: int,
        minor: int,
        secondaries: list[str],
        dev_name: str | None = None,
    ) -> Path:
        """A device-mapper or md device built on top of secondaries."""
        real_dir = self.sys_path / "devices" / "virtual" / "block" / name
        slaves = real_dir / "slaves"
        slaves.mkdir(parents=True)
        for secondary in secondaries:
            target = (self.sys_path / "class" / "block" / secondary).resolve()
            (slaves / secondary).symlink_to(target)
        self._register(name, real_dir, major, minor)
        if dev_name is not None:
            self.nodes[str(self.dev_path / dev_name)] = DeviceNode(major, minor)
            (self.dev_path / dev_name).parent.mkdir(parents=True, exist_ok=True)
            (self.dev_path / dev_name).touch()
        return real_dir

    def mount(self, device_path: str, mount_point: str, filesystem: str = "ext4") -> None:
        mounts = self.proc_path / "self" / "mounts"
        line = f"{device_path} {mount_point} {filesystem} rw,relatime 0 0\n"
        mounts.write_text(mounts.read_text() + line)

    # ==================== Device File Stand-ins ====================

    def stat_device_node(self, path: str) -> DeviceNode:
        if path in self.nodes:
            return self.nodes[path]
        if os.path.exists(path):
            raise NotADeviceFileError(path)
        raise DeviceStatError(path, "No such file or directory")

    def is_block_device(self, path: str) -> bool:
        return path in self.nodes


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_host(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> FakeHost:
    """A fake host tree with device stat calls redirected to it."""
    from volenlarge.platform.linux import devices

    host = FakeHost(temp_dir)
    monkeypatch.setattr(devices, "stat_device_node", host.stat_device_node)
    monkeypatch.setattr(devices, "is_block_device", host.is_block_device)
    return host


@pytest.fixture
def sample_config(temp_dir: Path) -> "EnlargeConfig":
    """Create a sample configuration for testing."""
    from volenlarge.core.config import EnlargeConfig, LoggingConfig

    return EnlargeConfig(
        mount_point="/data",
        logging=LoggingConfig(log_directory=temp_dir / "logs"),
    )


@pytest.fixture
def ec2_client(monkeypatch: pytest.MonkeyPatch):
    """An EC2 client that never talks to AWS; pair it with a Stubber."""
    import boto3

    monkeypatch.setattr("botocore.waiter.time.sleep", lambda seconds: None)
    return boto3.client(
        "ec2",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
