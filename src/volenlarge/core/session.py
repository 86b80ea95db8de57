"""
volenlarge Session.

Sequences one run: resolve the targets, then snapshot, resize and wait
for each of them in turn. The first error aborts the run.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from volenlarge.core.config import EnlargeConfig
from volenlarge.core.logging import bind_run_context, get_logger, setup_logging
from volenlarge.core.models import EnlargeReport

if TYPE_CHECKING:
    from volenlarge.cloud.ec2 import EBSVolumeEnlarger
    from volenlarge.cloud.k8s import PVCEnlarger

logger = get_logger(__name__)


class Session:
    """
    Holds the configuration and the API clients for one run.

    Clients are created on first use so that mount-point runs never need
    Kubernetes credentials and PVC runs never need AWS ones.
    """

    def __init__(
        self,
        config: EnlargeConfig,
        ec2_client: Any | None = None,
        api_client: Any | None = None,
    ) -> None:
        self.config = config
        self._ec2_client = ec2_client
        self._api_client = api_client

        setup_logging(self.config.logging)

    @property
    def ec2_client(self) -> Any:
        if self._ec2_client is None:
            from volenlarge.cloud.ec2 import build_ec2_client

            self._ec2_client = build_ec2_client(self.config.aws_region)
        return self._ec2_client

    @property
    def api_client(self) -> Any:
        if self._api_client is None:
            from volenlarge.cloud.k8s import load_api_client

            self._api_client = load_api_client(self.config.kubeconfig)
        return self._api_client

    def resolve_volume_ids(self, mount_point: str) -> list[str]:
        """Get the EBS volume IDs behind a mount point."""
        from volenlarge.platform import require_linux
        from volenlarge.platform.linux import LinuxDeviceResolver

        require_linux()
        resolver = LinuxDeviceResolver.from_config(self.config)
        volume_ids = resolver.volume_ids(mount_point)
        logger.debug("Volume IDs", mount_point=mount_point, volume_ids=volume_ids)
        return volume_ids

    def ebs_enlarger(self) -> EBSVolumeEnlarger:
        from volenlarge.cloud.ec2 import EBSVolumeEnlarger

        return EBSVolumeEnlarger(self.ec2_client, self.config)

    def pvc_enlarger(self) -> PVCEnlarger:
        from kubernetes import client

        from volenlarge.cloud.k8s import PVCEnlarger, PVCWatchWaiter

        core_api = client.CoreV1Api(self.api_client)
        custom_api = client.CustomObjectsApi(self.api_client)
        waiter = PVCWatchWaiter(core_api, self.config.pvc_namespace or "default")
        return PVCEnlarger(core_api, custom_api, self.config, waiter)

    def run(self) -> EnlargeReport:
        """Enlarge the configured mount point or PVC."""
        self.config.validate_target()
        report = EnlargeReport(mode=self.config.mode, dry_run=self.config.dry_run)
        bind_run_context(mode=report.mode, dry_run=report.dry_run)

        try:
            if self.config.pvc:
                logger.info(f"--pvc={self.config.pvc} is specified. Increasing PVC size...")
                enlarger = self.pvc_enlarger()
                report.volumes.append(
                    enlarger.enlarge(self.config.pvc, self.config.pvc_namespace)
                )
            else:
                mount_point = self.config.mount_point or ""
                logger.info(
                    f"--mount-point={mount_point} is specified. "
                    "Increasing AWS EBS size directly..."
                )
                volume_ids = self.resolve_volume_ids(mount_point)
                enlarger = self.ebs_enlarger()
                for volume_id in volume_ids:
                    report.volumes.append(enlarger.enlarge(volume_id))
        finally:
            report.ended_at = datetime.now()

        return report
