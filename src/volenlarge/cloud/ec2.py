"""
EBS volume enlargement.

Talks to the EC2 API with boto3: optional snapshot, ModifyVolume and
an interval-polling waiter on DescribeVolumesModifications.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError, WaiterError
from botocore.waiter import WaiterModel, create_waiter_with_client

from volenlarge.cloud.base import ModificationWaiter, raise_for_outcome
from volenlarge.core.errors import ContextTimeout, DryRunOperation, TransportError, WaitFailedError
from volenlarge.core.logging import OperationLogger, get_logger
from volenlarge.core.models import VolumeResult, WaitOutcome, WaitResult, percentage_increase

if TYPE_CHECKING:
    from volenlarge.core.config import EnlargeConfig, WaitConfig

logger = get_logger(__name__)

VOLUME_MODIFIED_WAITER = "VolumeModified"
MODIFICATION_STATE_PATH = "VolumesModifications[].ModificationState"


def build_ec2_client(region: str | None = None) -> Any:
    """Create an EC2 client from the default boto3 credential chain."""
    return boto3.client("ec2", region_name=region)


def volume_modified_waiter_model(delay: int, max_attempts: int) -> WaiterModel:
    """Waiter definition: all modifications completed, or any failed."""
    return WaiterModel(
        {
            "version": 2,
            "waiters": {
                VOLUME_MODIFIED_WAITER: {
                    "operation": "DescribeVolumesModifications",
                    "delay": delay,
                    "maxAttempts": max_attempts,
                    "acceptors": [
                        {
                            "state": "success",
                            "matcher": "pathAll",
                            "argument": MODIFICATION_STATE_PATH,
                            "expected": "completed",
                        },
                        {
                            "state": "failure",
                            "matcher": "pathAny",
                            "argument": MODIFICATION_STATE_PATH,
                            "expected": "failed",
                        },
                    ],
                }
            },
        }
    )


def classify_waiter_error(error: WaiterError) -> WaitOutcome:
    """Map a botocore WaiterError onto a wait outcome."""
    last_response = error.last_response or {}
    if "Error" in last_response:
        return WaitOutcome.TRANSPORT_ERROR
    if str(error.kwargs.get("reason", "")).startswith("Max attempts exceeded"):
        return WaitOutcome.TIMED_OUT
    return WaitOutcome.FAILED


class VolumeModificationWaiter(ModificationWaiter):
    """Polls DescribeVolumesModifications at a fixed interval."""

    def __init__(self, ec2_client: Any, delay: int = 15, max_attempts: int = 40) -> None:
        self.ec2_client = ec2_client
        self.delay = delay
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, ec2_client: Any, config: WaitConfig) -> VolumeModificationWaiter:
        return cls(ec2_client, config.poll_interval_seconds, config.poll_max_attempts)

    @property
    def name(self) -> str:
        return "ec2-poll"

    def attempts_for(self, timeout_seconds: float) -> int:
        """Number of polls that fit in the timeout, capped at max_attempts."""
        return max(1, min(self.max_attempts, math.ceil(timeout_seconds / self.delay)))

    def await_completion(self, target: str, timeout_seconds: float) -> WaitResult:
        return self.await_volumes([target], timeout_seconds)

    def await_volumes(self, volume_ids: list[str], timeout_seconds: float) -> WaitResult:
        """Wait until every volume's modification is completed."""
        target = ",".join(volume_ids)
        attempts = self.attempts_for(timeout_seconds)
        waiter = create_waiter_with_client(
            VOLUME_MODIFIED_WAITER,
            volume_modified_waiter_model(self.delay, attempts),
            self.ec2_client,
        )

        logger.debug("Polling volume modifications", volume_ids=volume_ids, max_attempts=attempts)
        try:
            waiter.wait(VolumeIds=volume_ids)
        except WaiterError as e:
            outcome = classify_waiter_error(e)
            logger.debug("Volume modification waiter stopped", outcome=outcome.value, reason=str(e))
            return WaitResult(
                outcome=outcome,
                target=target,
                message=str(e),
                attempts=attempts if outcome is WaitOutcome.TIMED_OUT else 0,
            )
        except (BotoCoreError, ClientError) as e:
            return WaitResult(outcome=WaitOutcome.TRANSPORT_ERROR, target=target, message=str(e))

        return WaitResult(outcome=WaitOutcome.COMPLETED, target=target)


class EBSVolumeEnlarger:
    """Enlarges an EBS volume by a percentage of its current size."""

    def __init__(
        self,
        ec2_client: Any,
        config: EnlargeConfig,
        waiter: ModificationWaiter | None = None,
    ) -> None:
        self.ec2_client = ec2_client
        self.config = config
        self.waiter = waiter or VolumeModificationWaiter.from_config(ec2_client, config.wait)

    def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        """Call an EC2 operation, translating botocore errors."""
        try:
            return getattr(self.ec2_client, operation)(**kwargs)
        except ClientError as e:
            error = e.response.get("Error", {})
            if error.get("Code") == "DryRunOperation":
                raise DryRunOperation(error.get("Message") or "DryRunOperation") from e
            raise TransportError(str(e)) from e
        except BotoCoreError as e:
            raise TransportError(str(e)) from e

    def create_snapshot(self, volume_id: str) -> str | None:
        """Snapshot volume_id and wait until the snapshot is completed."""
        try:
            snapshot = self._call(
                "create_snapshot",
                VolumeId=volume_id,
                Description=f"volenlarge: {volume_id} before enlargement",
                DryRun=self.config.dry_run,
            )
        except DryRunOperation:
            logger.info("Snapshot request would have succeeded.", volume_id=volume_id)
            return None

        snapshot_id = snapshot["SnapshotId"]
        logger.info(f"ID of the snapshot to be created: {snapshot_id}", snapshot_id=snapshot_id)

        waiter = self.ec2_client.get_waiter("snapshot_completed")
        try:
            with OperationLogger("snapshot wait", logger, snapshot_id=snapshot_id):
                waiter.wait(
                    SnapshotIds=[snapshot_id],
                    WaiterConfig={
                        "Delay": self.config.wait.poll_interval_seconds,
                        "MaxAttempts": self.config.wait.poll_max_attempts,
                    },
                )
        except WaiterError as e:
            outcome = classify_waiter_error(e)
            if outcome is WaitOutcome.TIMED_OUT:
                raise ContextTimeout(f"Timeout while waiting for snapshot {snapshot_id}") from e
            if outcome is WaitOutcome.FAILED:
                raise WaitFailedError(f"Snapshot {snapshot_id} failed: {e}") from e
            raise TransportError(str(e)) from e

        return snapshot_id

    def current_size(self, volume_id: str) -> int:
        """Get the volume size in GiB."""
        response = self._call("describe_volumes", VolumeIds=[volume_id])
        volumes = response.get("Volumes", [])
        if not volumes:
            raise TransportError(f"Volume {volume_id} not returned by DescribeVolumes")
        return int(volumes[0]["Size"])

    def enlarge(self, volume_id: str) -> VolumeResult:
        """Snapshot (optionally), resize and wait (optionally)."""
        logger.debug("Current EBS volume ID", volume_id=volume_id)
        result = VolumeResult(target=volume_id)

        if self.config.snapshot:
            with OperationLogger("volume snapshot", logger, volume_id=volume_id):
                result.snapshot_id = self.create_snapshot(volume_id)

        result.old_size_gib = self.current_size(volume_id)
        result.new_size_gib = result.old_size_gib + percentage_increase(
            result.old_size_gib, self.config.percents
        )
        logger.info(
            f"Current size of the EBS volume: {result.old_size_gib} GB",
            volume_id=volume_id,
        )
        logger.info(
            f"New EBS volume size after the enlargement: {result.new_size_gib} GB",
            volume_id=volume_id,
        )

        with OperationLogger("volume modification request", logger, volume_id=volume_id):
            self._call(
                "modify_volume",
                VolumeId=volume_id,
                Size=result.new_size_gib,
                DryRun=self.config.dry_run,
            )
        logger.info("Volume enlargement started.", volume_id=volume_id)

        if self.config.wait_for_modifying:
            logger.info("Waiting for the volume enlargement to complete...", volume_id=volume_id)
            wait_result = self.waiter.await_completion(
                volume_id, self.config.wait.ebs_timeout_seconds
            )
            result.wait_outcome = wait_result.outcome
            raise_for_outcome(wait_result)
            logger.info("Enlargement completed.", volume_id=volume_id)

        return result
