"""
PersistentVolumeClaim enlargement.

Talks to the Kubernetes API: optional VolumeSnapshot, a strategic merge patch of
the claim's storage request and an event-watch waiter on the claim.
"""

from __future__ import annotations

import math
import queue
import threading
import time
from collections.abc import Callable
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Any

from kubernetes import client, watch
from kubernetes import config as kube_config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.utils import parse_quantity
from urllib3.exceptions import HTTPError

from volenlarge.cloud.base import ModificationWaiter, raise_for_outcome
from volenlarge.core.errors import DryRunOperation, SizeNotIncreasedError, TransportError
from volenlarge.core.logging import OperationLogger, get_logger
from volenlarge.core.models import GIB, VolumeResult, WaitOutcome, WaitResult, percentage_increase

if TYPE_CHECKING:
    from volenlarge.core.config import EnlargeConfig

logger = get_logger(__name__)


def load_api_client(kubeconfig: Path | None = None) -> client.ApiClient:
    """
    Build an API client.

    An explicit kubeconfig wins; otherwise the in-cluster service account
    is tried first and the default kubeconfig second.
    """
    if kubeconfig is not None:
        kube_config.load_kube_config(config_file=str(kubeconfig))
    else:
        try:
            kube_config.load_incluster_config()
        except ConfigException:
            logger.debug("Not running in a cluster, loading kubeconfig")
            kube_config.load_kube_config()
    return client.ApiClient()


class PVCWatchWaiter(ModificationWaiter):
    """
    Watches one PersistentVolumeClaim until it has no pending conditions.

    The watch runs on a background thread that hands exactly one result
    (or None for "deadline passed") back through a single-slot queue.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api,
        namespace: str,
        watch_factory: Callable[[], Any] = watch.Watch,
    ) -> None:
        self.core_api = core_api
        self.namespace = namespace
        self.watch_factory = watch_factory

    @property
    def name(self) -> str:
        return "k8s-watch"

    def await_completion(self, target: str, timeout_seconds: float) -> WaitResult:
        handoff: queue.Queue[WaitResult | None] = queue.Queue(maxsize=1)
        cancelled = threading.Event()
        deadline = time.monotonic() + timeout_seconds
        handle = self.watch_factory()

        worker = threading.Thread(
            target=self._run,
            args=(handle, target, deadline, cancelled, handoff),
            name=f"pvc-watch-{target}",
            daemon=True,
        )
        worker.start()

        try:
            result = handoff.get(timeout=timeout_seconds)
        except queue.Empty:
            result = None

        if result is None:
            cancelled.set()
            handle.stop()
            return WaitResult(
                outcome=WaitOutcome.TIMED_OUT,
                target=target,
                message=(
                    "Timeout while waiting for the PVC enlargement. "
                    f'See events in namespace "{self.namespace}".'
                ),
            )

        return result

    def _run(
        self,
        handle: Any,
        target: str,
        deadline: float,
        cancelled: threading.Event,
        handoff: queue.Queue[WaitResult | None],
    ) -> None:
        try:
            result = self._follow(handle, target, deadline, cancelled)
        except (ApiException, HTTPError) as e:
            result = WaitResult(outcome=WaitOutcome.TRANSPORT_ERROR, target=target, message=str(e))
        except Exception as e:
            # the initiator must always get an answer
            logger.exception("PVC watch crashed", pvc=target)
            result = WaitResult(outcome=WaitOutcome.TRANSPORT_ERROR, target=target, message=str(e))
        finally:
            handle.stop()

        handoff.put_nowait(result)

    def _follow(
        self,
        handle: Any,
        target: str,
        deadline: float,
        cancelled: threading.Event,
    ) -> WaitResult | None:
        field_selector = f"metadata.name={target}"
        logger.debug("Volume selector", selector=field_selector)

        while not cancelled.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None

            events = handle.stream(
                self.core_api.list_namespaced_persistent_volume_claim,
                self.namespace,
                field_selector=field_selector,
                timeout_seconds=max(1, int(remaining)),
            )
            for event in events:
                logger.debug("PVC event", event_type=event.get("type"))
                claim = event.get("object")
                if not isinstance(claim, client.V1PersistentVolumeClaim):
                    return WaitResult(
                        outcome=WaitOutcome.TRANSPORT_ERROR,
                        target=target,
                        message="Unknown PVC event type",
                    )

                status = claim.status
                logger.debug("PVC status phase", phase=status.phase if status else None)
                conditions = status.conditions if status else None
                if not conditions:
                    return WaitResult(outcome=WaitOutcome.COMPLETED, target=target)

                logger.info(f"Current state of the volume: {conditions[0].type}...", pvc=target)

        return None


class PVCEnlarger:
    """Enlarges a PersistentVolumeClaim by a percentage of its request."""

    def __init__(
        self,
        core_api: client.CoreV1Api,
        custom_api: client.CustomObjectsApi,
        config: EnlargeConfig,
        waiter: ModificationWaiter | None = None,
    ) -> None:
        self.core_api = core_api
        self.custom_api = custom_api
        self.config = config
        self.waiter = waiter

    def _dry_run_kwargs(self) -> dict[str, str]:
        return {"dry_run": "All"} if self.config.dry_run else {}

    def snapshot_body(self, pvc: str, namespace: str) -> dict[str, Any]:
        """VolumeSnapshot manifest for the claim."""
        return {
            "apiVersion": f"{self.config.snapshot_api_group}/{self.config.snapshot_api_version}",
            "kind": "VolumeSnapshot",
            "metadata": {"generateName": f"{pvc}-", "namespace": namespace},
            "spec": {
                "volumeSnapshotClassName": self.config.k8s_snapshot_class,
                "source": {"persistentVolumeClaimName": pvc},
            },
        }

    def create_snapshot(self, pvc: str, namespace: str) -> str:
        """Create a VolumeSnapshot of the claim and return its name."""
        try:
            created = self.custom_api.create_namespaced_custom_object(
                self.config.snapshot_api_group,
                self.config.snapshot_api_version,
                namespace,
                "volumesnapshots",
                self.snapshot_body(pvc, namespace),
                **self._dry_run_kwargs(),
            )
        except ApiException as e:
            raise TransportError(f"Cannot create VolumeSnapshot for {pvc}: {e.reason}") from e

        name = created.get("metadata", {}).get("name", "")
        logger.info(
            f'Creation of the snapshot "{name}" in the namespace "{namespace}" completed.',
            snapshot=name,
        )
        logger.debug("VolumeSnapshot metadata", snapshot=created)
        return name

    def requested_bytes(self, claim: client.V1PersistentVolumeClaim) -> Decimal:
        """Storage request of the claim in bytes."""
        requests = claim.spec.resources.requests or {}
        if "storage" not in requests:
            raise TransportError(f"PVC {claim.metadata.name} has no storage request")
        return parse_quantity(requests["storage"])

    def current_size(self, claim: client.V1PersistentVolumeClaim) -> int:
        """Storage request of the claim rounded up to whole GiB."""
        return math.ceil(self.requested_bytes(claim) / GIB)

    def enlarge(self, pvc: str, namespace: str) -> VolumeResult:
        """Snapshot (optionally), patch the request and wait (optionally)."""
        result = VolumeResult(target=f"{namespace}/{pvc}")

        try:
            claim = self.core_api.read_namespaced_persistent_volume_claim(pvc, namespace)
        except ApiException as e:
            raise TransportError(f"Cannot read PVC {namespace}/{pvc}: {e.reason}") from e
        logger.debug("PVC metadata", pvc=pvc, uid=claim.metadata.uid)

        if self.config.snapshot:
            logger.info("Creating snapshot for the volume...", pvc=pvc)
            result.snapshot_id = self.create_snapshot(pvc, namespace)

        result.old_size_gib = self.current_size(claim)
        result.new_size_gib = result.old_size_gib + percentage_increase(
            result.old_size_gib, self.config.percents
        )
        logger.info(f"Current size of the volume: {result.old_size_gib} GB", pvc=pvc)
        logger.info(f"New volume size after the enlargement: {result.new_size_gib} GB", pvc=pvc)

        requested = claim.spec.resources.requests["storage"]
        if result.new_size_gib * GIB <= self.requested_bytes(claim):
            raise SizeNotIncreasedError(
                f"{namespace}/{pvc}", str(requested), f"{result.new_size_gib}Gi"
            )

        patch = {"spec": {"resources": {"requests": {"storage": f"{result.new_size_gib}Gi"}}}}
        try:
            with OperationLogger("PVC patch", logger, pvc=pvc, namespace=namespace):
                self.core_api.patch_namespaced_persistent_volume_claim(
                    pvc, namespace, patch, **self._dry_run_kwargs()
                )
        except ApiException as e:
            raise TransportError(f"Cannot patch PVC {namespace}/{pvc}: {e.reason}") from e

        if self.config.dry_run:
            raise DryRunOperation()

        logger.info("PVC enlargement started.", pvc=pvc)

        if self.config.wait_for_modifying:
            waiter = self.waiter or PVCWatchWaiter(self.core_api, namespace)
            logger.info("Waiting for the volume enlargement to complete...", pvc=pvc)
            wait_result = waiter.await_completion(pvc, self.config.wait.pvc_timeout_seconds)
            result.wait_outcome = wait_result.outcome
            raise_for_outcome(wait_result)
            logger.info("Enlargement completed.", pvc=pvc)

        return result
