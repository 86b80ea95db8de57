"""
Tests for the modification waiters.
"""

import threading
from typing import Any
from unittest.mock import Mock

import pytest
from botocore.stub import Stubber
from kubernetes import client
from kubernetes.client.rest import ApiException

from volenlarge.cloud.base import raise_for_outcome
from volenlarge.cloud.ec2 import VolumeModificationWaiter
from volenlarge.cloud.k8s import PVCWatchWaiter
from volenlarge.core.errors import ContextTimeout, TransportError, WaitFailedError
from volenlarge.core.models import WaitOutcome, WaitResult


def modifications(*states: str) -> dict[str, Any]:
    return {
        "VolumesModifications": [
            {"VolumeId": f"vol-{index}", "ModificationState": state}
            for index, state in enumerate(states)
        ]
    }


@pytest.mark.unit
class TestRaiseForOutcome:
    def test_completed(self) -> None:
        raise_for_outcome(WaitResult(WaitOutcome.COMPLETED, "vol-1"))

    @pytest.mark.parametrize(
        ("outcome", "error"),
        [
            (WaitOutcome.TIMED_OUT, ContextTimeout),
            (WaitOutcome.FAILED, WaitFailedError),
            (WaitOutcome.TRANSPORT_ERROR, TransportError),
        ],
    )
    def test_other_outcomes(self, outcome: WaitOutcome, error: type) -> None:
        with pytest.raises(error):
            raise_for_outcome(WaitResult(outcome, "vol-1", message="stopped"))


@pytest.mark.unit
class TestVolumeModificationWaiter:
    """Tests for the EC2 polling waiter."""

    def test_name(self, ec2_client) -> None:
        assert VolumeModificationWaiter(ec2_client).name == "ec2-poll"

    @pytest.mark.parametrize(
        ("timeout", "expected"),
        [(900, 40), (600, 40), (45, 3), (50, 4), (1, 1), (0, 1)],
    )
    def test_attempts_for(self, ec2_client, timeout: float, expected: int) -> None:
        waiter = VolumeModificationWaiter(ec2_client, delay=15, max_attempts=40)
        assert waiter.attempts_for(timeout) == expected

    def test_completed(self, ec2_client) -> None:
        waiter = VolumeModificationWaiter(ec2_client)

        with Stubber(ec2_client) as stubber:
            stubber.add_response(
                "describe_volumes_modifications",
                modifications("modifying"),
                {"VolumeIds": ["vol-0"]},
            )
            stubber.add_response(
                "describe_volumes_modifications",
                modifications("optimizing"),
                {"VolumeIds": ["vol-0"]},
            )
            stubber.add_response(
                "describe_volumes_modifications",
                modifications("completed"),
                {"VolumeIds": ["vol-0"]},
            )

            result = waiter.await_completion("vol-0", 900)
            stubber.assert_no_pending_responses()

        assert result.outcome is WaitOutcome.COMPLETED
        assert result.target == "vol-0"

    def test_all_volumes_must_complete(self, ec2_client) -> None:
        waiter = VolumeModificationWaiter(ec2_client)

        with Stubber(ec2_client) as stubber:
            stubber.add_response(
                "describe_volumes_modifications", modifications("completed", "modifying")
            )
            stubber.add_response(
                "describe_volumes_modifications", modifications("completed", "completed")
            )

            result = waiter.await_volumes(["vol-0", "vol-1"], 900)
            stubber.assert_no_pending_responses()

        assert result.outcome is WaitOutcome.COMPLETED
        assert result.target == "vol-0,vol-1"

    def test_any_failed(self, ec2_client) -> None:
        waiter = VolumeModificationWaiter(ec2_client)

        with Stubber(ec2_client) as stubber:
            stubber.add_response(
                "describe_volumes_modifications", modifications("completed", "failed")
            )

            result = waiter.await_volumes(["vol-0", "vol-1"], 900)

        assert result.outcome is WaitOutcome.FAILED

    def test_timed_out(self, ec2_client) -> None:
        waiter = VolumeModificationWaiter(ec2_client, delay=15, max_attempts=40)

        with Stubber(ec2_client) as stubber:
            for _ in range(3):
                stubber.add_response(
                    "describe_volumes_modifications", modifications("modifying")
                )

            result = waiter.await_completion("vol-0", 45)
            stubber.assert_no_pending_responses()

        assert result.outcome is WaitOutcome.TIMED_OUT
        assert result.attempts == 3

    def test_both_completed(self, ec2_client) -> None:
        waiter = VolumeModificationWaiter(ec2_client)

        with Stubber(ec2_client) as stubber:
            stubber.add_response(
                "describe_volumes_modifications", modifications("completed", "completed")
            )

            result = waiter.await_volumes(["vol-0", "vol-1"], 900)

        assert result.completed

    def test_forty_modifying_responses(self, ec2_client) -> None:
        waiter = VolumeModificationWaiter(ec2_client)

        with Stubber(ec2_client) as stubber:
            for _ in range(40):
                stubber.add_response(
                    "describe_volumes_modifications", modifications("modifying")
                )

            result = waiter.await_completion("vol-0", 900)
            stubber.assert_no_pending_responses()

        assert result.outcome is WaitOutcome.TIMED_OUT
        assert result.attempts == 40

    def test_api_error(self, ec2_client) -> None:
        waiter = VolumeModificationWaiter(ec2_client)

        with Stubber(ec2_client) as stubber:
            stubber.add_client_error(
                "describe_volumes_modifications",
                service_error_code="InvalidVolume.NotFound",
                service_message="The volume 'vol-0' does not exist.",
                http_status_code=400,
            )

            result = waiter.await_completion("vol-0", 900)

        assert result.outcome is WaitOutcome.TRANSPORT_ERROR
        assert "InvalidVolume.NotFound" in result.message


class FakeWatch:
    """Stands in for kubernetes.watch.Watch."""

    def __init__(
        self,
        events: list[dict[str, Any]] | None = None,
        error: Exception | None = None,
        block: bool = False,
    ) -> None:
        self.events = events or []
        self.error = error
        self.block = block
        self.calls: list[tuple[Any, tuple, dict]] = []
        self.stopped = threading.Event()

    def stream(self, func: Any, *args: Any, **kwargs: Any):
        self.calls.append((func, args, kwargs))
        if self.error is not None:
            raise self.error
        if self.block:
            self.stopped.wait(5)
            return
        yield from self.events

    def stop(self) -> None:
        self.stopped.set()


def claim_event(*condition_types: str) -> dict[str, Any]:
    conditions = [
        client.V1PersistentVolumeClaimCondition(type=condition_type, status="True")
        for condition_type in condition_types
    ]
    return {
        "type": "MODIFIED",
        "object": client.V1PersistentVolumeClaim(
            status=client.V1PersistentVolumeClaimStatus(
                phase="Bound", conditions=conditions or None
            )
        ),
    }


@pytest.mark.unit
class TestPVCWatchWaiter:
    """Tests for the Kubernetes event-watch waiter."""

    def make_waiter(self, fake: FakeWatch) -> tuple[PVCWatchWaiter, Mock]:
        core_api = Mock()
        return PVCWatchWaiter(core_api, "db", watch_factory=lambda: fake), core_api

    def test_name(self) -> None:
        waiter, _ = self.make_waiter(FakeWatch())
        assert waiter.name == "k8s-watch"

    def test_no_conditions_completes(self) -> None:
        fake = FakeWatch(events=[claim_event()])
        waiter, core_api = self.make_waiter(fake)

        result = waiter.await_completion("data", 5)

        assert result.outcome is WaitOutcome.COMPLETED
        assert result.target == "data"
        assert fake.stopped.is_set()

        func, args, kwargs = fake.calls[0]
        assert func is core_api.list_namespaced_persistent_volume_claim
        assert args == ("db",)
        assert kwargs["field_selector"] == "metadata.name=data"
        assert 1 <= kwargs["timeout_seconds"] <= 5

    def test_completes_after_resizing(self) -> None:
        fake = FakeWatch(
            events=[
                claim_event("Resizing"),
                claim_event("FileSystemResizePending"),
                claim_event(),
            ]
        )
        waiter, _ = self.make_waiter(fake)

        result = waiter.await_completion("data", 5)

        assert result.outcome is WaitOutcome.COMPLETED
        assert len(fake.calls) == 1

    def test_unexpected_object(self) -> None:
        fake = FakeWatch(events=[{"type": "ERROR", "object": {"kind": "Status"}}])
        waiter, _ = self.make_waiter(fake)

        result = waiter.await_completion("data", 5)

        assert result.outcome is WaitOutcome.TRANSPORT_ERROR
        assert fake.stopped.is_set()

    def test_api_error(self) -> None:
        fake = FakeWatch(error=ApiException(status=403, reason="Forbidden"))
        waiter, _ = self.make_waiter(fake)

        result = waiter.await_completion("data", 5)

        assert result.outcome is WaitOutcome.TRANSPORT_ERROR
        assert "Forbidden" in result.message
        assert fake.stopped.is_set()

    def test_timeout_stops_watch(self) -> None:
        fake = FakeWatch(block=True)
        waiter, _ = self.make_waiter(fake)

        result = waiter.await_completion("data", 0.2)

        assert result.outcome is WaitOutcome.TIMED_OUT
        assert 'namespace "db"' in result.message
        assert fake.stopped.is_set()

    def test_timeout_raises_context_timeout(self) -> None:
        fake = FakeWatch(block=True)
        waiter, _ = self.make_waiter(fake)

        with pytest.raises(ContextTimeout):
            raise_for_outcome(waiter.await_completion("data", 0.2))
