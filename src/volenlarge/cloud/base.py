"""
volenlarge Modification Waiter Base.

Defines the contract shared by the EC2 polling waiter and the
Kubernetes watch waiter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from volenlarge.core.errors import ContextTimeout, TransportError, WaitFailedError
from volenlarge.core.models import WaitOutcome, WaitResult


class ModificationWaiter(ABC):
    """Blocks until a resize request reaches a terminal state."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name (e.g., 'ec2-poll', 'k8s-watch')."""

    @abstractmethod
    def await_completion(self, target: str, timeout_seconds: float) -> WaitResult:
        """
        Wait for target's modification to finish.

        Returns exactly one terminal WaitResult; never raises for
        failure, timeout or API errors.
        """


def raise_for_outcome(result: WaitResult) -> None:
    """Turn a non-completed WaitResult into the matching exception."""
    if result.outcome is WaitOutcome.COMPLETED:
        return
    if result.outcome is WaitOutcome.TIMED_OUT:
        raise ContextTimeout(result.message or "ContextTimeout")
    if result.outcome is WaitOutcome.FAILED:
        raise WaitFailedError(result.message or f"Modification of {result.target} failed")
    raise TransportError(result.message or f"Error while waiting for {result.target}")
