"""
volenlarge Cloud Layer.

Resize requests and completion waiters for EC2 (interval polling)
and Kubernetes (event watch).
"""

from volenlarge.cloud.base import ModificationWaiter, raise_for_outcome

__all__ = ["ModificationWaiter", "raise_for_outcome"]
