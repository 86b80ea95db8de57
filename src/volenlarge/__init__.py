"""
volenlarge - Enlarge AWS EBS volumes and Kubernetes PVCs by a percentage.

Finds the EBS volumes behind a mount point by walking the Linux block
device stack, or patches a PersistentVolumeClaim, optionally taking a
snapshot first and waiting for the resize to finish.
"""

__version__ = "1.0.0"
__author__ = "volenlarge Team"

from volenlarge.core.config import EnlargeConfig
from volenlarge.core.session import Session

__all__ = ["EnlargeConfig", "Session", "__version__"]
