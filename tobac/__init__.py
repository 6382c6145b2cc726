"""
Team-based access control for Kubernetes resources.

A validating admission webhook decides whether a user or service account may create,
modify or delete a resource, based on its `team` label and group membership mirrored
from the team directory.
"""

__version__ = "0.3.0"
