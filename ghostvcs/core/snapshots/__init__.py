"""Ghost snapshot creation and restore.

Contains the SnapshotManager, which validates preconditions, serializes
operations per repository root and normalizes backend errors.
"""

from ghostvcs.core.snapshots.snapshot_manager import SnapshotManager

__all__ = ["SnapshotManager"]
