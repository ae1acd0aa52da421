"""Data model for git-sync-keeper."""

from .state import (
    BranchState,
    BranchSyncState,
    CorruptionState,
    DetectionWarning,
    ExistenceState,
    LargeBinary,
    PairStatus,
    RepositoryState,
    SyncStatus,
    WorkingTreeState,
)
from .fix import AutoFixOptions, AutoFixResult, Fix

__all__ = [
    "AutoFixOptions",
    "AutoFixResult",
    "BranchState",
    "BranchSyncState",
    "CorruptionState",
    "DetectionWarning",
    "ExistenceState",
    "Fix",
    "LargeBinary",
    "PairStatus",
    "RepositoryState",
    "SyncStatus",
    "WorkingTreeState",
]
