"""Repository state model produced by one detection pass"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class SyncStatus(Enum):
    """Relationship of one location's branch tip to another's."""
    SYNCED = "synced"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"


@dataclass(frozen=True)
class PairStatus:
    """Pairwise comparison of two branch tips.

    ``status`` is None when the counts contradict the hashes (the tips differ
    but neither side has a unique commit), which only happens on damaged or
    truncated history.
    """
    status: Optional[SyncStatus]
    ahead: int = 0
    behind: int = 0

    def describe(self) -> str:
        if self.status is None:
            return "unknown"
        if self.status == SyncStatus.AHEAD:
            return f"ahead {self.ahead}"
        if self.status == SyncStatus.BEHIND:
            return f"behind {self.behind}"
        if self.status == SyncStatus.DIVERGED:
            return f"diverged +{self.ahead}/-{self.behind}"
        return self.status.value


@dataclass(frozen=True)
class ExistenceState:
    """Which of the three locations exist."""
    id: str
    description: str
    local_exists: bool
    core_exists: bool
    github_exists: bool
    core_remote: str
    github_remote: str
    local_path: Optional[str] = None
    core_url: Optional[str] = None
    github_url: Optional[str] = None
    core_reachable: Optional[bool] = None  # None = not probed
    github_reachable: Optional[bool] = None


@dataclass(frozen=True)
class WorkingTreeState:
    """Uncommitted changes in the local working copy."""
    id: str
    description: str
    staged_files: Tuple[str, ...] = ()
    unstaged_files: Tuple[str, ...] = ()
    untracked_files: Tuple[str, ...] = ()  # Advisory only
    conflicted_files: Tuple[str, ...] = ()  # Unmerged paths, shown by the display
    detached_head: bool = False
    shallow_clone: bool = False

    @property
    def clean(self) -> bool:
        return not self.staged_files and not self.unstaged_files


@dataclass(frozen=True)
class LargeBinary:
    """A blob above the size threshold. Never carries a path or commit."""
    sha: str
    size_mb: float


@dataclass(frozen=True)
class CorruptionState:
    """Large binaries found in history."""
    id: str
    description: str
    checked: bool
    threshold_mb: float
    large_binaries: Tuple[LargeBinary, ...] = ()
    remote_scanned: bool = False

    @property
    def has_corruption(self) -> bool:
        return bool(self.large_binaries)


@dataclass(frozen=True)
class BranchSyncState:
    """Tips of one branch in each location and how they relate."""
    branch: str
    id: str
    description: str
    local_hash: str = ""
    core_hash: str = ""
    github_hash: str = ""
    local_core: Optional[PairStatus] = None
    local_github: Optional[PairStatus] = None
    core_github: Optional[PairStatus] = None
    data_is_fresh: bool = False
    partial: bool = False  # Only one pair could be compared


@dataclass(frozen=True)
class BranchState:
    """Where one branch name exists."""
    name: str
    id: str
    description: str
    in_local: bool
    in_core: bool
    in_github: bool
    sync: Optional[BranchSyncState] = None


@dataclass(frozen=True)
class DetectionWarning:
    """Advisory condition noticed during detection."""
    code: str
    message: str


@dataclass(frozen=True)
class RepositoryState:
    """Snapshot of all five dimensions, produced fresh by every detection."""
    repo_path: str
    core_remote: str
    github_remote: str
    existence: ExistenceState
    working_tree: Optional[WorkingTreeState] = None
    corruption: Optional[CorruptionState] = None
    sync: Optional[BranchSyncState] = None
    branches: Tuple[BranchState, ...] = ()
    warnings: Tuple[DetectionWarning, ...] = ()
    default_branch: Optional[str] = None
    detected_at: Optional[datetime] = field(default=None, compare=False)
    duration_ms: int = field(default=0, compare=False)

    @property
    def data_is_fresh(self) -> bool:
        return self.sync is not None and self.sync.data_is_fresh

    def has_warning(self, code: str) -> bool:
        return any(w.code == code for w in self.warnings)

    def branch(self, name: str) -> Optional[BranchState]:
        for branch in self.branches:
            if branch.name == name:
                return branch
        return None
