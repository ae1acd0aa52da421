"""Configuration handling for git-sync-keeper"""

from dataclasses import dataclass, fields
from typing import Optional

from git_sync_keeper.constants import (
    DEFAULT_BINARY_THRESHOLD_MB,
    DEFAULT_MAX_BRANCHES,
    FETCH_TIMEOUT,
    OPERATION_TIMEOUT,
    REF_TIMEOUT,
    REMOTE_CHECK_TIMEOUT,
)


@dataclass
class Config:
    """Configuration for git-sync-keeper with validation."""

    # Remote names are always explicit, there is no default
    core_remote: str
    github_remote: str

    # Used to probe the remotes when there is no local clone to read them from
    core_url: Optional[str] = None
    github_url: Optional[str] = None

    # None = resolve from remote HEAD, then current branch, then main/master
    default_branch: Optional[str] = None

    # Detection options
    fetch_before_check: bool = True
    skip_corruption: bool = False
    skip_branches: bool = False
    max_branches: int = DEFAULT_MAX_BRANCHES
    binary_threshold_mb: float = DEFAULT_BINARY_THRESHOLD_MB

    # Deadlines (seconds)
    ref_timeout: float = REF_TIMEOUT
    remote_check_timeout: float = REMOTE_CHECK_TIMEOUT
    operation_timeout: float = OPERATION_TIMEOUT
    fetch_timeout: float = FETCH_TIMEOUT

    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_remotes()
        self._validate_default_branch()
        self._validate_max_branches()
        self._validate_threshold()
        self._validate_timeouts()

    def _validate_remotes(self):
        """Validate remote names are set and distinct."""
        for attr in ("core_remote", "github_remote"):
            value = getattr(self, attr)
            if not value or not str(value).strip():
                raise ValueError(f"{attr} cannot be empty")
            setattr(self, attr, str(value).strip())
        if self.core_remote == self.github_remote:
            raise ValueError(
                f"core_remote and github_remote must differ, both are '{self.core_remote}'"
            )

    def _validate_default_branch(self):
        """Validate default_branch is not blank when given."""
        if self.default_branch is not None:
            if not self.default_branch.strip():
                raise ValueError("default_branch cannot be blank")
            self.default_branch = self.default_branch.strip()

    def _validate_max_branches(self):
        """Validate max_branches is not negative."""
        if self.max_branches < 0:
            raise ValueError(f"max_branches cannot be negative, got {self.max_branches}")

    def _validate_threshold(self):
        """Validate binary_threshold_mb is positive."""
        if self.binary_threshold_mb <= 0:
            raise ValueError(
                f"binary_threshold_mb must be positive, got {self.binary_threshold_mb}"
            )

    def _validate_timeouts(self):
        """Validate every deadline is positive."""
        for attr in ("ref_timeout", "remote_check_timeout", "operation_timeout", "fetch_timeout"):
            value = getattr(self, attr)
            if value <= 0:
                raise ValueError(f"{attr} must be positive, got {value}")

    def to_dict(self) -> dict:
        """Convert config to a plain dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def get(self, key: str, default=None):
        """Get config value by key, so Config and dict configs read alike."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)
