"""Shared constants for git-sync-keeper."""

from dataclasses import dataclass
from typing import List, Tuple


# Deadlines for git invocations, in seconds
REF_TIMEOUT = 2.0  # Local ref reads
REMOTE_CHECK_TIMEOUT = 5.0  # Reachability probes and ancestry tests
OPERATION_TIMEOUT = 10.0  # Other local commands (counting, listing, file lists)
FETCH_TIMEOUT = 30.0  # Fetch, push and the history blob scan

MIN_GIT_VERSION: Tuple[int, int] = (2, 30)

# Environment applied to every git invocation
GIT_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "",
    "SSH_ASKPASS": "",
    "LC_ALL": "C",
    "LANGUAGE": "C",
}

# Detection defaults
DEFAULT_BINARY_THRESHOLD_MB = 10.0
DEFAULT_MAX_BRANCHES = 100
FALLBACK_DEFAULT_BRANCHES = ("main", "master")
BYTES_PER_MB = 1024 * 1024


# Fix priorities (lower = more urgent)
PRIORITY_STALE_DATA = 1
PRIORITY_EXISTENCE = 2
PRIORITY_BLOCKER = 3
PRIORITY_SYNC = 4
PRIORITY_DIVERGENCE = 5
PRIORITY_BRANCH = 6


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


STATE_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("dimension", "Dimension", 14),
    ColumnDefinition("id", "ID", 8),
    ColumnDefinition("details", "Details"),
]

BRANCH_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("branch", "Branch", 30),
    ColumnDefinition("id", "ID", 5),
    ColumnDefinition("local", "Local", 5),
    ColumnDefinition("core", "Core", 5),
    ColumnDefinition("github", "GitHub", 6),
    ColumnDefinition("sync", "Sync", 12),
]

FIX_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("priority", "Pri", 3),
    ColumnDefinition("scenario", "ID", 8),
    ColumnDefinition("auto", "Auto", 4),
    ColumnDefinition("description", "Description"),
    ColumnDefinition("hint", "Manual steps"),
]


# Symbol constants
SYMBOL_PRESENT = "✓"
SYMBOL_ABSENT = "✗"


class Severity:
    """Severity levels attached to scenario definitions."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# CLI colors (Rich color names)
CLI_COLORS = {
    Severity.INFO: "green",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red",
    Severity.CRITICAL: "bold red",
}


# Warning codes attached to a detected state
W_STALE_REMOTE_DATA = "W_STALE_REMOTE_DATA"
W_NETWORK_UNREACHABLE = "W_NETWORK_UNREACHABLE"
W_DETACHED_HEAD = "W_DETACHED_HEAD"
W_SHALLOW_CLONE = "W_SHALLOW_CLONE"
W_MANY_BRANCHES = "W_MANY_BRANCHES"
W_LFS_ENABLED = "W_LFS_ENABLED"
W_UNKNOWN_CLASSIFICATION = "W_UNKNOWN_CLASSIFICATION"
