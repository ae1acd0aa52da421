"""Lookup tables that reduce raw observations to scenario IDs.

Every dimension is a dictionary keyed by a tuple of booleans or SyncStatus
values. Control flow never branches on scenarios; adding a scenario means
adding a row here.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from git_sync_keeper.constants import Severity
from git_sync_keeper.exceptions import UnknownClassificationError
from git_sync_keeper.models.state import SyncStatus

SY = SyncStatus.SYNCED
AH = SyncStatus.AHEAD
BE = SyncStatus.BEHIND
DV = SyncStatus.DIVERGED

UNKNOWN = "UNKNOWN"

# Pair names used by the partial sync table
LOCAL_CORE = "local_core"
LOCAL_GITHUB = "local_github"
CORE_GITHUB = "core_github"


@dataclass(frozen=True)
class ScenarioDefinition:
    """Human facing description of one scenario ID."""
    id: str
    description: str
    severity: str


def _define(*rows) -> Dict[str, ScenarioDefinition]:
    return {row[0]: ScenarioDefinition(*row) for row in rows}


SCENARIOS: Dict[str, ScenarioDefinition] = _define(
    # Existence
    ("E1", "Local clone with both Core and GitHub remotes configured", Severity.INFO),
    ("E2", "Local and Core exist, GitHub remote is not configured", Severity.WARNING),
    ("E3", "Local and GitHub exist, Core remote is not configured", Severity.WARNING),
    ("E4", "Local clone exists but no remotes are configured", Severity.WARNING),
    ("E5", "Core and GitHub exist but there is no local clone", Severity.WARNING),
    ("E6", "Only the Core repository exists", Severity.ERROR),
    ("E7", "Only the GitHub repository exists", Severity.ERROR),
    ("E8", "The repository exists in no location", Severity.CRITICAL),
    # Working tree
    ("W1", "No staged or unstaged changes", Severity.INFO),
    ("W2", "Changes staged but not committed", Severity.WARNING),
    ("W3", "Tracked files modified but not staged", Severity.WARNING),
    ("W4", "Both staged and unstaged changes present", Severity.WARNING),
    # Corruption
    ("C1", "No large binaries in history", Severity.INFO),
    ("C2", "Local history holds blobs above the size threshold", Severity.WARNING),
    ("C3", "Core history holds blobs above the size threshold", Severity.WARNING),
    ("C4", "GitHub history holds blobs above the size threshold", Severity.WARNING),
    ("C5", "Local and Core histories hold large blobs", Severity.WARNING),
    ("C6", "Local and GitHub histories hold large blobs", Severity.WARNING),
    ("C7", "Core and GitHub histories hold large blobs", Severity.WARNING),
    ("C8", "All three histories hold large blobs", Severity.ERROR),
    # Sync
    ("S1", "Local, Core and GitHub point at the same commit", Severity.INFO),
    ("S2", "Local has commits neither remote has", Severity.WARNING),
    ("S3", "The remotes have commits local does not have", Severity.WARNING),
    ("S4", "Local and Core match, GitHub is behind", Severity.WARNING),
    ("S5", "Local and GitHub match, Core is behind", Severity.WARNING),
    ("S6", "Local and Core match, GitHub is ahead of both", Severity.WARNING),
    ("S7", "Local and GitHub match, Core is ahead of both", Severity.WARNING),
    ("S8", "GitHub holds commits neither Core nor local has", Severity.WARNING),
    ("S9", "Core holds commits neither GitHub nor local has", Severity.WARNING),
    ("S10", "Core and GitHub have diverged and local points at one of them", Severity.ERROR),
    ("S11", "Core and GitHub have diverged and local contains both", Severity.ERROR),
    ("S12", "Core and GitHub have diverged and local is behind both", Severity.ERROR),
    ("S13", "Local has commits a remote lacks and lacks commits that remote has", Severity.ERROR),
    (UNKNOWN, "Observed state matches no known scenario, detection is unreliable",
     Severity.CRITICAL),
    # Branch topology
    ("B1", "Branch exists locally, on Core and on GitHub", Severity.INFO),
    ("B2", "Branch exists locally and on Core, missing on GitHub", Severity.WARNING),
    ("B3", "Branch exists locally and on GitHub, missing on Core", Severity.WARNING),
    ("B4", "Branch exists only in the local clone", Severity.WARNING),
    ("B5", "Branch exists on both remotes but not locally", Severity.INFO),
    ("B6", "Branch exists only on Core", Severity.WARNING),
    ("B7", "Branch exists only on GitHub", Severity.WARNING),
)


# (local, core, github)
EXISTENCE_TABLE: Dict[Tuple[bool, bool, bool], str] = {
    (True, True, True): "E1",
    (True, True, False): "E2",
    (True, False, True): "E3",
    (True, False, False): "E4",
    (False, True, True): "E5",
    (False, True, False): "E6",
    (False, False, True): "E7",
    (False, False, False): "E8",
}

# (has_staged, has_unstaged)
WORKING_TREE_TABLE: Dict[Tuple[bool, bool], str] = {
    (False, False): "W1",
    (True, False): "W2",
    (False, True): "W3",
    (True, True): "W4",
}

# Large binaries present in (local, core, github)
CORRUPTION_TABLE: Dict[Tuple[bool, bool, bool], str] = {
    (False, False, False): "C1",
    (True, False, False): "C2",
    (False, True, False): "C3",
    (False, False, True): "C4",
    (True, True, False): "C5",
    (True, False, True): "C6",
    (False, True, True): "C7",
    (True, True, True): "C8",
}

# Branch exists in (local, core, github)
BRANCH_TABLE: Dict[Tuple[bool, bool, bool], str] = {
    (True, True, True): "B1",
    (True, True, False): "B2",
    (True, False, True): "B3",
    (True, False, False): "B4",
    (False, True, True): "B5",
    (False, True, False): "B6",
    (False, False, True): "B7",
}

# (local vs core, local vs github, core vs github)
#
# The three tips form a partial order (with possible equalities), so only
# tuples consistent with transitivity can be observed: 29 of the 64.
# Notation in comments: > means "strictly contains", = same commit,
# | diverged.
SYNC_TABLE: Dict[Tuple[SyncStatus, SyncStatus, SyncStatus], str] = {
    (SY, SY, SY): "S1",   # L = C = G
    (AH, AH, SY): "S2",   # L > C = G
    (AH, AH, AH): "S2",   # L > C > G
    (AH, AH, BE): "S2",   # L > G > C
    (BE, BE, SY): "S3",   # C = G > L
    (BE, BE, BE): "S3",   # G > C > L
    (BE, BE, AH): "S3",   # C > G > L
    (SY, AH, AH): "S4",   # L = C > G
    (AH, SY, BE): "S5",   # L = G > C
    (SY, BE, BE): "S6",   # G > L = C
    (BE, SY, AH): "S7",   # C > L = G
    (AH, BE, BE): "S8",   # G > L > C
    (DV, BE, BE): "S8",   # G > L, G > C, L | C
    (BE, AH, AH): "S9",   # C > L > G
    (BE, DV, AH): "S9",   # C > L, C > G, L | G
    (SY, DV, DV): "S10",  # L = C, G | both
    (DV, SY, DV): "S10",  # L = G, C | both
    (AH, AH, DV): "S11",  # L > C, L > G, C | G
    (BE, BE, DV): "S12",  # C > L, G > L, C | G
    (DV, DV, SY): "S13",  # C = G, L | both
    (DV, DV, DV): "S13",  # all pairwise diverged
    (AH, DV, DV): "S13",  # L > C, G | both
    (BE, DV, DV): "S13",  # C > L, G | both
    (DV, AH, DV): "S13",  # L > G, C | both
    (DV, BE, DV): "S13",  # G > L, C | both
    (DV, DV, AH): "S13",  # C > G, L | both
    (DV, DV, BE): "S13",  # G > C, L | both
    (AH, DV, BE): "S13",  # L > C, G > C, L | G
    (DV, AH, AH): "S13",  # L > G, C > G, L | C
}

# One remote missing (E2/E3): only one pair can be compared
PARTIAL_SYNC_TABLE: Dict[Tuple[str, SyncStatus], str] = {
    (LOCAL_CORE, SY): "S1",
    (LOCAL_CORE, AH): "S2",
    (LOCAL_CORE, BE): "S3",
    (LOCAL_CORE, DV): "S13",
    (LOCAL_GITHUB, SY): "S1",
    (LOCAL_GITHUB, AH): "S2",
    (LOCAL_GITHUB, BE): "S3",
    (LOCAL_GITHUB, DV): "S13",
    # Branch present on both remotes but not locally
    (CORE_GITHUB, SY): "S1",
    (CORE_GITHUB, AH): "S9",
    (CORE_GITHUB, BE): "S8",
    (CORE_GITHUB, DV): "S10",
}

# (commits only on A > 0, commits only on B > 0) for two differing tips
PAIR_TABLE: Dict[Tuple[bool, bool], SyncStatus] = {
    (True, False): AH,
    (False, True): BE,
    (True, True): DV,
}

SYNC_IDS = tuple(f"S{n}" for n in range(1, 14))
DIVERGED_SYNC_IDS = frozenset({"S10", "S11", "S12", "S13"})
COMPOSITE_SYNC_IDS = frozenset({"S8", "S9"})


def classify_existence(local: bool, core: bool, github: bool) -> str:
    return EXISTENCE_TABLE[(bool(local), bool(core), bool(github))]


def classify_working_tree(has_staged: bool, has_unstaged: bool) -> str:
    return WORKING_TREE_TABLE[(bool(has_staged), bool(has_unstaged))]


def classify_corruption(local: bool, core: bool, github: bool) -> str:
    return CORRUPTION_TABLE[(bool(local), bool(core), bool(github))]


def classify_branch(in_local: bool, in_core: bool, in_github: bool) -> str:
    key = (bool(in_local), bool(in_core), bool(in_github))
    if key not in BRANCH_TABLE:
        raise UnknownClassificationError("branch", key)
    return BRANCH_TABLE[key]


def classify_pair(ahead: int, behind: int, same_tip: bool) -> Optional[SyncStatus]:
    """Reduce two commit counts to a SyncStatus, or None if they contradict."""
    if same_tip:
        return SY
    return PAIR_TABLE.get((ahead > 0, behind > 0))


def lookup_sync(
    local_core: Optional[SyncStatus],
    local_github: Optional[SyncStatus],
    core_github: Optional[SyncStatus],
) -> str:
    """Map the three pairwise statuses to an S ID.

    Raises:
        UnknownClassificationError: The tuple violates transitivity or holds
            an unknown pair. Never guessed.
    """
    key = (local_core, local_github, core_github)
    scenario_id = SYNC_TABLE.get(key)
    if scenario_id is None:
        raise UnknownClassificationError("sync", tuple(s.value if s else None for s in key))
    return scenario_id


def lookup_partial_sync(pair: str, status: Optional[SyncStatus]) -> str:
    scenario_id = PARTIAL_SYNC_TABLE.get((pair, status))
    if scenario_id is None:
        raise UnknownClassificationError("partial sync", (pair, status.value if status else None))
    return scenario_id


def describe(scenario_id: str) -> str:
    definition = SCENARIOS.get(scenario_id)
    return definition.description if definition else scenario_id


def severity(scenario_id: str) -> str:
    definition = SCENARIOS.get(scenario_id)
    return definition.severity if definition else Severity.CRITICAL
