"""Tests for the scenario lookup tables"""
import dataclasses
import itertools
import random

import pytest

from git_sync_keeper.constants import CLI_COLORS
from git_sync_keeper.exceptions import UnknownClassificationError
from git_sync_keeper.models.state import SyncStatus
from git_sync_keeper.services import classification_tables as tables

STATUSES = list(SyncStatus)
LOCATIONS = ("local", "core", "github")
PAIRS = (("local", "core"), ("local", "github"), ("core", "github"))


def _contains(status):
    """Return (a contains b, b contains a) for one pairwise status."""
    return {
        SyncStatus.SYNCED: (True, True),
        SyncStatus.AHEAD: (True, False),
        SyncStatus.BEHIND: (False, True),
        SyncStatus.DIVERGED: (False, False),
    }[status]


def is_consistent(key):
    """A tuple is observable iff 'contains' is transitive across the three tips."""
    contains = {(x, x): True for x in LOCATIONS}
    for (a, b), status in zip(PAIRS, key):
        contains[(a, b)], contains[(b, a)] = _contains(status)
    for x, y, z in itertools.permutations(LOCATIONS, 3):
        if contains[(x, y)] and contains[(y, z)] and not contains[(x, z)]:
            return False
    return True


def random_history(rng, size):
    """Build a random commit DAG and return each commit's ancestor set (itself included)."""
    ancestors = []
    for commit in range(size):
        parents = rng.sample(range(commit), k=min(commit, rng.randint(0, 2))) if commit else []
        reach = {commit}
        for parent in parents:
            reach |= ancestors[parent]
        ancestors.append(frozenset(reach))
    return ancestors


def pair_status(a, b):
    ahead, behind = len(a - b), len(b - a)
    return tables.classify_pair(ahead, behind, same_tip=(a == b))


class TestSyncTableDerivation:
    """Test the sync table is exactly the set of observable tuples."""

    def test_table_keys_equal_consistent_tuples(self):
        """Test every consistent tuple has a row and no inconsistent one does."""
        consistent = {key for key in itertools.product(STATUSES, repeat=3) if is_consistent(key)}
        assert set(tables.SYNC_TABLE) == consistent
        assert len(consistent) == 29

    def test_all_thirteen_ids_are_used(self):
        """Test the 29 tuples cover S1 through S13."""
        assert set(tables.SYNC_TABLE.values()) == set(tables.SYNC_IDS)

    def test_inconsistent_tuples_are_rejected(self):
        """Test the 35 impossible tuples raise instead of mapping to a guess."""
        rejected = 0
        for key in itertools.product(STATUSES, repeat=3):
            if is_consistent(key):
                assert tables.lookup_sync(*key) in tables.SYNC_IDS
            else:
                with pytest.raises(UnknownClassificationError):
                    tables.lookup_sync(*key)
                rejected += 1
        assert rejected == 35

    def test_contradictory_pair_is_rejected(self):
        """Test a pair status of None never classifies."""
        with pytest.raises(UnknownClassificationError):
            tables.lookup_sync(None, SyncStatus.SYNCED, SyncStatus.SYNCED)

    @pytest.mark.parametrize("seed", range(20))
    def test_random_histories_always_classify(self, seed):
        """Test tips drawn from random DAGs always land on exactly one S ID."""
        rng = random.Random(seed)
        history = random_history(rng, rng.randint(3, 25))
        for _ in range(50):
            local, core, github = (rng.choice(history) for _ in range(3))
            key = (pair_status(local, core), pair_status(local, github), pair_status(core, github))
            assert tables.lookup_sync(*key) in tables.SYNC_IDS

    def test_scenario_semantics(self):
        """Test representative rows mean what their scenario says."""
        SY, AH, BE, DV = (SyncStatus.SYNCED, SyncStatus.AHEAD, SyncStatus.BEHIND, SyncStatus.DIVERGED)
        assert tables.lookup_sync(SY, SY, SY) == "S1"
        assert tables.lookup_sync(AH, AH, SY) == "S2"
        assert tables.lookup_sync(BE, BE, SY) == "S3"
        assert tables.lookup_sync(SY, AH, AH) == "S4"
        assert tables.lookup_sync(AH, SY, BE) == "S5"
        assert tables.lookup_sync(SY, BE, BE) == "S6"
        assert tables.lookup_sync(BE, SY, AH) == "S7"
        assert tables.lookup_sync(AH, BE, BE) == "S8"
        assert tables.lookup_sync(BE, AH, AH) == "S9"
        assert tables.lookup_sync(SY, DV, DV) == "S10"
        assert tables.lookup_sync(AH, AH, DV) == "S11"
        assert tables.lookup_sync(BE, BE, DV) == "S12"
        assert tables.lookup_sync(DV, DV, SY) == "S13"


class TestPairClassification:
    """Test reducing commit counts to a pair status."""

    def test_pair_statuses(self):
        """Test the four statuses are mutually exclusive."""
        assert tables.classify_pair(0, 0, same_tip=True) == SyncStatus.SYNCED
        assert tables.classify_pair(2, 0, same_tip=False) == SyncStatus.AHEAD
        assert tables.classify_pair(0, 3, same_tip=False) == SyncStatus.BEHIND
        assert tables.classify_pair(1, 2, same_tip=False) == SyncStatus.DIVERGED

    def test_differing_tips_without_unique_commits(self):
        """Test counts that contradict the hashes give no status."""
        assert tables.classify_pair(0, 0, same_tip=False) is None

    def test_partial_lookup(self):
        """Test single-pair classification with one remote missing."""
        assert tables.lookup_partial_sync(tables.LOCAL_CORE, SyncStatus.AHEAD) == "S2"
        assert tables.lookup_partial_sync(tables.LOCAL_GITHUB, SyncStatus.BEHIND) == "S3"
        assert tables.lookup_partial_sync(tables.CORE_GITHUB, SyncStatus.DIVERGED) == "S10"
        with pytest.raises(UnknownClassificationError):
            tables.lookup_partial_sync(tables.LOCAL_CORE, None)


class TestDimensionTables:
    """Test the boolean-keyed dimension tables."""

    def test_existence_table_is_total(self):
        """Test all eight existence combinations map to E1-E8."""
        ids = {tables.classify_existence(*key) for key in itertools.product((True, False), repeat=3)}
        assert ids == {f"E{n}" for n in range(1, 9)}
        assert tables.classify_existence(True, False, False) == "E4"
        assert tables.classify_existence(True, True, False) == "E2"

    def test_working_tree_table(self):
        """Test staged and unstaged changes map to W1-W4."""
        assert tables.classify_working_tree(False, False) == "W1"
        assert tables.classify_working_tree(True, False) == "W2"
        assert tables.classify_working_tree(False, True) == "W3"
        assert tables.classify_working_tree(True, True) == "W4"

    def test_corruption_table_is_total(self):
        """Test all eight corruption combinations map to C1-C8."""
        ids = {tables.classify_corruption(*key) for key in itertools.product((True, False), repeat=3)}
        assert ids == {f"C{n}" for n in range(1, 9)}

    def test_branch_nowhere_is_rejected(self):
        """Test a branch present in no location cannot be classified."""
        assert tables.classify_branch(True, False, False) == "B4"
        with pytest.raises(UnknownClassificationError):
            tables.classify_branch(False, False, False)

    def test_every_id_is_described(self):
        """Test every table value has a scenario definition."""
        for table in (tables.EXISTENCE_TABLE, tables.WORKING_TREE_TABLE, tables.CORRUPTION_TABLE,
                      tables.BRANCH_TABLE, tables.SYNC_TABLE, tables.PARTIAL_SYNC_TABLE):
            for scenario_id in table.values():
                assert scenario_id in tables.SCENARIOS
        assert tables.severity("nope") == "critical"

    def test_definitions_hold_display_data_only(self):
        """Test definitions carry a description and a known severity, and no auto-fix flag."""
        assert [f.name for f in dataclasses.fields(tables.ScenarioDefinition)] == ["id", "description", "severity"]
        for scenario_id, definition in tables.SCENARIOS.items():
            assert definition.id == scenario_id
            assert tables.describe(scenario_id) == definition.description
            assert tables.severity(scenario_id) in CLI_COLORS
