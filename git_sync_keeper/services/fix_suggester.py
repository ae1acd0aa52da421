"""Suggest remediations for a detected repository state"""

from typing import List, Optional

from git_sync_keeper.constants import (
    PRIORITY_BLOCKER,
    PRIORITY_BRANCH,
    PRIORITY_DIVERGENCE,
    PRIORITY_EXISTENCE,
    PRIORITY_STALE_DATA,
    PRIORITY_SYNC,
    W_DETACHED_HEAD,
    W_SHALLOW_CLONE,
    W_STALE_REMOTE_DATA,
)
from git_sync_keeper.models.fix import Fix
from git_sync_keeper.models.state import BranchSyncState, RepositoryState, SyncStatus
from git_sync_keeper.services import classification_tables as tables
from git_sync_keeper.services.operations import (
    CompositeOperation,
    FetchOperation,
    PushOperation,
    ResetOperation,
)


def suggest_fixes(state: RepositoryState) -> List[Fix]:
    """Map a state to fixes, most urgent first.

    Pure: reads the state only, never the repository. Push and reset fixes are
    only marked auto-fixable when the data is fresh, the tree is clean, and no
    large binaries were found.
    """
    fixes = _existence_fixes(state)
    if state.existence.local_exists:
        fixes += _stale_data_fixes(state)
        fixes += _unknown_state_fixes(state)
        fixes += _blocker_fixes(state)
        fixes += _sync_fixes(state)
        fixes += _branch_fixes(state)
    # sorted() is stable, so suggestion order breaks ties
    return sorted(fixes, key=lambda fix: fix.priority)


def _blocking_reason(state: RepositoryState, moves_head: bool = False) -> str:
    """Why a push/reset cannot be applied automatically, or "" if it can."""
    if not state.data_is_fresh:
        return "remote data is stale, re-fetch first"
    tree = state.working_tree
    if tree is not None and not tree.clean:
        return "working tree has uncommitted changes"
    if state.corruption is not None and state.corruption.has_corruption:
        return "history holds large binaries"
    if moves_head and tree is not None and tree.detached_head:
        return "HEAD is detached"
    return ""


def _existence_fixes(state: RepositoryState) -> List[Fix]:
    existence = state.existence
    core, github = state.core_remote, state.github_remote
    reason = "needs a repository URL and credentials"
    hints = {
        "E2": f"git remote add {github} <github-url>",
        "E3": f"git remote add {core} <core-url>",
        "E4": f"git remote add {core} <core-url> && git remote add {github} <github-url>",
        "E5": f"git clone {existence.core_url or '<core-url>'} {state.repo_path}",
        "E6": f"git clone {existence.core_url or '<core-url>'} and create the GitHub repository",
        "E7": f"git clone {existence.github_url or '<github-url>'} and create the Core repository",
        "E8": "Create the repository, then add both remotes",
    }
    if existence.id not in hints:
        return []
    return [Fix(
        scenario_id=existence.id,
        description=existence.description,
        priority=PRIORITY_EXISTENCE,
        reason=reason,
        manual_hint=hints[existence.id],
    )]


def _stale_data_fixes(state: RepositoryState) -> List[Fix]:
    if state.sync is None or state.sync.data_is_fresh:
        return []
    fixes = []
    for remote, exists in ((state.core_remote, state.existence.core_exists),
                           (state.github_remote, state.existence.github_exists)):
        if not exists:
            continue
        fixes.append(Fix(
            scenario_id=W_STALE_REMOTE_DATA,
            description=f"Re-fetch {remote}, sync results below may be wrong",
            priority=PRIORITY_STALE_DATA,
            auto_fixable=True,
            operation=FetchOperation(remote),
            reason="fetching only updates remote-tracking refs",
            manual_hint=f"git fetch --prune {remote}",
        ))
    return fixes


def _unknown_state_fixes(state: RepositoryState) -> List[Fix]:
    if state.sync is None or state.sync.id != tables.UNKNOWN:
        return []
    return [Fix(
        scenario_id=tables.UNKNOWN,
        description=f"Sync state of '{state.sync.branch}' could not be classified, detection is unreliable",
        priority=PRIORITY_STALE_DATA,
        reason="no safe action is known for an unclassified state",
        manual_hint="git log --graph --oneline --all",
    )]


def _blocker_fixes(state: RepositoryState) -> List[Fix]:
    fixes = []
    tree = state.working_tree
    if tree is not None and not tree.clean:
        fixes.append(Fix(
            scenario_id=tree.id,
            description=(
                f"{tree.description}: {len(tree.staged_files)} staged, "
                f"{len(tree.unstaged_files)} unstaged, blocks push and reset fixes"
            ),
            priority=PRIORITY_BLOCKER,
            reason="uncommitted work needs a human decision",
            manual_hint="git commit or git stash",
        ))
    corruption = state.corruption
    if corruption is not None and corruption.has_corruption:
        largest = corruption.large_binaries[0]
        fixes.append(Fix(
            scenario_id=corruption.id,
            description=(
                f"{len(corruption.large_binaries)} blob(s) of {corruption.threshold_mb:g} MB or more "
                f"in history (largest {largest.sha[:12]}, {largest.size_mb:g} MB)"
            ),
            priority=PRIORITY_BLOCKER,
            reason="rewriting history is destructive",
            manual_hint=f"git-sync-keeper --locate-blob {largest.sha}, then git lfs migrate or git filter-repo",
        ))
    if tree is not None and tree.detached_head:
        fixes.append(Fix(
            scenario_id=W_DETACHED_HEAD,
            description="HEAD is detached, reset fixes need a checked out branch",
            priority=PRIORITY_BLOCKER,
            reason="choosing a branch needs a human decision",
            manual_hint=f"git switch {state.default_branch}",
        ))
    if tree is not None and tree.shallow_clone:
        fixes.append(Fix(
            scenario_id=W_SHALLOW_CLONE,
            description="Shallow clone, ahead/behind counts may be truncated",
            priority=PRIORITY_BLOCKER,
            reason="unshallowing can download the full history",
            manual_hint=f"git fetch --unshallow {state.core_remote}",
        ))
    return fixes


def _push_fix(state: RepositoryState, scenario_id: str, remote: str, branch: str, priority: int) -> Fix:
    reason = _blocking_reason(state)
    return Fix(
        scenario_id=scenario_id,
        description=f"Push '{branch}' to {remote}",
        priority=priority,
        auto_fixable=not reason,
        operation=PushOperation(remote, branch),
        reason=reason or "fast-forward push of a clean branch",
        manual_hint=f"git push {remote} {branch}",
        branch=branch,
    )


def _reset_fix(state: RepositoryState, scenario_id: str, remote: str, branch: str) -> Fix:
    reason = _blocking_reason(state, moves_head=True)
    return Fix(
        scenario_id=scenario_id,
        description=f"Fast-forward '{branch}' to {remote}/{branch}",
        priority=PRIORITY_SYNC,
        auto_fixable=not reason,
        operation=ResetOperation(f"refs/remotes/{remote}/{branch}", branch),
        reason=reason or "validated fast-forward",
        manual_hint=f"git merge --ff-only {remote}/{branch}",
        branch=branch,
    )


def _status(pair) -> Optional[SyncStatus]:
    return pair.status if pair is not None else None


def _leading_remote(state: RepositoryState, sync: BranchSyncState) -> Optional[str]:
    """The remote local should fast-forward to, or None if local is not behind."""
    core_ahead = _status(sync.local_core) == SyncStatus.BEHIND
    github_ahead = _status(sync.local_github) == SyncStatus.BEHIND
    if core_ahead and github_ahead:
        if _status(sync.core_github) == SyncStatus.BEHIND:
            return state.github_remote
        return state.core_remote
    if core_ahead:
        return state.core_remote
    if github_ahead:
        return state.github_remote
    return None


def _sync_fixes(state: RepositoryState) -> List[Fix]:
    sync = state.sync
    if sync is None or sync.id in ("S1", tables.UNKNOWN):
        return []
    branch = sync.branch
    core, github = state.core_remote, state.github_remote

    if sync.id in tables.DIVERGED_SYNC_IDS:
        return [Fix(
            scenario_id=sync.id,
            description=f"'{branch}': {sync.description}",
            priority=PRIORITY_DIVERGENCE,
            reason="diverged history needs a manual merge",
            manual_hint=f"git merge {core}/{branch} (and {github}/{branch}), resolve, then push to both",
            branch=branch,
        )]

    if sync.id in tables.COMPOSITE_SYNC_IDS:
        leader, lagging = (github, core) if sync.id == "S8" else (core, github)
        operation = CompositeOperation([
            ResetOperation(f"refs/remotes/{leader}/{branch}", branch),
            PushOperation(lagging, branch),
        ])
        return [Fix(
            scenario_id=sync.id,
            description=f"'{branch}': {sync.description}",
            priority=PRIORITY_SYNC,
            operation=operation,
            reason="multi-step fix, confirm the order before running it",
            manual_hint=f"git merge --ff-only {leader}/{branch} && git push {lagging} {branch}",
            branch=branch,
        )]

    fixes = []
    leader = _leading_remote(state, sync)
    if leader is not None:
        fixes.append(_reset_fix(state, sync.id, leader, branch))
        # After the fast-forward, the other remote may still lag the leader
        cg = _status(sync.core_github)
        if leader == core and cg == SyncStatus.AHEAD:
            fixes.append(_push_fix(state, sync.id, github, branch, PRIORITY_SYNC))
        elif leader == github and cg == SyncStatus.BEHIND:
            fixes.append(_push_fix(state, sync.id, core, branch, PRIORITY_SYNC))
    else:
        if _status(sync.local_core) == SyncStatus.AHEAD:
            fixes.append(_push_fix(state, sync.id, core, branch, PRIORITY_SYNC))
        if _status(sync.local_github) == SyncStatus.AHEAD:
            fixes.append(_push_fix(state, sync.id, github, branch, PRIORITY_SYNC))
    return fixes


def _branch_fixes(state: RepositoryState) -> List[Fix]:
    core, github = state.core_remote, state.github_remote
    configured = {core: state.existence.core_exists, github: state.existence.github_exists}
    fixes = []
    for branch in state.branches:
        name = branch.name
        if name == state.default_branch:
            continue

        if branch.id in ("B2", "B3", "B4"):
            for remote, present in ((core, branch.in_core), (github, branch.in_github)):
                if not present and configured[remote]:
                    fixes.append(_push_fix(state, branch.id, remote, name, PRIORITY_BRANCH))
        elif branch.id == "B5":
            fixes.append(Fix(
                scenario_id=branch.id,
                description=f"'{name}' exists on both remotes but not locally",
                priority=PRIORITY_BRANCH,
                reason="creating local branches is left to the user",
                manual_hint=f"git switch --track {core}/{name}",
                branch=name,
            ))
        elif branch.id in ("B6", "B7"):
            owner, other = (core, github) if branch.id == "B6" else (github, core)
            hint = f"git switch --track {owner}/{name}"
            if configured[other]:
                hint += f" && git push {other} {name}"
            fixes.append(Fix(
                scenario_id=branch.id,
                description=f"'{name}' exists only on {owner}",
                priority=PRIORITY_BRANCH,
                reason="the branch may be abandoned, decide before copying it",
                manual_hint=hint,
                branch=name,
            ))

        if branch.sync is not None and branch.sync.id in tables.DIVERGED_SYNC_IDS:
            fixes.append(Fix(
                scenario_id=branch.sync.id,
                description=f"'{name}': {branch.sync.description}",
                priority=PRIORITY_BRANCH,
                reason="diverged history needs a manual merge",
                manual_hint=f"git switch {name} && git merge {core}/{name}",
                branch=name,
            ))
    return fixes
