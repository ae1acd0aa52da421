"""Detection of the three-location repository state"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Union

from git_sync_keeper.constants import (
    BYTES_PER_MB,
    FALLBACK_DEFAULT_BRANCHES,
    W_DETACHED_HEAD,
    W_LFS_ENABLED,
    W_MANY_BRANCHES,
    W_NETWORK_UNREACHABLE,
    W_SHALLOW_CLONE,
    W_STALE_REMOTE_DATA,
    W_UNKNOWN_CLASSIFICATION,
)
from git_sync_keeper.exceptions import DetectionError, GitOperationError, UnknownClassificationError
from git_sync_keeper.logging_config import get_logger
from git_sync_keeper.models.state import (
    BranchState,
    BranchSyncState,
    CorruptionState,
    DetectionWarning,
    ExistenceState,
    LargeBinary,
    PairStatus,
    RepositoryState,
    WorkingTreeState,
)
from git_sync_keeper.services import classification_tables as tables
from git_sync_keeper.services.git.probe import GitProbe

if TYPE_CHECKING:
    from git_sync_keeper.config import Config

logger = get_logger(__name__)


class Classifier:
    """Runs the probe in dependency order and assembles a RepositoryState."""

    def __init__(self, probe: GitProbe, config: Union["Config", dict]):
        """Initialize the classifier.

        Args:
            probe: Probe bound to the repository to inspect
            config: Configuration dictionary or Config object; must name both remotes
        """
        self.probe = probe
        self.config = config
        self.core_remote = config.get("core_remote")
        self.github_remote = config.get("github_remote")
        if not self.core_remote or not self.github_remote:
            raise ValueError("Both core_remote and github_remote must be given")

    def detect(self, fetch: Optional[bool] = None) -> RepositoryState:
        """Produce a fresh snapshot of the repository across all locations.

        Args:
            fetch: Fetch the remotes first; None follows fetch_before_check

        Raises:
            DetectionError: The local repository could not be read.
        """
        started = time.monotonic()
        detected_at = datetime.now(timezone.utc)
        warnings: List[DetectionWarning] = []

        existence = self._detect_existence()
        logger.info(f"Existence {existence.id}: {existence.description}")
        if not existence.local_exists:
            return RepositoryState(
                repo_path=self.probe.repo_path,
                core_remote=self.core_remote,
                github_remote=self.github_remote,
                existence=existence,
                detected_at=detected_at,
                duration_ms=int((time.monotonic() - started) * 1000),
            )

        remotes = self._configured_remotes(existence)
        if fetch is None:
            fetch = self.config.get("fetch_before_check", True)
        fetch_enabled = bool(fetch) and bool(remotes)

        try:
            # Fetches are network bound; overlap them with the local-only checks.
            # Every probe call still takes the repository lock.
            with ThreadPoolExecutor(max_workers=3, thread_name_prefix="detect") as pool:
                fetch_future = pool.submit(self._fetch_remotes, remotes) if fetch_enabled else None
                tree_future = pool.submit(self._detect_working_tree)
                corruption_future = pool.submit(self._detect_corruption)

                working_tree = tree_future.result()
                corruption = corruption_future.result()
                fetch_errors = fetch_future.result() if fetch_future else {}
        except GitOperationError as e:
            raise DetectionError(f"Cannot read local repository {self.probe.repo_path}: {e}") from e

        data_is_fresh = fetch_enabled and not fetch_errors
        if fetch_enabled:
            existence = self._with_reachability(existence, fetch_errors)
        for remote, error in fetch_errors.items():
            warnings.append(DetectionWarning(
                W_NETWORK_UNREACHABLE, f"Fetching {remote} failed: {error}"
            ))
        if remotes and not data_is_fresh:
            reason = "fetch failed" if fetch_errors else "fetch was skipped"
            warnings.append(DetectionWarning(
                W_STALE_REMOTE_DATA, f"Remote tracking refs may be outdated ({reason})"
            ))

        try:
            default_branch = self._resolve_default_branch(existence)
            sync = None
            if remotes:
                sync = self._classify_sync(
                    default_branch,
                    in_local=True,
                    in_core=existence.core_exists,
                    in_github=existence.github_exists,
                    data_is_fresh=data_is_fresh,
                )
                if sync.id == tables.UNKNOWN:
                    warnings.append(DetectionWarning(
                        W_UNKNOWN_CLASSIFICATION,
                        f"Sync state of '{default_branch}' matches no known scenario, "
                        "detection is unreliable",
                    ))

            branches: Tuple[BranchState, ...] = ()
            if not self.config.get("skip_branches", False):
                branches = self._classify_branches(existence, data_is_fresh, warnings)

            if working_tree.detached_head:
                warnings.append(DetectionWarning(W_DETACHED_HEAD, "HEAD is not on a branch"))
            if working_tree.shallow_clone:
                warnings.append(DetectionWarning(
                    W_SHALLOW_CLONE, "Shallow clone, ahead/behind counts may be truncated"
                ))
            if self.probe.uses_lfs():
                warnings.append(DetectionWarning(
                    W_LFS_ENABLED, "Repository uses Git LFS, large files live outside history"
                ))
        except GitOperationError as e:
            raise DetectionError(f"Cannot compare branches in {self.probe.repo_path}: {e}") from e

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Detection finished in {duration_ms}ms")
        return RepositoryState(
            repo_path=self.probe.repo_path,
            core_remote=self.core_remote,
            github_remote=self.github_remote,
            existence=existence,
            working_tree=working_tree,
            corruption=corruption,
            sync=sync,
            branches=branches,
            warnings=tuple(warnings),
            default_branch=default_branch,
            detected_at=detected_at,
            duration_ms=duration_ms,
        )

    # Existence

    def _detect_existence(self) -> ExistenceState:
        local_exists, local_path = self.probe.local_repository()
        core_url = github_url = None
        core_reachable = github_reachable = None

        if local_exists:
            try:
                configured = set(self.probe.list_remotes())
                core_url = self.probe.remote_url(self.core_remote) if self.core_remote in configured else ""
                github_url = (
                    self.probe.remote_url(self.github_remote) if self.github_remote in configured else ""
                )
            except GitOperationError as e:
                raise DetectionError(f"Cannot read remotes of {local_path}: {e}") from e
            core_exists = bool(core_url)
            github_exists = bool(github_url)
        else:
            # Without a clone the remotes can only be found through configured URLs
            core_url = self.config.get("core_url")
            github_url = self.config.get("github_url")
            core_reachable = self.probe.can_reach_url(core_url) if core_url else False
            github_reachable = self.probe.can_reach_url(github_url) if github_url else False
            core_exists = core_reachable
            github_exists = github_reachable

        scenario_id = tables.classify_existence(local_exists, core_exists, github_exists)
        return ExistenceState(
            id=scenario_id,
            description=tables.describe(scenario_id),
            local_exists=local_exists,
            core_exists=core_exists,
            github_exists=github_exists,
            core_remote=self.core_remote,
            github_remote=self.github_remote,
            local_path=local_path if local_exists else None,
            core_url=core_url or None,
            github_url=github_url or None,
            core_reachable=core_reachable,
            github_reachable=github_reachable,
        )

    def _configured_remotes(self, existence: ExistenceState) -> List[str]:
        remotes = []
        if existence.core_exists:
            remotes.append(self.core_remote)
        if existence.github_exists:
            remotes.append(self.github_remote)
        return remotes

    def _fetch_remotes(self, remotes: List[str]) -> Dict[str, str]:
        """Fetch each remote. Failures degrade to stale data instead of aborting."""
        errors = {}
        for remote in remotes:
            try:
                logger.info(f"Fetching {remote}")
                self.probe.fetch(remote)
            except GitOperationError as e:
                logger.warning(f"Fetch of {remote} failed, continuing with cached refs: {e}")
                errors[remote] = str(e)
        return errors

    def _with_reachability(self, existence: ExistenceState, fetch_errors: Dict[str, str]) -> ExistenceState:
        def reachable(exists: bool, remote: str) -> Optional[bool]:
            return (remote not in fetch_errors) if exists else None

        return replace(
            existence,
            core_reachable=reachable(existence.core_exists, self.core_remote),
            github_reachable=reachable(existence.github_exists, self.github_remote),
        )

    # Local-only checks

    def _detect_working_tree(self) -> WorkingTreeState:
        staged = tuple(self.probe.staged_files())
        unstaged = tuple(self.probe.unstaged_files())
        scenario_id = tables.classify_working_tree(bool(staged), bool(unstaged))
        return WorkingTreeState(
            id=scenario_id,
            description=tables.describe(scenario_id),
            staged_files=staged,
            unstaged_files=unstaged,
            untracked_files=tuple(self.probe.untracked_files()),
            conflicted_files=tuple(self.probe.conflicted_files()),
            detached_head=self.probe.is_detached_head(),
            shallow_clone=self.probe.is_shallow(),
        )

    def _detect_corruption(self) -> CorruptionState:
        threshold_mb = float(self.config.get("binary_threshold_mb", 10.0))
        if self.config.get("skip_corruption", False):
            return CorruptionState(
                id="C1",
                description="Not checked",
                checked=False,
                threshold_mb=threshold_mb,
            )

        blobs = self.probe.scan_large_blobs(int(threshold_mb * BYTES_PER_MB))
        large = tuple(
            LargeBinary(sha=sha, size_mb=round(size / BYTES_PER_MB, 2)) for sha, size in blobs
        )
        # Remote histories are not scanned
        scenario_id = tables.classify_corruption(bool(large), False, False)
        if large:
            logger.info(f"{len(large)} blob(s) of {threshold_mb:g} MB or more in history")
        return CorruptionState(
            id=scenario_id,
            description=tables.describe(scenario_id),
            checked=True,
            threshold_mb=threshold_mb,
            large_binaries=large,
        )

    # Sync

    def _resolve_default_branch(self, existence: ExistenceState) -> str:
        configured = self.config.get("default_branch")
        if configured:
            return configured
        for remote, exists in ((self.core_remote, existence.core_exists),
                               (self.github_remote, existence.github_exists)):
            if exists:
                head = self.probe.remote_head_branch(remote)
                if head:
                    return head
        current = self.probe.current_branch()
        if current:
            return current
        local_branches = set(self.probe.list_local_branches())
        for candidate in FALLBACK_DEFAULT_BRANCHES:
            if candidate in local_branches:
                return candidate
        return FALLBACK_DEFAULT_BRANCHES[0]

    def _compare(self, tip_a: str, tip_b: str) -> PairStatus:
        if tip_a == tip_b:
            return PairStatus(tables.classify_pair(0, 0, same_tip=True))
        ahead = self.probe.count_commits(tip_a, tip_b)
        behind = self.probe.count_commits(tip_b, tip_a)
        status = tables.classify_pair(ahead, behind, same_tip=False)
        if status is None:
            logger.warning(f"Tips {tip_a[:8]} and {tip_b[:8]} differ but neither has unique commits")
        return PairStatus(status, ahead, behind)

    def _classify_sync(
        self,
        branch: str,
        in_local: bool,
        in_core: bool,
        in_github: bool,
        data_is_fresh: bool,
    ) -> BranchSyncState:
        """Compare one branch across the locations that take part.

        A location that takes part but lacks the branch has an empty tip,
        which compares as the empty history.
        """
        local_hash = self.probe.local_branch_tip(branch) if in_local else ""
        core_hash = self.probe.remote_branch_tip(self.core_remote, branch) if in_core else ""
        github_hash = self.probe.remote_branch_tip(self.github_remote, branch) if in_github else ""

        local_core = self._compare(local_hash, core_hash) if in_local and in_core else None
        local_github = self._compare(local_hash, github_hash) if in_local and in_github else None
        core_github = self._compare(core_hash, github_hash) if in_core and in_github else None

        partial = not (in_local and in_core and in_github)
        try:
            if not partial:
                scenario_id = tables.lookup_sync(
                    local_core.status, local_github.status, core_github.status
                )
            elif local_core is not None:
                scenario_id = tables.lookup_partial_sync(tables.LOCAL_CORE, local_core.status)
            elif local_github is not None:
                scenario_id = tables.lookup_partial_sync(tables.LOCAL_GITHUB, local_github.status)
            else:
                scenario_id = tables.lookup_partial_sync(tables.CORE_GITHUB, core_github.status)
        except UnknownClassificationError as e:
            logger.error(f"Branch '{branch}': {e}")
            scenario_id = tables.UNKNOWN

        logger.debug(f"Branch '{branch}' sync {scenario_id}")
        return BranchSyncState(
            branch=branch,
            id=scenario_id,
            description=tables.describe(scenario_id),
            local_hash=local_hash,
            core_hash=core_hash,
            github_hash=github_hash,
            local_core=local_core,
            local_github=local_github,
            core_github=core_github,
            data_is_fresh=data_is_fresh,
            partial=partial,
        )

    # Branch topology

    def _classify_branches(
        self,
        existence: ExistenceState,
        data_is_fresh: bool,
        warnings: List[DetectionWarning],
    ) -> Tuple[BranchState, ...]:
        local = set(self.probe.list_local_branches())
        core = set(self.probe.list_remote_branches(self.core_remote)) if existence.core_exists else set()
        github = (
            set(self.probe.list_remote_branches(self.github_remote)) if existence.github_exists else set()
        )

        names = sorted(local | core | github)
        max_branches = self.config.get("max_branches", 100)
        if len(names) > max_branches:
            warnings.append(DetectionWarning(
                W_MANY_BRANCHES,
                f"{len(names)} branches found, only the first {max_branches} were analyzed",
            ))
            names = names[:max_branches]

        branches = []
        for name in names:
            in_local, in_core, in_github = name in local, name in core, name in github
            scenario_id = tables.classify_branch(in_local, in_core, in_github)
            sync = None
            if in_local + in_core + in_github >= 2:
                sync = self._classify_sync(name, in_local, in_core, in_github, data_is_fresh)
            branches.append(BranchState(
                name=name,
                id=scenario_id,
                description=tables.describe(scenario_id),
                in_local=in_local,
                in_core=in_core,
                in_github=in_github,
                sync=sync,
            ))
        return tuple(branches)

    # On demand

    def locate_large_binary(self, sha: str) -> List[Tuple[str, str]]:
        """Resolve a blob to (commit, path) pairs. Expensive, never part of detect()."""
        return self.probe.locate_blob(sha)
