"""Serialized, deadline-bounded access to one git repository"""

import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple, Union

import git

from git_sync_keeper.constants import (
    FETCH_TIMEOUT,
    GIT_ENV,
    MIN_GIT_VERSION,
    OPERATION_TIMEOUT,
    REF_TIMEOUT,
    REMOTE_CHECK_TIMEOUT,
)
from git_sync_keeper.exceptions import GitOperationError, GitTimeoutError, GitVersionError
from git_sync_keeper.logging_config import get_logger

if TYPE_CHECKING:
    from git_sync_keeper.config import Config

logger = get_logger(__name__)

# GitPython reports a killed command through stderr
_TIMEOUT_MARKER = "Timeout:"


def _as_text(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value or ""


def _split_z(output: str) -> List[str]:
    return [item for item in output.split("\0") if item]


class GitProbe:
    """The only component that runs git against a repository.

    Every invocation for the same repository path goes through one lock, so
    concurrent callers queue instead of interleaving index or ref access.
    Each call carries a deadline and runs with prompts disabled and a fixed
    locale. Locks are keyed by the real path, so a symlinked path shares the
    lock of its target.

    Deadlines are enforced by GitPython's ``kill_after_timeout``, which kills
    git and its direct children only. A grandchild that keeps the output pipe
    open (an ssh transport or a custom ``uploadpack`` command, for example)
    holds the call, and the repository lock, until it exits on its own.
    """

    _path_locks: Dict[str, Lock] = {}
    _registry_lock = Lock()

    def __init__(self, repo_path: Union[str, Path], config: Optional[Union["Config", dict]] = None):
        """Initialize the probe.

        Args:
            repo_path: Path to the working copy (any directory inside it works)
            config: Configuration dictionary or Config object, read for deadlines
        """
        config = config if config is not None else {}
        self.requested_path = os.path.abspath(str(repo_path))
        self.ref_timeout = config.get("ref_timeout", REF_TIMEOUT)
        self.remote_check_timeout = config.get("remote_check_timeout", REMOTE_CHECK_TIMEOUT)
        self.operation_timeout = config.get("operation_timeout", OPERATION_TIMEOUT)
        self.fetch_timeout = config.get("fetch_timeout", FETCH_TIMEOUT)

        self.local_exists, self.repo_path = self._open_work_tree(self.requested_path)
        self._lock = self._lock_for(os.path.realpath(self.repo_path))
        self._git = git.Git(self.repo_path)

    @staticmethod
    def _open_work_tree(path: str) -> Tuple[bool, str]:
        """Find the top level of the work tree containing ``path``."""
        try:
            repo = git.Repo(path, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            return False, path
        try:
            if repo.bare or not repo.working_tree_dir:
                logger.debug(f"{path} is a bare repository, not a working copy")
                return False, path
            return True, os.path.abspath(repo.working_tree_dir)
        finally:
            repo.close()

    @classmethod
    def _lock_for(cls, path: str) -> Lock:
        """Return the lock shared by every probe of ``path``."""
        with cls._registry_lock:
            lock = cls._path_locks.get(path)
            if lock is None:
                lock = Lock()
                cls._path_locks[path] = lock
            return lock

    def _execute(
        self,
        runner: git.Git,
        args: Sequence[str],
        timeout: float,
        ok_statuses: Sequence[int] = (0,),
        istream=None,
    ) -> Tuple[int, str]:
        command = ["git", *args]
        operation = args[0]
        logger.debug(f"{' '.join(command)} (deadline {timeout:g}s)")
        try:
            status, stdout, stderr = runner.execute(
                command,
                istream=istream,
                with_extended_output=True,
                with_exceptions=False,
                kill_after_timeout=timeout,
                env=GIT_ENV,
            )
        except git.exc.GitCommandNotFound as e:
            raise GitOperationError(operation, f"cannot run git: {e}", command=command) from e

        stdout = _as_text(stdout)
        stderr = _as_text(stderr)
        if stderr.startswith(_TIMEOUT_MARKER):
            logger.warning(f"{' '.join(command)} exceeded {timeout:g}s and was killed")
            raise GitTimeoutError(operation, timeout, command=command)
        if status not in ok_statuses:
            raise GitOperationError(
                operation,
                stderr.strip() or stdout.strip() or None,
                command=command,
                status=status,
                stderr=stderr,
            )
        return status, stdout

    def _run(
        self,
        args: Sequence[str],
        timeout: float,
        ok_statuses: Sequence[int] = (0,),
        istream=None,
    ) -> Tuple[int, str]:
        """Run git in this repository while holding the repository lock."""
        with self._lock:
            return self._execute(self._git, args, timeout, ok_statuses, istream)

    # Environment

    def check_git_version(self) -> Tuple[int, ...]:
        """Ensure the git binary is recent enough."""
        try:
            found = tuple(git.Git().version_info)
        except git.exc.GitCommandNotFound as e:
            raise GitVersionError("none", ".".join(map(str, MIN_GIT_VERSION))) from e
        if found[:2] < MIN_GIT_VERSION:
            raise GitVersionError(
                ".".join(map(str, found)), ".".join(map(str, MIN_GIT_VERSION))
            )
        return found

    def local_repository(self) -> Tuple[bool, str]:
        """Return whether a working copy exists and its top level path."""
        return self.local_exists, self.repo_path

    # Remotes

    def list_remotes(self) -> List[str]:
        _, out = self._run(["remote"], self.ref_timeout)
        return [line.strip() for line in out.splitlines() if line.strip()]

    def remote_url(self, remote: str) -> str:
        """Return the URL of a configured remote, or "" if it is not configured."""
        status, out = self._run(["remote", "get-url", remote], self.ref_timeout, ok_statuses=(0, 2))
        return out.strip() if status == 0 else ""

    def can_reach_remote(self, remote: str) -> bool:
        """Check a named remote answers within the reachability deadline."""
        try:
            self._run(["ls-remote", "--heads", remote], self.remote_check_timeout)
            return True
        except GitOperationError as e:
            logger.debug(f"Remote {remote} unreachable: {e}")
            return False

    def can_reach_url(self, url: str) -> bool:
        """Check a URL answers. Used when there is no local clone to hold remotes."""
        try:
            # No work tree to run in; use a fixed directory rather than the process cwd
            runner = git.Git(tempfile.gettempdir())
            self._execute(runner, ["ls-remote", "--heads", url], self.remote_check_timeout)
            return True
        except GitOperationError as e:
            logger.debug(f"URL {url} unreachable: {e}")
            return False

    def fetch(self, remote: str) -> None:
        self._run(["fetch", "--prune", remote], self.fetch_timeout)

    def push(self, remote: str, refspec: str) -> str:
        """Push an explicit refspec. Forced and HEAD refspecs are refused."""
        source = refspec.split(":", 1)[0]
        if refspec.startswith("+") or source in ("", "HEAD", "@"):
            raise ValueError(f"Refusing to push ambiguous or forced refspec '{refspec}'")
        _, out = self._run(["push", "--porcelain", remote, refspec], self.fetch_timeout)
        return out

    def remote_head_branch(self, remote: str) -> str:
        """Return the branch a remote's HEAD points to, or "" if unknown."""
        prefix = f"refs/remotes/{remote}/"
        status, out = self._run(
            ["symbolic-ref", "-q", f"{prefix}HEAD"], self.ref_timeout, ok_statuses=(0, 1, 128)
        )
        target = out.strip()
        if status != 0 or not target.startswith(prefix):
            return ""
        return target[len(prefix):]

    # Refs and history

    def resolve_ref(self, ref: str) -> str:
        """Resolve a ref to a commit id, or "" if it does not exist."""
        if not ref:
            return ""
        status, out = self._run(
            ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"],
            self.ref_timeout,
            ok_statuses=(0, 1),
        )
        return out.strip() if status == 0 else ""

    def local_branch_tip(self, branch: str) -> str:
        return self.resolve_ref(f"refs/heads/{branch}")

    def remote_branch_tip(self, remote: str, branch: str) -> str:
        return self.resolve_ref(f"refs/remotes/{remote}/{branch}")

    def count_commits(self, from_ref: str, exclude_ref: str) -> int:
        """Count commits reachable from ``from_ref`` but not from ``exclude_ref``.

        An empty ``exclude_ref`` stands for the empty history, so the whole of
        ``from_ref`` is counted. An empty ``from_ref`` has nothing to count.
        """
        if not from_ref:
            return 0
        args = ["rev-list", "--count", from_ref]
        if exclude_ref:
            args.append(f"^{exclude_ref}")
        _, out = self._run(args, self.operation_timeout)
        return int(out.strip() or 0)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """Test whether ``ancestor`` is reachable from ``descendant``."""
        status, _ = self._run(
            ["merge-base", "--is-ancestor", ancestor, descendant],
            self.remote_check_timeout,
            ok_statuses=(0, 1),
        )
        return status == 0

    def list_local_branches(self) -> List[str]:
        return self._list_refs("refs/heads")

    def list_remote_branches(self, remote: str) -> List[str]:
        return [name for name in self._list_refs(f"refs/remotes/{remote}") if name != "HEAD"]

    def _list_refs(self, namespace: str) -> List[str]:
        _, out = self._run(["for-each-ref", "--format=%(refname)", namespace], self.operation_timeout)
        prefix = namespace + "/"
        return [line[len(prefix):] for line in out.splitlines() if line.startswith(prefix)]

    # Working tree

    def staged_files(self) -> List[str]:
        _, out = self._run(["diff", "--cached", "--name-only", "-z"], self.operation_timeout)
        return _split_z(out)

    def unstaged_files(self) -> List[str]:
        _, out = self._run(["diff", "--name-only", "-z"], self.operation_timeout)
        return _split_z(out)

    def untracked_files(self) -> List[str]:
        _, out = self._run(["ls-files", "--others", "--exclude-standard", "-z"], self.operation_timeout)
        return _split_z(out)

    def conflicted_files(self) -> List[str]:
        _, out = self._run(["diff", "--name-only", "--diff-filter=U", "-z"], self.operation_timeout)
        return _split_z(out)

    def current_branch(self) -> str:
        """Return the checked out branch, or "" when HEAD is detached."""
        status, out = self._run(
            ["symbolic-ref", "-q", "--short", "HEAD"], self.ref_timeout, ok_statuses=(0, 1)
        )
        return out.strip() if status == 0 else ""

    def is_detached_head(self) -> bool:
        status, _ = self._run(["symbolic-ref", "-q", "HEAD"], self.ref_timeout, ok_statuses=(0, 1))
        return status == 1

    def is_shallow(self) -> bool:
        _, out = self._run(["rev-parse", "--is-shallow-repository"], self.ref_timeout)
        return out.strip() == "true"

    def uses_lfs(self) -> bool:
        attributes = Path(self.repo_path) / ".gitattributes"
        try:
            return "filter=lfs" in attributes.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return False

    def reset_to_ref(self, ref: str) -> None:
        """Move the current branch to ``ref``, refusing to lose local changes."""
        self._run(["reset", "--keep", ref], self.operation_timeout)

    # History scan

    def scan_large_blobs(self, threshold_bytes: int) -> List[Tuple[str, int]]:
        """List blobs of at least ``threshold_bytes`` anywhere in history.

        Only object ids and sizes are returned. Paths printed by rev-list are
        dropped before the size check.
        """
        _, listing = self._run(["rev-list", "--objects", "--all"], self.fetch_timeout)
        with tempfile.TemporaryFile() as names:
            for line in listing.splitlines():
                sha = line.split(" ", 1)[0].strip()
                if sha:
                    names.write(sha.encode("ascii") + b"\n")
            names.seek(0)
            _, report = self._run(
                ["cat-file", "--batch-check=%(objectname) %(objecttype) %(objectsize)"],
                self.fetch_timeout,
                istream=names,
            )

        blobs = []
        for line in report.splitlines():
            parts = line.split()
            if len(parts) != 3 or parts[1] != "blob":
                continue
            size = int(parts[2])
            if size >= threshold_bytes:
                blobs.append((parts[0], size))
        blobs.sort(key=lambda blob: (-blob[1], blob[0]))
        return blobs

    def locate_blob(self, sha: str) -> List[Tuple[str, str]]:
        """Find the commits and paths that introduce or remove a blob.

        Walks the whole history, so it is only run on request.
        """
        status, out = self._run(
            ["rev-parse", "--verify", "--quiet", f"{sha}^{{blob}}"],
            self.ref_timeout,
            ok_statuses=(0, 1),
        )
        full_sha = out.strip()
        if status != 0 or not full_sha:
            raise GitOperationError("locate_blob", f"no blob named '{sha}'")

        _, log = self._run(
            ["log", "--all", f"--find-object={full_sha}", "--format=commit %H", "--raw", "--no-abbrev"],
            self.fetch_timeout,
        )
        hits = []
        commit = None
        for line in log.splitlines():
            if line.startswith("commit "):
                commit = line[len("commit "):].strip()
            elif line.startswith(":") and commit:
                meta, _, path = line.partition("\t")
                fields = meta.split()
                if len(fields) >= 5 and full_sha in (fields[2], fields[3]):
                    hits.append((commit, path))
        return hits
