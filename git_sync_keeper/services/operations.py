"""Remediation operations and their safety checks.

Operations move through a fixed lifecycle::

    PROPOSED -> VALIDATED -> SUCCEEDED
                          -> FAILED
             -> VALIDATION_FAILED

``execute()`` refuses to run anything that has not passed ``validate()``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from git_sync_keeper.exceptions import (
    ExecutionError,
    GitOperationError,
    OperationNotValidatedError,
    RollbackRefusedError,
    ValidationError,
)
from git_sync_keeper.logging_config import get_logger

if TYPE_CHECKING:
    from git_sync_keeper.models.state import RepositoryState
    from git_sync_keeper.services.git.probe import GitProbe

logger = get_logger(__name__)


class OperationStatus(Enum):
    """Lifecycle of an operation."""
    PROPOSED = "proposed"
    VALIDATED = "validated"
    VALIDATION_FAILED = "validation-failed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Operation:
    """Base class for every remediation operation."""

    # Only operations that set this get an automatic rollback after a failure
    rollback_safe = False

    def __post_init__(self):
        self.status = OperationStatus.PROPOSED
        self.error: Optional[Exception] = None

    def describe(self) -> str:
        raise NotImplementedError

    def validate(self, state: "RepositoryState", probe: "GitProbe") -> None:
        """Check the safety preconditions against a fresh state and the live repository.

        Raises:
            ValidationError: A precondition does not hold. Nothing was changed.
        """
        try:
            self._check(state, probe)
        except ValidationError as e:
            self._fail_validation(e)
            raise
        except GitOperationError as e:
            error = ValidationError(self.describe(), f"could not check preconditions: {e}")
            self._fail_validation(error)
            raise error from e
        self.status = OperationStatus.VALIDATED
        logger.debug(f"Validated: {self.describe()}")

    def _fail_validation(self, error: ValidationError) -> None:
        self.status = OperationStatus.VALIDATION_FAILED
        self.error = error
        logger.warning(f"Refused '{self.describe()}': {error.message}")

    def execute(self, probe: "GitProbe") -> None:
        """Run a validated operation.

        Raises:
            OperationNotValidatedError: validate() has not succeeded first.
            ExecutionError: The git invocation failed.
        """
        if self.status != OperationStatus.VALIDATED:
            raise OperationNotValidatedError(self.describe(), self.status.value)
        try:
            self._apply(probe)
        except ExecutionError as e:
            self.status = OperationStatus.FAILED
            self.error = e
            raise
        except GitOperationError as e:
            self.status = OperationStatus.FAILED
            self.error = ExecutionError(self.describe(), str(e))
            raise self.error from e
        self.status = OperationStatus.SUCCEEDED
        logger.info(f"Done: {self.describe()}")

    def rollback(self, probe: "GitProbe") -> None:
        raise RollbackRefusedError(self.describe(), "automatic rollback is not supported")

    def _check(self, state: "RepositoryState", probe: "GitProbe") -> None:
        raise NotImplementedError

    def _apply(self, probe: "GitProbe") -> None:
        raise NotImplementedError


def _require_configured(operation: Operation, remote: str, probe: "GitProbe") -> None:
    if remote not in probe.list_remotes():
        raise ValidationError(operation.describe(), f"remote '{remote}' is not configured")


def _require_reachable(operation: Operation, remote: str, probe: "GitProbe") -> None:
    if not probe.can_reach_remote(remote):
        raise ValidationError(operation.describe(), f"remote '{remote}' is unreachable")


def _require_clean_tree(operation: Operation, state: "RepositoryState") -> None:
    tree = state.working_tree
    if tree is None:
        raise ValidationError(operation.describe(), "there is no local working copy")
    if not tree.clean:
        raise ValidationError(
            operation.describe(),
            f"working tree has uncommitted changes ({len(tree.staged_files)} staged, "
            f"{len(tree.unstaged_files)} unstaged)",
        )


@dataclass
class FetchOperation(Operation):
    """Fetch one remote. Read-only for local branches."""
    remote: str

    def describe(self) -> str:
        return f"fetch {self.remote}"

    def _check(self, state, probe):
        _require_configured(self, self.remote, probe)
        _require_reachable(self, self.remote, probe)

    def _apply(self, probe):
        probe.fetch(self.remote)

    def rollback(self, probe):
        # Remote-tracking refs only; the next fetch restores them anyway
        logger.debug(f"Nothing to roll back for '{self.describe()}'")


@dataclass
class PushOperation(Operation):
    """Fast-forward push of one explicitly named local branch."""
    remote: str
    branch: str

    @property
    def refspec(self) -> str:
        return f"refs/heads/{self.branch}:refs/heads/{self.branch}"

    def describe(self) -> str:
        return f"push {self.branch} to {self.remote}"

    def _check(self, state, probe):
        if not self.branch or self.branch in ("HEAD", "@") or self.branch.startswith("refs/"):
            raise ValidationError(self.describe(), "an explicit local branch name is required")
        _require_clean_tree(self, state)
        if state.corruption is not None and state.corruption.has_corruption:
            raise ValidationError(
                self.describe(), "history holds large binaries, clean it up before pushing"
            )
        _require_configured(self, self.remote, probe)

        local_tip = probe.local_branch_tip(self.branch)
        if not local_tip:
            raise ValidationError(self.describe(), f"local branch '{self.branch}' does not exist")
        _require_reachable(self, self.remote, probe)

        remote_tip = probe.remote_branch_tip(self.remote, self.branch)
        if remote_tip == local_tip:
            raise ValidationError(self.describe(), f"{self.remote} is already up to date")
        if remote_tip and not probe.is_ancestor(remote_tip, local_tip):
            raise ValidationError(
                self.describe(), f"{self.remote}/{self.branch} is not an ancestor, push is not a fast-forward"
            )

    def _apply(self, probe):
        probe.push(self.remote, self.refspec)

    def rollback(self, probe):
        raise RollbackRefusedError(self.describe(), "a published push cannot be undone automatically")


@dataclass
class ResetOperation(Operation):
    """Move the checked out branch forward to ``ref``.

    Only a fast-forward is accepted: the current tip must be an ancestor of
    the target, so no commit on the branch is discarded.
    """
    ref: str
    branch: Optional[str] = None  # Branch that must be checked out

    def __post_init__(self):
        super().__post_init__()
        self._target = ""

    def describe(self) -> str:
        return f"fast-forward {self.branch or 'HEAD'} to {self.ref}"

    def _check(self, state, probe):
        if not self.ref:
            raise ValidationError(self.describe(), "no target ref given")
        _require_clean_tree(self, state)

        current = probe.current_branch()
        if not current:
            raise ValidationError(self.describe(), "HEAD is detached")
        if self.branch and current != self.branch:
            raise ValidationError(self.describe(), f"'{self.branch}' is not checked out (on '{current}')")

        head = probe.resolve_ref("HEAD")
        if not head:
            raise ValidationError(self.describe(), f"'{current}' has no commits yet")
        target = probe.resolve_ref(self.ref)
        if not target:
            raise ValidationError(self.describe(), f"'{self.ref}' does not resolve to a commit")
        if head == target:
            raise ValidationError(self.describe(), f"'{current}' is already at {self.ref}")
        if not probe.is_ancestor(head, target):
            raise ValidationError(
                self.describe(),
                f"'{current}' is not an ancestor of {self.ref}, resetting would discard commits",
            )
        # Pin the commit that was checked, the ref may move before execution
        self._target = target

    def _apply(self, probe):
        probe.reset_to_ref(self._target)

    def rollback(self, probe):
        raise RollbackRefusedError(
            self.describe(), "restore the previous tip from the reflog (git reset --keep ORIG_HEAD)"
        )


@dataclass
class CompositeOperation(Operation):
    """Ordered sub-operations, all validated before any runs."""
    operations: List[Operation]
    stop_on_error: bool = True

    def describe(self) -> str:
        return " then ".join(op.describe() for op in self.operations)

    def _check(self, state, probe):
        if not self.operations:
            raise ValidationError(self.describe() or "composite", "no steps to run")
        for op in self.operations:
            op.validate(state, probe)

    def _apply(self, probe):
        failures = []
        for op in self.operations:
            try:
                op.execute(probe)
            except ExecutionError as e:
                failures.append(e)
                if self.stop_on_error:
                    break
        if failures:
            raise ExecutionError(self.describe(), "; ".join(str(f) for f in failures))

    def rollback(self, probe):
        raise RollbackRefusedError(
            self.describe(), "multi-step operations are never rolled back, inspect each step"
        )
