"""Validation and execution of suggested fixes"""

from typing import TYPE_CHECKING, Optional, Set

from git_sync_keeper.exceptions import (
    ExecutionError,
    NotAutoFixableError,
    OperationError,
    ValidationError,
)
from git_sync_keeper.logging_config import get_logger
from git_sync_keeper.models.fix import AutoFixOptions, AutoFixResult, Fix
from git_sync_keeper.services.fix_suggester import suggest_fixes

if TYPE_CHECKING:
    from git_sync_keeper.models.state import RepositoryState
    from git_sync_keeper.services.classifier import Classifier
    from git_sync_keeper.services.git.probe import GitProbe

logger = get_logger(__name__)


class OperationExecutor:
    """The only writer: applies one validated operation at a time."""

    def __init__(self, probe: "GitProbe", classifier: "Classifier"):
        self.probe = probe
        self.classifier = classifier

    def apply(self, fix: Fix, state: "RepositoryState") -> None:
        """Validate a fix against ``state`` and run it.

        ``state`` must have been detected after the last change to the
        repository.

        Raises:
            NotAutoFixableError: The fix needs a human.
            ValidationError: A safety precondition failed; nothing was changed.
            ExecutionError: Git failed while running the operation.
        """
        operation = fix.operation
        if not fix.auto_fixable or operation is None:
            raise NotAutoFixableError(fix.scenario_id, fix.reason or "needs manual resolution")

        operation.validate(state, self.probe)
        try:
            operation.execute(self.probe)
        except ExecutionError:
            if operation.rollback_safe:
                try:
                    operation.rollback(self.probe)
                except OperationError as rollback_error:
                    logger.error(f"Rollback of '{operation.describe()}' failed: {rollback_error}")
            raise
        logger.info(f"Applied {fix.scenario_id}: {operation.describe()}")

    def auto_fix(
        self,
        state: "RepositoryState",
        options: Optional[AutoFixOptions] = None,
    ) -> AutoFixResult:
        """Apply every auto-fixable fix, re-detecting between mutations.

        Each pass suggests fixes from the latest state and applies the
        selected auto-fixable ones serially. Validation always sees a state
        detected after the previous change. Passes repeat while they make
        progress, so fixes unlocked by an earlier one (a re-fetch, say) are
        picked up, up to ``options.max_passes``.
        """
        options = options or AutoFixOptions()
        result = AutoFixResult()
        attempted: Set[str] = set()
        current = state
        # The caller's state may predate the call; re-detect before the first change
        needs_detect = True

        for pass_number in range(1, options.max_passes + 1):
            runnable = [
                fix for fix in suggest_fixes(current)
                if fix.auto_fixable and fix.operation is not None
                and options.selects(fix) and fix.key not in attempted
            ]
            if not runnable:
                break
            logger.info(f"Auto-fix pass {pass_number}: {len(runnable)} fix(es)")

            applied_before = len(result.applied)
            for fix in runnable:
                attempted.add(fix.key)
                if needs_detect:
                    current = self.classifier.detect(fetch=True)
                    needs_detect = False
                try:
                    self.apply(fix, current)
                except ValidationError as e:
                    logger.warning(f"Skipping {fix.scenario_id} ({fix.operation.describe()}): {e}")
                    result.failed.append((fix, e))
                    if options.stop_on_error:
                        return self._finish(result, current, needs_detect, options)
                    continue
                except ExecutionError as e:
                    logger.error(f"{fix.scenario_id} failed: {e}")
                    result.failed.append((fix, e))
                    needs_detect = True
                    if options.stop_on_error:
                        return self._finish(result, current, needs_detect, options)
                    continue
                result.applied.append(fix)
                needs_detect = True

            if len(result.applied) == applied_before:
                break
            current = self.classifier.detect(fetch=True)
            needs_detect = False

        return self._finish(result, current, needs_detect, options)

    def _finish(
        self,
        result: AutoFixResult,
        current: "RepositoryState",
        needs_detect: bool,
        options: AutoFixOptions,
    ) -> AutoFixResult:
        # Convergence is judged on a state detected after the last change, never on the caller's
        if needs_detect:
            current = self.classifier.detect(fetch=True)
        result.final_state = current
        result.remaining = [fix for fix in suggest_fixes(current) if options.selects(fix)]
        result.skipped = [fix for fix in result.remaining if not fix.auto_fixable]
        logger.info(
            f"Auto-fix applied {len(result.applied)}, failed {len(result.failed)}, "
            f"left {len(result.skipped)} for manual resolution"
        )
        return result
