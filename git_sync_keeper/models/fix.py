"""Fix descriptors and auto-fix bookkeeping"""
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from git_sync_keeper.models.state import RepositoryState
    from git_sync_keeper.services.operations import Operation


@dataclass(frozen=True)
class Fix:
    """One suggested remediation for a detected scenario."""
    scenario_id: str
    description: str
    priority: int  # Lower = more urgent
    auto_fixable: bool = False
    operation: Optional["Operation"] = field(default=None, compare=False)
    reason: str = ""  # Why it is (not) auto-fixable
    manual_hint: str = ""  # Shown to humans, never executed
    branch: Optional[str] = None

    @property
    def key(self) -> str:
        """Identity of a fix across repeated suggestion passes.

        Fixes that run the same operation share a key even when the scenario
        around them changes between passes.
        """
        if self.operation is not None:
            return self.operation.describe()
        return f"{self.scenario_id}: {self.description}"


@dataclass
class AutoFixOptions:
    """Which fixes auto_fix may apply and how it reacts to failure."""
    fix_id: Optional[str] = None  # Only apply fixes for this scenario ID
    skip_ids: Sequence[str] = ()
    stop_on_error: bool = False
    max_passes: int = 3

    def __post_init__(self):
        if self.max_passes < 1:
            raise ValueError(f"max_passes must be at least 1, got {self.max_passes}")
        self.skip_ids = tuple(self.skip_ids)

    def selects(self, fix: Fix) -> bool:
        if self.fix_id is not None and fix.scenario_id != self.fix_id:
            return False
        return fix.scenario_id not in self.skip_ids


@dataclass
class AutoFixResult:
    """Outcome of one auto_fix call."""
    applied: List[Fix] = field(default_factory=list)
    failed: List[Tuple[Fix, Exception]] = field(default_factory=list)
    skipped: List[Fix] = field(default_factory=list)
    remaining: List[Fix] = field(default_factory=list)  # Selected fixes still suggested for final_state
    final_state: Optional["RepositoryState"] = None

    @property
    def errors(self) -> List[Exception]:
        return [error for _, error in self.failed]

    @property
    def converged(self) -> bool:
        """True when nothing failed and the re-detected state needs no selected fix."""
        return not self.failed and not self.remaining
