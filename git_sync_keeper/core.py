"""Entry points tying the probe, classifier, suggester and executor together"""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from git_sync_keeper.config import Config
from git_sync_keeper.logging_config import get_logger
from git_sync_keeper.models.fix import AutoFixOptions, AutoFixResult, Fix
from git_sync_keeper.models.state import RepositoryState
from git_sync_keeper.services.classifier import Classifier
from git_sync_keeper.services.executor import OperationExecutor
from git_sync_keeper.services.fix_suggester import suggest_fixes as _suggest_fixes
from git_sync_keeper.services.git.probe import GitProbe

logger = get_logger(__name__)


class SyncKeeper:
    """Detect and repair the relationship between a clone and its two remotes."""

    def __init__(self, repo_path: Union[str, Path], config: Union[Config, dict]):
        """Initialize the keeper.

        Args:
            repo_path: Path to the local working copy (it may not exist yet)
            config: Config object, or a dictionary accepted by Config.from_dict

        Raises:
            GitVersionError: git is missing or older than 2.30
        """
        self.config = config if isinstance(config, Config) else Config.from_dict(config)
        self.repo_path = str(repo_path)
        self.probe = GitProbe(self.repo_path, self.config)
        self.git_version = self.probe.check_git_version()
        self.classifier = Classifier(self.probe, self.config)
        self.executor = OperationExecutor(self.probe, self.classifier)
        logger.debug(
            f"SyncKeeper for {self.probe.repo_path} (core={self.config.core_remote}, "
            f"github={self.config.github_remote}, git {'.'.join(map(str, self.git_version))})"
        )

    def detect(self, fetch: Optional[bool] = None) -> RepositoryState:
        return self.classifier.detect(fetch=fetch)

    def suggest_fixes(self, state: Optional[RepositoryState] = None) -> List[Fix]:
        return _suggest_fixes(state if state is not None else self.detect())

    def auto_fix(
        self,
        state: Optional[RepositoryState] = None,
        options: Optional[AutoFixOptions] = None,
    ) -> AutoFixResult:
        return self.executor.auto_fix(state if state is not None else self.detect(), options)

    def locate_large_binary(self, sha: str) -> List[Tuple[str, str]]:
        """Resolve a large blob to the commits and paths that touch it."""
        return self.classifier.locate_large_binary(sha)


def detect(
    repo_path: Union[str, Path],
    core_remote: str,
    github_remote: str,
    fetch_before_check: bool = True,
    skip_corruption: bool = False,
    **options,
) -> RepositoryState:
    """Detect the state of ``repo_path`` against the two named remotes."""
    config = Config(
        core_remote=core_remote,
        github_remote=github_remote,
        fetch_before_check=fetch_before_check,
        skip_corruption=skip_corruption,
        **options,
    )
    return SyncKeeper(repo_path, config).detect()


def suggest_fixes(state: RepositoryState) -> List[Fix]:
    """Suggest fixes for a detected state, most urgent first."""
    return _suggest_fixes(state)


def auto_fix(
    state: RepositoryState,
    fix_id: Optional[str] = None,
    skip_ids: Sequence[str] = (),
    stop_on_error: bool = False,
    **options,
) -> AutoFixResult:
    """Apply the auto-fixable fixes for ``state`` to the repository it came from.

    Extra keyword arguments are Config fields used for re-detection.
    """
    config = Config(core_remote=state.core_remote, github_remote=state.github_remote, **options)
    keeper = SyncKeeper(state.repo_path, config)
    return keeper.auto_fix(
        state,
        AutoFixOptions(fix_id=fix_id, skip_ids=skip_ids, stop_on_error=stop_on_error),
    )
