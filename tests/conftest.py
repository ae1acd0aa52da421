"""Pytest fixtures for git-sync-keeper tests"""
import tempfile
from pathlib import Path

import git
import pytest

from git_sync_keeper.config import Config
from git_sync_keeper.models.state import (
    CorruptionState,
    ExistenceState,
    RepositoryState,
    WorkingTreeState,
)

CORE = "origin"
GITHUB = "github"


def configure_user(repo):
    """Give a repository a commit identity."""
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")


def commit_file(repo, filename, content=None, message=None):
    """Write a file into a work tree and commit it. Returns the commit sha."""
    path = Path(repo.working_tree_dir) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content if content is not None else f"{filename}\n")
    repo.index.add([filename])
    return repo.index.commit(message or f"Add {filename}").hexsha


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sync_config():
    """Create a configuration naming the two test remotes."""
    return Config(core_remote=CORE, github_remote=GITHUB)


@pytest.fixture
def empty_repo(temp_dir):
    """Create a fresh repository with no commits and no remotes."""
    repo_path = temp_dir / "fresh"
    repo = git.Repo.init(repo_path, initial_branch="main")
    configure_user(repo)
    yield repo
    repo.close()


@pytest.fixture
def git_repo(temp_dir):
    """Create a local repository with one commit on main and no remotes."""
    repo_path = temp_dir / "local"
    repo = git.Repo.init(repo_path, initial_branch="main")
    configure_user(repo)
    commit_file(repo, "README.md", "# Test Repository\n", "Initial commit")
    yield repo
    repo.close()


@pytest.fixture
def bare_remotes(temp_dir):
    """Create the bare Core and GitHub repositories."""
    core = git.Repo.init(temp_dir / "core.git", bare=True, initial_branch="main")
    github = git.Repo.init(temp_dir / "github.git", bare=True, initial_branch="main")
    yield Path(core.git_dir), Path(github.git_dir)
    core.close()
    github.close()


@pytest.fixture
def synced_repo(git_repo, bare_remotes):
    """Local repository with main pushed to both remotes (S1)."""
    core_path, github_path = bare_remotes
    git_repo.create_remote(CORE, str(core_path))
    git_repo.create_remote(GITHUB, str(github_path))
    git_repo.git.push(CORE, "main")
    git_repo.git.push(GITHUB, "main")
    git_repo.git.fetch(CORE)
    git_repo.git.fetch(GITHUB)
    git_repo.git.remote("set-head", CORE, "main")
    return git_repo


@pytest.fixture
def advance_remote(temp_dir):
    """Return a function that pushes new commits to a bare remote from a separate clone."""
    clones = []

    def _advance(remote_path, count=1, branch="main", prefix="remote"):
        clone_path = temp_dir / f"clone-{len(clones)}"
        clone = git.Repo.clone_from(str(remote_path), clone_path)
        clones.append(clone)
        configure_user(clone)
        if branch in [head.name for head in clone.heads]:
            clone.git.checkout(branch)
        else:
            clone.git.checkout("-b", branch, f"origin/{branch}")
        for i in range(count):
            commit_file(clone, f"{prefix}-{len(clones)}-{i}.txt")
        clone.git.push("origin", branch)
        return clone.head.commit.hexsha

    yield _advance
    for clone in clones:
        clone.close()


def make_state(
    sync=None,
    branches=(),
    working_tree=None,
    corruption=None,
    existence_id="E1",
    core_exists=True,
    github_exists=True,
    warnings=(),
    default_branch="main",
    local_exists=True,
):
    """Build a RepositoryState without touching git."""
    existence = ExistenceState(
        id=existence_id,
        description=existence_id,
        local_exists=local_exists,
        core_exists=core_exists,
        github_exists=github_exists,
        core_remote=CORE,
        github_remote=GITHUB,
        local_path="/repo" if local_exists else None,
    )
    if local_exists and working_tree is None:
        working_tree = WorkingTreeState(id="W1", description="clean")
    if local_exists and corruption is None:
        corruption = CorruptionState(id="C1", description="healthy", checked=True, threshold_mb=10.0)
    return RepositoryState(
        repo_path="/repo",
        core_remote=CORE,
        github_remote=GITHUB,
        existence=existence,
        working_tree=working_tree,
        corruption=corruption,
        sync=sync,
        branches=tuple(branches),
        warnings=tuple(warnings),
        default_branch=default_branch,
    )


@pytest.fixture
def state_factory():
    """Return the RepositoryState builder."""
    return make_state


@pytest.fixture
def commit():
    """Return the commit helper."""
    return commit_file
