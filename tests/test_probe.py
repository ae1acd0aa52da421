"""Tests for GitProbe"""
import os
import tempfile
from unittest.mock import patch

import git
import pytest

from git_sync_keeper.exceptions import GitOperationError, GitTimeoutError, GitVersionError
from git_sync_keeper.services.git.probe import GitProbe


class TestGitProbeInit:
    """Test locating the working copy."""

    def test_finds_top_level_from_subdirectory(self, git_repo, commit):
        """Test a path inside the work tree resolves to its top level."""
        commit(git_repo, "src/module.py")
        probe = GitProbe(os.path.join(git_repo.working_tree_dir, "src"))
        exists, path = probe.local_repository()
        assert exists is True
        assert path == os.path.abspath(git_repo.working_tree_dir)

    def test_missing_path_is_not_a_repository(self, temp_dir):
        """Test a missing directory reports no local repository."""
        probe = GitProbe(temp_dir / "nowhere")
        assert probe.local_repository() == (False, str(temp_dir / "nowhere"))

    def test_bare_repository_is_not_a_working_copy(self, bare_remotes):
        """Test a bare repository does not count as local."""
        core_path, _ = bare_remotes
        probe = GitProbe(core_path)
        assert probe.local_exists is False

    def test_probes_share_lock_per_path(self, git_repo):
        """Test two probes of one repository serialize on the same lock."""
        first = GitProbe(git_repo.working_tree_dir)
        second = GitProbe(os.path.join(git_repo.working_tree_dir, "."))
        assert first._lock is second._lock

    def test_symlinked_path_shares_lock(self, git_repo, temp_dir):
        """Test a probe reached through a symlink uses the target's lock."""
        link = temp_dir / "link-to-local"
        os.symlink(git_repo.working_tree_dir, link)
        direct = GitProbe(git_repo.working_tree_dir)
        linked = GitProbe(link)
        assert linked.local_exists is True
        assert direct._lock is linked._lock

    def test_timeouts_read_from_config(self, git_repo, sync_config):
        """Test deadlines come from the configuration."""
        sync_config.fetch_timeout = 99.0
        probe = GitProbe(git_repo.working_tree_dir, sync_config)
        assert probe.fetch_timeout == 99.0
        assert probe.ref_timeout == sync_config.ref_timeout


class TestGitProbeVersion:
    """Test the git version check."""

    def test_current_git_is_accepted(self, git_repo):
        """Test the installed git passes the version check."""
        version = GitProbe(git_repo.working_tree_dir).check_git_version()
        assert version[:2] >= (2, 30)

    def test_old_git_is_rejected(self, git_repo):
        """Test an old git raises GitVersionError."""
        probe = GitProbe(git_repo.working_tree_dir)
        with patch("git.Git.version_info", new=(2, 17, 1)):
            with pytest.raises(GitVersionError, match="2.17.1"):
                probe.check_git_version()


class TestGitProbeRefs:
    """Test ref resolution and history comparison."""

    def test_resolve_ref(self, git_repo):
        """Test resolving existing and missing refs."""
        probe = GitProbe(git_repo.working_tree_dir)
        assert probe.resolve_ref("HEAD") == git_repo.head.commit.hexsha
        assert probe.local_branch_tip("main") == git_repo.head.commit.hexsha
        assert probe.resolve_ref("refs/heads/nope") == ""
        assert probe.resolve_ref("") == ""

    def test_count_commits(self, git_repo, commit):
        """Test counting commits on one side only."""
        base = git_repo.head.commit.hexsha
        commit(git_repo, "a.txt")
        tip = commit(git_repo, "b.txt")
        probe = GitProbe(git_repo.working_tree_dir)
        assert probe.count_commits(tip, base) == 2
        assert probe.count_commits(base, tip) == 0

    def test_count_commits_empty_tip_is_empty_history(self, git_repo, commit):
        """Test an empty tip stands for a branch with no commits."""
        tip = commit(git_repo, "a.txt")
        probe = GitProbe(git_repo.working_tree_dir)
        assert probe.count_commits(tip, "") == 2
        assert probe.count_commits("", tip) == 0

    def test_is_ancestor(self, git_repo, commit):
        """Test ancestry in both directions."""
        base = git_repo.head.commit.hexsha
        tip = commit(git_repo, "a.txt")
        probe = GitProbe(git_repo.working_tree_dir)
        assert probe.is_ancestor(base, tip) is True
        assert probe.is_ancestor(tip, base) is False

    def test_list_branches(self, synced_repo):
        """Test listing local and remote-tracking branches."""
        synced_repo.git.branch("feature/x")
        probe = GitProbe(synced_repo.working_tree_dir)
        assert probe.list_local_branches() == ["feature/x", "main"]
        assert probe.list_remote_branches("origin") == ["main"]
        assert probe.remote_head_branch("origin") == "main"
        assert probe.remote_head_branch("github") == ""


class TestGitProbeWorkingTree:
    """Test working tree inspection."""

    def test_clean_tree(self, git_repo):
        """Test a fresh commit leaves nothing to report."""
        probe = GitProbe(git_repo.working_tree_dir)
        assert probe.staged_files() == []
        assert probe.unstaged_files() == []
        assert probe.untracked_files() == []
        assert probe.current_branch() == "main"
        assert probe.is_detached_head() is False
        assert probe.is_shallow() is False

    def test_staged_unstaged_untracked(self, git_repo, temp_dir):
        """Test each kind of change is listed separately."""
        root = temp_dir / "local"
        (root / "README.md").write_text("changed\n")
        (root / "new file.txt").write_text("staged\n")
        git_repo.index.add(["new file.txt"])
        (root / "scratch.txt").write_text("untracked\n")

        probe = GitProbe(git_repo.working_tree_dir)
        assert probe.staged_files() == ["new file.txt"]
        assert probe.unstaged_files() == ["README.md"]
        assert probe.untracked_files() == ["scratch.txt"]

    def test_conflicted_files(self, git_repo, commit):
        """Test paths left unmerged by a conflicting merge are listed."""
        git_repo.git.checkout("-b", "other")
        commit(git_repo, "README.md", "other side\n")
        git_repo.git.checkout("main")
        commit(git_repo, "README.md", "main side\n")
        with pytest.raises(git.exc.GitCommandError):
            git_repo.git.merge("other")

        probe = GitProbe(git_repo.working_tree_dir)
        assert probe.conflicted_files() == ["README.md"]

    def test_detached_head(self, git_repo):
        """Test detecting a detached HEAD."""
        git_repo.git.checkout("--detach")
        probe = GitProbe(git_repo.working_tree_dir)
        assert probe.is_detached_head() is True
        assert probe.current_branch() == ""

    def test_uses_lfs(self, git_repo, temp_dir):
        """Test LFS detection from .gitattributes."""
        probe = GitProbe(git_repo.working_tree_dir)
        assert probe.uses_lfs() is False
        (temp_dir / "local" / ".gitattributes").write_text("*.bin filter=lfs diff=lfs merge=lfs -text\n")
        assert probe.uses_lfs() is True


class TestGitProbeRemotes:
    """Test remote access against local bare repositories."""

    def test_list_remotes_and_urls(self, synced_repo, bare_remotes):
        """Test configured remotes and their URLs."""
        core_path, _ = bare_remotes
        probe = GitProbe(synced_repo.working_tree_dir)
        assert sorted(probe.list_remotes()) == ["github", "origin"]
        assert probe.remote_url("origin") == str(core_path)
        assert probe.remote_url("missing") == ""

    def test_reachability(self, synced_repo, temp_dir, bare_remotes):
        """Test reachable and unreachable remotes."""
        probe = GitProbe(synced_repo.working_tree_dir)
        assert probe.can_reach_remote("origin") is True
        assert probe.can_reach_url(str(bare_remotes[1])) is True
        synced_repo.create_remote("gone", str(temp_dir / "gone.git"))
        assert probe.can_reach_remote("gone") is False

    def test_url_check_runs_outside_process_cwd(self, git_repo, bare_remotes):
        """Test checking a bare URL runs git from a fixed directory."""
        probe = GitProbe(git_repo.working_tree_dir)
        with patch.object(probe, "_execute", return_value=(0, "")) as execute:
            assert probe.can_reach_url(str(bare_remotes[0])) is True
        runner = execute.call_args.args[0]
        assert runner.working_dir == tempfile.gettempdir()

    def test_fetch_failure_raises(self, synced_repo, temp_dir):
        """Test a failed fetch surfaces as GitOperationError."""
        synced_repo.create_remote("gone", str(temp_dir / "gone.git"))
        probe = GitProbe(synced_repo.working_tree_dir)
        with pytest.raises(GitOperationError) as exc_info:
            probe.fetch("gone")
        assert exc_info.value.operation == "fetch"
        assert exc_info.value.status not in (None, 0)

    def test_push_refuses_implicit_and_forced_refspecs(self, synced_repo):
        """Test HEAD, @ and + refspecs never reach git."""
        probe = GitProbe(synced_repo.working_tree_dir)
        for refspec in ("HEAD", "@", "+refs/heads/main:refs/heads/main", ":refs/heads/main"):
            with pytest.raises(ValueError):
                probe.push("origin", refspec)

    def test_push_explicit_branch(self, synced_repo, commit):
        """Test pushing an explicit refspec updates the remote."""
        tip = commit(synced_repo, "new.txt")
        probe = GitProbe(synced_repo.working_tree_dir)
        probe.push("origin", "refs/heads/main:refs/heads/main")
        probe.fetch("origin")
        assert probe.remote_branch_tip("origin", "main") == tip


class TestGitProbeDeadlines:
    """Test timeout handling."""

    def test_timeout_marker_raises_timeout_error(self, git_repo):
        """Test a killed command is reported as GitTimeoutError."""
        probe = GitProbe(git_repo.working_tree_dir)
        killed = (-9, "", 'Timeout: the command "git fetch" did not complete in 30 secs.')
        with patch.object(probe._git, "execute", return_value=killed):
            with pytest.raises(GitTimeoutError) as exc_info:
                probe.fetch("origin")
        assert exc_info.value.timeout == probe.fetch_timeout

    def test_prompts_are_disabled(self, git_repo):
        """Test every invocation runs non-interactively with a fixed locale."""
        probe = GitProbe(git_repo.working_tree_dir)
        with patch.object(probe._git, "execute", return_value=(0, "main", "")) as execute:
            probe.current_branch()
        env = execute.call_args.kwargs["env"]
        assert env["GIT_TERMINAL_PROMPT"] == "0"
        assert env["LC_ALL"] == "C"
        assert execute.call_args.kwargs["kill_after_timeout"] == probe.ref_timeout


class TestGitProbeBlobs:
    """Test the large blob scan."""

    def test_scan_reports_sha_and_size_only(self, git_repo, commit):
        """Test blobs over the threshold are listed largest first."""
        commit(git_repo, "small.txt", "x" * 100)
        commit(git_repo, "medium.bin", "m" * 3000)
        commit(git_repo, "large.bin", "l" * 5000)
        probe = GitProbe(git_repo.working_tree_dir)

        blobs = probe.scan_large_blobs(2000)
        assert [size for _, size in blobs] == [5000, 3000]
        assert all(len(sha) == 40 for sha, _ in blobs)

    def test_locate_blob(self, git_repo, commit):
        """Test mapping a blob back to its commit and path."""
        tip = commit(git_repo, "data/large.bin", "l" * 5000)
        probe = GitProbe(git_repo.working_tree_dir)
        sha, _ = probe.scan_large_blobs(4000)[0]

        assert probe.locate_blob(sha) == [(tip, "data/large.bin")]
        with pytest.raises(GitOperationError):
            probe.locate_blob("0" * 40)
