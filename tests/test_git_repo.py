"""
Tests for GitRepository against real temporary repositories.

Run with:
    pytest tests/test_git_repo.py -v
"""

import os
import stat
import sys

import pytest
from git import Repo

from gitsc.core.diff_filter import DiffFilter
from gitsc.core.errors import (
    HasMergeCommitsError,
    InvalidRewordTargetError,
    NoBaseBranchError,
    NoCommitsToSquashError,
    NotGitRepositoryError,
    OnBaseBranchError,
)
from gitsc.core.git_repo import GitRepository


def write(repo, name, content):
    path = os.path.join(repo.working_tree_dir, name)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    mode = "wb" if isinstance(content, bytes) else "w"
    with open(path, mode) as f:
        f.write(content)
    return path


def commit_all(repo, message):
    repo.git.add("-A")
    repo.git.commit("-m", message)


@pytest.fixture
def repo(tmp_path):
    repo = Repo.init(tmp_path / "repo")
    repo.git.symbolic_ref("HEAD", "refs/heads/main")
    with repo.config_writer() as cw:
        cw.set_value("user", "name", "Test User")
        cw.set_value("user", "email", "test@example.com")
        cw.set_value("commit", "gpgsign", "false")
    return repo


@pytest.fixture
def git_repo(repo):
    return GitRepository(repo.working_tree_dir)


# ---------------------------------------------------------------------------
# Opening
# ---------------------------------------------------------------------------

class TestOpen:

    def test_not_a_repository(self, tmp_path):
        plain = tmp_path / "plain"
        plain.mkdir()
        with pytest.raises(NotGitRepositoryError):
            GitRepository(str(plain))

    def test_subdirectory_finds_repository(self, repo):
        sub = os.path.join(repo.working_tree_dir, "pkg", "sub")
        os.makedirs(sub)
        assert GitRepository(sub).working_dir == repo.working_tree_dir


# ---------------------------------------------------------------------------
# Diffs
# ---------------------------------------------------------------------------

class TestDiffs:

    def test_empty_repository(self, git_repo):
        assert git_repo.has_commits() is False
        assert git_repo.get_recent_commits(2) == []
        assert git_repo.get_staged_diff() == ""

    def test_staged_diff(self, repo, git_repo):
        write(repo, "hello.txt", "hello\n")
        repo.git.add("hello.txt")
        diff = git_repo.get_staged_diff()
        assert "diff --git a/hello.txt b/hello.txt" in diff
        assert "+hello" in diff
        assert git_repo.get_staged_files() == ["hello.txt"]

    def test_binary_files_dropped(self, repo, git_repo):
        write(repo, "logo.png", b"\x89PNG\x00\x01\x02\x00")
        write(repo, "app.py", "print('hi')\n")
        repo.git.add("-A")
        diff = git_repo.get_staged_diff()
        assert "logo.png" not in diff
        assert "app.py" in diff

    def test_exclude_patterns(self, repo):
        write(repo, "poetry.lock", "locked\n")
        write(repo, "app.py", "x = 1\n")
        repo.git.add("-A")
        filtered = GitRepository(repo.working_tree_dir, DiffFilter(["*.lock"]))
        diff = filtered.get_staged_diff()
        assert "poetry.lock" not in diff
        assert "app.py" in diff

    def test_unstaged_diff(self, repo, git_repo):
        write(repo, "a.txt", "one\n")
        commit_all(repo, "init")
        write(repo, "a.txt", "two\n")
        assert git_repo.get_staged_diff() == ""
        assert "+two" in git_repo.get_unstaged_diff()

    def test_last_commit_diff(self, repo, git_repo):
        write(repo, "a.txt", "one\n")
        commit_all(repo, "init")
        assert "+one" in git_repo.get_last_commit_diff()

        write(repo, "a.txt", "two\n")
        commit_all(repo, "change")
        diff = git_repo.get_last_commit_diff()
        assert "-one" in diff
        assert "+two" in diff


# ---------------------------------------------------------------------------
# History and commits
# ---------------------------------------------------------------------------

class TestCommits:

    def test_recent_commits_newest_first(self, repo, git_repo):
        for i in range(4):
            write(repo, "f.txt", f"{i}\n")
            commit_all(repo, f"feat: step {i}")

        assert git_repo.get_recent_commits(2) == ["feat: step 3", "feat: step 2"]
        assert git_repo.get_recent_commits(2, skip=1) == ["feat: step 2", "feat: step 1"]
        assert git_repo.get_recent_commits(0) == []

    def test_commit_and_amend(self, repo, git_repo):
        write(repo, "a.txt", "a\n")
        git_repo.stage_all()
        sha = git_repo.commit("feat: first")
        assert repo.head.commit.hexsha == sha
        assert repo.head.commit.message.strip() == "feat: first"

        amended = git_repo.amend_commit("fix: better message")
        assert amended != sha
        assert repo.head.commit.message.strip() == "fix: better message"
        assert len(list(repo.iter_commits())) == 1

    def test_stage_all_includes_untracked(self, repo, git_repo):
        write(repo, "new.txt", "new\n")
        git_repo.stage_all()
        assert git_repo.get_staged_files() == ["new.txt"]

    def test_branch_and_remote(self, repo, git_repo):
        write(repo, "a.txt", "a\n")
        commit_all(repo, "init")
        assert git_repo.get_current_branch() == "main"
        assert git_repo.get_remote_url() is None

        repo.create_remote("origin", "git@example.com:team/project.git")
        assert git_repo.get_remote_url() == "git@example.com:team/project.git"

    def test_detached_head_has_no_branch(self, repo, git_repo):
        write(repo, "a.txt", "a\n")
        commit_all(repo, "init")
        repo.git.checkout("--detach")
        assert git_repo.get_current_branch() is None

    @pytest.mark.skipif(sys.platform == "win32", reason="shell script")
    def test_prefix_script(self, repo, git_repo, tmp_path):
        script = tmp_path / "prefix.sh"
        script.write_text('#!/bin/sh\nprintf "[%s] " "$2"\n', encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IEXEC)
        assert git_repo.run_prefix_script(str(script), "url", "feature/x") == "[feature/x] "

    @pytest.mark.skipif(sys.platform == "win32", reason="shell script")
    def test_failing_prefix_script(self, git_repo, tmp_path):
        script = tmp_path / "fail.sh"
        script.write_text("#!/bin/sh\necho nope >&2\nexit 3\n", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IEXEC)
        assert git_repo.run_prefix_script(str(script), "url", "main") is None

    def test_missing_prefix_script(self, git_repo, tmp_path):
        assert git_repo.run_prefix_script(str(tmp_path / "missing"), "url", "main") is None

    @pytest.mark.skipif(sys.platform == "win32", reason="shell script")
    def test_hanging_prefix_script(self, git_repo, tmp_path):
        script = tmp_path / "hang.sh"
        script.write_text("#!/bin/sh\nexec sleep 30\n", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IEXEC)
        assert git_repo.run_prefix_script(str(script), "url", "main", timeout=0.5) is None


# ---------------------------------------------------------------------------
# Squash
# ---------------------------------------------------------------------------

class TestSquash:

    @pytest.fixture
    def feature(self, repo):
        write(repo, "base.txt", "base\n")
        commit_all(repo, "chore: base")
        repo.git.checkout("-b", "feature")
        write(repo, "a.txt", "a\n")
        commit_all(repo, "wip: a")
        write(repo, "b.txt", "b\n")
        commit_all(repo, "wip: b")
        return repo

    def test_resolve_base_auto_detects_main(self, feature, git_repo):
        assert git_repo.resolve_base() == "main"

    def test_unknown_base(self, feature, git_repo):
        with pytest.raises(NoBaseBranchError):
            git_repo.resolve_base("does-not-exist")

    def test_plan(self, feature, git_repo):
        plan = git_repo.plan_squash("main")
        assert plan.base == "main"
        assert plan.branch == "feature"
        assert plan.subjects == ["wip: b", "wip: a"]
        assert plan.merge_base == feature.commit("main").hexsha
        assert "+a" in plan.diff and "+b" in plan.diff
        assert "base.txt" not in plan.diff

    def test_squash(self, feature, git_repo):
        plan = git_repo.plan_squash("main")
        git_repo.squash(plan, "feat: add a and b")

        subjects = [c.message.strip() for c in feature.iter_commits()]
        assert subjects == ["feat: add a and b", "chore: base"]
        assert sorted(feature.head.commit.stats.files) == ["a.txt", "b.txt"]

    def test_on_base_branch(self, feature, git_repo):
        feature.git.checkout("main")
        with pytest.raises(OnBaseBranchError):
            git_repo.plan_squash("main")

    def test_nothing_to_squash(self, feature, git_repo):
        feature.git.checkout("-b", "empty", "main")
        with pytest.raises(NoCommitsToSquashError):
            git_repo.plan_squash("main")

    def test_on_base_branch_behind_origin_head(self, tmp_path):
        origin = Repo.init(tmp_path / "origin")
        origin.git.symbolic_ref("HEAD", "refs/heads/main")
        with origin.config_writer() as cw:
            cw.set_value("user", "name", "Test User")
            cw.set_value("user", "email", "test@example.com")
            cw.set_value("commit", "gpgsign", "false")
        write(origin, "base.txt", "base\n")
        commit_all(origin, "chore: base")

        local = Repo.clone_from(origin.working_tree_dir, tmp_path / "local")
        with local.config_writer() as cw:
            cw.set_value("user", "name", "Test User")
            cw.set_value("user", "email", "test@example.com")
            cw.set_value("commit", "gpgsign", "false")
        for i in range(2):
            write(local, f"local{i}.txt", f"{i}\n")
            commit_all(local, f"local {i}")
        head = local.head.commit.hexsha

        git_repo = GitRepository(local.working_tree_dir)
        assert git_repo.resolve_base() == "origin/HEAD"
        with pytest.raises(OnBaseBranchError):
            git_repo.plan_squash()
        assert local.head.commit.hexsha == head

        local.git.checkout("-b", "feature")
        plan = git_repo.plan_squash()
        assert plan.subjects == ["local 1", "local 0"]


# ---------------------------------------------------------------------------
# Reword
# ---------------------------------------------------------------------------

class TestReword:

    @pytest.fixture
    def history(self, repo):
        for name in ("a", "b", "c"):
            write(repo, f"{name}.txt", f"{name}\n")
            commit_all(repo, f"wip {name}")
        return repo

    def test_plan_counts_from_head(self, history, git_repo):
        plan = git_repo.plan_reword(2)
        assert plan.subject == "wip b"
        assert plan.commits == [
            history.commit("HEAD~1").hexsha,
            history.commit("HEAD").hexsha,
        ]
        assert "+b" in plan.diff
        assert "c.txt" not in plan.diff

    def test_plan_root_commit(self, history, git_repo):
        plan = git_repo.plan_reword(3)
        assert plan.subject == "wip a"
        assert "+a" in plan.diff

    @pytest.mark.parametrize("count", [0, 4])
    def test_out_of_range(self, history, git_repo, count):
        with pytest.raises(InvalidRewordTargetError):
            git_repo.plan_reword(count)

    def test_empty_repository(self, git_repo):
        with pytest.raises(InvalidRewordTargetError):
            git_repo.plan_reword(1)

    def test_merge_in_range(self, history, git_repo):
        history.git.checkout("-b", "side", "HEAD~1")
        write(history, "side.txt", "side\n")
        commit_all(history, "side work")
        history.git.checkout("main")
        history.git.merge("--no-ff", "-m", "merge side", "side")

        with pytest.raises(HasMergeCommitsError):
            git_repo.plan_reword(1)

    def test_reword_middle_commit(self, history, git_repo):
        old_head = history.head.commit
        author = history.commit("HEAD~1").author.email

        plan = git_repo.plan_reword(2)
        new_sha = git_repo.reword(plan, "feat: add b")

        subjects = [c.message.strip() for c in history.iter_commits()]
        assert subjects == ["wip c", "feat: add b", "wip a"]
        assert history.commit("HEAD~1").hexsha == new_sha
        assert history.commit("HEAD~1").author.email == author
        assert history.head.commit.tree == old_head.tree
        assert history.active_branch.name == "main"

    def test_reword_root_commit(self, history, git_repo):
        git_repo.reword(git_repo.plan_reword(3), "chore: start")
        subjects = [c.message.strip() for c in history.iter_commits()]
        assert subjects == ["wip c", "wip b", "chore: start"]
        assert not history.commit("HEAD~2").parents

    def test_reword_keeps_staged_changes(self, history, git_repo):
        write(history, "d.txt", "d\n")
        history.git.add("d.txt")

        git_repo.reword(git_repo.plan_reword(1), "feat: add c")

        assert history.head.commit.message.strip() == "feat: add c"
        assert git_repo.get_staged_files() == ["d.txt"]
