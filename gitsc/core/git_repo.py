"""Git repository access for reading diffs and writing commits."""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from git import Commit, Repo
from git.exc import GitCommandError as GitPythonCommandError
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from gitsc.core.diff_filter import DiffFilter
from gitsc.core.errors import (
    GitCommandError,
    HasMergeCommitsError,
    InvalidRewordTargetError,
    NoBaseBranchError,
    NoCommitsToSquashError,
    NotGitRepositoryError,
    OnBaseBranchError,
)

logger = logging.getLogger(__name__)

BASE_BRANCH_CANDIDATES = ["origin/HEAD", "origin/main", "origin/master", "main", "master"]

PREFIX_SCRIPT_TIMEOUT = 30


@dataclass
class SquashPlan:
    """Everything needed to squash the current branch onto its base."""

    base: str
    merge_base: str
    branch: Optional[str]
    subjects: List[str]
    diff: str


@dataclass
class RewordPlan:
    """A commit to reword and the commits stacked on top of it, oldest first."""

    target: str
    subject: str
    commits: List[str]
    diff: str


class GitRepository:
    """Thin wrapper over GitPython for the operations git-sc needs."""

    def __init__(self, repo_path: Optional[str] = None, diff_filter: Optional[DiffFilter] = None):
        """
        Initialize GitRepository.

        Args:
            repo_path: Path inside a git repository. If None, uses current directory.
            diff_filter: Filter applied to every diff handed out. Defaults to
                dropping binary files only.

        Raises:
            NotGitRepositoryError: If path is not inside a git repository.
        """
        self.repo_path = repo_path or os.getcwd()
        try:
            self.repo = Repo(self.repo_path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise NotGitRepositoryError(self.repo_path)
        self.diff_filter = diff_filter or DiffFilter()

    @property
    def working_dir(self) -> str:
        return self.repo.working_tree_dir or self.repo_path

    def _git(self, *args: str) -> str:
        logger.debug("git %s", " ".join(args))
        try:
            return self.repo.git.execute(["git"] + list(args))
        except GitPythonCommandError as exc:
            stderr = (exc.stderr or "").strip()
            raise GitCommandError(stderr or str(exc))

    def has_commits(self) -> bool:
        try:
            self.repo.head.commit
        except ValueError:
            return False
        return True

    def get_staged_diff(self) -> str:
        """Diff of staged changes, filtered."""
        return self.diff_filter.apply(self._git("diff", "--cached"))

    def get_unstaged_diff(self) -> str:
        """Diff of unstaged changes to tracked files, filtered."""
        return self.diff_filter.apply(self._git("diff"))

    def get_commit_diff(self, rev: str) -> str:
        """Diff introduced by one commit, filtered."""
        commit = self.repo.commit(rev)
        if commit.parents:
            diff = self._git("diff", f"{commit.hexsha}~1", commit.hexsha)
        else:
            diff = self._git("show", "--format=", commit.hexsha)
        return self.diff_filter.apply(diff)

    def get_last_commit_diff(self) -> str:
        return self.get_commit_diff("HEAD")

    def get_diff_since(self, rev: str) -> str:
        return self.diff_filter.apply(self._git("diff", rev, "HEAD"))

    def get_staged_files(self) -> List[str]:
        output = self._git("diff", "--cached", "--name-only")
        return [line for line in output.splitlines() if line]

    def get_recent_commits(self, count: int, rev: str = "HEAD", skip: int = 0) -> List[str]:
        """
        Subjects of the most recent commits, newest first.

        Returns an empty list for a repository without commits.
        """
        if count <= 0 or not self.has_commits():
            return []
        output = self._git("log", "--format=%s", "-n", str(count), f"--skip={skip}", rev)
        return [line for line in output.splitlines() if line.strip()]

    def stage_all(self) -> None:
        """Stage all changes including untracked files."""
        self._git("add", "-A")

    def commit(self, message: str) -> str:
        """
        Commit staged changes.

        Returns:
            Hash of the new commit
        """
        self._git("commit", "-m", message)
        return self.repo.head.commit.hexsha

    def amend_commit(self, message: str) -> str:
        self._git("commit", "--amend", "-m", message)
        return self.repo.head.commit.hexsha

    def get_current_branch(self) -> Optional[str]:
        try:
            return self.repo.active_branch.name
        except TypeError:
            # detached HEAD
            return None

    def get_remote_url(self, name: str = "origin") -> Optional[str]:
        try:
            url = self.repo.remote(name).url
        except ValueError:
            return None
        return url or None

    def run_prefix_script(
        self,
        script: str,
        remote_url: str,
        branch: str,
        timeout: float = PREFIX_SCRIPT_TIMEOUT,
    ) -> Optional[str]:
        """
        Run a user script as ``script <remote_url> <branch>``; its stdout is the prefix.

        A failing or hanging script only produces a warning.
        """
        try:
            result = subprocess.run(
                [script, remote_url, branch],
                cwd=self.working_dir,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Prefix script %s timed out after %gs", script, timeout)
            return None
        except OSError as exc:
            logger.warning("Prefix script %s could not be run: %s", script, exc)
            return None

        if result.returncode != 0:
            if result.stderr.strip():
                logger.warning("Prefix script warning: %s", result.stderr.strip())
            return None
        return result.stdout or None

    def _ref_exists(self, ref: str) -> bool:
        try:
            self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")
        except GitCommandError:
            return False
        return True

    def _branch_name(self, ref: str) -> str:
        """Branch behind ``ref`` without its remote, following symbolic refs like origin/HEAD."""
        try:
            name = self._git("rev-parse", "--abbrev-ref", ref).strip()
        except GitCommandError:
            name = ref
        for remote in self.repo.remotes:
            prefix = f"{remote.name}/"
            if name.startswith(prefix):
                return name[len(prefix):]
        return name

    def resolve_base(self, base: Optional[str] = None) -> str:
        """
        Find the branch to squash onto.

        Raises:
            NoBaseBranchError: If ``base`` does not exist or none of the
                usual candidates do.
        """
        candidates = [base] if base else BASE_BRANCH_CANDIDATES
        for candidate in candidates:
            if self._ref_exists(candidate):
                return candidate
        raise NoBaseBranchError()

    def plan_squash(self, base: Optional[str] = None) -> SquashPlan:
        """
        Collect the commits and diff of the current branch since it left ``base``.

        Raises:
            NoBaseBranchError: If no base branch can be found
            OnBaseBranchError: If HEAD is the base branch
            NoCommitsToSquashError: If the branch has no commits of its own
        """
        base = self.resolve_base(base)
        branch = self.get_current_branch()
        if branch is not None and branch in (base, self._branch_name(base)):
            raise OnBaseBranchError(branch)

        merge_base = self._git("merge-base", base, "HEAD").strip()
        output = self._git("log", "--format=%s", f"{merge_base}..HEAD")
        subjects = [line for line in output.splitlines() if line.strip()]
        if not subjects:
            raise NoCommitsToSquashError(base)

        return SquashPlan(
            base=base,
            merge_base=merge_base,
            branch=branch,
            subjects=subjects,
            diff=self.get_diff_since(merge_base),
        )

    def squash(self, plan: SquashPlan, message: str) -> str:
        """Replace the branch's commits with one commit carrying ``message``."""
        self._git("reset", "--soft", plan.merge_base)
        return self.commit(message)

    def plan_reword(self, count: int) -> RewordPlan:
        """
        Collect the ``count``-th most recent commit (1 is HEAD) and the commits above it.

        Raises:
            InvalidRewordTargetError: If the history is shorter than ``count``
            HasMergeCommitsError: If any commit in the range is a merge
        """
        if count < 1 or not self.has_commits():
            raise InvalidRewordTargetError(count)

        chain = []
        commit = self.repo.head.commit
        for _ in range(count):
            if commit is None:
                raise InvalidRewordTargetError(count)
            if len(commit.parents) > 1:
                raise HasMergeCommitsError()
            chain.append(commit)
            commit = commit.parents[0] if commit.parents else None

        chain.reverse()
        target = chain[0]
        return RewordPlan(
            target=target.hexsha,
            subject=target.summary,
            commits=[c.hexsha for c in chain],
            diff=self.get_commit_diff(target.hexsha),
        )

    def reword(self, plan: RewordPlan, message: str) -> str:
        """
        Give the planned commit a new message and replay the commits above it.

        Trees are reused as they are, so the replay cannot conflict. Authors
        and author dates are kept.

        Returns:
            Hash of the reworded commit
        """
        target = self.repo.commit(plan.target)
        reworded = Commit.create_from_tree(
            self.repo,
            target.tree,
            message,
            parent_commits=list(target.parents),
            author=target.author,
            author_date=target.authored_datetime,
        )

        tip = reworded
        for sha in plan.commits[1:]:
            commit = self.repo.commit(sha)
            tip = Commit.create_from_tree(
                self.repo,
                commit.tree,
                commit.message,
                parent_commits=[tip],
                author=commit.author,
                author_date=commit.authored_datetime,
            )

        self._git("reset", "--soft", tip.hexsha)
        return reworded.hexsha
