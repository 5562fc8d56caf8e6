"""Exceptions raised by git-sc."""

from typing import List, Tuple


class GitSCError(Exception):
    """Base class for all git-sc errors."""


class ConfigError(GitSCError):
    """Raised when the configuration file cannot be read or written."""


class NotGitRepositoryError(GitSCError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"'{path}' is not a git repository. "
            "Please run this command from within a git repository."
        )


class GitCommandError(GitSCError):
    """Raised when a git command fails."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Git command failed: {detail}")


class NoChangesError(GitSCError):
    def __init__(self):
        super().__init__(
            "No changes found. Make some changes before generating a commit message."
        )


class NoStagedChangesError(GitSCError):
    def __init__(self):
        super().__init__(
            "No staged changes. Stage files with 'git add', "
            "or run with -a to stage everything or -u to use unstaged changes."
        )


class NoBaseBranchError(GitSCError):
    def __init__(self):
        super().__init__("Could not find a base branch. Pass one with --squash BASE.")


class OnBaseBranchError(GitSCError):
    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(
            f"Cannot squash while on the base branch '{branch}'. "
            "Switch to a feature branch first."
        )


class NoCommitsToSquashError(GitSCError):
    def __init__(self, base: str):
        self.base = base
        super().__init__(
            f"No commits to squash. The current branch has no changes since '{base}'."
        )


class InvalidRewordTargetError(GitSCError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(
            f"Invalid reword target: the current branch has fewer than {count} commit(s)."
        )


class HasMergeCommitsError(GitSCError):
    """Raised when the commits to rewrite for --reword include a merge."""

    def __init__(self):
        super().__init__(
            "The range to reword contains a merge commit. "
            "--reword cannot rewrite history across merges."
        )


class UserCancelledError(GitSCError):
    def __init__(self):
        super().__init__("Operation cancelled by user.")


class ProviderError(GitSCError):
    """A single provider attempt failed."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(reason)


class ProviderUnavailable(ProviderError):
    """The provider's executable is not installed."""


class ProviderExecutionFailed(ProviderError):
    """The provider exited non-zero or produced unusable output."""


class ProviderTimeout(ProviderError):
    """The provider did not answer within the configured timeout."""


class AllProvidersFailed(GitSCError):
    """
    Every candidate provider failed.

    ``failures`` holds ``(provider, error)`` pairs in the order they were
    attempted.
    """

    def __init__(self, failures: List[Tuple[str, ProviderError]]):
        self.failures = list(failures)
        if not self.failures:
            message = (
                "No AI providers configured. Add gemini, codex or claude to "
                "'providers' in the git-sc configuration."
            )
        else:
            lines = [f"  {name}: {error.reason}" for name, error in self.failures]
            message = "All AI providers failed:\n" + "\n".join(lines)
        super().__init__(message)

    @property
    def attempted(self) -> List[str]:
        return [name for name, _ in self.failures]
