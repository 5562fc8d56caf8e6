"""git-sc: smart commit messages from AI command-line agents."""

__version__ = "0.3.0"
