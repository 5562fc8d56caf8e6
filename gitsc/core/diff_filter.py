"""Trim git diff output before it is sent to an AI provider."""

import re
from typing import Iterable, List, Optional

import pathspec

_HEADER = re.compile(r'^diff --git a/(?P<a>.+?) b/(?P<b>.+)$')


def _split_blocks(diff_text: str) -> List[List[str]]:
    """Split a diff into chunks, each starting at a ``diff --git`` header."""
    if diff_text.endswith("\n"):
        diff_text = diff_text[:-1]

    blocks: List[List[str]] = [[]]
    # split on "\n" only; form feeds and U+2028 can appear inside diff lines
    for line in diff_text.split("\n"):
        if line.endswith("\r"):
            line = line[:-1]
        if line.startswith("diff --git"):
            blocks.append([])
        blocks[-1].append(line)
    return blocks


def block_paths(block: List[str]) -> List[str]:
    """Return the a/ and b/ paths named in a block header."""
    if not block:
        return []
    match = _HEADER.match(block[0])
    if not match:
        return []
    paths = [match.group("a"), match.group("b")]
    return list(dict.fromkeys(paths))


def is_binary_block(block: List[str]) -> bool:
    return any("Binary files" in line and "differ" in line for line in block)


class DiffFilter:
    """
    Drop binary file blocks and blocks for paths matching exclude patterns.

    Patterns use .gitignore syntax, e.g. ``*.lock``, ``dist/``, ``!keep.lock``.
    """

    def __init__(self, exclude: Optional[Iterable[str]] = None):
        self.patterns = [p for p in (exclude or []) if p and p.strip()]
        self._spec = pathspec.PathSpec.from_lines("gitwildmatch", self.patterns)

    def is_excluded(self, path: str) -> bool:
        if not self.patterns:
            return False
        return self._spec.match_file(path)

    def apply(self, diff_text: str) -> str:
        if not diff_text:
            return ""

        kept: List[str] = []
        for index, block in enumerate(_split_blocks(diff_text)):
            # text before the first header is never a file block
            if index > 0:
                if is_binary_block(block):
                    continue
                if any(self.is_excluded(path) for path in block_paths(block)):
                    continue
            kept.extend(block)
        return "\n".join(kept)

    def excluded_files(self, paths: Iterable[str]) -> List[str]:
        return [path for path in paths if self.is_excluded(path)]


def filter_binary_diff(diff_text: str) -> str:
    """Remove binary file blocks, keeping everything else."""
    return DiffFilter().apply(diff_text)
