"""Before/after content pairs for files with a recorded baseline."""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from pathlib import Path

from ..editor import EditorWorkspace
from ..errors import NoBaselineError, ReadError
from .content_store import ContentStore

__all__ = ["DiffEngine", "FileDiff"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class FileDiff:
    """Original and current content for a single path."""

    path: Path
    name: str
    original_content: str
    current_content: str

    @property
    def changed(self) -> bool:
        return self.original_content != self.current_content

    def unified(self, *, context: int = 3) -> str:
        """Render a unified diff between the baseline and current content."""
        lines = difflib.unified_diff(
            self.original_content.splitlines(keepends=True),
            self.current_content.splitlines(keepends=True),
            fromfile=f"a/{self.name}",
            tofile=f"b/{self.name}",
            n=context,
        )
        return "".join(lines)


class DiffEngine:
    """Pair a stored baseline with the file's current content."""

    def __init__(self, workspace: EditorWorkspace, store: ContentStore) -> None:
        self._workspace = workspace
        self._store = store

    async def diff(self, path: Path | str) -> FileDiff:
        target = self._workspace.resolve_path(path)
        LOGGER.info("Generating diff for: %s", target)
        original = self._store.get(target)
        if original is None:
            raise NoBaselineError(target)
        try:
            current = await self._workspace.read_text(target)
        except OSError as error:
            raise ReadError(target) from error
        return FileDiff(
            path=target,
            name=target.name,
            original_content=original,
            current_content=current,
        )
