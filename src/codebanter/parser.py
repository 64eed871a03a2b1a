"""Extract file blocks from free-form model output and apply them.

Model replies are scanned with several independent patterns, each of which
recognises one common way of labelling a code block with a filename.  The
patterns run one after another over the whole text and there is no
deduplication between them, so the same block may yield more than one
operation when two patterns both recognise it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Awaitable, Callable, List, Pattern, Sequence

from .editor import EditorWorkspace
from .errors import NoWorkspaceError
from .messages import ErrorMessage, FileCreatedMessage, FileModifiedMessage, OutboundMessage
from .tools.file_ops import (
    AI_DESCRIPTION,
    FileOperation,
    FileOperationApplier,
    FileOperationKind,
)

__all__ = [
    "FILE_PATTERNS",
    "CandidateFileBlock",
    "FilePattern",
    "ResponseParser",
    "find_candidate_blocks",
]

LOGGER = logging.getLogger(__name__)

Emitter = Callable[[OutboundMessage], Awaitable[None]]

_PATH = r"(?P<path>[^\s`]+?\.\w+)"


@dataclass(frozen=True, slots=True)
class FilePattern:
    """Named regular expression yielding ``path`` and ``body`` groups."""

    name: str
    regex: Pattern[str]


FILE_PATTERNS: tuple[FilePattern, ...] = (
    # ```js // src/app.js   or   ```html <!-- index.html -->
    FilePattern(
        "comment-fence",
        re.compile(
            r"```[\w+#.-]*[ \t]*(?://|<!--)[ \t]*" + _PATH + r"(?:[ \t]*-->)?[ \t]*\n(?P<body>.*?)```",
            re.DOTALL,
        ),
    ),
    # ```src/app.js
    FilePattern(
        "named-fence",
        re.compile(r"```" + _PATH + r"[ \t]*\n(?P<body>.*?)```", re.DOTALL),
    ),
    # ## src/app.js   (body runs to the next heading or the end of the text)
    FilePattern(
        "heading",
        re.compile(
            r"^#{1,6}[ \t]+`?" + _PATH + r"`?[ \t]*\n(?P<body>.*?)(?=^#{1,6}[ \t]|\Z)",
            re.DOTALL | re.MULTILINE,
        ),
    ),
)


@dataclass(slots=True)
class CandidateFileBlock:
    """Raw path/body pair matched in a model reply."""

    raw_path: str
    raw_content: str
    pattern: str

    @property
    def path(self) -> str:
        return self.raw_path.strip()

    @property
    def content(self) -> str:
        return self.raw_content.strip()

    @property
    def is_valid(self) -> bool:
        return bool(self.path) and bool(self.content)


def find_candidate_blocks(
    text: str,
    patterns: Sequence[FilePattern] = FILE_PATTERNS,
) -> List[CandidateFileBlock]:
    """Return every match of every pattern, in pattern order then text order."""
    candidates: List[CandidateFileBlock] = []
    for pattern in patterns:
        for match in pattern.regex.finditer(text):
            candidates.append(
                CandidateFileBlock(
                    raw_path=match.group("path"),
                    raw_content=match.group("body"),
                    pattern=pattern.name,
                )
            )
    return candidates


class ResponseParser:
    """Turn model replies into file operations against a workspace."""

    def __init__(
        self,
        workspace: EditorWorkspace,
        *,
        patterns: Sequence[FilePattern] = FILE_PATTERNS,
    ) -> None:
        self._workspace = workspace
        self._patterns = tuple(patterns)

    def resolve_path(self, raw_path: str) -> Path:
        """Resolve ``raw_path`` against the first workspace folder."""
        return self._workspace.resolve_path(raw_path)

    async def extract(self, text: str) -> List[FileOperation]:
        """Materialise all file operations described in ``text``.

        Raises :class:`NoWorkspaceError` on the first usable block when no
        workspace folder is open.
        """
        LOGGER.info("Processing AI response for file operations (%d chars)", len(text))
        operations: List[FileOperation] = []
        for block in find_candidate_blocks(text, self._patterns):
            if not block.is_valid:
                continue
            if self._workspace.root is None:
                raise NoWorkspaceError()
            target = self.resolve_path(block.path)
            LOGGER.debug("Found potential file %s via %s pattern", target, block.pattern)
            exists = await self._workspace.exists(target)
            operations.append(
                FileOperation(
                    target_path=target,
                    content=block.content,
                    kind=FileOperationKind.MODIFY if exists else FileOperationKind.CREATE,
                    description=AI_DESCRIPTION if exists else "",
                )
            )
        return operations

    async def apply(self, text: str, applier: FileOperationApplier, emit: Emitter) -> bool:
        """Extract and apply operations, emitting one acknowledgement per operation.

        A failing operation is reported and the remaining ones still run.
        Returns ``True`` when at least one operation was dispatched.
        """
        try:
            operations = await self.extract(text)
        except NoWorkspaceError as error:
            await emit(ErrorMessage(message=str(error)))
            return False

        dispatched = False
        for operation in operations:
            # Earlier operations in this reply may have created the file.
            if await self._workspace.exists(operation.target_path):
                operation = replace(operation, kind=FileOperationKind.MODIFY, description=AI_DESCRIPTION)
            else:
                operation = replace(operation, kind=FileOperationKind.CREATE, description="")
            dispatched = True
            try:
                result = await applier.apply(operation)
            except Exception as error:
                LOGGER.error("Error processing file %s: %s", operation.target_path, error)
                await emit(ErrorMessage(message=f"Error processing file {operation.target_path}: {error}"))
                continue
            if result.kind is FileOperationKind.MODIFY:
                await emit(FileModifiedMessage(path=str(result.path)))
            else:
                await emit(FileCreatedMessage(path=str(result.path)))

        if not dispatched:
            LOGGER.info("No file operations found in AI response")
        return dispatched
