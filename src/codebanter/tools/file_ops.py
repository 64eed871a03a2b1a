"""Create and modify workspace files through the editor interface."""

from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, List

from ..editor import EditorWorkspace
from ..errors import AlreadyExistsError, NotFoundError, WriteError
from .content_store import ContentStore

__all__ = [
    "AI_DESCRIPTION",
    "FileOperation",
    "FileOperationApplier",
    "FileOperationKind",
    "FileOperationResult",
]

LOGGER = logging.getLogger(__name__)

AI_DESCRIPTION = "Updated by AI"


class FileOperationKind(str, Enum):
    """Kinds of edit the applier knows how to perform."""

    CREATE = "create"
    MODIFY = "modify"


@dataclass(slots=True)
class FileOperation:
    """Full-content write targeting a single path."""

    target_path: Path
    content: str
    kind: FileOperationKind
    description: str = ""


@dataclass(slots=True)
class FileOperationResult:
    """Outcome of a successful create or modify."""

    path: Path
    kind: FileOperationKind
    success: bool = True


class FileOperationApplier:
    """Apply file operations against an :class:`EditorWorkspace`.

    Writes to the same path are serialised with a per-path lock so that a
    read-modify-write cycle cannot interleave with another one.
    """

    def __init__(self, workspace: EditorWorkspace, store: ContentStore) -> None:
        self._workspace = workspace
        self._store = store
        self._locks: "weakref.WeakValueDictionary[Path, asyncio.Lock]" = weakref.WeakValueDictionary()

    @property
    def workspace(self) -> EditorWorkspace:
        return self._workspace

    @asynccontextmanager
    async def _path_lock(self, path: Path) -> AsyncIterator[None]:
        lock = self._locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[path] = lock
        async with lock:
            yield

    async def apply(self, operation: FileOperation) -> FileOperationResult:
        """Dispatch ``operation`` to create or modify based on its kind."""
        if operation.kind is FileOperationKind.MODIFY:
            return await self.modify_file(
                operation.target_path,
                operation.content,
                operation.description,
            )
        return await self.create_file(operation.target_path, operation.content)

    async def create_file(self, path: Path | str, content: str) -> FileOperationResult:
        """Create a new file, making any missing parent directories first."""
        target = self._workspace.resolve_path(path)
        LOGGER.info("Creating file: %s", target)
        async with self._path_lock(target):
            if await self._workspace.exists(target):
                raise AlreadyExistsError(target)
            await self._ensure_parent_directories(target)
            await self._workspace.write_file(target, content.encode("utf-8"))
        self._notify(f"File created: {target.name}")
        return FileOperationResult(path=target, kind=FileOperationKind.CREATE)

    async def modify_file(
        self,
        path: Path | str,
        content: str,
        description: str = "",
    ) -> FileOperationResult:
        """Replace the full content of an existing file."""
        target = self._workspace.resolve_path(path)
        LOGGER.info("Modifying file: %s", target)
        async with self._path_lock(target):
            if not await self._workspace.exists(target):
                raise NotFoundError(target)
            await self._capture_baseline(target)

            document = self._workspace.find_document(target)
            if document is not None:
                # Edit the open buffer in place so the editor keeps its undo history.
                applied = await self._workspace.replace_document_text(target, content)
                if not applied:
                    raise WriteError(f"Failed to apply edit to {target}")
            else:
                await self._workspace.write_file(target, content.encode("utf-8"))
        self._notify(f"File modified: {target.name} - {description}")
        return FileOperationResult(path=target, kind=FileOperationKind.MODIFY)

    async def _capture_baseline(self, target: Path) -> None:
        if self._store.has(target):
            return
        try:
            original = await self._workspace.read_text(target)
        except OSError as error:
            LOGGER.warning("Could not store original content for %s: %s", target, error)
            return
        self._store.set_if_absent(target, original)

    async def _ensure_parent_directories(self, target: Path) -> None:
        """Create missing ancestors of ``target`` in root-to-leaf order."""
        missing: List[Path] = []
        for parent in target.parents:
            if await self._workspace.exists(parent):
                break
            missing.append(parent)
        for directory in reversed(missing):
            try:
                await self._workspace.create_directory(directory)
            except OSError as error:
                LOGGER.warning("Failed to create directory %s: %s", directory, error)

    def _notify(self, message: str) -> None:
        try:
            self._workspace.show_information_message(message)
        except Exception as error:  # pragma: no cover - editor UI failure
            LOGGER.warning("Failed to show notification %r: %s", message, error)
