"""Editor-facing workspace interface and a local filesystem implementation.

The server never talks to the filesystem directly.  Every read, write and
document edit goes through an :class:`EditorWorkspace`, which mirrors the
small surface of an editor API that the core needs: the open-document table,
the active document, byte-level file access, directory creation, full-range
document replacement and user notifications.  :class:`LocalEditorWorkspace`
backs that surface with ``pathlib`` and keeps open documents in memory, so
edits applied to an open document stay in its buffer until it is saved.
It can also watch its folders and report edits made by other programs.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from watchfiles import Change, awatch

from .errors import NoWorkspaceError

__all__ = [
    "LANGUAGE_IDS",
    "ActiveFile",
    "EditorListener",
    "EditorWorkspace",
    "FileStat",
    "LocalEditorWorkspace",
    "TextDocument",
    "WorkspaceFile",
    "WorkspaceFolder",
    "language_for_path",
    "normalise_path",
]

LOGGER = logging.getLogger(__name__)

LANGUAGE_IDS: Dict[str, str] = {
    ".css": "css",
    ".html": "html",
    ".htm": "html",
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".json": "json",
    ".md": "markdown",
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".txt": "plaintext",
    ".yaml": "yaml",
    ".yml": "yaml",
}

EditorListener = Callable[[Path], Any]


def normalise_path(path: Path | str) -> Path:
    """Return an absolute, user-expanded path without resolving symlinks."""
    return Path(os.path.abspath(os.path.expanduser(str(path))))


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def language_for_path(path: Path | str) -> str:
    """Best-effort language identifier for ``path`` based on its suffix."""
    return LANGUAGE_IDS.get(Path(path).suffix.lower(), "plaintext")


@dataclass(slots=True)
class WorkspaceFolder:
    """Top-level folder open in the editor."""

    name: str
    path: Path


@dataclass(slots=True)
class WorkspaceFile:
    """Open document as reported to the UI."""

    path: Path
    name: str
    language: str
    is_active: bool = False


@dataclass(slots=True)
class ActiveFile:
    """Snapshot of the document in the active editor."""

    path: Path
    name: str
    content: str
    language: str


@dataclass(slots=True)
class FileStat:
    """Minimal stat record returned by :meth:`EditorWorkspace.stat`."""

    path: Path
    is_file: bool
    is_dir: bool
    size: int = 0


@dataclass(slots=True)
class TextDocument:
    """In-memory text buffer for a document open in the editor."""

    path: Path
    text: str
    language_id: str
    is_untitled: bool = False
    version: int = 1
    is_dirty: bool = False
    undo_stack: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def line_count(self) -> int:
        return self.text.count("\n") + 1

    def get_text(self) -> str:
        return self.text

    def replace_all(self, text: str) -> None:
        """Replace the whole buffer, keeping the previous text undoable."""
        self.undo_stack.append(self.text)
        self.text = text
        self.version += 1
        self.is_dirty = True

    def undo(self) -> bool:
        """Restore the previous buffer; return ``False`` when nothing to undo."""
        if not self.undo_stack:
            return False
        self.text = self.undo_stack.pop()
        self.version += 1
        self.is_dirty = True
        return True


class EditorWorkspace:
    """Interface onto the editor that hosts the workspace.

    Subclasses provide the storage; the base class owns the event plumbing
    and the derived views (open files, active file) sent to the UI.
    """

    def __init__(self) -> None:
        self._file_listeners: List[EditorListener] = []
        self._active_listeners: List[EditorListener] = []
        self._pending: Set[asyncio.Future[Any]] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def folders(self) -> List[WorkspaceFolder]:
        raise NotImplementedError("Subclasses must implement folders.")

    @property
    def root(self) -> Optional[Path]:
        """First workspace folder, used to resolve relative paths."""
        folders = self.folders
        return folders[0].path if folders else None

    def resolve_path(self, path: Path | str) -> Path:
        """Resolve ``path`` against the first workspace folder unless absolute."""
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return normalise_path(candidate)
        root = self.root
        if root is None:
            raise NoWorkspaceError()
        return normalise_path(root / candidate)

    def bind_loop(self, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        """Deliver events fired from other threads on ``loop``."""
        self._loop = loop

    async def watch(self, stop_event: asyncio.Event) -> None:
        """Report external changes until ``stop_event`` is set.

        The base workspace has no change source and returns immediately.
        """

    def text_documents(self) -> List[TextDocument]:
        raise NotImplementedError("Subclasses must implement text_documents().")

    def active_document(self) -> Optional[TextDocument]:
        raise NotImplementedError("Subclasses must implement active_document().")

    def find_document(self, path: Path | str) -> Optional[TextDocument]:
        """Return the open document for ``path`` if there is one."""
        target = normalise_path(path)
        for document in self.text_documents():
            if document.path == target:
                return document
        return None

    async def stat(self, path: Path | str) -> FileStat:
        """Return stat info for ``path``; raise ``FileNotFoundError`` if absent."""
        raise NotImplementedError("Subclasses must implement stat().")

    async def exists(self, path: Path | str) -> bool:
        try:
            await self.stat(path)
        except FileNotFoundError:
            return False
        return True

    async def read_file(self, path: Path | str) -> bytes:
        raise NotImplementedError("Subclasses must implement read_file().")

    async def write_file(self, path: Path | str, data: bytes) -> None:
        raise NotImplementedError("Subclasses must implement write_file().")

    async def create_directory(self, path: Path | str) -> None:
        raise NotImplementedError("Subclasses must implement create_directory().")

    async def replace_document_text(self, path: Path | str, text: str) -> bool:
        """Replace the full range of an open document; ``False`` if rejected."""
        raise NotImplementedError("Subclasses must implement replace_document_text().")

    def show_information_message(self, message: str) -> None:
        raise NotImplementedError("Subclasses must implement show_information_message().")

    async def read_text(self, path: Path | str) -> str:
        """Return the open document's text, falling back to the file on disk."""
        document = self.find_document(path)
        if document is not None:
            return document.get_text()
        data = await self.read_file(path)
        return data.decode("utf-8", errors="replace")

    def open_files(self) -> List[WorkspaceFile]:
        """Describe the open, titled documents for the UI."""
        active = self.active_document()
        active_path = active.path if active is not None else None
        return [
            WorkspaceFile(
                path=document.path,
                name=document.name,
                language=document.language_id,
                is_active=document.path == active_path,
            )
            for document in self.text_documents()
            if not document.is_untitled
        ]

    def active_file(self) -> Optional[ActiveFile]:
        active = self.active_document()
        if active is None:
            return None
        return ActiveFile(
            path=active.path,
            name=active.name,
            content=active.get_text(),
            language=active.language_id,
        )

    def on_file_changed(self, listener: EditorListener) -> Callable[[], None]:
        """Subscribe to file-change events; return an unsubscribe callable."""
        self._file_listeners.append(listener)
        return lambda: self._discard(self._file_listeners, listener)

    def on_active_editor_changed(self, listener: EditorListener) -> Callable[[], None]:
        """Subscribe to active-editor changes; return an unsubscribe callable."""
        self._active_listeners.append(listener)
        return lambda: self._discard(self._active_listeners, listener)

    def _fire_file_changed(self, path: Path) -> None:
        self._notify(self._file_listeners, path)

    def _fire_active_editor_changed(self, path: Path) -> None:
        self._notify(self._active_listeners, path)

    @staticmethod
    def _discard(listeners: List[EditorListener], listener: EditorListener) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def notify_external_change(self, path: Path | str) -> None:
        """Report a change made outside the server; safe to call from any thread."""
        target = normalise_path(path)
        loop = self._loop
        if loop is not None and not loop.is_closed() and _running_loop() is not loop:
            loop.call_soon_threadsafe(self._fire_file_changed, target)
            return
        self._fire_file_changed(target)

    def _notify(self, listeners: Sequence[EditorListener], path: Path) -> None:
        for listener in list(listeners):
            try:
                result = listener(path)
            except Exception as error:  # pragma: no cover - listener failure
                LOGGER.warning("Editor listener failed for %s: %s", path, error)
                continue
            if inspect.isawaitable(result):
                self._track(result)

    def _track(self, awaitable: Any) -> None:
        # Listener tasks are only weakly referenced by the loop.
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)
        task.add_done_callback(self._finish)

    def _finish(self, task: asyncio.Future[Any]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            LOGGER.warning("Editor listener failed: %s", task.exception())


class LocalEditorWorkspace(EditorWorkspace):
    """Editor workspace backed by the local filesystem."""

    def __init__(self, folders: Sequence[Path | str] = (), *, debounce_ms: int = 200) -> None:
        super().__init__()
        self._debounce_ms = debounce_ms
        self._own_writes: Dict[Path, tuple[int, int]] = {}
        self._folders = [
            WorkspaceFolder(name=normalise_path(folder).name, path=normalise_path(folder))
            for folder in folders
        ]
        self._documents: Dict[Path, TextDocument] = {}
        self._active: Optional[Path] = None
        self.notifications: List[str] = []

    @property
    def folders(self) -> List[WorkspaceFolder]:
        return list(self._folders)

    def text_documents(self) -> List[TextDocument]:
        return list(self._documents.values())

    def active_document(self) -> Optional[TextDocument]:
        if self._active is None:
            return None
        return self._documents.get(self._active)

    def find_document(self, path: Path | str) -> Optional[TextDocument]:
        return self._documents.get(normalise_path(path))

    def open_document(self, path: Path | str, *, activate: bool = True) -> TextDocument:
        """Load ``path`` into an editor buffer, optionally focusing it."""
        target = normalise_path(path)
        document = self._documents.get(target)
        if document is None:
            text = target.read_bytes().decode("utf-8", errors="replace")
            document = TextDocument(path=target, text=text, language_id=language_for_path(target))
            self._documents[target] = document
        if activate:
            self.set_active(target)
        return document

    def close_document(self, path: Path | str) -> None:
        target = normalise_path(path)
        self._documents.pop(target, None)
        if self._active == target:
            self._active = None

    def set_active(self, path: Path | str) -> None:
        target = normalise_path(path)
        if target not in self._documents:
            raise KeyError(f"Document is not open: {target}")
        if self._active != target:
            self._active = target
            self._fire_active_editor_changed(target)

    def save_document(self, path: Path | str) -> None:
        """Flush an open buffer to disk."""
        document = self._documents[normalise_path(path)]
        document.path.write_bytes(document.text.encode("utf-8"))
        self._remember_write(document.path)
        document.is_dirty = False
        self._fire_file_changed(document.path)

    async def stat(self, path: Path | str) -> FileStat:
        target = normalise_path(path)
        result = await asyncio.to_thread(target.stat)
        return FileStat(
            path=target,
            is_file=target.is_file(),
            is_dir=target.is_dir(),
            size=result.st_size,
        )

    async def read_file(self, path: Path | str) -> bytes:
        return await asyncio.to_thread(normalise_path(path).read_bytes)

    async def write_file(self, path: Path | str, data: bytes) -> None:
        target = normalise_path(path)
        await asyncio.to_thread(target.write_bytes, data)
        self._remember_write(target)

    async def create_directory(self, path: Path | str) -> None:
        target = normalise_path(path)
        await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)

    async def replace_document_text(self, path: Path | str, text: str) -> bool:
        document = self.find_document(path)
        if document is None:
            return False
        document.replace_all(text)
        return True

    def show_information_message(self, message: str) -> None:
        LOGGER.info("%s", message)
        self.notifications.append(message)

    async def watch(self, stop_event: asyncio.Event) -> None:
        """Fire ``fileChanged`` for files modified on disk by other programs.

        Writes made through this workspace are recognised by their recorded
        mtime and size and are not reported again.
        """
        roots = [str(folder.path) for folder in self._folders if folder.path.is_dir()]
        if not roots:
            LOGGER.info("No workspace folders to watch")
            return
        LOGGER.info("Watching %s for changes", ", ".join(roots))
        async for changes in awatch(*roots, stop_event=stop_event, debounce=self._debounce_ms, step=50):
            for change, raw_path in sorted(changes, key=lambda item: item[1]):
                if change != Change.modified:
                    continue
                target = normalise_path(raw_path)
                if not target.is_file() or self._is_own_write(target):
                    continue
                LOGGER.debug("External change detected: %s", target)
                self._fire_file_changed(target)

    def _remember_write(self, target: Path) -> None:
        try:
            result = target.stat()
        except OSError:
            self._own_writes.pop(target, None)
            return
        self._own_writes[target] = (result.st_mtime_ns, result.st_size)

    def _is_own_write(self, target: Path) -> bool:
        recorded = self._own_writes.get(target)
        if recorded is None:
            return False
        try:
            result = target.stat()
        except OSError:
            return False
        return (result.st_mtime_ns, result.st_size) == recorded
