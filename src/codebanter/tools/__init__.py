"""Workspace tools driven by the message router and the chat pipeline."""

from .content_store import ContentStore
from .diff import DiffEngine, FileDiff
from .file_ops import (
    AI_DESCRIPTION,
    FileOperation,
    FileOperationApplier,
    FileOperationKind,
    FileOperationResult,
)
from .preview import PreviewArtifact, PreviewRenderer, escape_html
from .reload_server import LiveReloadServer, ensure_preview_scaffold

__all__ = [
    "AI_DESCRIPTION",
    "ContentStore",
    "DiffEngine",
    "FileDiff",
    "FileOperation",
    "FileOperationApplier",
    "FileOperationKind",
    "FileOperationResult",
    "LiveReloadServer",
    "PreviewArtifact",
    "PreviewRenderer",
    "ensure_preview_scaffold",
    "escape_html",
]
