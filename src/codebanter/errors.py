"""Error taxonomy shared by the CodeBanter components."""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "AlreadyExistsError",
    "CodeBanterError",
    "ConfigError",
    "MessageParseError",
    "NoBaselineError",
    "NoWorkspaceError",
    "NotFoundError",
    "ReadError",
    "ReloadServerError",
    "UnknownMessageTypeError",
    "UnsupportedPreviewError",
    "UpstreamError",
    "WriteError",
]


class CodeBanterError(RuntimeError):
    """Base error for failures surfaced to the UI as ``error`` messages."""


class AlreadyExistsError(CodeBanterError):
    """Raised when a file is created at a path that is already occupied."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"File already exists: {path}")
        self.path = str(path)


class NotFoundError(CodeBanterError):
    """Raised when a modification targets a path with no entry."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"File does not exist: {path}")
        self.path = str(path)


class NoBaselineError(CodeBanterError):
    """Raised when a diff is requested before a baseline was captured."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"No original content stored for {path}")
        self.path = str(path)


class ReadError(CodeBanterError):
    """Raised when neither the open document nor the disk yields content."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Failed to read file: {path}")
        self.path = str(path)


class WriteError(CodeBanterError):
    """Raised when the editor rejects an edit to an open document."""


class UnsupportedPreviewError(CodeBanterError):
    """Raised for file types the preview renderer cannot handle."""

    def __init__(self, extension: str) -> None:
        super().__init__(f"Preview not supported for file type: {extension}")
        self.extension = extension


class UnknownMessageTypeError(CodeBanterError):
    """Raised by the router when the ``type`` tag is not registered."""

    def __init__(self, message_type: object) -> None:
        super().__init__(f"Unknown message type: {message_type}")
        self.message_type = message_type


class MessageParseError(CodeBanterError):
    """Raised when an inbound message is not a well-formed JSON object."""


class NoWorkspaceError(CodeBanterError):
    """Raised when a file operation needs a workspace folder but none is open."""

    def __init__(self) -> None:
        super().__init__("No workspace folder is open")


class ReloadServerError(CodeBanterError):
    """Raised when the live-reload process cannot be started."""


class UpstreamError(CodeBanterError):
    """Raised when the language-model call fails."""


class ConfigError(CodeBanterError):
    """Raised when the configuration file cannot be loaded."""
