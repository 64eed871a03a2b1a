"""Typed websocket messages exchanged with the UI.

Every message is a flat JSON object discriminated by ``type``.  Field names
on the wire are camelCase; the models expose snake_case attributes and
serialise through their aliases.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .editor import EditorWorkspace

__all__ = [
    "ActiveEditorChangedMessage",
    "ActiveFileInfo",
    "ChatRequest",
    "ChatResponseMessage",
    "CreateFileRequest",
    "DevServerStartedMessage",
    "DiffMessage",
    "ErrorMessage",
    "FileChangedMessage",
    "FileContentMessage",
    "FileCreatedMessage",
    "FileModifiedMessage",
    "FilePathRequest",
    "FolderInfo",
    "GetFilesRequest",
    "InboundMessage",
    "ModifyFileRequest",
    "OpenFileInfo",
    "OutboundMessage",
    "PreviewMessage",
    "WorkspaceInfoMessage",
]


class InboundMessage(BaseModel):
    """Base for UI requests; the ``type`` tag is consumed by the router."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class GetFilesRequest(InboundMessage):
    """``getFiles`` carries no payload."""


class FilePathRequest(InboundMessage):
    """Requests that only name a file: content, preview and diff."""

    file_path: str = Field(alias="filePath", min_length=1)


class ModifyFileRequest(FilePathRequest):
    content: str
    description: str = ""


class CreateFileRequest(FilePathRequest):
    content: str


class ChatRequest(InboundMessage):
    message: str
    execute_mode: bool = Field(default=False, alias="executeMode")


class OutboundMessage(BaseModel):
    """Base for messages sent to the UI."""

    model_config = ConfigDict(populate_by_name=True)

    type: str

    def to_payload(self) -> Dict[str, Any]:
        """Return the JSON-ready wire representation."""
        return self.model_dump(by_alias=True, mode="json")


class FolderInfo(BaseModel):
    name: str
    path: str


class OpenFileInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str
    name: str
    language: str
    is_active: bool = Field(default=False, alias="isActive")


class ActiveFileInfo(BaseModel):
    path: str
    name: str
    content: str
    language: str


class WorkspaceInfoMessage(OutboundMessage):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["workspaceInfo"] = "workspaceInfo"
    folders: List[FolderInfo] = Field(default_factory=list)
    open_files: List[OpenFileInfo] = Field(default_factory=list, alias="openFiles")
    active_file: Optional[ActiveFileInfo] = Field(default=None, alias="activeFile")

    @classmethod
    def from_workspace(cls, workspace: EditorWorkspace) -> "WorkspaceInfoMessage":
        """Derive the workspace description from the editor's current state."""
        active = workspace.active_file()
        return cls(
            folders=[FolderInfo(name=folder.name, path=str(folder.path)) for folder in workspace.folders],
            open_files=[
                OpenFileInfo(
                    path=str(item.path),
                    name=item.name,
                    language=item.language,
                    is_active=item.is_active,
                )
                for item in workspace.open_files()
            ],
            active_file=(
                ActiveFileInfo(
                    path=str(active.path),
                    name=active.name,
                    content=active.content,
                    language=active.language,
                )
                if active is not None
                else None
            ),
        )


class FileContentMessage(OutboundMessage):
    type: Literal["fileContent"] = "fileContent"
    path: str
    name: str
    content: str
    language: str


class FileModifiedMessage(OutboundMessage):
    type: Literal["fileModified"] = "fileModified"
    path: str
    success: bool = True


class FileCreatedMessage(OutboundMessage):
    type: Literal["fileCreated"] = "fileCreated"
    path: str
    success: bool = True


class PreviewMessage(OutboundMessage):
    type: Literal["preview"] = "preview"
    path: str
    name: str
    content: str
    preview_type: str = Field(default="html", alias="previewType")


class DiffMessage(OutboundMessage):
    type: Literal["diff"] = "diff"
    path: str
    name: str
    original_content: str = Field(alias="originalContent")
    current_content: str = Field(alias="currentContent")


class ChatResponseMessage(OutboundMessage):
    type: Literal["chat"] = "chat"
    message: str
    execute_mode: bool = Field(default=False, alias="executeMode")
    files_processed: bool = Field(default=False, alias="filesProcessed")


class FileChangedMessage(OutboundMessage):
    type: Literal["fileChanged"] = "fileChanged"
    path: str
    name: str

    @classmethod
    def for_path(cls, path: Path) -> "FileChangedMessage":
        return cls(path=str(path), name=path.name)


class ActiveEditorChangedMessage(OutboundMessage):
    type: Literal["activeEditorChanged"] = "activeEditorChanged"
    path: str
    name: str

    @classmethod
    def for_path(cls, path: Path) -> "ActiveEditorChangedMessage":
        return cls(path=str(path), name=path.name)


class DevServerStartedMessage(OutboundMessage):
    type: Literal["devServerStarted"] = "devServerStarted"
    url: str


class ErrorMessage(OutboundMessage):
    type: Literal["error"] = "error"
    message: str
