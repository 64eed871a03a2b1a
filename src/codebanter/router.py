"""Routing logic that maps inbound UI messages to their handlers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from pydantic import ValidationError

from .chat import ChatService
from .editor import EditorWorkspace
from .errors import MessageParseError, ReadError, UnknownMessageTypeError, UpstreamError
from .messages import (
    ChatRequest,
    CreateFileRequest,
    DiffMessage,
    ErrorMessage,
    FileContentMessage,
    FileCreatedMessage,
    FileModifiedMessage,
    FilePathRequest,
    GetFilesRequest,
    InboundMessage,
    ModifyFileRequest,
    OutboundMessage,
    PreviewMessage,
    WorkspaceInfoMessage,
)
from .tools.content_store import ContentStore
from .tools.diff import DiffEngine
from .tools.file_ops import FileOperationApplier
from .tools.preview import PreviewRenderer

__all__ = ["GENERIC_PARSE_ERROR", "MessageRouter", "RouteEntry"]

LOGGER = logging.getLogger(__name__)

GENERIC_PARSE_ERROR = "Error processing message"

Emitter = Callable[[OutboundMessage], Awaitable[None]]
Handler = Callable[[Any, Emitter], Awaitable[OutboundMessage]]


@dataclass(slots=True)
class RouteEntry:
    """Metadata describing how to handle a single message type."""

    request_model: type[InboundMessage]
    handler: Handler
    error_prefix: str


class MessageRouter:
    """Dispatch table mapping message ``type`` tags to their handlers.

    Every failure is converted into an ``error`` message for the sender; no
    exception escapes :meth:`handle`.
    """

    def __init__(
        self,
        *,
        workspace: EditorWorkspace,
        store: ContentStore,
        applier: FileOperationApplier,
        renderer: PreviewRenderer,
        diff_engine: DiffEngine,
        chat: Optional[ChatService] = None,
    ) -> None:
        self._workspace = workspace
        self._store = store
        self._applier = applier
        self._renderer = renderer
        self._diff_engine = diff_engine
        self._chat = chat
        self._registry: Dict[str, RouteEntry] = {
            "getFiles": RouteEntry(
                GetFilesRequest,
                self._get_workspace_info,
                "Error retrieving workspace information",
            ),
            "getFileContent": RouteEntry(FilePathRequest, self._get_file_content, "Error getting file content"),
            "modifyFile": RouteEntry(ModifyFileRequest, self._modify_file, "Error modifying file"),
            "createFile": RouteEntry(CreateFileRequest, self._create_file, "Error creating file"),
            "renderPreview": RouteEntry(FilePathRequest, self._render_preview, "Error rendering preview"),
            "getDiff": RouteEntry(FilePathRequest, self._get_diff, "Error generating diff"),
            "chat": RouteEntry(ChatRequest, self._chat_message, "Error processing chat message"),
        }

    def available_types(self) -> Iterable[str]:
        """Return the message types currently registered with the router."""
        return self._registry.keys()

    def workspace_info(self) -> WorkspaceInfoMessage:
        return WorkspaceInfoMessage.from_workspace(self._workspace)

    async def handle(self, raw: str | bytes, emit: Emitter) -> None:
        """Process one raw inbound message and emit the response(s)."""
        try:
            data = self.parse(raw)
        except MessageParseError as error:
            LOGGER.error("Error processing message: %s", error)
            await emit(ErrorMessage(message=GENERIC_PARSE_ERROR))
            return

        message_type = data["type"]
        LOGGER.debug("Received %s message", message_type)
        entry = self._registry.get(message_type)
        if entry is None:
            error = UnknownMessageTypeError(message_type)
            LOGGER.warning("%s", error)
            await emit(ErrorMessage(message=str(error)))
            return

        try:
            request = self._coerce_payload(data, entry.request_model)
        except ValueError as error:
            await emit(ErrorMessage(message=f"Invalid {message_type} message: {error}"))
            return

        try:
            response = await entry.handler(request, emit)
        except Exception as error:
            LOGGER.error("%s: %s", entry.error_prefix, error)
            await emit(ErrorMessage(message=f"{entry.error_prefix}: {error}"))
            return
        await emit(response)

    @staticmethod
    def parse(raw: str | bytes) -> Dict[str, Any]:
        """Decode ``raw`` into a message object carrying a string ``type``."""
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as error:
            raise MessageParseError(f"Message is not valid JSON: {error}") from error
        if not isinstance(data, dict):
            raise MessageParseError("Message must be a JSON object")
        if not isinstance(data.get("type"), str):
            raise MessageParseError("Message is missing a string 'type' field")
        return data

    @staticmethod
    def _coerce_payload(payload: Dict[str, Any], request_type: type[InboundMessage]) -> InboundMessage:
        """Validate ``payload`` into an instance of ``request_type``."""
        try:
            return request_type.model_validate(payload)
        except ValidationError as error:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in item['loc']) or 'message'}: {item['msg']}"
                for item in error.errors()
            )
            raise ValueError(problems) from error

    async def _read_current(self, target: Path) -> str:
        try:
            return await self._workspace.read_text(target)
        except OSError as error:
            raise ReadError(target) from error

    async def _get_workspace_info(self, request: GetFilesRequest, emit: Emitter) -> OutboundMessage:
        info = self.workspace_info()
        LOGGER.info(
            "Sending workspace info: %d folders, %d open files",
            len(info.folders),
            len(info.open_files),
        )
        return info

    async def _get_file_content(self, request: FilePathRequest, emit: Emitter) -> OutboundMessage:
        target = self._workspace.resolve_path(request.file_path)
        LOGGER.info("Getting content for file: %s", target)
        document = self._workspace.find_document(target)
        if document is not None:
            content = document.get_text()
            language = document.language_id
        else:
            content = await self._read_current(target)
            language = target.suffix[1:]
        self._store.set_if_absent(target, content)
        return FileContentMessage(path=str(target), name=target.name, content=content, language=language)

    async def _modify_file(self, request: ModifyFileRequest, emit: Emitter) -> OutboundMessage:
        result = await self._applier.modify_file(request.file_path, request.content, request.description)
        return FileModifiedMessage(path=str(result.path))

    async def _create_file(self, request: CreateFileRequest, emit: Emitter) -> OutboundMessage:
        result = await self._applier.create_file(request.file_path, request.content)
        return FileCreatedMessage(path=str(result.path))

    async def _render_preview(self, request: FilePathRequest, emit: Emitter) -> OutboundMessage:
        target = self._workspace.resolve_path(request.file_path)
        content = await self._read_current(target)
        artifact = await self._renderer.render(target, content)
        return PreviewMessage(
            path=str(artifact.path),
            name=artifact.name,
            content=artifact.content,
            preview_type=artifact.preview_type,
        )

    async def _get_diff(self, request: FilePathRequest, emit: Emitter) -> OutboundMessage:
        diff = await self._diff_engine.diff(request.file_path)
        return DiffMessage(
            path=str(diff.path),
            name=diff.name,
            original_content=diff.original_content,
            current_content=diff.current_content,
        )

    async def _chat_message(self, request: ChatRequest, emit: Emitter) -> OutboundMessage:
        if self._chat is None:
            raise UpstreamError("No language model client is configured")
        return await self._chat.respond(request.message, request.execute_mode, emit)
