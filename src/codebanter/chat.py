"""Chat turn handling: prompt assembly, the model call and execute mode."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .editor import EditorWorkspace
from .messages import ChatResponseMessage, OutboundMessage
from .models.llm_client import LLMClient, LLMRequest
from .parser import ResponseParser
from .prompts import render_file_context, render_workspace_context, system_prompt
from .tools.file_ops import FileOperationApplier

__all__ = ["ChatService"]

LOGGER = logging.getLogger(__name__)

Emitter = Callable[[OutboundMessage], Awaitable[None]]


class ChatService:
    """Answer one chat message, applying file blocks when in execute mode."""

    def __init__(
        self,
        *,
        client: LLMClient,
        workspace: EditorWorkspace,
        parser: ResponseParser,
        applier: FileOperationApplier,
        temperature: Optional[float] = None,
    ) -> None:
        self._client = client
        self._temperature = temperature
        self._workspace = workspace
        self._parser = parser
        self._applier = applier

    def build_prompt(self, message: str) -> str:
        folders = self._workspace.folders
        project = folders[0].name if folders else None
        open_files = [item.name for item in self._workspace.open_files()]
        return (
            render_workspace_context(project, open_files)
            + render_file_context(self._workspace.active_file())
            + message
        )

    async def respond(self, message: str, execute_mode: bool, emit: Emitter) -> ChatResponseMessage:
        """Call the model and, in execute mode, apply the files it describes.

        File-operation acknowledgements go out through ``emit`` before the
        returned chat message is sent.
        """
        LOGGER.info("Execute mode is: %s", "ENABLED" if execute_mode else "DISABLED")
        request = LLMRequest(
            prompt=self.build_prompt(message),
            system_prompt=system_prompt(execute_mode),
            temperature=self._temperature,
        )
        # Blocking call; run it off the event loop.
        reply = await asyncio.to_thread(self._client.complete, request)

        files_processed = False
        if execute_mode:
            files_processed = await self._parser.apply(reply, self._applier, emit)

        return ChatResponseMessage(
            message=reply,
            execute_mode=execute_mode,
            files_processed=files_processed,
        )
