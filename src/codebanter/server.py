"""FastAPI application exposing the router over a websocket."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.staticfiles import StaticFiles

from .chat import ChatService
from .config import Settings
from .editor import EditorWorkspace, LocalEditorWorkspace
from .messages import (
    ActiveEditorChangedMessage,
    DevServerStartedMessage,
    FileChangedMessage,
    OutboundMessage,
)
from .models.llm_client import LLMClient
from .parser import ResponseParser
from .router import MessageRouter
from .tools.content_store import ContentStore
from .tools.diff import DiffEngine
from .tools.file_ops import FileOperationApplier
from .tools.preview import PreviewRenderer
from .tools.reload_server import LiveReloadServer

__all__ = ["AppServices", "ConnectionManager", "build_services", "create_app"]

LOGGER = logging.getLogger(__name__)


class ConnectionManager:
    """Track open websocket connections and fan messages out to them."""

    def __init__(self) -> None:
        self._connections: Set[WebSocket] = set()

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)
        LOGGER.info("New WebSocket connection (%d open)", len(self._connections))

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    @staticmethod
    async def send(websocket: WebSocket, message: OutboundMessage) -> None:
        await websocket.send_json(message.to_payload())

    async def broadcast(self, message: OutboundMessage) -> None:
        """Send ``message`` to every connection; drop the ones that fail."""
        LOGGER.info("Broadcasting %s", message.type)
        for websocket in list(self._connections):
            try:
                await self.send(websocket, message)
            except Exception as error:
                LOGGER.warning("Dropping connection after failed broadcast: %s", error)
                self.disconnect(websocket)

    async def close_all(self) -> None:
        for websocket in list(self._connections):
            try:
                await websocket.close()
            except Exception as error:  # pragma: no cover - already closed by the peer
                LOGGER.debug("Ignoring error while closing websocket: %s", error)
            self.disconnect(websocket)


@dataclass(slots=True)
class AppServices:
    """Process-scoped components shared by every connection."""

    workspace: EditorWorkspace
    store: ContentStore
    applier: FileOperationApplier
    renderer: PreviewRenderer
    diff_engine: DiffEngine
    reload_server: LiveReloadServer
    parser: ResponseParser
    router: MessageRouter
    chat: Optional[ChatService] = None


def build_services(
    settings: Settings,
    *,
    workspace: Optional[EditorWorkspace] = None,
    client: Optional[LLMClient] = None,
    reload_server: Optional[LiveReloadServer] = None,
) -> AppServices:
    """Wire the components together from resolved settings."""
    workspace = workspace or LocalEditorWorkspace(settings.folders)
    store = ContentStore(max_entries=settings.snapshot_max_entries)
    applier = FileOperationApplier(workspace, store)
    if reload_server is None:
        reload_server = LiveReloadServer(
            lambda: workspace.root,
            port=settings.preview_port,
            command=settings.preview_command,
            startup_timeout=settings.preview_startup_timeout,
        )
    renderer = PreviewRenderer(reload_server)
    diff_engine = DiffEngine(workspace, store)
    parser = ResponseParser(workspace)
    chat = (
        ChatService(
            client=client,
            workspace=workspace,
            parser=parser,
            applier=applier,
            temperature=settings.temperature,
        )
        if client is not None
        else None
    )
    router = MessageRouter(
        workspace=workspace,
        store=store,
        applier=applier,
        renderer=renderer,
        diff_engine=diff_engine,
        chat=chat,
    )
    return AppServices(
        workspace=workspace,
        store=store,
        applier=applier,
        renderer=renderer,
        diff_engine=diff_engine,
        reload_server=reload_server,
        parser=parser,
        router=router,
        chat=chat,
    )


def create_app(
    services: AppServices,
    *,
    ui_path: Optional[Path] = None,
    watch_files: bool = True,
) -> FastAPI:
    """Create the FastAPI app serving the websocket and, optionally, the UI.

    With ``watch_files`` the workspace folders are watched for the lifetime
    of the app and external edits are broadcast as ``fileChanged``.
    """
    manager = ConnectionManager()

    async def watch_workspace(stop: asyncio.Event) -> None:
        try:
            await services.workspace.watch(stop)
        except Exception as error:
            LOGGER.error("File watcher stopped: %s", error)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        unsubscribe_changes = services.workspace.on_file_changed(
            lambda path: manager.broadcast(FileChangedMessage.for_path(path))
        )
        unsubscribe_active = services.workspace.on_active_editor_changed(
            lambda path: manager.broadcast(ActiveEditorChangedMessage.for_path(path))
        )
        services.reload_server.set_started_callback(
            lambda url: manager.broadcast(DevServerStartedMessage(url=url))
        )
        services.workspace.bind_loop(asyncio.get_running_loop())
        stop = asyncio.Event()
        watcher = asyncio.create_task(watch_workspace(stop)) if watch_files else None
        try:
            yield
        finally:
            stop.set()
            if watcher is not None:
                await watcher
            services.workspace.bind_loop(None)
            unsubscribe_changes()
            unsubscribe_active()
            services.reload_server.set_started_callback(None)
            await services.reload_server.stop()
            await manager.close_all()

    app = FastAPI(title="CodeBanter", lifespan=lifespan)
    app.state.services = services
    app.state.connections = manager

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "connections": len(manager),
            "devServer": services.reload_server.running,
        }

    @app.websocket("/")
    async def session(websocket: WebSocket) -> None:
        await manager.connect(websocket)

        async def emit(message: OutboundMessage) -> None:
            await manager.send(websocket, message)

        try:
            await emit(services.router.workspace_info())
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", 1000))
                raw = frame.get("text")
                if raw is None:
                    raw = frame.get("bytes") or b""
                await services.router.handle(raw, emit)
        except WebSocketDisconnect:
            LOGGER.info("WebSocket connection closed")
        finally:
            manager.disconnect(websocket)

    if ui_path is not None:
        if ui_path.is_dir():
            app.mount("/", StaticFiles(directory=str(ui_path), html=True), name="ui")
        else:
            LOGGER.warning("UI directory not found: %s", ui_path)

    return app
