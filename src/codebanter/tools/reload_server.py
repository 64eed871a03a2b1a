"""Singleton handle for the live-reload dev server used by component previews."""

from __future__ import annotations

import asyncio
import json
import logging
import textwrap
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from ..errors import ReloadServerError

__all__ = [
    "DEFAULT_RELOAD_COMMAND",
    "LiveReloadServer",
    "ensure_preview_scaffold",
    "probe_port",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_RELOAD_COMMAND: tuple[str, ...] = (
    "npx",
    "webpack-dev-server",
    "--mode=development",
    "--port",
    "{port}",
    "--open=false",
    "--hot",
)

_PREVIEW_PACKAGE: dict[str, Any] = {
    "name": "codebanter-preview",
    "version": "0.1.0",
    "private": True,
    "dependencies": {
        "react": "^17.0.2",
        "react-dom": "^17.0.2",
    },
}

_PREVIEW_INDEX = textwrap.dedent(
    """
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>CodeBanter Preview</title>
    </head>
    <body>
        <div id="root"></div>
    </body>
    </html>
    """
).lstrip()

Spawner = Callable[[Sequence[str], Path], Awaitable[Any]]
Probe = Callable[[str, int], Awaitable[bool]]
StartedCallback = Callable[[str], Any]


async def probe_port(host: str, port: int) -> bool:
    """Return ``True`` when something accepts TCP connections on ``host:port``."""
    try:
        _, writer = await asyncio.open_connection(host, port)
    except OSError:
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def _spawn_process(command: Sequence[str], cwd: Path) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        *command,
        cwd=str(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


def ensure_preview_scaffold(root: Path) -> List[Path]:
    """Write a minimal React ``package.json`` and ``public/index.html`` if absent.

    Returns the files that were created.
    """
    created: List[Path] = []
    package_json = root / "package.json"
    if package_json.exists():
        return created
    package_json.write_text(json.dumps(_PREVIEW_PACKAGE, indent=2), encoding="utf-8")
    created.append(package_json)

    index_html = root / "public" / "index.html"
    if not index_html.exists():
        index_html.parent.mkdir(parents=True, exist_ok=True)
        index_html.write_text(_PREVIEW_INDEX, encoding="utf-8")
        created.append(index_html)
    return created


class LiveReloadServer:
    """Start-once, stop-explicitly handle around a dev-server process.

    ``start`` is idempotent: concurrent callers share one launch and later
    callers return immediately while the process is alive.  Readiness is
    established by polling the TCP port rather than waiting a fixed delay.
    """

    def __init__(
        self,
        root_provider: Callable[[], Optional[Path]],
        *,
        port: int = 3001,
        host: str = "localhost",
        command: Sequence[str] = DEFAULT_RELOAD_COMMAND,
        startup_timeout: float = 30.0,
        poll_interval: float = 0.25,
        spawner: Spawner | None = None,
        probe: Probe | None = None,
        on_started: StartedCallback | None = None,
    ) -> None:
        self._root_provider = root_provider
        self._port = port
        self._host = host
        self._command = tuple(command)
        self._startup_timeout = startup_timeout
        self._poll_interval = poll_interval
        self._spawner = spawner or _spawn_process
        self._probe = probe or probe_port
        self._on_started = on_started
        self._process: Any = None
        self._pumps: List[asyncio.Task[None]] = []
        self._start_lock = asyncio.Lock()

    @property
    def port(self) -> int:
        return self._port

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self._port}"

    @property
    def running(self) -> bool:
        process = self._process
        return process is not None and process.returncode is None

    def set_started_callback(self, callback: StartedCallback | None) -> None:
        self._on_started = callback

    def render_command(self) -> List[str]:
        return [part.replace("{port}", str(self._port)) for part in self._command]

    async def start(self) -> str:
        """Ensure the dev server is running and reachable; return its URL."""
        async with self._start_lock:
            if self.running:
                LOGGER.debug("Development server already running")
                return self.url

            root = self._root_provider()
            if root is None:
                raise ReloadServerError("No workspace folder found")

            created = ensure_preview_scaffold(root)
            for path in created:
                LOGGER.info("Created preview scaffold file %s", path)

            command = self.render_command()
            LOGGER.info("Starting development server in %s: %s", root, " ".join(command))
            try:
                self._process = await self._spawner(command, root)
            except OSError as error:
                self._process = None
                raise ReloadServerError(f"Failed to start development server: {error}") from error

            self._attach_pumps(self._process)
            await self._wait_until_ready()
            LOGGER.info("Development server started on port %s", self._port)

        if self._on_started is not None:
            result = self._on_started(self.url)
            if asyncio.iscoroutine(result):
                await result
        return self.url

    async def stop(self) -> None:
        """Terminate the process if there is one; always clears the handle."""
        process = self._process
        self._process = None
        if process is not None and process.returncode is None:
            LOGGER.info("Stopping development server")
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
        for task in self._pumps:
            task.cancel()
        self._pumps.clear()

    async def _wait_until_ready(self) -> None:
        deadline = time.monotonic() + self._startup_timeout
        while True:
            if self._process.returncode is not None:
                code = self._process.returncode
                self._process = None
                raise ReloadServerError(f"Development server exited with code {code}")
            if await self._probe(self._host, self._port):
                return
            if time.monotonic() >= deadline:
                await self.stop()
                raise ReloadServerError(
                    f"Development server did not accept connections on port {self._port} "
                    f"within {self._startup_timeout:g}s"
                )
            await asyncio.sleep(self._poll_interval)

    def _attach_pumps(self, process: Any) -> None:
        for stream, level in (
            (getattr(process, "stdout", None), logging.INFO),
            (getattr(process, "stderr", None), logging.WARNING),
        ):
            if stream is not None:
                self._pumps.append(asyncio.ensure_future(self._pump(stream, level)))

    @staticmethod
    async def _pump(stream: asyncio.StreamReader, level: int) -> None:
        while True:
            line = await stream.readline()
            if not line:
                return
            LOGGER.log(level, "Dev server: %s", line.decode("utf-8", errors="replace").rstrip())
