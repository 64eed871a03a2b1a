from __future__ import annotations

import asyncio
import gc
from pathlib import Path
from typing import List

import pytest

from codebanter.editor import LocalEditorWorkspace
from codebanter.errors import NoWorkspaceError


def test_resolve_path_uses_first_folder(project_root: Path, tmp_path: Path) -> None:
    workspace = LocalEditorWorkspace([project_root, tmp_path])

    assert workspace.resolve_path("src/app.js") == project_root / "src" / "app.js"
    assert workspace.resolve_path(tmp_path / "x.txt") == tmp_path / "x.txt"


def test_resolve_relative_path_without_folder(tmp_path: Path) -> None:
    workspace = LocalEditorWorkspace()

    assert workspace.resolve_path(tmp_path / "x.txt") == tmp_path / "x.txt"
    with pytest.raises(NoWorkspaceError):
        workspace.resolve_path("x.txt")


def test_async_listeners_run_to_completion(workspace: LocalEditorWorkspace, project_root: Path) -> None:
    seen: List[Path] = []

    async def listener(path: Path) -> None:
        await asyncio.sleep(0.01)
        seen.append(path)

    workspace.on_file_changed(listener)

    async def scenario() -> None:
        workspace.notify_external_change(project_root / "a.txt")
        gc.collect()
        while workspace._pending:
            await asyncio.sleep(0.01)

    asyncio.run(scenario())

    assert seen == [project_root / "a.txt"]


def test_notify_from_worker_thread_runs_on_loop(workspace: LocalEditorWorkspace, project_root: Path) -> None:
    target = project_root / "b.txt"

    async def scenario() -> List[Path]:
        loop = asyncio.get_running_loop()
        received: asyncio.Queue = asyncio.Queue()

        def listener(path: Path) -> None:
            assert asyncio.get_running_loop() is loop
            received.put_nowait(path)

        workspace.bind_loop(loop)
        workspace.on_file_changed(listener)
        await asyncio.to_thread(workspace.notify_external_change, target)
        return [await asyncio.wait_for(received.get(), 1)]

    assert asyncio.run(scenario()) == [target]


def test_unsubscribe_stops_delivery(workspace: LocalEditorWorkspace, project_root: Path) -> None:
    seen: List[Path] = []
    unsubscribe = workspace.on_file_changed(seen.append)

    workspace.notify_external_change(project_root / "c.txt")
    unsubscribe()
    workspace.notify_external_change(project_root / "d.txt")

    assert seen == [project_root / "c.txt"]


def test_watch_reports_external_edits_only(project_root: Path) -> None:
    external = project_root / "theirs.txt"
    internal = project_root / "ours.txt"
    external.write_text("0", encoding="utf-8")
    internal.write_text("0", encoding="utf-8")
    workspace = LocalEditorWorkspace([project_root], debounce_ms=50)

    async def scenario() -> List[Path]:
        changed: asyncio.Queue = asyncio.Queue()
        workspace.on_file_changed(changed.put_nowait)
        stop = asyncio.Event()
        watcher = asyncio.create_task(workspace.watch(stop))
        seen: List[Path] = []
        try:
            for attempt in range(40):
                await workspace.write_file(internal, f"ours {attempt}".encode("utf-8"))
                external.write_text(f"theirs {attempt}", encoding="utf-8")
                try:
                    seen.append(await asyncio.wait_for(changed.get(), 0.25))
                except asyncio.TimeoutError:
                    continue
                if external in seen:
                    break
        finally:
            stop.set()
            await watcher
        while not changed.empty():
            seen.append(changed.get_nowait())
        return seen

    seen = asyncio.run(scenario())

    assert external in seen
    assert internal not in seen


def test_watch_without_folders_returns() -> None:
    workspace = LocalEditorWorkspace()

    asyncio.run(workspace.watch(asyncio.Event()))

    assert workspace.folders == []
