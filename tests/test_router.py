from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from codebanter.chat import ChatService
from codebanter.editor import LocalEditorWorkspace
from codebanter.models.llm_client import LLMClient
from codebanter.parser import ResponseParser
from codebanter.prompts import CHAT_SYSTEM_PROMPT, EXECUTE_SYSTEM_PROMPT
from codebanter.router import MessageRouter
from codebanter.tools.diff import DiffEngine
from codebanter.tools.file_ops import FileOperationApplier
from codebanter.tools.preview import PreviewRenderer


class _DummyClient(LLMClient):
    def __init__(self, reply: str) -> None:
        super().__init__(model="dummy")
        self.reply = reply
        self.payloads: List[Dict[str, Any]] = []

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        self.payloads.append(payload)
        return self.reply


def _router(workspace, store, applier, client: Optional[LLMClient] = None) -> MessageRouter:
    chat = None
    if client is not None:
        chat = ChatService(
            client=client,
            workspace=workspace,
            parser=ResponseParser(workspace),
            applier=applier,
        )
    return MessageRouter(
        workspace=workspace,
        store=store,
        applier=applier,
        renderer=PreviewRenderer(),
        diff_engine=DiffEngine(workspace, store),
        chat=chat,
    )


def _send(router: MessageRouter, recorder, message: Any) -> Dict[str, Any]:
    raw = message if isinstance(message, (str, bytes)) else json.dumps(message)
    before = len(recorder.messages)
    asyncio.run(router.handle(raw, recorder))
    assert len(recorder.messages) > before
    return recorder.payloads[-1]


@pytest.fixture()
def router(workspace, store, applier) -> MessageRouter:
    return _router(workspace, store, applier)


def test_baseline_survives_modify(project_root: Path, router, recorder) -> None:
    target = project_root / "index.js"
    target.write_text("const a = 1;\n", encoding="utf-8")

    first = _send(router, recorder, {"type": "getFileContent", "filePath": str(target)})
    _send(router, recorder, {"type": "modifyFile", "filePath": str(target), "content": "const a = 2;\n"})
    _send(router, recorder, {"type": "getFileContent", "filePath": str(target)})
    diff = _send(router, recorder, {"type": "getDiff", "filePath": str(target)})

    assert first["content"] == "const a = 1;\n"
    assert diff == {
        "type": "diff",
        "path": str(target),
        "name": "index.js",
        "originalContent": "const a = 1;\n",
        "currentContent": "const a = 2;\n",
    }


def test_file_content_reply_shape(project_root: Path, router, recorder) -> None:
    target = project_root / "README.md"
    target.write_text("# Title", encoding="utf-8")

    reply = _send(router, recorder, {"type": "getFileContent", "filePath": str(target)})

    assert reply == {
        "type": "fileContent",
        "path": str(target),
        "name": "README.md",
        "content": "# Title",
        "language": "md",
    }


def test_open_document_reports_language_id(project_root: Path, workspace, router, recorder) -> None:
    target = project_root / "App.tsx"
    target.write_text("disk", encoding="utf-8")
    workspace.open_document(target).replace_all("unsaved")

    reply = _send(router, recorder, {"type": "getFileContent", "filePath": str(target)})

    assert reply["content"] == "unsaved"
    assert reply["language"] == "typescriptreact"


def test_create_on_existing_path_fails_without_write(project_root: Path, router, recorder) -> None:
    target = project_root / "keep.txt"
    target.write_text("original", encoding="utf-8")

    reply = _send(router, recorder, {"type": "createFile", "filePath": str(target), "content": "clobber"})

    assert reply == {"type": "error", "message": f"Error creating file: File already exists: {target}"}
    assert target.read_text(encoding="utf-8") == "original"


def test_modify_missing_path_fails_without_write(project_root: Path, router, recorder) -> None:
    target = project_root / "ghost.txt"

    reply = _send(router, recorder, {"type": "modifyFile", "filePath": str(target), "content": "boo"})

    assert reply == {"type": "error", "message": f"Error modifying file: File does not exist: {target}"}
    assert not target.exists()


def test_create_then_read_round_trip(project_root: Path, router, recorder) -> None:
    target = project_root / "nested" / "deep" / "data.txt"
    content = "line one\n  line two\n\tüñíçødé\n"

    created = _send(router, recorder, {"type": "createFile", "filePath": str(target), "content": content})
    read = _send(router, recorder, {"type": "getFileContent", "filePath": str(target)})

    assert created == {"type": "fileCreated", "path": str(target), "success": True}
    assert read["content"] == content


def test_relative_file_paths_use_workspace_root(
    project_root: Path, tmp_path: Path, router, recorder, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    target = project_root / "notes" / "todo.txt"

    created = _send(router, recorder, {"type": "createFile", "filePath": "notes/todo.txt", "content": "milk"})
    read = _send(router, recorder, {"type": "getFileContent", "filePath": "notes/todo.txt"})
    _send(router, recorder, {"type": "modifyFile", "filePath": "notes/todo.txt", "content": "eggs"})
    diff = _send(router, recorder, {"type": "getDiff", "filePath": "notes/todo.txt"})

    assert created == {"type": "fileCreated", "path": str(target), "success": True}
    assert read["path"] == str(target)
    assert read["content"] == "milk"
    assert diff["originalContent"] == "milk"
    assert diff["currentContent"] == "eggs"
    assert target.read_text(encoding="utf-8") == "eggs"
    assert not (tmp_path / "notes").exists()


def test_relative_file_path_without_workspace(store, recorder) -> None:
    workspace = LocalEditorWorkspace()
    router = _router(workspace, store, FileOperationApplier(workspace, store))

    reply = _send(router, recorder, {"type": "getFileContent", "filePath": "notes/todo.txt"})

    assert reply == {"type": "error", "message": "Error getting file content: No workspace folder is open"}


def test_get_files_describes_workspace(project_root: Path, workspace, router, recorder) -> None:
    target = project_root / "main.py"
    target.write_text("print('hi')\n", encoding="utf-8")
    workspace.open_document(target)

    reply = _send(router, recorder, {"type": "getFiles"})

    assert reply["type"] == "workspaceInfo"
    assert reply["folders"] == [{"name": "project", "path": str(project_root)}]
    assert reply["openFiles"] == [
        {"path": str(target), "name": "main.py", "language": "python", "isActive": True}
    ]
    assert reply["activeFile"]["content"] == "print('hi')\n"


def test_render_preview_reads_file(project_root: Path, router, recorder) -> None:
    target = project_root / "config.json"
    target.write_text('{"debug": true}', encoding="utf-8")

    reply = _send(router, recorder, {"type": "renderPreview", "filePath": str(target)})

    assert reply["type"] == "preview"
    assert reply["previewType"] == "html"
    assert "&quot;debug&quot;: true" in reply["content"]


def test_render_preview_unsupported(project_root: Path, router, recorder) -> None:
    target = project_root / "tool.rb"
    target.write_text("puts 1", encoding="utf-8")

    reply = _send(router, recorder, {"type": "renderPreview", "filePath": str(target)})

    assert reply == {
        "type": "error",
        "message": "Error rendering preview: Preview not supported for file type: .rb",
    }


def test_diff_without_baseline(project_root: Path, router, recorder) -> None:
    target = project_root / "never-read.txt"
    target.write_text("x", encoding="utf-8")

    reply = _send(router, recorder, {"type": "getDiff", "filePath": str(target)})

    assert reply == {"type": "error", "message": f"Error generating diff: No original content stored for {target}"}


def test_unknown_type_is_named(router, recorder) -> None:
    reply = _send(router, recorder, {"type": "deleteEverything"})

    assert reply == {"type": "error", "message": "Unknown message type: deleteEverything"}


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"filePath": "x"}', '{"type": 7}', b"\xff\xfe"])
def test_malformed_messages_get_generic_error(router, recorder, raw) -> None:
    reply = _send(router, recorder, raw)

    assert reply == {"type": "error", "message": "Error processing message"}


def test_missing_field_is_reported(router, recorder) -> None:
    reply = _send(router, recorder, {"type": "getFileContent"})

    assert reply["type"] == "error"
    assert reply["message"].startswith("Invalid getFileContent message: filePath")


def test_exactly_one_reply_per_message(project_root: Path, router, recorder) -> None:
    target = project_root / "one.txt"
    for message in (
        {"type": "getFiles"},
        {"type": "createFile", "filePath": str(target), "content": "1"},
        {"type": "createFile", "filePath": str(target), "content": "1"},
        {"type": "nope"},
        "{broken",
    ):
        before = len(recorder.messages)
        asyncio.run(router.handle(message if isinstance(message, str) else json.dumps(message), recorder))
        assert len(recorder.messages) == before + 1


def test_chat_without_client(router, recorder) -> None:
    reply = _send(router, recorder, {"type": "chat", "message": "hi"})

    assert reply == {
        "type": "error",
        "message": "Error processing chat message: No language model client is configured",
    }


def test_chat_mode_does_not_touch_files(project_root: Path, workspace, store, applier, recorder) -> None:
    client = _DummyClient("Here you go:\n```js // hello.js\nconsole.log('hi')\n```")
    router = _router(workspace, store, applier, client)

    reply = _send(router, recorder, {"type": "chat", "message": "Write hello.js"})

    assert recorder.types == ["chat"]
    assert reply["executeMode"] is False
    assert reply["filesProcessed"] is False
    assert not (project_root / "hello.js").exists()
    assert client.payloads[0]["system"] == CHAT_SYSTEM_PROMPT


def test_execute_mode_applies_files_before_reply(project_root: Path, workspace, store, applier, recorder) -> None:
    client = _DummyClient("Here you go:\n```js // hello.js\nconsole.log('hi')\n```")
    router = _router(workspace, store, applier, client)

    reply = _send(router, recorder, {"type": "chat", "message": "Write hello.js", "executeMode": True})

    assert recorder.types == ["fileCreated", "chat"]
    assert reply["filesProcessed"] is True
    assert reply["message"] == client.reply
    assert (project_root / "hello.js").read_text(encoding="utf-8") == "console.log('hi')"
    assert client.payloads[0]["system"] == EXECUTE_SYSTEM_PROMPT


def test_chat_prompt_includes_workspace_context(project_root: Path, workspace, store, applier, recorder) -> None:
    target = project_root / "app.py"
    target.write_text("x = 1\n", encoding="utf-8")
    workspace.open_document(target)
    client = _DummyClient("Looks fine.")
    router = _router(workspace, store, applier, client)

    _send(router, recorder, {"type": "chat", "message": "Review this"})

    prompt = client.payloads[0]["messages"][0]["content"]
    assert prompt.startswith("Working in project: project\n\nOpen files: app.py\n\n")
    assert "Currently viewing file: app.py\n\nFile content:\n```\nx = 1\n\n```\n\n" in prompt
    assert prompt.endswith("Review this")
    assert "temperature" not in client.payloads[0]


def test_chat_temperature_is_sent(workspace, applier, recorder) -> None:
    client = _DummyClient("ok")
    chat = ChatService(
        client=client,
        workspace=workspace,
        parser=ResponseParser(workspace),
        applier=applier,
        temperature=0.2,
    )

    asyncio.run(chat.respond("hi", False, recorder))

    assert client.payloads[0]["temperature"] == 0.2
    assert client.payloads[0]["model"] == "dummy"


def test_upstream_failure_becomes_error(workspace, store, applier, recorder) -> None:
    client = _DummyClient("   ")
    router = _router(workspace, store, applier, client)

    reply = _send(router, recorder, {"type": "chat", "message": "hello"})

    assert reply["type"] == "error"
    assert reply["message"].startswith("Error processing chat message: ")
