from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from codebanter.editor import LocalEditorWorkspace  # noqa: E402
from codebanter.messages import OutboundMessage  # noqa: E402
from codebanter.tools.content_store import ContentStore  # noqa: E402
from codebanter.tools.file_ops import FileOperationApplier  # noqa: E402


@dataclass(slots=True)
class Recorder:
    """Collects outbound messages in the order they were emitted."""

    messages: List[OutboundMessage] = field(default_factory=list)

    async def __call__(self, message: OutboundMessage) -> None:
        self.messages.append(message)

    @property
    def types(self) -> List[str]:
        return [message.type for message in self.messages]

    @property
    def payloads(self) -> List[dict]:
        return [message.to_payload() for message in self.messages]


@pytest.fixture()
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture()
def workspace(project_root: Path) -> LocalEditorWorkspace:
    return LocalEditorWorkspace([project_root])


@pytest.fixture()
def store() -> ContentStore:
    return ContentStore()


@pytest.fixture()
def applier(workspace: LocalEditorWorkspace, store: ContentStore) -> FileOperationApplier:
    return FileOperationApplier(workspace, store)


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()
