"""Self-contained HTML previews chosen by file extension."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..errors import ReloadServerError, UnsupportedPreviewError
from .reload_server import LiveReloadServer

__all__ = [
    "COMPONENT_EXTENSIONS",
    "PreviewArtifact",
    "PreviewRenderer",
    "escape_html",
]

LOGGER = logging.getLogger(__name__)

COMPONENT_EXTENSIONS = frozenset({".tsx", ".jsx", ".ts", ".js"})

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#039;",
}
_HTML_TRANSLATION = str.maketrans(_HTML_ESCAPES)

_JSON_HIGHLIGHTER = r"""
<script>
    function syntaxHighlight(json) {
        json = json.replace(/&/g, '&amp;').replace(/</g, '&lt;').replace(/>/g, '&gt;');
        return json.replace(/("(\\u[a-zA-Z0-9]{4}|\\[^u]|[^\\"])*"(\s*:)?|\b(true|false|null)\b|-?\d+(?:\.\d*)?(?:[eE][+\-]?\d+)?)/g, function (match) {
            var cls = 'number';
            if (/^"/.test(match)) {
                cls = /:$/.test(match) ? 'key' : 'string';
            } else if (/true|false/.test(match)) {
                cls = 'boolean';
            } else if (/null/.test(match)) {
                cls = 'null';
            }
            return '<span class="' + cls + '">' + match + '</span>';
        });
    }
    var container = document.getElementById('json-container');
    container.innerHTML = syntaxHighlight(container.textContent);
</script>
"""

_JSON_STYLE = """
body { margin: 0; padding: 20px; font-family: 'Courier New', monospace; background-color: #f5f5f5; }
pre { background-color: #fff; border: 1px solid #ddd; border-radius: 4px; padding: 15px; overflow: auto; max-height: 90vh; white-space: pre-wrap; }
.string { color: #008000; }
.number { color: #0000ff; }
.boolean { color: #b22222; }
.null { color: #808080; }
.key { color: #a52a2a; }
"""

_WARNING_STYLE = ".warning { color: #ff0000; background-color: #ffe0e0; padding: 10px; margin-bottom: 15px; border-radius: 4px; }"


def escape_html(text: str) -> str:
    """Escape ``& < > " '`` so ``text`` is inert inside HTML markup."""
    return text.translate(_HTML_TRANSLATION)


@dataclass(slots=True)
class PreviewArtifact:
    """Rendered preview document for a single file."""

    path: Path
    name: str
    content: str
    preview_type: str = "html"


def _reject_constant(token: str) -> Any:
    raise ValueError(f"Unexpected token {token} in JSON")


def _document(title: str, style: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        '<meta charset="UTF-8">\n'
        f"<title>{escape_html(title)}</title>\n"
        f"<style>\n{style}\n</style>\n"
        "</head>\n"
        "<body>\n"
        f"{body}\n"
        "</body>\n"
        "</html>\n"
    )


class PreviewRenderer:
    """Turn file content into a previewable HTML document."""

    def __init__(self, reload_server: Optional[LiveReloadServer] = None) -> None:
        self._reload_server = reload_server

    async def render(self, path: Path | str, content: str) -> PreviewArtifact:
        target = Path(path)
        extension = target.suffix.lower()
        LOGGER.info("Rendering preview for: %s", target)

        if extension in COMPONENT_EXTENSIONS:
            rendered = await self._render_component(target)
        elif extension == ".html":
            rendered = content
        elif extension == ".css":
            rendered = self.render_css(target.name, content)
        elif extension == ".json":
            rendered = self.render_json(target.name, content)
        else:
            raise UnsupportedPreviewError(extension)

        return PreviewArtifact(path=target, name=target.name, content=rendered)

    async def _render_component(self, target: Path) -> str:
        if self._reload_server is None:
            raise ReloadServerError("No live-reload server is configured")
        url = await self._reload_server.start()
        style = (
            "body { margin: 0; padding: 0; height: 100vh; overflow: hidden; }\n"
            "iframe { width: 100%; height: 100%; border: none; }"
        )
        body = f'<iframe src="{escape_html(url)}" id="devServerFrame"></iframe>'
        return _document(f"React Component Preview - {target.name}", style, body)

    @staticmethod
    def render_css(name: str, content: str) -> str:
        """Embed a stylesheet in a page of sample elements it can style."""
        body = (
            '<div class="preview-container">\n'
            "    <h1>CSS Preview</h1>\n"
            "    <p>This is a preview of how the CSS might look applied to basic HTML elements.</p>\n"
            "    <button>Button Example</button>\n"
            '    <a href="#">Link Example</a>\n'
            '    <div class="box">Styled Box</div>\n'
            "</div>"
        )
        return _document(f"Preview - {name}", content, body)

    @staticmethod
    def render_json(name: str, content: str) -> str:
        """Pretty-print JSON with client-side highlighting, or warn if invalid."""
        try:
            parsed = json.loads(content, parse_constant=_reject_constant)
        except ValueError as error:
            body = (
                f'<div class="warning">Warning: Invalid JSON format - {escape_html(str(error))}</div>\n'
                f"<pre>{escape_html(content)}</pre>"
            )
            return _document(f"JSON Preview (Invalid) - {name}", _JSON_STYLE + _WARNING_STYLE, body)

        formatted = json.dumps(parsed, indent=2, ensure_ascii=False)
        body = f'<pre id="json-container">{escape_html(formatted)}</pre>\n{_JSON_HIGHLIGHTER}'
        return _document(f"JSON Preview - {name}", _JSON_STYLE, body)
