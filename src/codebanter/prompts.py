"""Prompt templates and helpers for the chat assistant."""

from __future__ import annotations

from typing import Optional, Sequence

from .editor import ActiveFile

EXECUTE_SYSTEM_PROMPT = (
    "You are CodeBanter, an editor assistant that creates files directly in the user's workspace. "
    "IMPORTANT: Format your code blocks with the filename as a comment on the first line, like this: "
    "```js // filename.js\ncode here``` or ```html <!-- index.html -->\ncode here```. "
    "The user expects you to create actual files in their workspace based on your response."
)

CHAT_SYSTEM_PROMPT = (
    "You are CodeBanter, an editor assistant. You can view files but in Chat mode, you cannot modify them. "
    "Suggest switching to Execute mode if the user wants to make changes."
)


def system_prompt(execute_mode: bool) -> str:
    """Return the system prompt for the requested conversation mode."""
    return EXECUTE_SYSTEM_PROMPT if execute_mode else CHAT_SYSTEM_PROMPT


def render_workspace_context(project_name: Optional[str], open_files: Sequence[str]) -> str:
    """Describe the open project and its open files, or ``""`` without a project."""
    if not project_name:
        return ""
    context = f"Working in project: {project_name}\n\n"
    if open_files:
        context += f"Open files: {', '.join(open_files)}\n\n"
    return context


def render_file_context(active: Optional[ActiveFile]) -> str:
    """Inline the active editor's file so the model can see it."""
    if active is None:
        return ""
    return f"Currently viewing file: {active.name}\n\nFile content:\n```\n{active.content}\n```\n\n"


__all__ = [
    "CHAT_SYSTEM_PROMPT",
    "EXECUTE_SYSTEM_PROMPT",
    "render_file_context",
    "render_workspace_context",
    "system_prompt",
]
