"""CLI commands for configuring and running the CodeBanter server."""

from __future__ import annotations

import logging
import threading
import webbrowser
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from .config import DEFAULT_CONFIG_NAME, Settings, default_config, load_config, write_config
from .errors import ConfigError
from .models import AnthropicClient
from .server import build_services, create_app
from .tools.diff import FileDiff

APP_HELP = "CodeBanter: chat with a language model about the code in your workspace."

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help=APP_HELP)


def _load_settings(config_path: Path) -> Settings:
    try:
        config_data = load_config(config_path)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error
    return Settings.from_config(config_data, base_dir=config_path.resolve().parent)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _require_api_key(settings: Settings) -> str:
    if settings.api_key:
        return settings.api_key
    answer = typer.prompt(
        "Enter your Anthropic API key",
        default="",
        show_default=False,
        hide_input=True,
    )
    if not answer.strip():
        typer.echo("API key is required to run CodeBanter.")
        raise typer.Exit(code=1)
    return answer.strip()


@app.command()
def init(
    path: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--path",
        "-p",
        help="Where to write the configuration file.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing configuration file.",
    ),
) -> None:
    """Write a default configuration file."""
    config_path = Path(path)
    if config_path.exists() and not force:
        typer.echo(f"Configuration already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=1)
    write_config(config_path, default_config())
    typer.echo(f"Wrote configuration to {config_path}.")


@app.command()
def serve(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the CodeBanter configuration file.",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        help="Port for the HTTP and websocket server.",
    ),
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        help="Anthropic API key (overrides config and environment).",
    ),
    open_browser: Optional[bool] = typer.Option(
        None,
        "--open/--no-open",
        help="Open the chat UI in a browser once the server is up.",
    ),
) -> None:
    """Run the websocket server for the chat UI."""
    settings = _load_settings(Path(config))
    if port is not None:
        settings.port = port
    if api_key:
        settings.api_key = api_key.strip()
    if open_browser is not None:
        settings.open_browser = open_browser

    _configure_logging(settings.log_level)
    key = _require_api_key(settings)

    try:
        client = AnthropicClient(
            api_key=key,
            base_url=settings.base_url,
            model=settings.model,
            max_tokens=settings.max_tokens,
            timeout=settings.timeout,
            max_attempts=settings.max_attempts,
        )
    except ValueError as error:
        typer.echo(f"Failed to initialise Anthropic client: {error}")
        raise typer.Exit(code=1) from error

    if not settings.folders:
        typer.echo("Warning: no workspace folders configured; file operations will fail.")
    LOGGER.info("Workspace folders: %s", ", ".join(str(folder) for folder in settings.folders) or "none")

    services = build_services(settings, client=client)
    application = create_app(services, ui_path=settings.ui_path, watch_files=settings.watch_files)

    url = f"http://{settings.host}:{settings.port}"
    typer.echo(f"CodeBanter listening on {url} (model {settings.model}).")
    if settings.open_browser:
        threading.Timer(1.0, webbrowser.open, args=(url,)).start()

    uvicorn.run(
        application,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


@app.command()
def diff(
    baseline: Path = typer.Argument(..., help="File holding the original content."),
    current: Path = typer.Argument(..., help="File holding the current content."),
    context: int = typer.Option(3, "--context", "-U", min=0, help="Lines of context."),
) -> None:
    """Print a unified diff between a saved baseline and the current file."""
    try:
        original_text = baseline.read_text(encoding="utf-8", errors="replace")
        current_text = current.read_text(encoding="utf-8", errors="replace")
    except OSError as error:
        typer.echo(f"Failed to read file: {error}")
        raise typer.Exit(code=2) from error

    file_diff = FileDiff(
        path=current,
        name=current.name,
        original_content=original_text,
        current_content=current_text,
    )
    if not file_diff.changed:
        typer.echo("No changes.")
        return
    typer.echo(file_diff.unified(context=context), nl=False)
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
