from __future__ import annotations

from functools import partial
from pathlib import Path

import anyio
import typer

from . import __version__
from .config import ConfigError
from .logging import get_logger, setup_logging
from .loop import run_bot
from .settings import load_settings
from .store import Topic, TopicStore, TopicStoreError

logger = get_logger(__name__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="File Telegram General-topic messages into forum topics.",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """save-message CLI."""


@app.command()
def run(
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to a save-message.toml file.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log Telegram requests and render logs for humans.",
    ),
) -> None:
    """Start long-polling Telegram."""
    setup_logging(debug=debug)
    try:
        settings, config_path = load_settings(config)
    except ConfigError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    logger.info(
        "startup",
        version=__version__,
        config_path=str(config_path) if config_path else None,
        database_path=str(settings.database_path),
    )
    try:
        anyio.run(run_bot, settings)
    except TopicStoreError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        logger.info("shutdown.interrupted")
        raise typer.Exit(code=130) from None


async def _stored_topics(path: Path, chat_id: int) -> list[Topic]:
    store = TopicStore(path)
    try:
        return await store.get_topics_by_chat(chat_id)
    finally:
        await store.close()


@app.command()
def topics(
    chat_id: int = typer.Argument(..., help="Telegram chat id."),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to a save-message.toml file.",
    ),
) -> None:
    """Print the topics stored for a chat."""
    try:
        settings, _ = load_settings(config)
        stored = anyio.run(partial(_stored_topics, settings.database_path, chat_id))
    except (ConfigError, TopicStoreError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    if not stored:
        typer.echo(f"no topics stored for chat {chat_id}")
        return
    for topic in stored:
        thread = topic.thread_id if topic.thread_id is not None else "-"
        typer.echo(f"{thread}\t{topic.name}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
