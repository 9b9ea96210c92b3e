import asyncio
import json
import sys
from typing import Optional

import typer
from loguru import logger

from actionq.config import get_settings
from actionq.engine.persistence import FilePersistence
from actionq.errors import PersistenceError

app = typer.Typer(help="actionq CLI (inspect and maintain persisted queues)")


def queue_path_opt() -> Optional[str]:
    return typer.Option(None, "--queue-path", envvar="ACTIONQ_QUEUE_PATH", help="Live queue snapshot file")


def dead_letter_path_opt() -> Optional[str]:
    return typer.Option(
        None, "--dead-letter-path", envvar="ACTIONQ_DEAD_LETTER_PATH", help="Dead-letter snapshot file"
    )


def _store(queue_path: Optional[str], dead_letter_path: Optional[str]) -> FilePersistence:
    settings = get_settings()
    return FilePersistence(
        queue_path or settings.QUEUE_PATH,
        dead_letter_path or settings.DEAD_LETTER_PATH,
        mkdirs=False,
    )


def _read(coro):
    try:
        return asyncio.run(coro)
    except PersistenceError as e:
        logger.error(f"Failed to read snapshot: {e}")
        sys.exit(1)


@app.command()
def status(
    queue_path: Optional[str] = queue_path_opt(),
    dead_letter_path: Optional[str] = dead_letter_path_opt(),
):
    """Show live and dead-letter queue sizes."""
    store = _store(queue_path, dead_letter_path)
    queue = _read(store.read_queue())
    dead = _read(store.read_dead_letters())
    typer.echo(
        json.dumps(
            {
                "queue_size": len(queue),
                "dead_letter_size": len(dead),
                "head": queue[0].type if queue else None,
            },
            indent=2,
        )
    )


@app.command("list-queue")
def list_queue(
    queue_path: Optional[str] = queue_path_opt(),
    dead_letter_path: Optional[str] = dead_letter_path_opt(),
):
    """Print pending actions, oldest first (one JSON object per line)."""
    store = _store(queue_path, dead_letter_path)
    for action in _read(store.read_queue()):
        typer.echo(json.dumps(action.model_dump(mode="json"), default=str))


@app.command("list-dead-letters")
def list_dead_letters(
    queue_path: Optional[str] = queue_path_opt(),
    dead_letter_path: Optional[str] = dead_letter_path_opt(),
):
    """Print dead-letter items (one JSON object per line)."""
    store = _store(queue_path, dead_letter_path)
    for item in _read(store.read_dead_letters()):
        typer.echo(json.dumps(item.model_dump(mode="json"), default=str))


@app.command("clear-dead-letters")
def clear_dead_letters(
    queue_path: Optional[str] = queue_path_opt(),
    dead_letter_path: Optional[str] = dead_letter_path_opt(),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Empty the dead-letter snapshot."""
    store = _store(queue_path, dead_letter_path)
    dead = _read(store.read_dead_letters())
    if not dead:
        logger.info("Dead-letter queue already empty")
        return

    if not yes:
        typer.confirm(f"Drop {len(dead)} dead-letter items?", abort=True)

    store.dead_letter_path.parent.mkdir(parents=True, exist_ok=True)
    asyncio.run(store.save_dead_letters([]))
    logger.success(f"Cleared {len(dead)} dead-letter items")
    typer.echo("ok")


if __name__ == "__main__":
    app()
