"""Import chat sessions from a JSON export into the session store."""

from __future__ import annotations

from pathlib import Path

import click

from chat_search.cli import Context, pass_context
from chat_search.exceptions import StoreError, ValidationError
from chat_search.store.builder import load_export, read_export
from chat_search.store.session import get_store_session
from chat_search.utils.output import error, info, success

EXIT_SUCCESS = 0
EXIT_INVALID_EXPORT = 1
EXIT_STORE_ERROR = 2


@click.command("load")
@click.argument(
    "export",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--replace",
    is_flag=True,
    default=False,
    help="Remove all stored sessions before importing",
)
@pass_context
def cli(ctx: Context, export: Path, replace: bool) -> None:
    """Import sessions from EXPORT, a JSON file.

    The export is an object with a "sessions" list. Each session has an
    "id", a "title", an optional "lastUpdate" (milliseconds), a list of
    "messages" ({"id", "role", "content", "date"}) and an optional
    "systemPrompt" ({"text", "images"}). Sessions already in the store
    are replaced by id.

    \b
    Examples:
      chat-search load backup.json
      chat-search load --replace backup.json
    """
    config = ctx.config
    if config is None:
        error("Configuration not loaded")
        raise SystemExit(EXIT_STORE_ERROR)

    try:
        payload = read_export(export)
    except ValidationError as e:
        error(f"Invalid export: {e}")
        raise SystemExit(EXIT_INVALID_EXPORT)

    try:
        with get_store_session(config.store_db, create=True) as session:
            count = load_export(session, payload, replace=replace)
    except ValidationError as e:
        error(f"Invalid export: {e}", hint="Nothing was imported")
        raise SystemExit(EXIT_INVALID_EXPORT)
    except StoreError as e:
        error(f"Store error: {e}")
        raise SystemExit(EXIT_STORE_ERROR)

    success(f"Imported {count} sessions into {config.store_db}")
    if replace and not ctx.quiet:
        info("Previously stored sessions were removed.")

    raise SystemExit(EXIT_SUCCESS)
