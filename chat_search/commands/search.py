"""Search chat sessions in the session store."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime

import click

from chat_search.cli import Context, pass_context
from chat_search.exceptions import SearchParseError, StoreError, StoreNotFoundError
from chat_search.search.highlighter import Highlighter
from chat_search.search.options import SearchOptions
from chat_search.search.parser import validate_query
from chat_search.search.results import SearchResult
from chat_search.search.service import SearchResponse, SearchService
from chat_search.store.session import SqlSessionRepository
from chat_search.utils.output import (
    create_table,
    error,
    info,
    pager_print,
    render_to_string,
    segments_to_text,
    verbose,
)

EXIT_SUCCESS = 0
EXIT_NO_RESULTS = 0
EXIT_PARSE_ERROR = 1
EXIT_STORE_ERROR = 2
EXIT_NO_STORE = 3


def _format_timestamp(ms: int) -> str:
    if not ms:
        return ""
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


def _report_parse_error(e: SearchParseError) -> None:
    error(f"Invalid search query: {e.message}", hint=e.suggestion or None)


def _snippet_source(result: SearchResult) -> tuple[str, str]:
    """Pick the text shown in the snippet column and its context type."""
    if result.matched_messages:
        return result.matched_messages[0].text, "message"
    if result.matched_system_message is not None:
        return result.matched_system_message.text, "system"
    return "", "message"


@click.command("search")
@click.argument("query", nargs=-1, required=True)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json", "ids"]),
    default="table",
    help="Output format (default: table)",
)
@click.option(
    "--limit",
    "-l",
    type=click.IntRange(min=1),
    default=None,
    help="Limit number of results",
)
@click.option(
    "--case-sensitive",
    "-C",
    is_flag=True,
    default=False,
    help="Match terms case-sensitively (overrides config)",
)
@click.option(
    "--no-system",
    is_flag=True,
    default=False,
    help="Don't search session system prompts",
)
@pass_context
def cli(
    ctx: Context,
    query: tuple[str, ...],
    output_format: str,
    limit: int | None,
    case_sensitive: bool,
    no_system: bool,
) -> None:
    """Search chat sessions by title, messages and system prompt.

    QUERY arguments are joined with spaces.

    \b
    Syntax examples:
      chat-search search paris tower          both words, anywhere
      chat-search search 'paris | london'     either word
      chat-search search '"paris agreement"'  exact phrase
      chat-search search 'title:paris'        only in session titles
      chat-search search '标题:(巴黎 | 伦敦)'   grouped title search

    \b
    Output formats:
      --format table   Rich table with highlighted snippets (default)
      --format json    Results and statistics as JSON
      --format ids     One session id per line (for piping)
    """
    config = ctx.config
    if config is None:
        error("Configuration not loaded")
        raise SystemExit(EXIT_NO_STORE)

    query_string = " ".join(query)
    validation = validate_query(query_string)
    if not validation.valid:
        _report_parse_error(validation.error)
        raise SystemExit(EXIT_PARSE_ERROR)

    settings = config.search_settings()
    options = SearchOptions(
        case_sensitive=True if case_sensitive else None,
        search_in_system_messages=False if no_system else None,
    )
    highlighter = Highlighter(
        **{**config.highlight_options(), "case_sensitive": options.apply(settings).case_sensitive}
    )

    try:
        repository = SqlSessionRepository(config.store_db)
    except StoreNotFoundError as e:
        error(str(e), hint="Import sessions with: chat-search load EXPORT.json")
        raise SystemExit(EXIT_NO_STORE)
    except StoreError as e:
        error(f"Store error: {e}")
        raise SystemExit(EXIT_STORE_ERROR)

    try:
        service = SearchService(repository, settings, highlighter)
        response = asyncio.run(service.search(query_string, options))
    except SearchParseError as e:
        _report_parse_error(e)
        raise SystemExit(EXIT_PARSE_ERROR)
    except StoreError as e:
        error(f"Store error: {e}")
        raise SystemExit(EXIT_STORE_ERROR)
    finally:
        repository.close()

    stats = response.stats
    verbose(
        f"Searched {stats.total_sessions} sessions in {stats.search_duration:.1f} ms "
        f"({stats.query_complexity} query)"
    )

    results = response.results
    if limit is not None:
        results = results[:limit]

    if not results:
        if output_format == "json":
            _print_json(query_string, response, results)
        elif not ctx.quiet:
            info(f"No results for: {query_string}")
        raise SystemExit(EXIT_NO_RESULTS)

    if output_format == "table":
        _print_table(results, query_string, service)
    elif output_format == "json":
        _print_json(query_string, response, results)
    elif output_format == "ids":
        for result in results:
            click.echo(result.session_id)

    raise SystemExit(EXIT_SUCCESS)


def _print_table(results: list[SearchResult], query_string: str, service: SearchService) -> None:
    """Print results as a Rich table, using pager when appropriate."""
    info(f"Search: {query_string} ({len(results)} results)")

    table = create_table(show_header=True, header_style="bold")
    table.add_column("Session", style="session.id", no_wrap=True)
    table.add_column("Title", style="session.title")
    table.add_column("Updated", no_wrap=True)
    table.add_column("Match", no_wrap=True)
    table.add_column("Snippet")

    for result in results:
        title = segments_to_text(service.highlight(result.topic, result.matched_terms, "title"))
        text, context_type = _snippet_source(result)
        snippet = (
            segments_to_text(service.highlight(text, result.matched_terms, context_type))
            if text
            else ""
        )
        table.add_row(
            result.session_id,
            title,
            _format_timestamp(result.last_update),
            result.match_type,
            snippet,
        )

    # Table header = top border + header + header border
    pager_print(render_to_string(table), header_lines=3)


def _print_json(query_string: str, response: SearchResponse, results: list[SearchResult]) -> None:
    payload = {
        "query": query_string,
        "results": [r.to_dict() for r in results],
        "stats": response.stats.to_dict(),
    }
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
