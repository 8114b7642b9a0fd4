"""Check a search query for syntax errors without running it."""

from __future__ import annotations

import json

import click
from rich.cells import cell_len
from rich.markup import escape
from rich.tree import Tree

from chat_search.cli import Context, pass_context
from chat_search.search.ast_nodes import SearchNode
from chat_search.search.parser import parse_query, validate_query
from chat_search.search.service import classify_complexity
from chat_search.search.tokenizer import normalize_query
from chat_search.utils.output import console, error, error_console, success

EXIT_SUCCESS = 0
EXIT_PARSE_ERROR = 1


def _build_tree(node: SearchNode, tree: Tree | None = None) -> Tree:
    label = node.type.value
    if node.value is not None:
        label = f"{label} [bold]{escape(node.value)}[/bold]"
    branch = Tree(label) if tree is None else tree.add(label)
    for child in node.children:
        _build_tree(child, branch)
    return branch


@click.command("validate")
@click.argument("query", nargs=-1, required=True)
@click.option(
    "--explain",
    "-e",
    is_flag=True,
    default=False,
    help="Print the parsed query tree",
)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print the result as JSON",
)
@pass_context
def cli(ctx: Context, query: tuple[str, ...], explain: bool, as_json: bool) -> None:
    """Validate QUERY and show how it will be interpreted.

    \b
    Examples:
      chat-search validate 'title:(paris | london) tower'
      chat-search validate --explain '"paris agreement" | cop21'
    """
    query_string = " ".join(query).strip()
    result = validate_query(query_string)

    if as_json:
        payload: dict[str, object] = {"valid": result.valid}
        if result.valid:
            ast = parse_query(query_string)
            payload["normalized"] = ast.to_query()
            payload["complexity"] = classify_complexity(query_string)
            payload["tree"] = ast.to_dict()
        else:
            payload["error"] = result.error.to_dict()
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        raise SystemExit(EXIT_SUCCESS if result.valid else EXIT_PARSE_ERROR)

    if not result.valid:
        e = result.error
        # Positions refer to the normalized query, so show that one.
        shown = normalize_query(query_string)
        error(e.message, hint=e.suggestion or None)
        error_console.print(f"  {escape(shown)}", highlight=False)
        error_console.print(f"  {' ' * cell_len(shown[: e.position])}[error]^[/error]")
        raise SystemExit(EXIT_PARSE_ERROR)

    ast = parse_query(query_string)
    if not ctx.quiet:
        success(f"OK: {escape(ast.to_query())}")
    if explain:
        console.print(f"Complexity: {classify_complexity(query_string)}")
        console.print(_build_tree(ast))

    raise SystemExit(EXIT_SUCCESS)
