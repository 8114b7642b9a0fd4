"""Initialize configuration file for chat-search."""

from __future__ import annotations

from importlib import resources
from pathlib import Path

import click

from chat_search.cli import Context, pass_context
from chat_search.config import get_default_config_path
from chat_search.utils.fileops import secure_mkdir
from chat_search.utils.output import error, info, success


def _load_example_config() -> str:
    """Load the example configuration from package data."""
    return resources.files("chat_search").joinpath("config.example.toml").read_text()


@click.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    default=False,
    help="Overwrite existing config file",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Output path for config file (default: ~/.config/chat-search/config.toml)",
)
@pass_context
def cli(ctx: Context, force: bool, output: Path | None) -> None:
    """Create a new configuration file with default settings.

    The generated file lists every option with its default value and a
    short explanation.

    \b
    Examples:
      chat-search init-config
      chat-search init-config --output ./chat-search.toml
      chat-search init-config --force
    """
    config_path = output if output is not None else get_default_config_path()
    config_path = config_path.expanduser().resolve()

    if config_path.exists() and not force:
        error(
            f"Config file already exists: {config_path}",
            hint="Use --force to overwrite",
        )
        raise SystemExit(1)

    secure_mkdir(config_path.parent)

    try:
        config_path.write_text(_load_example_config())
        config_path.chmod(0o600)
    except OSError as e:
        error(f"Failed to write config file: {e}")
        raise SystemExit(1)

    success(f"Created config file: {config_path}")
    if not ctx.quiet:
        info("Edit this file to customize your settings.")
