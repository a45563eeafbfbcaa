"""Helpers shared by CLI commands."""

import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from sdcred.config import ConfigError, SdcredConfig, load_config
from sdcred.engine import CredentialEngine

console = Console()
err_console = Console(stderr=True)


def configure_logging(level: str, verbose: bool = False) -> None:
    """Route sdcred logs through Rich on stderr."""
    logger = logging.getLogger("sdcred")
    logger.handlers.clear()
    logger.addHandler(RichHandler(console=err_console, show_path=False))
    logger.setLevel(logging.DEBUG if verbose else level)


def load_engine(config_path: Path | None, verbose: bool) -> tuple[SdcredConfig, CredentialEngine]:
    """Load config, set up logging and build an engine; exit 2 on bad config."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=2) from e
    configure_logging(config.logging.level, verbose)
    return config, CredentialEngine.from_config(config)


def read_json(path: Path) -> dict[str, Any]:
    try:
        return json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        err_console.print(f"[red]✗[/red] Cannot read {path}: {e}")
        raise typer.Exit(code=2) from e


def write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n")


def parse_pairs(pairs: list[str], what: str) -> dict[str, str]:
    """Parse ``name=value`` options; exit 2 on a malformed pair."""
    parsed: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            err_console.print(f"[red]✗[/red] Invalid {what} {pair!r}, expected name=value")
            raise typer.Exit(code=2)
        parsed[name] = value
    return parsed


def parse_hex(value: str | None, what: str) -> bytes | None:
    if value is None:
        return None
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        err_console.print(f"[red]✗[/red] {what} is not valid hex")
        raise typer.Exit(code=2) from e
