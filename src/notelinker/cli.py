#!/usr/bin/env python3
"""
notelinker: find note titles mentioned in a note and turn them into wikilinks

Usage:
    notelinker index                  # Rebuild the title index
    notelinker scan notes/today.md    # List potential links
    notelinker link notes/today.md    # Pick suggestions and insert links
    notelinker watch                  # Keep the index current while notes change
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, NoReturn

import click
from click.exceptions import ClickException

from . import __version__ as NOTELINKER_VERSION

if TYPE_CHECKING:
    from .core import LinkerService
    from .selection import SelectionState

log = logging.getLogger(__name__)


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


# ─────────────────────────────────────────────────────────────────────────────
# Error handling
# ─────────────────────────────────────────────────────────────────────────────


def _handle_error(ctx: click.Context, error: Exception, exit_code: int = 1) -> NoReturn:
    """Report an error as text or JSON (--json-errors) and exit."""
    from .config import ConfigurationError
    from .errors import ErrorCode, NoteLinkerError, format_error_json

    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, NoteLinkerError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
            suggestion = error.details.get("suggestion")
            if suggestion:
                click.echo(f"Hint: {suggestion}", err=True)
    else:
        code = ErrorCode.CONFIG_ERROR if isinstance(error, ConfigurationError) else ErrorCode.INTERNAL_ERROR
        if json_errors:
            click.echo(format_error_json(code, str(error)), err=True)
        else:
            click.echo(f"Error: {error}", err=True)

    sys.exit(exit_code)


class JsonErrorGroup(click.Group):
    """Click group that formats usage errors as JSON when --json-errors is set."""

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        from .errors import format_error_json

        argv = list(args) if args is not None else list(sys.argv[1:])
        if "--json-errors" not in argv:
            return super().main(argv, prog_name, complete_var, standalone_mode, **extra)

        # Accept the flag anywhere on the line by moving it in front of the subcommand
        argv = ["--json-errors"] + [a for a in argv if a != "--json-errors"]
        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except ClickException as e:
            click.echo(format_error_json("USAGE_ERROR", e.format_message()), err=True)
            raise SystemExit(1)
        except click.exceptions.Abort:
            raise SystemExit(1)


def _get_service(ctx: click.Context) -> LinkerService:
    from .config import ConfigurationError, get_vault_root
    from .core import LinkerService

    try:
        return LinkerService.for_vault(get_vault_root(ctx.obj.get("vault")))
    except ConfigurationError as e:
        _handle_error(ctx, e)


class _ProgressBarSink:
    """Progress sink driving a click progress bar on stderr."""

    def __init__(self, bar) -> None:
        self._bar = bar
        self._last = 0

    def report(self, percent: int, message: str) -> None:
        self._bar.label = message
        percent = max(0, min(100, percent))
        if percent > self._last:
            self._bar.update(percent - self._last)
            self._last = percent
        else:
            self._bar.render_progress()


def _progress_bar(quiet: bool):
    return click.progressbar(
        length=100,
        label="Starting...",
        file=sys.stderr,
        show_eta=False,
        hidden=quiet,
    )


def _format_occurrence(index: int, occurrence, selected: bool | None = None) -> str:
    box = "" if selected is None else ("[x] " if selected else "[ ] ")
    context = " ".join(occurrence.context.split())
    return f"{index + 1:>4}. {box}**{occurrence.title}** - {context}"


def _parse_region(start: int | None, end: int | None) -> tuple[int, int] | None:
    if start is None and end is None:
        return None
    return (start or 0, end if end is not None else sys.maxsize)


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=NOTELINKER_VERSION, prog_name="notelinker")
@click.option(
    "--vault",
    type=click.Path(file_okay=False),
    envvar="NOTELINKER_VAULT_ROOT",
    help="Vault directory (default: discovered from cwd)",
)
@click.option("--json-errors", "json_errors", is_flag=True, help="Output errors as JSON")
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="NOTELINKER_QUIET",
    help="Suppress progress and warnings, show only errors and results",
)
@click.pass_context
def cli(ctx: click.Context, vault: str | None, json_errors: bool, quiet: bool):
    """notelinker: turn mentions of note titles into [[wikilinks]].

    \b
    Quick start:
      notelinker index                   # Index every note title
      notelinker scan notes/today.md     # Show what could be linked
      notelinker link notes/today.md     # Choose and insert links
      notelinker config set enableWikiLinks true
    """
    from ._logging import configure_logging, set_quiet_mode

    configure_logging()
    set_quiet_mode(quiet)

    ctx.ensure_object(dict)
    ctx.obj["vault"] = vault
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def index(ctx: click.Context, as_json: bool):
    """Rebuild the title index from every note in the vault."""
    service = _get_service(ctx)

    with _progress_bar(ctx.obj["quiet"] or as_json) as bar:
        completed = run_async(service.rebuild(progress=_ProgressBarSink(bar)))

    payload = {
        "vault": str(service.vault.root),
        "titles": len(service.index),
        "fresh": service.index.is_fresh(),
        "completed": completed,
    }
    if as_json:
        output(payload, as_json=True)
    else:
        click.echo(f"Indexed {payload['titles']} notes.")


@cli.command()
@click.argument("note")
@click.option("--page", default=1, type=click.IntRange(min=1), help="Page of results to show")
@click.option("--all", "show_all", is_flag=True, help="Show every result instead of one page")
@click.option("--start", type=click.IntRange(min=0), help="Only scan from this character offset")
@click.option("--end", type=click.IntRange(min=0), help="Only scan up to this character offset")
@click.option("--reindex", is_flag=True, help="Rebuild the index before scanning")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def scan(
    ctx: click.Context,
    note: str,
    page: int,
    show_all: bool,
    start: int | None,
    end: int | None,
    reindex: bool,
    as_json: bool,
):
    """List places in NOTE where another note's title could become a link."""
    from .errors import NoteLinkerError

    service = _get_service(ctx)
    try:
        report = run_async(_scan(service, note, _parse_region(start, end), reindex, ctx.obj["quiet"] or as_json))
    except NoteLinkerError as e:
        _handle_error(ctx, e)

    if as_json:
        output(report.model_dump(mode="json"), as_json=True)
        return

    if report.is_empty:
        click.echo("No potential links found.")
        return

    selection = service.new_selection(report)
    if show_all:
        items = list(enumerate(report.occurrences))
    else:
        selection.turn_page(min(page, selection.total_pages) - 1)
        items = selection.page_items()

    click.echo(f"Note Link Matches ({report.path})")
    for i, occurrence in items:
        click.echo(_format_occurrence(i, occurrence))
    indicator = selection.page_indicator()
    if indicator and not show_all:
        click.echo(indicator)


async def _scan(service: LinkerService, note: str, region, reindex: bool, quiet: bool):
    with _progress_bar(quiet) as bar:
        sink = _ProgressBarSink(bar)
        if reindex:
            await service.rebuild(progress=sink)
        else:
            await service.load(progress=sink)
        return await service.scan_document(note, region=region, progress=sink)


@cli.command()
@click.argument("note")
@click.option("--all", "select_all", is_flag=True, help="Select every suggestion without prompting")
@click.option("--yes", "-y", is_flag=True, help="Insert without asking for confirmation")
@click.option("--start", type=click.IntRange(min=0), help="Only scan from this character offset")
@click.option("--end", type=click.IntRange(min=0), help="Only scan up to this character offset")
@click.option("--reindex", is_flag=True, help="Rebuild the index before scanning")
@click.pass_context
def link(
    ctx: click.Context,
    note: str,
    select_all: bool,
    yes: bool,
    start: int | None,
    end: int | None,
    reindex: bool,
):
    """Choose suggestions for NOTE and insert them as wikilinks.

    \b
    In the selection prompt:
      3 5 8     toggle suggestions by number
      a         select all
      p         select all on this page
      n / b     next / previous page
      c         confirm and insert
      q         quit without changes
    """
    from .errors import NoteLinkerError

    service = _get_service(ctx)
    try:
        report = run_async(_scan(service, note, _parse_region(start, end), reindex, ctx.obj["quiet"]))
    except NoteLinkerError as e:
        _handle_error(ctx, e)

    if report.is_empty:
        click.echo("No potential links found.")
        return

    selection = service.new_selection(report)
    if select_all:
        selection.select_all()
    elif not _choose(selection):
        click.echo("Cancelled, no changes made.")
        return

    chosen = selection.selected_occurrences()
    if not chosen:
        click.echo("Nothing selected, no changes made.")
        return

    if not yes and not select_all and not click.confirm(f"Insert {len(chosen)} links into {report.path}?", default=True):
        click.echo("Cancelled, no changes made.")
        return

    try:
        result = run_async(service.insert_links(report.path, chosen))
    except NoteLinkerError as e:
        _handle_error(ctx, e)

    if result.skipped:
        click.echo(f"Skipped {result.skipped} suggestions that no longer match the note.", err=True)
    click.echo("Links inserted successfully." if result.changed else "No links were inserted.")


def _render_page(selection: SelectionState) -> None:
    click.echo("")
    for i, occurrence in selection.page_items():
        click.echo(_format_occurrence(i, occurrence, selection.is_selected(i)))
    indicator = selection.page_indicator()
    footer = selection.selection_label()
    click.echo(f"{footer}    {indicator}" if indicator else footer)


def _choose(selection: SelectionState) -> bool:
    """Interactive selection loop. Returns False if the user quits."""
    from .errors import NoteLinkerError

    while True:
        _render_page(selection)
        answer = click.prompt(
            "Toggle numbers, [a]ll, [p]age, [n]ext, [b]ack, [c]onfirm, [q]uit",
            default="c",
            show_default=False,
        )
        for token in answer.replace(",", " ").split():
            command = token.lower()
            if command == "q":
                return False
            if command == "c":
                return True
            if command == "a":
                selection.select_all()
            elif command == "p":
                selection.select_page()
            elif command == "n":
                selection.turn_page(1)
            elif command == "b":
                selection.turn_page(-1)
            elif command.isdigit():
                try:
                    selection.toggle(int(command) - 1)
                except NoteLinkerError as e:
                    click.echo(e.message, err=True)
            else:
                click.echo(f"Unknown choice: {token}", err=True)


@cli.command()
@click.option("--interval", default=2.0, type=click.FloatRange(min=0.1), help="Seconds between index refreshes")
@click.pass_context
def watch(ctx: click.Context, interval: float):
    """Keep the title index current while notes are created or deleted."""
    service = _get_service(ctx)
    click.echo(f"Watching {service.vault.root} (Ctrl-C to stop)")
    try:
        run_async(_watch(service, interval))
    except KeyboardInterrupt:
        pass
    click.echo("Stopped watching.")


def _make_watcher(service: LinkerService, loop: asyncio.AbstractEventLoop | None = None):
    """Watcher feeding the service's index; each event persists the now stale cache
    so other notelinker commands see the change before the next refresh."""
    from .watcher import VaultWatcher

    return VaultWatcher(service.vault, service.index, service.config, loop=loop, on_change=service.save_cache)


async def _watch(service: LinkerService, interval: float) -> None:
    await service.load()
    if not service.index.is_fresh():
        await service.rebuild()

    watcher = _make_watcher(service, asyncio.get_running_loop())
    with watcher:
        try:
            while True:
                await asyncio.sleep(interval)
                if not service.index.is_fresh() and not service.index.is_rebuilding:
                    await service.rebuild()
                    log.info("Index refreshed: %d titles", len(service.index))
        finally:
            service.save_cache()


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx: click.Context, as_json: bool):
    """Show the vault, its index state and the active settings."""
    from .index_cache import load_cache

    service = _get_service(ctx)
    snapshot = load_cache(service.cache_path) if service.cache_path else None
    payload = {
        "vault": str(service.vault.root),
        "cache": str(service.cache_path),
        "titles": len(snapshot.title_entries) if snapshot else 0,
        "fresh": bool(snapshot and snapshot.is_fresh),
        "settings": service.settings.model_dump(by_alias=True),
    }
    if as_json:
        output(payload, as_json=True)
        return

    click.echo(f"Vault:   {payload['vault']}")
    if snapshot is None:
        click.echo("Index:   not built (run 'notelinker index')")
    else:
        state = "fresh" if payload["fresh"] else "stale"
        click.echo(f"Index:   {payload['titles']} titles ({state})")
    for key, value in payload["settings"].items():
        click.echo(f"  {key}: {value}")


# ─────────────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────────────


@cli.group("config")
def config_group():
    """View or change settings stored in the vault."""


@config_group.command("show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def config_show(ctx: click.Context, as_json: bool):
    """Print the current settings."""
    service = _get_service(ctx)
    data = service.settings.model_dump(by_alias=True)
    if as_json:
        output(data, as_json=True)
        return
    for key, value in data.items():
        click.echo(f"{key}: {value}")


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str):
    """Set KEY to VALUE (e.g. `config set excludedFolders "archive,templates"`)."""
    import yaml
    from pydantic import ValidationError

    from .config import ConfigurationError, get_settings_path, save_settings
    from .models import Settings

    service = _get_service(ctx)
    current = service.settings.model_dump(by_alias=True)
    if key not in current:
        _handle_error(ctx, ConfigurationError(f"Unknown setting '{key}'. Known: {', '.join(current)}"))

    parsed = value if key == "excludedFolders" else yaml.safe_load(value)
    current[key] = parsed
    try:
        settings = Settings.model_validate(current)
    except ValidationError as e:
        message = "; ".join(err["msg"] for err in e.errors())
        _handle_error(ctx, ConfigurationError(f"Invalid value for {key}: {message}"))

    save_settings(settings, get_settings_path(service.vault.root))
    # Exclusions decide which titles exist: replace the cache with an empty stale index
    if key == "excludedFolders":
        service.save_cache()
    click.echo(f"{key} = {settings.model_dump(by_alias=True)[key]}")


if __name__ == "__main__":
    cli()
