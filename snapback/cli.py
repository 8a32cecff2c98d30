import json
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from snapback import __version__
from snapback.capture import capture
from snapback.config import (
    DEFAULT_CONFIG,
    find_config,
    init_config,
    load_config,
    save_global_config,
    validate_config,
)
from snapback.errors import SnapbackError
from snapback.log import read_logs, write_log
from snapback.progress import ConsoleProgress
from snapback.restore import RestoreOptions, restore
from snapback.retention import enforce_retention
from snapback.session import TrackedRoot

_OUTCOME_STYLE = {
    "success": "green",
    "partial": "yellow",
    "cancelled": "yellow",
}


@click.group()
@click.version_option(version=__version__)
def main():
    """snapback: checkpoint a directory tree and roll it back."""


def _fail(console, message):
    console.print(f"[red]{escape(str(message))}[/red]")
    raise SystemExit(1)


def _tracked(console):
    """TrackedRoot for the nearest .snapbackconfig, or exit with a hint."""
    config_path = find_config()
    if not config_path:
        _fail(console, "No .snapbackconfig found. Run 'snapback init' first.")
    try:
        config = load_config()
    except ValueError as e:
        _fail(console, e)
    return TrackedRoot(config_path.parent, config)


def _created(record):
    return datetime.fromtimestamp(record["createdAt"] / 1000).strftime("%Y-%m-%d %H:%M")


def _report(console, result):
    style = _OUTCOME_STYLE.get(result["outcome"], "bold")
    console.print(f"[{style}]{escape(result['summary'])}[/{style}]")


@main.command()
@click.option("-e", "--exclude", "excludes", multiple=True,
              help="Exclude pattern (repeatable). Defaults to node_modules, .git, dist, out, build.")
def init(excludes):
    """Track the current directory. Creates .snapbackconfig with defaults."""
    if find_config():
        click.echo(".snapbackconfig already exists.")
        return
    config_path = init_config(exclude_patterns=list(excludes) or None)
    click.echo(f"Created {config_path}")


@main.command()
@click.argument("label")
@click.option("-d", "--description", default=None, help="Optional description.")
@click.option("-t", "--tag", "tags", multiple=True, help="Tag (repeatable).")
def save(label, description, tags):
    """Save the tracked directory as a new snapshot.

    Example: snapback save "before refactor" -t wip
    """
    console = Console()
    tracked = _tracked(console)
    try:
        with ConsoleProgress(console) as progress:
            result = capture(tracked, label, description=description, tags=tags,
                             on_progress=progress.feed)
        evicted = enforce_retention(tracked.store, tracked.config["max_snapshots"],
                                    project=str(tracked.root))
    except (SnapbackError, ValueError) as e:
        _fail(console, e)

    _report(console, result)
    for snapshot_id in evicted:
        console.print(f"  [dim]Evicted oldest snapshot {snapshot_id}[/dim]")


@main.command("restore")
@click.argument("snapshot_id")
@click.option("--batch/--no-batch", "batch_mode", default=None,
              help="Copy files back in batches (automatic for large snapshots).")
@click.option("--batch-size", type=int, default=None, help="Files per batch.")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt.")
def restore_cmd(snapshot_id, batch_mode, batch_size, yes):
    """Revert the tracked directory to a snapshot. Ctrl-C stops between batches."""
    console = Console()
    tracked = _tracked(console)
    try:
        record = tracked.store.get(snapshot_id)
    except SnapbackError as e:
        _fail(console, e)

    if not yes:
        console.print(
            f"Restore [bold]{escape(record['label'])}[/bold] ({_created(record)})? "
            "This overwrites every non-excluded file in the tracked directory."
        )
        if not click.confirm("Are you sure?", default=False):
            console.print("[dim]Cancelled.[/dim]")
            return

    options = RestoreOptions.from_config(
        tracked.config, batch_mode=batch_mode, batch_size=batch_size,
    )
    cancel = threading.Event()
    with ConsoleProgress(console) as progress, ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(restore, tracked, snapshot_id, options, cancel, progress.feed)
        while True:
            try:
                result = future.result()
                break
            except KeyboardInterrupt:
                cancel.set()
                console.print("[yellow]Cancelling after the current batch...[/yellow]")
            except (SnapbackError, ValueError) as e:
                _fail(console, e)

    _report(console, result)


@main.command("list")
def list_cmd():
    """List snapshots of the tracked directory, oldest first."""
    console = Console()
    tracked = _tracked(console)
    try:
        records = tracked.store.list()
    except SnapbackError as e:
        _fail(console, e)

    if not records:
        console.print("[dim]No snapshots found.[/dim]")
        return

    table = Table(title=f"Snapshots of {tracked.root}")
    table.add_column("ID", style="bold cyan")
    table.add_column("Label")
    table.add_column("Created", style="dim")
    table.add_column("Tags", style="dim")
    table.add_column("Description", max_width=40)

    for r in records:
        table.add_row(
            r["id"],
            r["label"],
            _created(r),
            ", ".join(r.get("tags", [])),
            r.get("description", ""),
        )

    console.print(table)


@main.command()
@click.argument("snapshot_id")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt.")
def delete(snapshot_id, yes):
    """Delete a snapshot and its stored files."""
    console = Console()
    tracked = _tracked(console)
    try:
        record = tracked.store.get(snapshot_id)
        if not yes and not click.confirm(f"Delete snapshot '{record['label']}'?", default=False):
            console.print("[dim]Cancelled.[/dim]")
            return
        content_removed = tracked.store.delete(snapshot_id)
    except SnapbackError as e:
        _fail(console, e)

    write_log({
        "event": "delete",
        "snapshot": snapshot_id,
        "label": record["label"],
        "project": str(tracked.root),
        "result": "deleted" if content_removed else "record-only",
    })

    if content_removed:
        console.print(f"  [red]Deleted[/red] {snapshot_id}")
    else:
        console.print(f"  [yellow]Deleted record {snapshot_id}; some stored files remain.[/yellow]")


@main.command()
@click.argument("snapshot_id")
@click.argument("label")
def rename(snapshot_id, label):
    """Change a snapshot's label."""
    console = Console()
    tracked = _tracked(console)
    try:
        record = tracked.store.rename(snapshot_id, label)
    except (SnapbackError, ValueError) as e:
        _fail(console, e)
    console.print(f"Renamed {snapshot_id} to [bold]{escape(record['label'])}[/bold]")


@main.command("config")
@click.argument("key")
@click.argument("value")
def config_cmd(key, value):
    """Set a global default in ~/.snapback/config.json.

    VALUE is read as JSON when it parses, otherwise as a string.
    Example: snapback config max_snapshots 20
    """
    console = Console()
    if key not in DEFAULT_CONFIG:
        _fail(console, f"Unknown setting '{key}'. Known: {', '.join(sorted(DEFAULT_CONFIG))}")
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    try:
        validated = validate_config({**DEFAULT_CONFIG, key: parsed})
    except ValueError as e:
        _fail(console, e)

    save_global_config({key: validated[key]})
    console.print(f"Saved global {key} = {escape(json.dumps(validated[key]))}")


@main.command()
@click.option("-n", "--limit", default=20, help="Number of log entries to show.")
@click.option("--all", "show_all", is_flag=True, help="Show logs for all projects.")
def logs(limit, show_all):
    """Show the capture/restore audit log."""
    console = Console()
    config_path = find_config()
    project_filter = str(config_path.parent.resolve()) if config_path and not show_all else None
    entries = read_logs(project_filter)

    if not entries:
        console.print("[dim]No logs found.[/dim]")
        return

    table = Table(title="Snapshot Log")
    table.add_column("Time", style="dim")
    table.add_column("Event", style="bold")
    table.add_column("Snapshot", style="cyan")
    table.add_column("Files")
    table.add_column("Result", style="bold")

    for entry in entries[-limit:]:
        ts = entry.get("timestamp", "")
        if ts:
            try:
                ts = datetime.fromisoformat(ts).strftime("%m-%d %H:%M")
            except ValueError:
                pass
        files = entry.get("files_copied", entry.get("files_restored", ""))
        result = entry.get("result", "")
        style = _OUTCOME_STYLE.get(result)
        table.add_row(
            ts,
            entry.get("event", ""),
            entry.get("snapshot", ""),
            str(files),
            f"[{style}]{result}[/{style}]" if style else result,
        )

    console.print(table)
