"""Command Line Interface for DroidSched."""

import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from .adb import ADBError, check_adb_available, resolve_device
from .backup import AdbInventoryProvider
from .config import DroidSchedConfig, load_config
from .runtime import build_runner
from .schedule import (
    GLOBAL_BLACKLIST_ID,
    ActionKind,
    BackupMode,
    BlacklistError,
    BlacklistStore,
    FileLogSink,
    InventoryError,
    RunReport,
    ScheduleAlreadyRunningError,
    ScheduleConfig,
    ScheduleDaemon,
    ScheduleNotFoundError,
    ScheduleStore,
    SubMode,
    next_run_time,
)
from .util import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


def _config(ctx: click.Context) -> DroidSchedConfig:
    return ctx.obj["config"]


def _device(config: DroidSchedConfig):
    if not check_adb_available(config.adb_path):
        console.print("[red]Error: ADB is not available or not in PATH[/red]")
        console.print("Please ensure Android Debug Bridge (ADB) is installed and accessible.")
        sys.exit(1)
    try:
        return resolve_device(config.serial, config.adb_path)
    except ADBError as e:
        console.print(f"[red]ADB Error: {e}[/red]")
        sys.exit(1)


def _store(config: DroidSchedConfig) -> ScheduleStore:
    return ScheduleStore(config.schedules_path)


def _get_schedule(config: DroidSchedConfig, schedule_id: int) -> ScheduleConfig:
    try:
        return _store(config).get(schedule_id)
    except ScheduleNotFoundError:
        console.print(f"[red]Schedule not found: {schedule_id}[/red]")
        sys.exit(1)


def _print_report(report: RunReport) -> None:
    style = "green" if report.succeeded else "red"
    console.print(
        f"[{style}]Schedule {report.schedule_id} {report.action.value}: {report.state.value}[/{style}] "
        f"({sum(1 for o in report.outcomes if o.succeeded)}/{len(report.outcomes)} succeeded, "
        f"{len(report.skipped)} blacklisted)"
    )
    if report.overall is not None and report.overall.message:
        console.print(report.overall.message)
    elif report.error:
        console.print(report.error)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--config", "-c", "config_path", type=click.Path(path_type=Path), help="Configuration file path")
@click.pass_context
def cli(ctx, verbose: bool, config_path: Optional[Path]):
    """DroidSched - scheduled backup and restore of Android apps."""
    ctx.ensure_object(dict)
    config = load_config(config_path)
    ctx.obj["config"] = config

    level = "DEBUG" if verbose else config.log_level
    setup_logging(level=level, console=Console(stderr=True))


@cli.group()
def apps():
    """Application inventory commands."""
    pass


@apps.command("list")
@click.option("--system/--no-system", default=False, help="Include system apps")
@click.pass_context
def apps_list(ctx, system: bool):
    """List apps with their backup state."""
    config = _config(ctx)
    device = _device(config)

    try:
        records = AdbInventoryProvider(device, config.backup_root).list_applications()
    except InventoryError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    table = Table(title=f"Applications on {device.serial}")
    table.add_column("Package", style="cyan")
    table.add_column("Installed", style="white")
    table.add_column("System", style="white")
    table.add_column("Backup", style="white")
    table.add_column("Updated", style="yellow")

    for record in records:
        if record.system and not system:
            continue
        table.add_row(
            record.package_name,
            "Yes" if record.installed else "No",
            "Yes" if record.system else "No",
            "Yes" if record.has_backup else "No",
            "Yes" if record.updated else "",
        )

    console.print(table)


@cli.group()
def schedule():
    """Schedule management commands."""
    pass


@schedule.command("list")
@click.pass_context
def schedule_list(ctx):
    """List schedules."""
    schedules = _store(_config(ctx)).load()

    if not schedules:
        console.print("[yellow]No schedules defined[/yellow]")
        return

    table = Table(title="Schedules")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Enabled", style="white")
    table.add_column("Mode", style="white")
    table.add_column("Sub-mode", style="white")
    table.add_column("Every", style="white")
    table.add_column("Next run", style="green")

    for entry in schedules:
        table.add_row(
            str(entry.id),
            entry.name,
            "Yes" if entry.enabled else "No",
            entry.mode.value,
            entry.sub_mode.value,
            f"{entry.interval_days}d at {entry.hour:02d}:00",
            next_run_time(entry).strftime("%Y-%m-%d %H:%M") if entry.enabled else "-",
        )

    console.print(table)


@schedule.command("show")
@click.argument("schedule_id", type=int)
@click.pass_context
def schedule_show(ctx, schedule_id: int):
    """Show one schedule in detail."""
    entry = _get_schedule(_config(ctx), schedule_id)

    table = Table(title=f"Schedule {entry.id}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Name", entry.name)
    table.add_row("Enabled", "Yes" if entry.enabled else "No")
    table.add_row("Mode", entry.mode.value)
    table.add_row("Sub-mode", entry.sub_mode.value)
    table.add_row("Exclude system", "Yes" if entry.exclude_system else "No")
    table.add_row("Custom list", ", ".join(entry.custom_list) if entry.enable_custom_list else "disabled")
    table.add_row("Interval", f"{entry.interval_days} day(s) at {entry.hour:02d}:00")
    last_run = datetime.fromtimestamp(entry.last_run).strftime("%Y-%m-%d %H:%M") if entry.last_run else "never"
    table.add_row("Last run", last_run)
    table.add_row("Next run", next_run_time(entry).strftime("%Y-%m-%d %H:%M"))

    console.print(table)


@schedule.command("add")
@click.option("--name", default="", help="Schedule name")
@click.option("--mode", type=click.Choice([m.value for m in BackupMode]), default=BackupMode.ALL.value)
@click.option("--sub-mode", type=click.Choice([m.value for m in SubMode]), default=SubMode.BOTH.value)
@click.option("--hour", type=click.IntRange(0, 23), default=0, help="Hour of day to run")
@click.option("--interval", "interval_days", type=click.IntRange(min=1), default=1, help="Days between runs")
@click.option("--exclude-system", is_flag=True, help="Skip system apps in new/updated mode")
@click.option("--package", "packages", multiple=True, help="Restrict to these packages (custom list)")
@click.option("--disabled", is_flag=True, help="Create the schedule disabled")
@click.pass_context
def schedule_add(ctx, name: str, mode: str, sub_mode: str, hour: int, interval_days: int,
                 exclude_system: bool, packages: List[str], disabled: bool):
    """Create a schedule."""
    store = _store(_config(ctx))
    entry = store.add(ScheduleConfig(
        id=store.next_id(),
        name=name,
        enabled=not disabled,
        hour=hour,
        interval_days=interval_days,
        mode=BackupMode(mode),
        sub_mode=SubMode(sub_mode),
        exclude_system=exclude_system,
        enable_custom_list=bool(packages),
        custom_list=list(packages),
    ))
    console.print(f"[green]Created schedule {entry.id}[/green]")


@schedule.command("remove")
@click.argument("schedule_id", type=int)
@click.pass_context
def schedule_remove(ctx, schedule_id: int):
    """Delete a schedule and its blacklist."""
    config = _config(ctx)
    try:
        _store(config).remove(schedule_id)
    except ScheduleNotFoundError:
        console.print(f"[red]Schedule not found: {schedule_id}[/red]")
        sys.exit(1)

    try:
        with BlacklistStore(config.blacklist_path).open(read_only=False) as handle:
            handle.remove_list(schedule_id)
    except BlacklistError as e:
        console.print(f"[yellow]Schedule removed, but its blacklist was kept: {e}[/yellow]")
        sys.exit(1)
    console.print(f"[green]Removed schedule {schedule_id}[/green]")


def _set_enabled(ctx, schedule_id: int, enabled: bool) -> None:
    config = _config(ctx)
    entry = _get_schedule(config, schedule_id)
    entry.enabled = enabled
    _store(config).update(entry)
    console.print(f"Schedule {schedule_id} {'enabled' if enabled else 'disabled'}")


@schedule.command("enable")
@click.argument("schedule_id", type=int)
@click.pass_context
def schedule_enable(ctx, schedule_id: int):
    """Enable a schedule."""
    _set_enabled(ctx, schedule_id, True)


@schedule.command("disable")
@click.argument("schedule_id", type=int)
@click.pass_context
def schedule_disable(ctx, schedule_id: int):
    """Disable a schedule."""
    _set_enabled(ctx, schedule_id, False)


@schedule.command("run")
@click.argument("schedule_id", type=int)
@click.option("--restore", is_flag=True, help="Restore the selected apps instead of backing them up")
@click.pass_context
def schedule_run(ctx, schedule_id: int, restore: bool):
    """Run a schedule now."""
    config = _config(ctx)
    entry = _get_schedule(config, schedule_id)
    device = _device(config)

    try:
        runner = build_runner(config, device, console)
    except InventoryError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    action = ActionKind.RESTORE if restore else ActionKind.BACKUP
    try:
        report = runner.run(entry, action)
    except ScheduleAlreadyRunningError as e:
        console.print(f"[yellow]{e}[/yellow]")
        sys.exit(1)

    _print_report(report)
    if not report.succeeded:
        sys.exit(1)


@cli.group()
def blacklist():
    """Blacklist management commands."""
    pass


@blacklist.command("list")
@click.pass_context
def blacklist_list(ctx):
    """Show all blacklists."""
    try:
        with BlacklistStore(_config(ctx).blacklist_path).open() as handle:
            lists = handle.list_all()
    except BlacklistError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if not lists:
        console.print("[yellow]No blacklisted packages[/yellow]")
        return

    table = Table(title="Blacklists")
    table.add_column("Scope", style="cyan")
    table.add_column("Package", style="white")

    for blacklist_id, packages in sorted(lists.items()):
        scope = "global" if blacklist_id == GLOBAL_BLACKLIST_ID else f"schedule {blacklist_id}"
        for package_name in sorted(packages):
            table.add_row(scope, package_name)

    console.print(table)


@blacklist.command("add")
@click.argument("packages", nargs=-1, required=True)
@click.option("--schedule", "schedule_id", type=int, default=GLOBAL_BLACKLIST_ID,
              help="Schedule id (global blacklist when omitted)")
@click.pass_context
def blacklist_add(ctx, packages: List[str], schedule_id: int):
    """Blacklist packages."""
    try:
        with BlacklistStore(_config(ctx).blacklist_path).open(read_only=False) as handle:
            for package_name in packages:
                if handle.add(package_name, schedule_id):
                    console.print(f"Blacklisted {package_name}")
                else:
                    console.print(f"[yellow]{package_name} already blacklisted[/yellow]")
    except BlacklistError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


@blacklist.command("remove")
@click.argument("packages", nargs=-1, required=True)
@click.option("--schedule", "schedule_id", type=int, default=GLOBAL_BLACKLIST_ID,
              help="Schedule id (global blacklist when omitted)")
@click.pass_context
def blacklist_remove(ctx, packages: List[str], schedule_id: int):
    """Remove packages from a blacklist."""
    try:
        with BlacklistStore(_config(ctx).blacklist_path).open(read_only=False) as handle:
            for package_name in packages:
                if handle.remove(package_name, schedule_id):
                    console.print(f"Removed {package_name}")
                else:
                    console.print(f"[yellow]{package_name} was not blacklisted[/yellow]")
    except BlacklistError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


@cli.command()
@click.option("--once", is_flag=True, help="Fire due schedules once, wait for them, and exit")
@click.pass_context
def daemon(ctx, once: bool):
    """Fire schedules when they are due."""
    config = _config(ctx)
    device = _device(config)

    try:
        runner = build_runner(config, device, console)
    except InventoryError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    runner.on_run_complete(_print_report)
    scheduler = ScheduleDaemon(
        _store(config),
        runner,
        poll_interval=config.scheduler.poll_interval_seconds,
    )

    if once:
        scheduler.join_running(scheduler.tick())
        return

    console.print(f"[bold cyan]Watching schedules for {device.get_device_info().display_name}[/bold cyan]")
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        scheduler.stop()
        logger.info("Schedule daemon stopped")


@cli.group()
def log():
    """Failure log commands."""
    pass


@log.command("show")
@click.option("--limit", "-n", type=int, default=10, help="Number of entries")
@click.pass_context
def log_show(ctx, limit: int):
    """Show recent failed runs."""
    entries = FileLogSink(_config(ctx).failure_log_dir).entries(limit)
    if not entries:
        console.print("[green]No failures logged[/green]")
        return
    for entry in entries:
        timestamp, _, text = entry.partition("\n")
        console.print(f"[bold]{timestamp}[/bold]")
        console.print(text)
        console.print()


def main():
    """Entry point for the ``droidsched`` command."""
    cli(obj={})


if __name__ == "__main__":
    main()
