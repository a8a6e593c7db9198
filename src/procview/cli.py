"""CLI commands for procview."""

import locale
import re
import time
from queue import Queue

import click

from procview.filters import FilterConfig
from procview.models import ProcessStatus
from procview.sorting import SortConfig, SortDirection, SortField
from procview.view import ViewState

_CLAUSE_RE = re.compile(r"^\s*(>=|<=|>|<|=)\s*(\d+(?:\.\d+)?)\s*$")


def parse_clause(expression: str) -> tuple[str, float]:
    """Parse a filter expression like ">50" or "<= 1.5" into (operator, value)."""
    match = _CLAUSE_RE.match(expression)
    if match is None:
        raise ValueError(f"Expected OPERATOR VALUE (e.g. '>50'), got {expression!r}")
    return match.group(1), float(match.group(2))


class ClauseType(click.ParamType):
    """Click type for numeric filter expressions."""

    name = "expr"

    def convert(self, value, param, ctx):
        if isinstance(value, tuple):
            return value
        try:
            return parse_clause(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


CLAUSE = ClauseType()


def view_options(f):
    """Options shared by commands that show the process list."""
    decorators = [
        click.option("--search", "-s", default="", help="Comma-separated search terms."),
        click.option(
            "--sort",
            "sort_field",
            type=click.Choice([field.value for field in SortField]),
            default=None,
            help="Sort field (default from config).",
        ),
        click.option(
            "--asc/--desc", "ascending", default=None, help="Sort direction (default from config)."
        ),
        click.option("--cpu", type=CLAUSE, default=None, help="CPU percent filter, e.g. '>50'."),
        click.option("--ram", type=CLAUSE, default=None, help="Memory filter in MiB."),
        click.option("--runtime", type=CLAUSE, default=None, help="Runtime filter in minutes."),
        click.option(
            "--status",
            "statuses",
            type=click.Choice([status.value for status in ProcessStatus], case_sensitive=False),
            multiple=True,
            help="Only show these statuses (repeatable).",
        ),
        click.option("--pin", "pins", multiple=True, help="Pin a command to the top (repeatable)."),
    ]
    for decorator in reversed(decorators):
        f = decorator(f)
    return f


def build_state(
    config,
    search: str,
    sort_field: str | None,
    ascending: bool | None,
    cpu: tuple[str, float] | None,
    ram: tuple[str, float] | None,
    runtime: tuple[str, float] | None,
    statuses: tuple[str, ...],
    pins: tuple[str, ...],
) -> ViewState:
    """Combine config defaults with command-line overrides."""
    filters: FilterConfig = config.filter_config()
    for name, clause in (("cpu", cpu), ("ram", ram), ("runtime", runtime)):
        if clause is not None:
            operator, value = clause
            filters = filters.with_clause(name, operator=operator, value=value, enabled=True)
    if statuses:
        # click.Choice normalizes case to the declared choice
        filters = filters.with_statuses(statuses)

    sort: SortConfig = config.sort_config()
    if sort_field is not None:
        sort = SortConfig(SortField(sort_field), sort.direction)
    if ascending is not None:
        sort = SortConfig(sort.field, SortDirection.ASC if ascending else SortDirection.DESC)

    return ViewState(query=search, filters=filters, sort=sort, pinned=frozenset(pins))


def _load_config():
    from procview.config import Config

    try:
        return Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _setup(config, source: str) -> None:
    from procview.logging import configure

    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        pass  # Keep the C locale
    configure(config, source=source)


@click.group()
@click.version_option(package_name="procview")
def main() -> None:
    """Filter and sort the live process list."""
    pass


@main.command()
@view_options
def tui(**options) -> None:
    """Launch interactive process view."""
    from procview.app import run_tui

    config = _load_config()
    _setup(config, "tui")
    run_tui(config, build_state(config, **options))


@main.command(name="list")
@view_options
@click.option("--limit", "-n", type=int, default=None, help="Show at most N processes.")
@click.option(
    "--interval",
    type=float,
    default=0.5,
    show_default=True,
    help="Seconds between the two samples used to measure CPU usage.",
)
def list_processes(limit: int | None, interval: float, **options) -> None:
    """Print one filtered, sorted snapshot."""
    from rich.console import Console
    from rich.table import Table

    from procview.filters import PatternCache
    from procview.formatting import format_bytes, format_percentage, format_uptime
    from procview.monitor import SystemMonitor, SystemSnapshot

    config = _load_config()
    _setup(config, "cli")
    state = build_state(config, **options)

    queue: Queue[SystemSnapshot] = Queue()
    monitor = SystemMonitor(queue)
    # First per-process cpu_percent reading is always 0.0
    monitor.collect_snapshot()
    time.sleep(max(0.0, interval))
    snapshot = monitor.collect_snapshot()

    view = state.apply(snapshot.processes, PatternCache(config.view.pattern_cache_size))
    if limit is not None:
        view = view[:limit]

    table = Table(title=f"{len(view)}/{len(snapshot.processes)} processes")
    table.add_column("", width=1)
    table.add_column("PID", justify="right")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("CPU%", justify="right")
    table.add_column("Memory", justify="right")
    table.add_column("Disk R/W", justify="right")
    table.add_column("Runtime", justify="right")
    table.add_column("Command", overflow="ellipsis", no_wrap=True)

    for proc in view:
        read, write = proc.disk_usage
        table.add_row(
            "*" if state.is_pinned(proc) else "",
            str(proc.pid),
            proc.name,
            proc.status.value,
            format_percentage(proc.cpu_usage),
            format_bytes(proc.memory_usage),
            f"{format_bytes(read)} / {format_bytes(write)}",
            format_uptime(proc.run_time),
            proc.command,
        )

    Console().print(table)


@main.group()
def config() -> None:
    """Manage the config file."""
    pass


@config.command(name="init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
def config_init(force: bool) -> None:
    """Write the default config file."""
    import structlog

    from procview.config import Config

    cfg = Config()
    if cfg.config_path.exists() and not force:
        raise click.ClickException(f"{cfg.config_path} already exists (use --force)")
    _setup(cfg, "cli")
    cfg.save()
    structlog.get_logger().info("config_created", path=str(cfg.config_path))
    click.echo(f"Wrote {cfg.config_path}")


@config.command(name="show")
def config_show() -> None:
    """Print the effective configuration."""
    cfg = _load_config()
    sort = cfg.sort_config()
    filters = cfg.filter_config()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Log file:    {cfg.log_path}")
    click.echo(f"Poll rate:   {cfg.monitor.poll_rate}s")
    click.echo(f"Sort:        {sort.field.value} {sort.direction.value}")
    for name in ("cpu", "ram", "runtime"):
        clause = getattr(filters, name)
        state = "on" if clause.enabled else "off"
        click.echo(f"Filter {name + ':':<8} {clause.operator}{clause.value:g} ({state})")
    statuses = ", ".join(sorted(s.value for s in filters.status.values)) or "all"
    click.echo(f"Status:      {statuses}")


if __name__ == "__main__":
    main()
