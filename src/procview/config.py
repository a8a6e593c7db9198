"""Configuration system for procview."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from procview.filters import OPERATORS, FilterConfig, NumericClause, StatusClause
from procview.models import ProcessStatus
from procview.sorting import SortConfig, SortDirection, SortField

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class MonitorConfig:
    """Snapshot provider configuration."""

    poll_rate: float = 2.0  # Seconds between snapshots (minimum 0.1)


@dataclass
class ViewConfig:
    """Process list defaults."""

    sort_field: str = SortField.CPU_USAGE.value
    sort_direction: str = SortDirection.DESC.value
    pattern_cache_size: int = 256  # Compiled search patterns kept (LRU)
    search_debounce: float = 0.3  # Seconds to wait after typing before filtering


@dataclass
class ClauseConfig:
    """One numeric filter clause as stored on disk."""

    operator: str = ">"
    value: float = 0.0
    enabled: bool = False


@dataclass
class StatusFilterConfig:
    """Status filter as stored on disk. An empty list shows every status."""

    values: list[str] = field(default_factory=list)


@dataclass
class FiltersConfig:
    """Filters applied at startup.

    cpu is in percent, ram in MiB, runtime in minutes.
    """

    status: StatusFilterConfig = field(default_factory=StatusFilterConfig)
    cpu: ClauseConfig = field(default_factory=ClauseConfig)
    ram: ClauseConfig = field(default_factory=ClauseConfig)
    runtime: ClauseConfig = field(default_factory=ClauseConfig)


@dataclass
class LoggingConfig:
    """Log file settings."""

    level: str = "INFO"
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    view: ViewConfig = field(default_factory=ViewConfig)
    filters: FiltersConfig = field(default_factory=FiltersConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "procview"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "procview"

    @property
    def log_path(self) -> Path:
        return self.state_dir / "procview.log"

    def filter_config(self) -> FilterConfig:
        """Build the startup FilterConfig."""
        return FilterConfig(
            cpu=_to_clause(self.filters.cpu),
            ram=_to_clause(self.filters.ram),
            runtime=_to_clause(self.filters.runtime),
            status=StatusClause(frozenset(self.filters.status.values)),
        )

    def sort_config(self) -> SortConfig:
        """Build the startup SortConfig."""
        return SortConfig(SortField(self.view.sort_field), SortDirection(self.view.sort_direction))

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("monitor", "view", "filters", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc), encoding="utf-8")

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values."""
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path, encoding="utf-8") as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            monitor=_load_monitor_config(_check_table("monitor", data.get("monitor", {}))),
            view=_load_view_config(_check_table("view", data.get("view", {}))),
            filters=_load_filters_config(_check_table("filters", data.get("filters", {}))),
            logging=_load_logging_config(_check_table("logging", data.get("logging", {}))),
        )


def _to_clause(clause: ClauseConfig) -> NumericClause:
    return NumericClause(operator=clause.operator, value=clause.value, enabled=clause.enabled)


def _check_number(key: str, value: object) -> float:
    # bool is an int subclass; TOML true/false is never a number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number, got {value!r}")
    return value


def _check_int(key: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


def _check_bool(key: str, value: object) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false, got {value!r}")
    return value


def _check_table(key: str, value: object) -> dict:
    if not isinstance(value, dict):
        raise ValueError(f"[{key}] must be a table, got {value!r}")
    return value


def _load_monitor_config(data: dict) -> MonitorConfig:
    defaults = MonitorConfig()
    poll_rate = _check_number("poll_rate", data.get("poll_rate", defaults.poll_rate))
    if poll_rate < 0.1:
        raise ValueError(f"poll_rate must be >= 0.1, got {poll_rate}")
    return MonitorConfig(poll_rate=poll_rate)


def _load_view_config(data: dict) -> ViewConfig:
    """Load view config, rejecting sort settings the engine cannot use."""
    defaults = ViewConfig()
    valid_fields = [f.value for f in SortField]
    valid_directions = [d.value for d in SortDirection]

    sort_field = data.get("sort_field", defaults.sort_field)
    sort_direction = data.get("sort_direction", defaults.sort_direction)
    pattern_cache_size = _check_int(
        "pattern_cache_size", data.get("pattern_cache_size", defaults.pattern_cache_size)
    )
    search_debounce = _check_number(
        "search_debounce", data.get("search_debounce", defaults.search_debounce)
    )

    if sort_field not in valid_fields:
        raise ValueError(f"Invalid sort_field: {sort_field!r}. Must be one of {valid_fields}")
    if sort_direction not in valid_directions:
        raise ValueError(
            f"Invalid sort_direction: {sort_direction!r}. Must be one of {valid_directions}"
        )
    if pattern_cache_size < 1:
        raise ValueError(f"pattern_cache_size must be >= 1, got {pattern_cache_size}")
    if search_debounce < 0:
        raise ValueError(f"search_debounce must be >= 0, got {search_debounce}")

    return ViewConfig(
        sort_field=sort_field,
        sort_direction=sort_direction,
        pattern_cache_size=pattern_cache_size,
        search_debounce=search_debounce,
    )


def _load_clause_config(name: str, data: dict) -> ClauseConfig:
    defaults = ClauseConfig()
    operator = data.get("operator", defaults.operator)
    if operator not in OPERATORS:
        raise ValueError(
            f"Invalid filters.{name}.operator: {operator!r}. Must be one of {OPERATORS}"
        )
    return ClauseConfig(
        operator=operator,
        value=_check_number(f"filters.{name}.value", data.get("value", defaults.value)),
        enabled=_check_bool(f"filters.{name}.enabled", data.get("enabled", defaults.enabled)),
    )


def _load_status_filter_config(data: dict) -> StatusFilterConfig:
    """Status names must match ProcessStatus values."""
    valid_statuses = [s.value for s in ProcessStatus]
    values = data.get("values", [])
    if not isinstance(values, list):
        raise ValueError(f"filters.status.values must be a list, got {values!r}")
    for status in values:
        if status not in valid_statuses:
            raise ValueError(
                f"Invalid filters.status entry: {status!r}. Must be one of {valid_statuses}"
            )
    return StatusFilterConfig(values=list(values))


def _load_filters_config(data: dict) -> FiltersConfig:
    return FiltersConfig(
        status=_load_status_filter_config(
            _check_table("filters.status", data.get("status", {}))
        ),
        cpu=_load_clause_config("cpu", _check_table("filters.cpu", data.get("cpu", {}))),
        ram=_load_clause_config("ram", _check_table("filters.ram", data.get("ram", {}))),
        runtime=_load_clause_config(
            "runtime", _check_table("filters.runtime", data.get("runtime", {}))
        ),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    defaults = LoggingConfig()
    level = str(data.get("level", defaults.level)).upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid logging.level: {level!r}. Must be one of {VALID_LOG_LEVELS}")
    return LoggingConfig(
        level=level,
        max_bytes=_check_int("logging.max_bytes", data.get("max_bytes", defaults.max_bytes)),
        backup_count=_check_int(
            "logging.backup_count", data.get("backup_count", defaults.backup_count)
        ),
    )
