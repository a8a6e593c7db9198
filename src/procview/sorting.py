"""Ranking engine: pin priority first, then a configurable field and direction."""

import locale
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from functools import cmp_to_key
from operator import attrgetter

from procview.models import DiskUsage, ProcessRecord

# A pair comparison is dominated by one operation when its total exceeds the
# other's by this factor.
DOMINANCE_RATIO = 1.5


class SortDirection(Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class FieldKind(Enum):
    """Value shape of a sortable field."""

    NUMERIC = "numeric"
    STRING = "string"
    PAIR = "pair"


class SortField(Enum):
    """Sortable process attributes."""

    PID = "pid"
    NAME = "name"
    COMMAND = "command"
    STATUS = "status"
    CPU_USAGE = "cpu_usage"
    MEMORY_USAGE = "memory_usage"
    RUN_TIME = "run_time"
    DISK_USAGE = "disk_usage"

    @property
    def kind(self) -> FieldKind:
        return _FIELD_KINDS[self]


_FIELD_KINDS = {
    SortField.PID: FieldKind.NUMERIC,
    SortField.NAME: FieldKind.STRING,
    SortField.COMMAND: FieldKind.STRING,
    SortField.STATUS: FieldKind.STRING,
    SortField.CPU_USAGE: FieldKind.NUMERIC,
    SortField.MEMORY_USAGE: FieldKind.NUMERIC,
    SortField.RUN_TIME: FieldKind.NUMERIC,
    SortField.DISK_USAGE: FieldKind.PAIR,
}

_ACCESSORS: dict[SortField, Callable[[ProcessRecord], object]] = {
    SortField.PID: attrgetter("pid"),
    SortField.NAME: attrgetter("name"),
    SortField.COMMAND: attrgetter("command"),
    SortField.STATUS: lambda p: p.status.value,
    SortField.CPU_USAGE: attrgetter("cpu_usage"),
    SortField.MEMORY_USAGE: attrgetter("memory_usage"),
    SortField.RUN_TIME: attrgetter("run_time"),
    SortField.DISK_USAGE: attrgetter("disk_usage"),
}


@dataclass(slots=True, frozen=True)
class SortConfig:
    """Sort field and direction. Strings are coerced to their enum members."""

    field: SortField = SortField.CPU_USAGE
    direction: SortDirection = SortDirection.DESC

    def __post_init__(self) -> None:
        object.__setattr__(self, "field", SortField(self.field))
        object.__setattr__(self, "direction", SortDirection(self.direction))

    def reversed(self) -> "SortConfig":
        """Return a copy with the direction flipped."""
        flipped = SortDirection.ASC if self.direction is SortDirection.DESC else SortDirection.DESC
        return replace(self, direction=flipped)

    def toggled(self, sort_field: SortField | str) -> "SortConfig":
        """Return the config after selecting sort_field (e.g. a header click).

        Re-selecting the current field flips direction. A new field starts
        descending for numbers (biggest first) and ascending for text.
        """
        sort_field = SortField(sort_field)
        if sort_field is self.field:
            return self.reversed()
        direction = SortDirection.ASC if sort_field.kind is FieldKind.STRING else SortDirection.DESC
        return SortConfig(sort_field, direction)


def compare_numbers(a: float, b: float) -> float:
    return a - b


def compare_strings(a: str, b: str) -> int:
    """Locale-aware comparison, case-insensitive first."""
    return locale.strcoll(a.casefold(), b.casefold()) or locale.strcoll(a, b)


def compare_disk_usage(a: DiskUsage, b: DiskUsage) -> int:
    """
    Compare two (read, write) pairs by their dominant operation.

    The dominant operation is decided for this pair only:
    - Write-heavy (writes > 1.5x reads): by write, then read.
    - Read-heavy (reads > 1.5x writes): by read, then write.
    - Balanced: by read + write, then by the larger counter.

    Because the classification depends on both operands this is not a
    total order: A < B < C does not imply A < C.
    """
    total_reads = a.read + b.read
    total_writes = a.write + b.write

    if total_writes > total_reads * DOMINANCE_RATIO:
        if a.write != b.write:
            return a.write - b.write
        return a.read - b.read

    if total_reads > total_writes * DOMINANCE_RATIO:
        if a.read != b.read:
            return a.read - b.read
        return a.write - b.write

    a_total = a.read + a.write
    b_total = b.read + b.write
    if a_total != b_total:
        return a_total - b_total
    return max(a.read, a.write) - max(b.read, b.write)


_KIND_COMPARATORS: dict[FieldKind, Callable[[object, object], float]] = {
    FieldKind.NUMERIC: compare_numbers,  # type: ignore[dict-item]
    FieldKind.STRING: compare_strings,  # type: ignore[dict-item]
    FieldKind.PAIR: compare_disk_usage,  # type: ignore[dict-item]
}


def make_comparator(
    config: SortConfig,
    pinned: Collection[str],
) -> Callable[[ProcessRecord, ProcessRecord], float]:
    """Build the pairwise comparator for config and the pinned commands."""
    sign = 1 if config.direction is SortDirection.ASC else -1
    value_of = _ACCESSORS[config.field]
    compare_values = _KIND_COMPARATORS[config.field.kind]

    def comparator(a: ProcessRecord, b: ProcessRecord) -> float:
        a_pinned = a.command in pinned
        b_pinned = b.command in pinned
        if a_pinned != b_pinned:
            return -1 if a_pinned else 1
        return sign * compare_values(value_of(a), value_of(b))

    return comparator


def sort_processes(
    processes: Sequence[ProcessRecord],
    config: SortConfig,
    pinned: Collection[str] = frozenset(),
) -> list[ProcessRecord]:
    """
    Return a new list ordered by pin status, then config.

    Pinned processes (by command) always come first, whatever the direction.
    Equal keys keep their input order. The input is never modified.
    """
    return sorted(processes, key=cmp_to_key(make_comparator(config, pinned)))
