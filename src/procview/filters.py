"""Predicate engine: numeric thresholds, status sets and free-text search.

`filter_processes` is run on every refresh tick, so the idle case (no search
terms, no enabled clause) returns the input untouched.
"""

import re
import threading
from collections import OrderedDict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from operator import eq, ge, gt, le, lt

import structlog

from procview.models import ProcessRecord, ProcessStatus

log = structlog.get_logger()

BYTES_PER_MIB = 1024 * 1024
SECONDS_PER_MINUTE = 60

_COMPARATORS = {
    ">": gt,
    "<": lt,
    "=": eq,
    ">=": ge,
    "<=": le,
}

OPERATORS: tuple[str, ...] = tuple(_COMPARATORS)
NUMERIC_CLAUSES = ("cpu", "ram", "runtime")


def compare(value: float, operator: str, target: float) -> bool:
    """Compare value against target. Unknown operators always pass."""
    comparator = _COMPARATORS.get(operator)
    if comparator is None:
        return True
    return comparator(value, target)


def parse_search(query: str) -> tuple[str, ...]:
    """Split a comma-separated search string into trimmed terms.

    Only the empty string yields no terms. A blank term (as in "chrome,")
    is kept and matches every process.
    """
    if not query:
        return ()
    return tuple(part.strip() for part in query.split(","))


@dataclass(slots=True, frozen=True)
class NumericClause:
    """Threshold filter on one numeric dimension."""

    operator: str = ">"
    value: float = 0
    enabled: bool = False

    def matches(self, value: float) -> bool:
        """Return True if value satisfies the clause (or the clause is off)."""
        return not self.enabled or compare(value, self.operator, self.value)


@dataclass(slots=True, frozen=True)
class StatusClause:
    """Set-membership filter on process status.

    The clause is enabled exactly when at least one status is selected, so an
    empty selection can never hide every process.
    """

    values: frozenset[ProcessStatus] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", frozenset(ProcessStatus(v) for v in self.values))

    @property
    def enabled(self) -> bool:
        return bool(self.values)

    def matches(self, status: ProcessStatus) -> bool:
        return not self.values or status in self.values

    def toggle(self, status: ProcessStatus | str) -> "StatusClause":
        """Return a copy with status added or removed."""
        return StatusClause(self.values ^ {ProcessStatus(status)})


@dataclass(slots=True, frozen=True)
class FilterConfig:
    """Active filter clauses, one per filterable dimension."""

    cpu: NumericClause = field(default_factory=NumericClause)
    ram: NumericClause = field(default_factory=NumericClause)  # MiB
    runtime: NumericClause = field(default_factory=NumericClause)  # Minutes
    status: StatusClause = field(default_factory=StatusClause)

    @property
    def is_active(self) -> bool:
        """True if any clause constrains the result."""
        return (
            self.cpu.enabled or self.ram.enabled or self.runtime.enabled or self.status.enabled
        )

    def with_clause(self, name: str, **changes: object) -> "FilterConfig":
        """Return a copy with one numeric clause changed.

        Args:
            name: One of "cpu", "ram", "runtime"
            **changes: NumericClause fields to replace (operator, value, enabled)
        """
        if name not in NUMERIC_CLAUSES:
            raise ValueError(f"Unknown numeric clause: {name!r}. Valid: {NUMERIC_CLAUSES}")
        return replace(self, **{name: replace(getattr(self, name), **changes)})

    def toggle_status(self, status: ProcessStatus | str) -> "FilterConfig":
        """Return a copy with status toggled in the status clause."""
        return replace(self, status=self.status.toggle(status))

    def with_statuses(self, statuses: Iterable[ProcessStatus | str]) -> "FilterConfig":
        """Return a copy whose status clause selects exactly statuses."""
        return replace(self, status=StatusClause(frozenset(statuses)))


class PatternCache:
    """Bounded LRU cache of compiled case-insensitive search patterns.

    Keyed by raw term text. Terms that fail to compile are cached as None so
    a malformed pattern is compiled (and logged) once, not on every tick.
    """

    def __init__(self, maxsize: int = 256) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        self._maxsize = maxsize
        self._patterns: OrderedDict[str, re.Pattern[str] | None] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def maxsize(self) -> int:
        return self._maxsize

    def __len__(self) -> int:
        with self._lock:
            return len(self._patterns)

    def __contains__(self, term: object) -> bool:
        with self._lock:
            return term in self._patterns

    def get(self, term: str) -> re.Pattern[str] | None:
        """Return the compiled pattern for term, or None if it is malformed."""
        with self._lock:
            try:
                pattern = self._patterns[term]
            except KeyError:
                pattern = _compile(term)
                self._patterns[term] = pattern
                if len(self._patterns) > self._maxsize:
                    self._patterns.popitem(last=False)
            else:
                self._patterns.move_to_end(term)
            return pattern

    def clear(self) -> None:
        with self._lock:
            self._patterns.clear()


def _compile(term: str) -> re.Pattern[str] | None:
    try:
        return re.compile(term, re.IGNORECASE)
    except (re.error, OverflowError) as e:
        log.debug("invalid_search_pattern", term=term, error=str(e))
        return None


default_cache = PatternCache()


def passes_clauses(process: ProcessRecord, config: FilterConfig) -> bool:
    """Check status, CPU, RAM (MiB) and runtime (minutes) clauses in that order."""
    if not config.status.matches(process.status):
        return False
    if not config.cpu.matches(process.cpu_usage):
        return False
    if config.ram.enabled and not config.ram.matches(process.memory_usage / BYTES_PER_MIB):
        return False
    if config.runtime.enabled and not config.runtime.matches(
        process.run_time / SECONDS_PER_MINUTE
    ):
        return False
    return True


def matches_search(
    process: ProcessRecord,
    terms: Sequence[str],
    cache: PatternCache,
) -> bool:
    """Return True if any term matches name, command, pid or a name regex."""
    if not terms:
        return True

    name_lower = process.name.lower()
    command_lower = process.command.lower()
    pid_str = str(process.pid)

    for term in terms:
        term_lower = term.lower()
        # Substring checks first, regex last
        if term_lower in name_lower or term_lower in command_lower or term in pid_str:
            return True
        pattern = cache.get(term)
        if pattern is not None and pattern.search(process.name):
            return True
    return False


def filter_processes(
    processes: Sequence[ProcessRecord],
    query: str,
    config: FilterConfig,
    cache: PatternCache | None = None,
) -> Sequence[ProcessRecord]:
    """
    Return the processes passing config and query, in input order.

    Args:
        processes: Current snapshot.
        query: Raw comma-separated search string.
        config: Active filter clauses.
        cache: Pattern cache to use. Defaults to the module-level cache.

    Returns:
        The input sequence itself when nothing is active, else a new list.
    """
    terms = parse_search(query)
    if not terms and not config.is_active:
        return processes

    if cache is None:
        cache = default_cache

    return [
        process
        for process in processes
        if passes_clauses(process, config) and matches_search(process, terms, cache)
    ]
