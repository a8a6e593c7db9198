"""Filter-then-sort pipeline producing the rendered process list."""

from collections.abc import Collection, Sequence
from dataclasses import dataclass, field, replace

from procview.filters import FilterConfig, PatternCache, filter_processes
from procview.models import ProcessRecord
from procview.sorting import SortConfig, sort_processes


def build_view(
    processes: Sequence[ProcessRecord],
    query: str,
    filters: FilterConfig,
    sort: SortConfig,
    pinned: Collection[str] = frozenset(),
    cache: PatternCache | None = None,
) -> list[ProcessRecord]:
    """Filter a snapshot and order the survivors, pinned commands first."""
    visible = filter_processes(processes, query, filters, cache)
    return sort_processes(visible, sort, pinned)


@dataclass(slots=True, frozen=True)
class ViewState:
    """Everything the user has chosen about the process list.

    Each edit returns a new ViewState, so a transition is a single
    replacement the UI can compare against the previous value.
    """

    query: str = ""
    filters: FilterConfig = field(default_factory=FilterConfig)
    sort: SortConfig = field(default_factory=SortConfig)
    pinned: frozenset[str] = frozenset()

    def apply(
        self,
        processes: Sequence[ProcessRecord],
        cache: PatternCache | None = None,
    ) -> list[ProcessRecord]:
        return build_view(processes, self.query, self.filters, self.sort, self.pinned, cache)

    def with_query(self, query: str) -> "ViewState":
        return replace(self, query=query)

    def with_filters(self, filters: FilterConfig) -> "ViewState":
        return replace(self, filters=filters)

    def with_sort(self, sort: SortConfig) -> "ViewState":
        return replace(self, sort=sort)

    def toggle_pin(self, command: str) -> "ViewState":
        """Pin command if unpinned, unpin it otherwise."""
        return replace(self, pinned=self.pinned ^ {command})

    def is_pinned(self, process: ProcessRecord) -> bool:
        return process.command in self.pinned
