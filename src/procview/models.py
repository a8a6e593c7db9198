"""Data models for procview."""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple


class ProcessStatus(Enum):
    """Process states shown in the view."""

    RUNNING = "Running"
    SLEEPING = "Sleeping"
    STOPPED = "Stopped"
    ZOMBIE = "Zombie"


class DiskUsage(NamedTuple):
    """Cumulative disk I/O counters for a process, in bytes."""

    read: int = 0
    write: int = 0


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable snapshot of a process state."""

    pid: int
    name: str
    command: str  # Stable identity used for pinning
    status: ProcessStatus
    cpu_usage: float  # 0.0 - 100.0 * core_count
    memory_usage: int  # Bytes
    run_time: int  # Seconds
    disk_usage: DiskUsage = DiskUsage()
