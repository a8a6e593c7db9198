"""System monitoring engine for procview."""

import threading
import time
from dataclasses import dataclass
from queue import Queue

import psutil
import structlog

from procview.models import DiskUsage, ProcessRecord, ProcessStatus

log = structlog.get_logger()

MIN_POLL_RATE = 0.1

# psutil status strings vary by platform; everything unlisted is Sleeping
_STATUS_MAP = {
    psutil.STATUS_RUNNING: ProcessStatus.RUNNING,
    psutil.STATUS_WAKING: ProcessStatus.RUNNING,
    psutil.STATUS_STOPPED: ProcessStatus.STOPPED,
    psutil.STATUS_TRACING_STOP: ProcessStatus.STOPPED,
    psutil.STATUS_ZOMBIE: ProcessStatus.ZOMBIE,
    psutil.STATUS_DEAD: ProcessStatus.ZOMBIE,
}

# io_counters is not available on macOS
_HAS_IO_COUNTERS = hasattr(psutil.Process, "io_counters")

_PROCESS_ATTRS = [
    "pid",
    "name",
    "status",
    "cpu_percent",
    "memory_info",
    "create_time",
    "cmdline",
] + (["io_counters"] if _HAS_IO_COUNTERS else [])


def map_status(status: str | None) -> ProcessStatus:
    """Map a psutil status string onto the four statuses the view knows."""
    return _STATUS_MAP.get(status, ProcessStatus.SLEEPING)


@dataclass(slots=True)
class SystemSnapshot:
    """Snapshot of overall system state."""

    cpu_percent_per_core: list[float]
    memory_total: int
    memory_used: int
    memory_percent: float
    swap_total: int
    swap_used: int
    swap_percent: float
    load_avg: tuple[float, float, float]
    uptime_seconds: float
    processes: list[ProcessRecord]


class SystemMonitor:
    """
    Background poller turning psutil data into ProcessRecord snapshots.

    A daemon thread calls collect_snapshot() every poll_rate seconds and
    puts the result on update_queue. The consumer drains the queue and keeps
    only the newest snapshot. Processes that exit or deny access mid-poll
    are left out of that poll.
    """

    def __init__(
        self,
        update_queue: Queue[SystemSnapshot],
        poll_rate: float = 2.0,
    ) -> None:
        """
        Args:
            update_queue: Receives one SystemSnapshot per poll.
            poll_rate: Seconds between polls, clamped to MIN_POLL_RATE.
        """
        self._queue = update_queue
        self._poll_rate = max(MIN_POLL_RATE, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        # Prime the per-core counters; the first reading is always 0.0
        psutil.cpu_percent(percpu=True)

    @property
    def poll_rate(self) -> float:
        return self._poll_rate

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start polling. Does nothing if already running."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()
        log.info("monitor_started", poll_rate=self._poll_rate)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the thread to exit and wait up to timeout seconds for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            log.info("monitor_stopped")

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.collect_snapshot())
            except Exception:
                # Keep the loop running; the next tick supersedes this one
                log.exception("snapshot_failed")

            self._stop_event.wait(timeout=self._poll_rate)

    def collect_snapshot(self) -> SystemSnapshot:
        """Collect a snapshot of the current system state."""
        # Non-blocking, uses previous call's data
        cpu_percents = psutil.cpu_percent(percpu=True)

        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()
        load_avg = psutil.getloadavg()
        now = time.time()
        uptime = now - psutil.boot_time()

        return SystemSnapshot(
            cpu_percent_per_core=cpu_percents,
            memory_total=mem.total,
            memory_used=mem.used,
            memory_percent=mem.percent,
            swap_total=swap.total,
            swap_used=swap.used,
            swap_percent=swap.percent,
            load_avg=load_avg,
            uptime_seconds=uptime,
            processes=self._collect_processes(now),
        )

    def _collect_processes(self, now: float | None = None) -> list[ProcessRecord]:
        """
        Collect records for all running processes.

        psutil.process_iter() caches Process objects between calls, so
        cpu_percent is meaningful from the second poll onward.
        Processes that vanish or deny access mid-poll are skipped.
        """
        if now is None:
            now = time.time()
        processes: list[ProcessRecord] = []

        for proc in psutil.process_iter(attrs=_PROCESS_ATTRS):
            try:
                processes.append(_to_record(proc.info, now))
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

        return processes


def _to_record(info: dict, now: float) -> ProcessRecord:
    """Build a ProcessRecord from a psutil info dict, defaulting missing values."""
    name = info.get("name") or ""
    cmdline = info.get("cmdline") or []
    command = " ".join(cmdline) if cmdline else name

    mem_info = info.get("memory_info")
    create_time = info.get("create_time")
    run_time = max(0, int(now - create_time)) if create_time else 0

    io = info.get("io_counters")
    disk_usage = DiskUsage(io.read_bytes, io.write_bytes) if io else DiskUsage()

    return ProcessRecord(
        pid=info.get("pid", 0),
        name=name,
        command=command,
        status=map_status(info.get("status")),
        cpu_usage=info.get("cpu_percent") or 0.0,
        memory_usage=mem_info.rss if mem_info else 0,
        run_time=run_time,
        disk_usage=disk_usage,
    )
