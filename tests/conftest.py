"""Shared test fixtures for procview."""

import logging

import pytest
import structlog

from procview.models import DiskUsage, ProcessRecord, ProcessStatus

MIB = 1024 * 1024


def make_process(
    pid: int = 1,
    name: str = "proc",
    command: str | None = None,
    status: ProcessStatus | str = ProcessStatus.RUNNING,
    cpu: float = 0.0,
    memory: int = 0,
    run_time: int = 0,
    disk: tuple[int, int] = (0, 0),
) -> ProcessRecord:
    """Create a ProcessRecord for testing.

    command defaults to "/usr/bin/<name>".
    """
    return ProcessRecord(
        pid=pid,
        name=name,
        command=command if command is not None else f"/usr/bin/{name}",
        status=ProcessStatus(status),
        cpu_usage=cpu,
        memory_usage=memory,
        run_time=run_time,
        disk_usage=DiskUsage(*disk),
    )


@pytest.fixture
def snapshot() -> list[ProcessRecord]:
    """Three processes: two chrome variants and an idle sleeper."""
    return [
        make_process(pid=1, name="chrome", cpu=70.0, memory=200 * MIB, run_time=120),
        make_process(
            pid=2,
            name="idle",
            status=ProcessStatus.SLEEPING,
            cpu=1.0,
            memory=10 * MIB,
            run_time=5,
        ),
        make_process(pid=3, name="chromehelper", cpu=40.0, memory=300 * MIB, run_time=3600),
    ]


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Point Path.home() at a temporary directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def reset_logging():
    """Undo procview.logging.configure() after the test."""
    yield
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    structlog.reset_defaults()
