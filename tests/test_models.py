"""Tests for procview data models."""

import pytest

from procview.models import DiskUsage, ProcessRecord, ProcessStatus


def test_process_record_creation():
    """Test ProcessRecord dataclass creation."""
    record = ProcessRecord(
        pid=123,
        name="test_process",
        command="/usr/bin/test --flag",
        status=ProcessStatus.RUNNING,
        cpu_usage=50.0,
        memory_usage=1024000,
        run_time=3600,
        disk_usage=DiskUsage(read=4096, write=512),
    )

    assert record.pid == 123
    assert record.name == "test_process"
    assert record.command == "/usr/bin/test --flag"
    assert record.status is ProcessStatus.RUNNING
    assert record.cpu_usage == 50.0
    assert record.memory_usage == 1024000
    assert record.run_time == 3600
    assert record.disk_usage == (4096, 512)
    assert record.disk_usage.read == 4096
    assert record.disk_usage.write == 512


def test_process_record_default_disk_usage():
    """Disk usage defaults to zero reads and writes."""
    record = ProcessRecord(
        pid=1,
        name="init",
        command="/sbin/init",
        status=ProcessStatus.SLEEPING,
        cpu_usage=0.1,
        memory_usage=10000,
        run_time=0,
    )
    assert record.disk_usage == DiskUsage(0, 0)


def test_process_record_is_frozen():
    """Test that ProcessRecord is immutable (frozen)."""
    record = ProcessRecord(
        pid=1,
        name="init",
        command="/sbin/init",
        status=ProcessStatus.SLEEPING,
        cpu_usage=0.1,
        memory_usage=10000,
        run_time=0,
    )

    with pytest.raises(AttributeError):
        record.pid = 999


def test_process_record_uses_slots():
    """Test that ProcessRecord uses __slots__ for memory efficiency."""
    record = ProcessRecord(
        pid=1,
        name="init",
        command="/sbin/init",
        status=ProcessStatus.SLEEPING,
        cpu_usage=0.1,
        memory_usage=10000,
        run_time=0,
    )

    # Slots-based dataclasses don't have __dict__
    assert not hasattr(record, "__dict__")


class TestProcessStatus:
    """Tests for ProcessStatus enum."""

    def test_values(self):
        """Status values are the display names."""
        assert [s.value for s in ProcessStatus] == ["Running", "Sleeping", "Stopped", "Zombie"]

    def test_lookup_by_value(self):
        """Statuses can be looked up by display name."""
        assert ProcessStatus("Zombie") is ProcessStatus.ZOMBIE

    def test_unknown_value(self):
        """Unknown status names are rejected."""
        with pytest.raises(ValueError):
            ProcessStatus("Idle")
