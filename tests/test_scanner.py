"""Tests for the ProcessScanner class."""

import psutil
import pytest

from dcrps import scanner as scanner_module
from dcrps.config import Settings
from dcrps.models import ProcessRecord
from dcrps.scanner import AMBIGUOUS_PID, ProcessScanner, name_index


class FakeProcess:
    """Stand-in for psutil.Process as yielded by process_iter(attrs=...)."""

    def __init__(self, pid, ppid, name, exe):
        self._info = {"pid": pid, "ppid": ppid, "name": name, "exe": exe}

    @property
    def info(self):
        return self._info


class VanishedProcess:
    """A process that exits while being scanned."""

    @property
    def info(self):
        raise psutil.NoSuchProcess(pid=999)


@pytest.fixture
def settings(tmp_path):
    return Settings(prefix="dcr", gops_dir=tmp_path)


@pytest.fixture
def fake_system(monkeypatch):
    """Replace process enumeration and build info reading with fakes."""
    processes = [
        FakeProcess(1, 0, "systemd", "/sbin/init"),
        FakeProcess(100, 1, "dcrd", "/usr/bin/dcrd"),
        VanishedProcess(),
        FakeProcess(101, 100, "dcrwallet", "/usr/bin/dcrwallet"),
        FakeProcess(102, 100, "dcrscript", "/usr/bin/dcrscript"),
        FakeProcess(103, 100, "dcrhidden", None),
    ]
    versions = {"/usr/bin/dcrd": "go1.21.4", "/usr/bin/dcrwallet": "go1.20.1"}
    read_paths = []

    def fake_read(path):
        read_paths.append(path)
        return versions.get(path)

    monkeypatch.setattr(scanner_module.psutil, "process_iter", lambda attrs=None: iter(processes))
    monkeypatch.setattr(scanner_module, "read_build_version", fake_read)
    return read_paths


class TestProcessScanner:
    """Tests for ProcessScanner."""

    def test_scanner_creation(self, settings):
        """Test ProcessScanner uses the configured prefix."""
        assert ProcessScanner(settings).prefix == "dcr"

    def test_find_all_filters_family(self, fake_system, settings):
        """Test only Go processes with the family prefix are returned, in order."""
        records = ProcessScanner(settings).find_all()

        assert [r.pid for r in records] == [100, 101]
        assert records[0] == ProcessRecord(
            pid=100,
            ppid=1,
            exec_name="dcrd",
            path="/usr/bin/dcrd",
            build_version="go1.21.4",
            is_agent=False,
        )

    def test_filter_happens_before_reading_binaries(self, fake_system, settings):
        """Test executables outside the family are never opened."""
        ProcessScanner(settings).find_all()
        assert "/sbin/init" not in fake_system

    def test_agent_detection(self, fake_system, settings):
        """Test a port file marks the process as running the agent."""
        (settings.gops_dir / "101").write_text("40000")
        records = ProcessScanner(settings).find_all()
        assert [r.is_agent for r in records] == [False, True]

    def test_custom_prefix(self, fake_system, settings):
        """Test the family prefix is configurable."""
        records = ProcessScanner(Settings(prefix="dcrw", gops_dir=settings.gops_dir)).find_all()
        assert [r.exec_name for r in records] == ["dcrwallet"]

    def test_find_all_on_live_system(self):
        """Test scanning the real process table returns well-formed records."""
        records = ProcessScanner(Settings(prefix="dcr")).find_all()

        assert isinstance(records, list)
        for record in records:
            assert isinstance(record, ProcessRecord)
            assert record.exec_name.startswith("dcr")
            assert record.build_version


class TestNameIndex:
    """Tests for name_index."""

    def test_unique_names(self):
        records = [
            ProcessRecord(1, 0, "dcrd", "", ""),
            ProcessRecord(2, 1, "dcrwallet", "", ""),
        ]
        assert name_index(records) == {"dcrd": 1, "dcrwallet": 2}

    def test_duplicate_names_are_ambiguous(self):
        records = [
            ProcessRecord(1, 0, "dcrd", "", ""),
            ProcessRecord(2, 0, "dcrd", "", ""),
            ProcessRecord(3, 0, "dcrd", "", ""),
        ]
        assert name_index(records) == {"dcrd": AMBIGUOUS_PID}

    def test_empty(self):
        assert name_index([]) == {}
