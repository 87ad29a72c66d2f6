"""Discovery of the processes belonging to the family."""

import logging
from collections.abc import Iterable

import psutil

from dcrps.agent import has_agent
from dcrps.buildinfo import read_build_version
from dcrps.config import Settings
from dcrps.models import ProcessRecord

log = logging.getLogger(__name__)

AMBIGUOUS_PID = -1


class ProcessScanner:
    """
    Enumerates running Go processes whose executable name has the family prefix.

    Handles AccessDenied, NoSuchProcess and ZombieProcess errors by skipping
    the affected process.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """
        Initialize the ProcessScanner.

        Args:
            settings: Family prefix and gops directory. Defaults to the environment.
        """
        self._settings = settings or Settings.from_env()

    @property
    def prefix(self) -> str:
        """Executable name prefix of the family."""
        return self._settings.prefix

    def find_all(self) -> list[ProcessRecord]:
        """Take one snapshot of the family, in enumeration order."""
        records: list[ProcessRecord] = []

        for proc in psutil.process_iter(attrs=["pid", "ppid", "name", "exe"]):
            try:
                record = self._make_record(proc.info)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                # Process died mid-scan or is not ours to inspect
                continue
            if record is not None:
                records.append(record)

        return records

    def _make_record(self, info: dict) -> ProcessRecord | None:
        name = info.get("name") or ""
        # Filter before reading executables
        if not name.startswith(self.prefix):
            return None

        pid = info["pid"]
        path = info.get("exe") or ""
        if not path:
            log.debug("Skipping PID %d (%s): executable path unavailable", pid, name)
            return None

        version = read_build_version(path)
        if version is None:
            log.debug("Skipping PID %d (%s): not a Go binary", pid, name)
            return None

        return ProcessRecord(
            pid=pid,
            ppid=info.get("ppid") or 0,
            exec_name=name,
            path=path,
            build_version=version,
            is_agent=has_agent(pid, self._settings),
        )


def name_index(records: Iterable[ProcessRecord]) -> dict[str, int]:
    """Map executable names to PIDs; names shared by several processes map to -1."""
    names: dict[str, int] = {}
    for record in records:
        if record.exec_name in names:
            names[record.exec_name] = AMBIGUOUS_PID
        else:
            names[record.exec_name] = record.pid
    return names
