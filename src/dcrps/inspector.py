"""Detailed report about a single process."""

import logging
import time
from collections.abc import Callable

import psutil

from dcrps.errors import ProcessNotFoundError
from dcrps.models import ConnectionInfo

log = logging.getLogger(__name__)


def lifetime_cpu_percent(proc: psutil.Process) -> float:
    """CPU time used by ``proc`` as a percentage of the wall time since it started."""
    times = proc.cpu_times()
    elapsed = time.time() - proc.create_time()
    if elapsed <= 0:
        return 0.0
    return 100 * (times.user + times.system) / elapsed


def connections(proc: psutil.Process) -> list[ConnectionInfo]:
    """Internet connections held by ``proc``."""
    result = []
    for conn in proc.net_connections(kind="inet"):
        local_ip, local_port = conn.laddr if conn.laddr else ("", 0)
        remote_ip, remote_port = conn.raddr if conn.raddr else ("", 0)
        result.append(
            ConnectionInfo(
                local_ip=local_ip,
                local_port=local_port,
                remote_ip=remote_ip,
                remote_port=remote_port,
                status=conn.status,
            )
        )
    return result


def format_connection(conn: ConnectionInfo) -> str:
    return f"{conn.local_ip}:{conn.local_port} <-> {conn.remote_ip}:{conn.remote_port} ({conn.status})"


def inspect_process(pid: int) -> list[tuple[str, str]]:
    """
    Collect the displayable attributes of process ``pid``.

    Attributes psutil cannot read (access denied, zombie, unsupported on the
    platform) are left out.

    Returns:
        ``(label, value)`` pairs in display order.

    Raises:
        ProcessNotFoundError: If no process has this PID.
    """
    try:
        proc = psutil.Process(pid)
    except psutil.NoSuchProcess:
        raise ProcessNotFoundError(f"Cannot read process info: no process with PID {pid}") from None

    getters: list[tuple[str, Callable[[], str]]] = [
        ("parent PID", lambda: str(proc.ppid())),
        ("threads", lambda: str(proc.num_threads())),
        ("memory usage", lambda: f"{proc.memory_percent():.3f}%"),
        ("cpu usage", lambda: f"{lifetime_cpu_percent(proc):.3f}%"),
        ("username", proc.username),
        ("cmd+args", lambda: " ".join(proc.cmdline())),
    ]

    fields: list[tuple[str, str]] = []
    with proc.oneshot():
        for label, getter in getters:
            try:
                fields.append((label, getter()))
            except psutil.Error as exc:
                log.debug("Cannot read %s of PID %d: %s", label, pid, exc)
        try:
            fields.extend(("local/remote", format_connection(conn)) for conn in connections(proc))
        except psutil.Error as exc:
            log.debug("Cannot read connections of PID %d: %s", pid, exc)

    return fields


def format_report(fields: list[tuple[str, str]]) -> list[str]:
    """Format ``(label, value)`` pairs as ``label:\\tvalue`` lines."""
    return [f"{label}:\t{value}" for label, value in fields]
