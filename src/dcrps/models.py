"""Data models for dcrps."""

from dataclasses import dataclass
from typing import NamedTuple


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable record of one process in a snapshot."""

    pid: int
    ppid: int
    exec_name: str
    path: str
    build_version: str  # e.g. 'go1.21.4'
    is_agent: bool = False


class Address(NamedTuple):
    """TCP address of a diagnostic agent."""

    host: str
    port: int

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(slots=True, frozen=True)
class ConnectionInfo:
    """A network connection held by a process."""

    local_ip: str
    local_port: int
    remote_ip: str
    remote_port: int
    status: str
