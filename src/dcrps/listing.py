"""Column-aligned process listing."""

from collections.abc import Sequence
from dataclasses import dataclass

from dcrps.models import ProcessRecord


@dataclass(slots=True, frozen=True)
class ColumnWidths:
    """Widths of the right-aligned columns of the listing."""

    pid: int = 0
    ppid: int = 0
    exec_name: int = 0
    version: int = 0


def column_widths(records: Sequence[ProcessRecord]) -> ColumnWidths:
    """Compute the width of each column from the widest value in ``records``."""
    return ColumnWidths(
        pid=max((len(str(p.pid)) for p in records), default=0),
        ppid=max((len(str(p.ppid)) for p in records), default=0),
        exec_name=max((len(p.exec_name) for p in records), default=0),
        version=max((len(p.build_version) for p in records), default=0),
    )


def format_row(record: ProcessRecord, widths: ColumnWidths) -> str:
    """Format one listing row; the path column is left as is."""
    agent = "*" if record.is_agent else " "
    return (
        f"{record.pid:>{widths.pid}} {record.ppid:>{widths.ppid}} "
        f"{record.exec_name:>{widths.exec_name}} {agent} "
        f"{record.build_version:>{widths.version}} {record.path}"
    )


def format_table(records: Sequence[ProcessRecord]) -> list[str]:
    """Format all records with shared column widths."""
    widths = column_widths(records)
    return [format_row(record, widths) for record in records]
