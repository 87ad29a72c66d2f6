"""Tests for the column-aligned process listing."""

from dcrps.listing import ColumnWidths, column_widths, format_row, format_table
from dcrps.models import ProcessRecord


def make(pid, ppid, exec_name="dcrd", version="go1.21.4", path="/usr/bin/dcrd", agent=False):
    return ProcessRecord(pid, ppid, exec_name, path, version, agent)


class TestColumnWidths:
    """Tests for column_widths."""

    def test_empty(self):
        """Test an empty snapshot has zero-width columns."""
        assert column_widths([]) == ColumnWidths(0, 0, 0, 0)

    def test_pid_width(self):
        """Test PIDs {7, 1234} give a PID column of width 4."""
        widths = column_widths([make(7, 1), make(1234, 1)])
        assert widths.pid == 4
        assert widths.ppid == 1

    def test_text_columns(self):
        """Test name and version columns fit the widest value."""
        records = [make(1, 0, "dcrd", "go1.9"), make(2, 1, "dcrwallet", "go1.21.10")]
        widths = column_widths(records)
        assert widths.exec_name == len("dcrwallet")
        assert widths.version == len("go1.21.10")


class TestFormatting:
    """Tests for row formatting."""

    def test_row_layout(self):
        """Test a single row with agent marker."""
        record = make(42, 1, agent=True)
        widths = ColumnWidths(pid=4, ppid=3, exec_name=6, version=9)
        assert format_row(record, widths) == "  42   1   dcrd *  go1.21.4 /usr/bin/dcrd"

    def test_non_agent_marker_is_blank(self):
        """Test non-agent rows have a space in the marker column."""
        row = format_row(make(42, 1), column_widths([make(42, 1)]))
        assert row == "42 1 dcrd   go1.21.4 /usr/bin/dcrd"

    def test_columns_are_aligned(self):
        """Test every row puts the path at the same offset."""
        records = [
            make(7, 1, "dcrd", "go1.9", "/a"),
            make(1234, 56789, "dcrwallet", "go1.21.10", "/a"),
            make(99, 1, "dcrctl", "go1.20", "/a"),
        ]
        rows = format_table(records)

        assert len(rows) == 3
        offsets = {row.index("/a") for row in rows}
        assert len(offsets) == 1

    def test_no_truncation(self):
        """Test every value appears in full."""
        record = make(123456, 654321, "dcrlnd-with-a-long-name", "go1.22rc1", "/opt/x")
        row = format_table([record, make(1, 0)])[0]
        for value in ("123456", "654321", "dcrlnd-with-a-long-name", "go1.22rc1", "/opt/x"):
            assert value in row

    def test_table_keeps_order(self):
        """Test rows follow the snapshot order."""
        rows = format_table([make(30, 1), make(10, 1)])
        assert rows[0].startswith("30")
        assert rows[1].startswith("10")
