"""dcrps - command line entry point."""

import logging
import sys
from collections.abc import Sequence
from typing import TextIO

from dcrps.agent import CommandTable, default_commands, is_number, resolve_target
from dcrps.config import Settings
from dcrps.errors import DcrpsError, ResolutionError, UsageError
from dcrps.inspector import format_report, inspect_process
from dcrps.listing import format_table
from dcrps.scanner import ProcessScanner, name_index
from dcrps.tree import format_tree, render_tree

log = logging.getLogger(__name__)

HELP_TEXT = """dcrps is a tool to list and diagnose Decred Go processes.

dcrps <"help"|"tree">
dcrps <cmd> <exec|pid|addr> ...
dcrps <exec|pid> # displays process info

Commands with no argument:
    help        Displays this message.
    tree        Displays process tree.

Commands with <exec|pid|addr> argument:
    stack       Prints the stack trace.
    gc          Runs the garbage collector and blocks until successful.
    setgc       Sets the garbage collection target percentage.
    memstats    Prints the allocation and garbage collection stats.
    version     Prints the Go version used to build the program.
    stats       Prints the vital runtime stats.
    trace       Runs the runtime tracer for 5 secs and launches "go tool trace".
    pprof-heap  Reads the heap profile and launches "go tool pprof".
    pprof-cpu   Reads the CPU profile and launches "go tool pprof".

All commands with a <exec|pid|addr> argument require the agent running on the Go
process. The symbol "*" next to the process name indicates the process runs the
agent."""


class Dcrps:
    """Dispatches one command line to the matching mode."""

    def __init__(
        self,
        settings: Settings,
        scanner: ProcessScanner | None = None,
        commands: CommandTable | None = None,
        out: TextIO | None = None,
    ) -> None:
        self._settings = settings
        self._scanner = scanner or ProcessScanner(settings)
        self._commands = commands or default_commands()
        self._out = out or sys.stdout

    def run(self, args: Sequence[str]) -> None:
        """
        Execute the command described by ``args`` (without the program name).

        Raises:
            DcrpsError: On usage, resolution or dispatch failures.
        """
        if not args:
            self.list_processes()
            return

        cmd = args[0]
        if is_number(cmd):
            self.show_process(int(cmd))
            return
        if cmd == "help":
            raise UsageError("")
        if cmd == "tree":
            self.show_tree()
            return

        if cmd not in self._commands:
            pid = name_index(self._scanner.find_all()).get(cmd)
            if pid is None:
                raise UsageError("unknown subcommand")
            if pid < 0:
                raise UsageError(f"multiple processes named {cmd}, use a PID instead")
            self.show_process(pid)
            return
        if len(args) < 2:
            raise UsageError("Missing PID or address.")

        target = args[1]
        names = {} if is_number(target) or ":" in target else name_index(self._scanner.find_all())
        try:
            address = resolve_target(target, names, self._settings)
        except ResolutionError as exc:
            raise ResolutionError(f"Couldn't resolve addr or pid {target} to TCPAddress: {exc}") from exc
        self._commands.dispatch(cmd, address, list(args[2:]))

    def list_processes(self) -> None:
        self._write_lines(format_table(self._scanner.find_all()))

    def show_tree(self) -> None:
        tree = render_tree(self._scanner.find_all())
        self._write_lines([format_tree(tree)])

    def show_process(self, pid: int) -> None:
        self._write_lines(format_report(inspect_process(pid)))

    def _write_lines(self, lines: Sequence[str]) -> None:
        for line in lines:
            print(line, file=self._out)
        self._out.flush()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for dcrps; returns the process exit status."""
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(levelname)s:%(name)s:%(message)s",
        stream=sys.stderr,
    )
    args = sys.argv[1:] if argv is None else list(argv)
    log.debug("Running with %s", settings)

    try:
        Dcrps(settings).run(args)
    except UsageError as exc:
        if str(exc):
            print(f"dcrps: {exc}", file=sys.stderr)
        print(HELP_TEXT, file=sys.stderr)
        return 1
    except DcrpsError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
