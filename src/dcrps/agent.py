"""Client for the gops diagnostic agent embedded in Go processes."""

import logging
import os
import shutil
import socket
import subprocess
import sys
import tempfile
from collections.abc import Callable, Iterator, Mapping, Sequence
from enum import IntEnum
from pathlib import Path
from typing import Protocol, TextIO

from dcrps.config import Settings
from dcrps.errors import DispatchError, ResolutionError
from dcrps.models import Address

log = logging.getLogger(__name__)

# Go's binary.MaxVarintLen64; the agent reads the payload with ReadVarint.
MAX_VARINT_LEN = 10
RECV_CHUNK = 64 * 1024


class Signal(IntEnum):
    """Request codes understood by the agent."""

    STACK_TRACE = 0x1
    GC = 0x2
    MEM_STATS = 0x3
    VERSION = 0x4
    HEAP_PROFILE = 0x5
    CPU_PROFILE = 0x6
    STATS = 0x7
    TRACE = 0x8
    BINARY_DUMP = 0x9
    SET_GC_PERCENT = 0x10


def encode_varint(value: int) -> bytes:
    """Encode a signed integer as a zig-zag varint padded to MAX_VARINT_LEN bytes."""
    zigzag = (value << 1) ^ (value >> 63)
    zigzag &= (1 << 64) - 1
    out = bytearray()
    while zigzag >= 0x80:
        out.append((zigzag & 0x7F) | 0x80)
        zigzag >>= 7
    out.append(zigzag)
    return bytes(out).ljust(MAX_VARINT_LEN, b"\x00")


def is_number(token: str) -> bool:
    """Check whether ``token`` is a non-empty run of ASCII digits."""
    return token.isascii() and token.isdigit()


def port_file(pid: int, settings: Settings) -> Path:
    """Path of the file in which the agent of ``pid`` records its port."""
    return settings.gops_dir / str(pid)


def has_agent(pid: int, settings: Settings) -> bool:
    """Check whether ``pid`` has registered an agent port file."""
    return port_file(pid, settings).is_file()


def read_port(pid: int, settings: Settings) -> int:
    """
    Read the agent port registered by ``pid``.

    Raises:
        ResolutionError: If there is no port file or it does not hold a port.
    """
    path = port_file(pid, settings)
    try:
        raw = path.read_text().strip()
    except FileNotFoundError:
        raise ResolutionError(f"no agent running for PID {pid}") from None
    except OSError as exc:
        raise ResolutionError(f"cannot read {path}: {exc}") from exc
    try:
        port = int(raw)
    except ValueError:
        raise ResolutionError(f"invalid port {raw!r} in {path}") from None
    if not 0 < port < 65536:
        raise ResolutionError(f"invalid port {port} in {path}")
    return port


def parse_address(token: str) -> Address:
    """
    Parse a ``host:port`` or ``[ipv6]:port`` literal.

    An empty host means the local loopback address.
    """
    host, sep, port_text = token.rpartition(":")
    if not sep or not is_number(port_text):
        raise ResolutionError(f"malformed address {token!r}")
    port = int(port_text)
    if not 0 < port < 65536:
        raise ResolutionError(f"port out of range in {token!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return Address(host or "127.0.0.1", port)


def resolve_target(token: str, names: Mapping[str, int], settings: Settings) -> Address:
    """
    Map a command target to an agent address.

    Args:
        token: ``host:port``, a PID, or an executable name.
        names: Executable name to PID index; ambiguous names map to -1.
        settings: Provides the gops directory and the loopback host.

    Raises:
        ResolutionError: If the token cannot be mapped to an address.
    """
    if ":" in token:
        return parse_address(token)
    if is_number(token):
        pid = int(token)
    else:
        pid = names.get(token, 0)
        if pid == 0:
            raise ResolutionError(f"unknown process {token!r}")
        if pid < 0:
            raise ResolutionError(f"multiple processes named {token!r}, use a PID instead")
    address = Address(settings.agent_host, read_port(pid, settings))
    log.debug("Resolved %s to %s", token, address)
    return address


def iter_response(address: Address, signal: Signal, payload: bytes = b"") -> Iterator[bytes]:
    """Send one request to the agent and yield its response until it closes."""
    try:
        with socket.create_connection(address) as conn:
            conn.sendall(bytes([signal]) + payload)
            while chunk := conn.recv(RECV_CHUNK):
                yield chunk
    except OSError as exc:
        raise DispatchError(f"agent at {address} failed: {exc}") from exc


def request(address: Address, signal: Signal, payload: bytes = b"") -> bytes:
    """Send one request to the agent and return the full response."""
    return b"".join(iter_response(address, signal, payload))


def request_to_file(address: Address, signal: Signal, prefix: str) -> Path:
    """Save the agent's response to a new temporary file and return its path."""
    fd, name = tempfile.mkstemp(prefix=prefix)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            for chunk in iter_response(address, signal):
                f.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    return path


def run_go_tool(*args: str) -> None:
    """Run ``go tool <args>`` attached to the terminal."""
    go = shutil.which("go")
    if go is None:
        raise DispatchError("cannot find the go toolchain in PATH")
    try:
        subprocess.run([go, "tool", *args], check=True)
    except subprocess.CalledProcessError as exc:
        raise DispatchError(f"go tool {args[0]} exited with status {exc.returncode}") from exc


class Command(Protocol):
    """An operation executed against an agent."""

    def execute(self, address: Address, params: Sequence[str]) -> None: ...


class PrintCommand:
    """Send a signal and print the agent's answer."""

    def __init__(self, signal: Signal, out: TextIO | None = None) -> None:
        self._signal = signal
        self._out = out

    def execute(self, address: Address, params: Sequence[str]) -> None:
        out = self._out or sys.stdout
        response = request(address, self._signal)
        out.write(response.decode("utf-8", errors="replace"))
        out.flush()


class SetGCPercentCommand:
    """Set the garbage collection target percentage."""

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out

    def execute(self, address: Address, params: Sequence[str]) -> None:
        if not params:
            raise DispatchError("setgc requires a target percentage")
        try:
            percent = int(params[0])
        except ValueError:
            raise DispatchError(f"invalid gc percentage {params[0]!r}") from None
        out = self._out or sys.stdout
        response = request(address, Signal.SET_GC_PERCENT, encode_varint(percent))
        out.write(response.decode("utf-8", errors="replace"))
        out.flush()


class TraceCommand:
    """Record a runtime trace and open it with ``go tool trace``."""

    def __init__(self, out: TextIO | None = None, launch: Callable[..., None] = run_go_tool) -> None:
        self._out = out
        self._launch = launch

    def execute(self, address: Address, params: Sequence[str]) -> None:
        out = self._out or sys.stdout
        print("Tracing now, will take 5 secs...", file=out)
        path = request_to_file(address, Signal.TRACE, "trace")
        if path.stat().st_size == 0:
            path.unlink()
            raise DispatchError("empty trace data, is a trace already in progress?")
        print(f"Trace dump saved to: {path}", file=out)
        self._launch("trace", str(path))


class ProfileCommand:
    """Fetch a profile and the binary it belongs to, then open ``go tool pprof``."""

    def __init__(
        self,
        signal: Signal,
        out: TextIO | None = None,
        launch: Callable[..., None] = run_go_tool,
    ) -> None:
        self._signal = signal
        self._out = out
        self._launch = launch

    def execute(self, address: Address, params: Sequence[str]) -> None:
        out = self._out or sys.stdout
        if self._signal == Signal.CPU_PROFILE:
            print("Profiling CPU now, will take 30 secs...", file=out)
        profile = request_to_file(address, self._signal, "profile")
        if profile.stat().st_size == 0:
            profile.unlink()
            raise DispatchError("empty profile, is a profile already in progress?")
        try:
            binary = request_to_file(address, Signal.BINARY_DUMP, "binary")
        except DispatchError:
            profile.unlink()
            raise
        print(f"Profile dump saved to: {profile}", file=out)
        print(f"Binary file saved to: {binary}", file=out)
        self._launch("pprof", str(binary), str(profile))


class CommandTable:
    """Named agent commands."""

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def register(self, name: str, command: Command) -> None:
        """Add ``command`` under ``name``, replacing any previous entry."""
        self._commands[name] = command

    def get(self, name: str) -> Command | None:
        return self._commands.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __iter__(self) -> Iterator[str]:
        return iter(self._commands)

    def dispatch(self, name: str, address: Address, params: Sequence[str]) -> None:
        """
        Run the command ``name`` against the agent at ``address``.

        Raises:
            DispatchError: If the command is unknown or fails.
        """
        command = self._commands.get(name)
        if command is None:
            raise DispatchError(f"unknown command {name!r}")
        log.debug("Dispatching %s to %s with %s", name, address, list(params))
        command.execute(address, params)


def default_commands(out: TextIO | None = None) -> CommandTable:
    """Build the table of built-in commands."""
    table = CommandTable()
    table.register("stack", PrintCommand(Signal.STACK_TRACE, out))
    table.register("gc", PrintCommand(Signal.GC, out))
    table.register("setgc", SetGCPercentCommand(out))
    table.register("memstats", PrintCommand(Signal.MEM_STATS, out))
    table.register("version", PrintCommand(Signal.VERSION, out))
    table.register("stats", PrintCommand(Signal.STATS, out))
    table.register("trace", TraceCommand(out))
    table.register("pprof-heap", ProfileCommand(Signal.HEAP_PROFILE, out))
    table.register("pprof-cpu", ProfileCommand(Signal.CPU_PROFILE, out))
    return table
