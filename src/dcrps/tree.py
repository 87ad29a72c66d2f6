"""Process tree construction and rendering."""

import io
import logging
from collections import defaultdict
from collections.abc import Iterable

from rich.cells import cell_len
from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from dcrps.models import ProcessRecord

log = logging.getLogger(__name__)

ROOT_LABEL = "..."
GUIDE_WIDTH = 4
AGENT_MARKER = "[*]"
MAX_DEPTH = 512


class SnapshotIndex:
    """
    Records of one snapshot grouped by parent PID.

    Records must already be filtered to the process family. The index is
    built in a single pass and never modified afterwards.
    """

    def __init__(self, records: Iterable[ProcessRecord]) -> None:
        self._records: list[ProcessRecord] = list(records)
        self._buckets: defaultdict[int, list[ProcessRecord]] = defaultdict(list)
        for record in self._records:
            self._buckets[record.ppid].append(record)
        self._known_pids = frozenset(record.pid for record in self._records)

    @property
    def records(self) -> list[ProcessRecord]:
        """Records in enumeration order."""
        return self._records

    @property
    def known_pids(self) -> frozenset[int]:
        """PIDs present in the snapshot."""
        return self._known_pids

    def children(self, ppid: int) -> list[ProcessRecord]:
        """Return the records reporting ``ppid`` as parent, in enumeration order."""
        # .get() so that lookups never add empty buckets
        return self._buckets.get(ppid, [])

    def __contains__(self, ppid: object) -> bool:
        return ppid in self._buckets

    def __len__(self) -> int:
        return len(self._buckets)


def record_label(record: ProcessRecord) -> Text:
    """Label of a process node: ``<pid> (<exec>) {<version>}``, starred for agents."""
    label = Text(f"{record.pid} ({record.exec_name}) {{{record.build_version}}}")
    if record.is_agent:
        return Text.assemble(AGENT_MARKER, " ", label)
    return label


class TreeRenderer:
    """
    Depth-first renderer of a SnapshotIndex into a rich Tree.

    Every parent PID is expanded at most once per render. The visited set is
    created by render() and passed down explicitly, so one renderer can be
    reused and rendering the same index twice yields the same tree.
    """

    def __init__(self, index: SnapshotIndex, max_depth: int = MAX_DEPTH) -> None:
        self._index = index
        self._max_depth = max_depth

    def render(self) -> Tree:
        """Build the forest under a synthetic root node."""
        root = Tree(ROOT_LABEL, highlight=False)
        visited: set[int] = set()
        known = self._index.known_pids

        # Orphans first: their parent is not part of the snapshot.
        for record in self._index.records:
            if record.ppid not in known:
                self._seed(record, root, visited)
        # Whatever is left sits on a cycle or below the depth cap.
        for record in self._index.records:
            self._seed(record, root, visited)
        return root

    def _seed(self, record: ProcessRecord, root: Tree, visited: set[int]) -> None:
        ppid = record.ppid
        if ppid in visited:
            return
        visited.add(ppid)
        group = root.add(Text(str(ppid)))
        self._expand(ppid, group, visited, depth=1)

    def _expand(self, ppid: int, branch: Tree, visited: set[int], depth: int) -> None:
        """Attach every child of ``ppid`` to ``branch`` and descend into it."""
        for child in self._index.children(ppid):
            node = branch.add(record_label(child))
            if child.pid in visited:
                continue
            if depth >= self._max_depth:
                log.warning("Process tree deeper than %d levels, not expanding PID %d", self._max_depth, child.pid)
                continue
            visited.add(child.pid)
            self._expand(child.pid, node, visited, depth + 1)


def render_tree(records: Iterable[ProcessRecord]) -> Tree:
    """Group ``records`` by parent and render them as a tree."""
    return TreeRenderer(SnapshotIndex(records)).render()


def required_width(tree: Tree) -> int:
    """Columns needed to print every line of ``tree`` without wrapping."""
    widest = 0
    stack = [(tree, 0)]
    while stack:
        node, depth = stack.pop()
        widest = max(widest, depth * GUIDE_WIDTH + cell_len(str(node.label)))
        stack.extend((child, depth + 1) for child in node.children)
    return widest


def format_tree(tree: Tree, width: int | None = None) -> str:
    """
    Render ``tree`` to plain text without colors or markup.

    Lines are never wrapped or cropped; ``width`` only widens the console.
    """
    buffer = io.StringIO()
    console = Console(
        file=buffer,
        width=max(width or 0, required_width(tree), 1),
        color_system=None,
        highlight=False,
        emoji=False,
    )
    console.print(tree)
    return "\n".join(line.rstrip() for line in buffer.getvalue().splitlines())
