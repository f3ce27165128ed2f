"""
Document Writer.

Applies an approved plan to the document by splicing each fragment into
the original bytes. Only the targeted node (or the container created to
hold it) changes; every other byte is left exactly as it was.

Applying an op whose target already exists is a no-op unless the op
carries a confirmed override, in which case only that node is replaced.
Applying the same op twice therefore never changes the document twice.
"""

import logging
import textwrap
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..errors import CatalogueError, MalformedDocument, WriteConflict
from ..models.document_path import file_relative_path, is_file_path, split_path
from ..models.mutations import MutationOp, OpKind
from .document_reader import (
    DocNode,
    DocumentSnapshot,
    document_digest,
    exists,
    find_deepest,
    find_node,
    iter_paths,
    parse,
)

logger = logging.getLogger(__name__)

DEFAULT_INDENT = "    "
# Fragments in catalogues are written with this indentation unit
FRAGMENT_INDENT = 4


@dataclass
class WriteResult:
    """Output of applying a plan."""

    document: str
    artifacts: dict[str, str] = field(default_factory=dict)
    applied: list[MutationOp] = field(default_factory=list)
    unchanged: list[MutationOp] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.applied)


def _line_indent(raw: bytes, pos: int) -> Optional[str]:
    """Whitespace before `pos` on its line, or None if other text precedes it."""
    line_start = raw.rfind(b"\n", 0, pos) + 1
    prefix = raw[line_start:pos]
    if prefix.strip():
        return None
    return prefix.decode("utf-8")


def _reindent(fragment: str, indent: str, unit: str) -> list[str]:
    """
    Dedent a fragment and re-indent it for its destination.

    Leading runs of FRAGMENT_INDENT spaces are converted to the document's
    own indentation unit.
    """
    body = textwrap.dedent(fragment.strip("\n")).rstrip()
    lines = []
    for line in body.splitlines():
        if not line.strip():
            lines.append("")
            continue
        stripped = line.lstrip(" ")
        depth, extra = divmod(len(line) - len(stripped), FRAGMENT_INDENT)
        lines.append(indent + unit * depth + " " * extra + stripped)
    return lines


class DocumentWriter:
    """Splices mutation payloads into raw documents."""

    def __init__(self, indent: str = DEFAULT_INDENT):
        self.default_indent = indent

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def apply(
        self,
        snapshot: DocumentSnapshot,
        plan: list[MutationOp],
        current_raw: Optional[str] = None,
        current_files: Optional[Iterable[str]] = None,
    ) -> WriteResult:
        """
        Apply an approved plan, all or nothing.

        Args:
            snapshot: Snapshot the plan was built against
            plan: Approved ops in planner order
            current_raw: Document as it is on disk right now, if known
            current_files: Artifact files present on disk right now, if known

        Returns:
            WriteResult with the new document text and artifact contents

        Raises:
            WriteConflict: If the document or an artifact changed since the
                snapshot was taken. Nothing is returned in that case.
            CatalogueError: If an op would leave the document unparseable
        """
        self.check_concurrent_changes(snapshot, plan, current_raw, current_files)

        raw = snapshot.raw
        files = set(snapshot.files)
        result = WriteResult(document="")

        for op in plan:
            if op.kind == OpKind.ADD_FILE_ARTIFACT:
                relative = file_relative_path(op.target)
                if relative in files and not op.is_override:
                    result.unchanged.append(op)
                    continue
                result.artifacts[relative] = op.payload
                files.add(relative)
                result.applied.append(op)
                continue

            updated = self.apply_op(raw, op)
            if updated == raw:
                result.unchanged.append(op)
                logger.debug(f"{op.describe()} already present", extra={"op": op.describe()})
            else:
                self.check_applied(updated, op)
                result.applied.append(op)
                logger.info(
                    f"Applied {op.describe()}" + (" (override)" if op.is_override else ""),
                    extra={"op": op.describe()},
                )
            raw = updated

        result.document = raw.decode("utf-8")
        return result

    def apply_op(self, raw: bytes, op: MutationOp) -> bytes:
        """
        Apply a single XML op to raw bytes.

        Returns the input unchanged when the target already exists and the
        op is not a confirmed override.
        """
        current = parse(raw)
        node = find_node(current, op.target)

        if node is not None:
            if not op.is_override:
                return raw
            return self._replace(current, node, op.payload)

        return self._insert(current, op)

    def check_applied(self, raw: bytes, op: MutationOp) -> None:
        """
        Re-parse the document after an op.

        The result must be well-formed and the op's target must now resolve;
        otherwise applying the op again would add a second copy.
        """
        try:
            updated = parse(raw)
        except MalformedDocument as e:
            raise CatalogueError(
                f"Applying {op.describe()} would make the document unparseable: {e}",
                in_flight=op.target,
            ) from e
        if find_node(updated, op.target) is None:
            raise CatalogueError(
                f"Payload of {op.describe()} does not carry the identity of its target",
                in_flight=op.target,
            )

    def check_concurrent_changes(
        self,
        snapshot: DocumentSnapshot,
        plan: list[MutationOp],
        current_raw: Optional[str],
        current_files: Optional[Iterable[str]],
    ) -> None:
        """Raise WriteConflict if the world moved on since the snapshot."""
        if current_raw is not None and document_digest(current_raw) != snapshot.digest:
            try:
                current = parse(current_raw)
            except MalformedDocument:
                current = None

            if current is not None:
                for op in plan:
                    if is_file_path(op.target):
                        continue
                    if exists(current, op.target) and not exists(snapshot, op.target):
                        raise WriteConflict(
                            f"{op.target} was created externally after planning",
                            in_flight=op.describe(),
                        )

            raise WriteConflict(
                "Document changed since it was read; restart from a fresh snapshot",
                in_flight=plan[0].describe() if plan else None,
            )

        if current_files is not None:
            present = set(current_files)
            for op in plan:
                if not is_file_path(op.target):
                    continue
                relative = file_relative_path(op.target)
                if relative in present and relative not in snapshot.files and not op.is_override:
                    raise WriteConflict(f"{relative} was created externally after planning", in_flight=op.describe())

    # ------------------------------------------------------------------
    # Splicing
    # ------------------------------------------------------------------

    def _newline(self, raw: bytes) -> str:
        return "\r\n" if b"\r\n" in raw else "\n"

    def _unit(self, raw: bytes, parent: DocNode) -> str:
        """Indentation unit, derived from the parent and its first child."""
        parent_indent = _line_indent(raw, parent.start)
        if parent.children and parent_indent is not None:
            child_indent = _line_indent(raw, parent.children[0].start)
            if child_indent and child_indent.startswith(parent_indent) and len(child_indent) > len(parent_indent):
                return child_indent[len(parent_indent):]
        return self.default_indent

    def _replace(self, snapshot: DocumentSnapshot, node: DocNode, payload: str) -> bytes:
        raw = snapshot.raw
        indent = _line_indent(raw, node.start) or ""
        unit = self._unit(raw, node)
        lines = _reindent(payload, indent, unit)
        # The existing indentation before the node stays in place
        lines[0] = lines[0][len(indent):]
        new = self._newline(raw).join(lines).encode("utf-8")
        if raw[node.start:node.end] == new:
            return raw
        return raw[:node.start] + new + raw[node.end:]

    def _insert(self, snapshot: DocumentSnapshot, op: MutationOp) -> bytes:
        raw = snapshot.raw
        segments = split_path(op.target)
        parent, resolved = find_deepest(snapshot, op.target)
        containers = segments[resolved:-1]

        if any(s.is_keyed for s in containers):
            raise CatalogueError(f"Cannot create keyed container for {op.target}")

        newline = self._newline(raw)
        parent_indent = _line_indent(raw, parent.start) or ""
        unit = self._unit(raw, parent)

        if parent.children:
            child_indent = _line_indent(raw, parent.children[-1].start)
            if child_indent is None:
                child_indent = parent_indent + unit
        else:
            child_indent = parent_indent + unit

        lines = []
        for depth, container in enumerate(containers):
            lines.append(f"{child_indent}{unit * depth}<{container.tag}>")
        lines.extend(_reindent(op.payload, child_indent + unit * len(containers), unit))
        for depth, container in reversed(list(enumerate(containers))):
            lines.append(f"{child_indent}{unit * depth}</{container.tag}>")
        block = newline.join(lines)

        if parent.self_closing:
            open_tag = raw[parent.start:parent.end].decode("utf-8")
            open_tag = open_tag[:-2].rstrip() + ">"
            replacement = f"{open_tag}{newline}{block}{newline}{parent_indent}</{parent.qname}>"
            return raw[:parent.start] + replacement.encode("utf-8") + raw[parent.end:]

        # Insert after the last non-whitespace content, keeping the
        # whitespace that precedes the closing tag
        position = parent.inner_end
        while position > parent.start_tag_end and raw[position - 1:position] in (b" ", b"\t", b"\r", b"\n"):
            position -= 1
        trailing = raw[position:parent.inner_end]

        insertion = newline + block
        if b"\n" not in trailing:
            insertion += newline + parent_indent
        return raw[:position] + insertion.encode("utf-8") + raw[position:]


def untouched_paths_preserved(
    before: DocumentSnapshot,
    after: DocumentSnapshot,
    touched: Iterable[str],
) -> list[str]:
    """
    Compare two snapshots at every path not addressed by an op.

    Nodes that merely contain a touched path are compared by text; all
    other untouched nodes must be byte-identical.

    Returns:
        Paths that differ (empty list means everything was preserved)
    """
    touched = [t for t in touched if not is_file_path(t)]

    def under_touched(path: str) -> bool:
        return any(path == t or path.startswith(t + "/") for t in touched)

    def contains_touched(path: str) -> bool:
        return any(t.startswith(path + "/") for t in touched)

    def index(snapshot: DocumentSnapshot) -> dict[str, list[DocNode]]:
        found: dict[str, list[DocNode]] = {}
        for path, node in iter_paths(snapshot):
            found.setdefault(path, []).append(node)
        return found

    before_nodes = index(before)
    after_nodes = index(after)
    differences = []

    for path, nodes in before_nodes.items():
        if under_touched(path):
            continue
        others = after_nodes.get(path, [])
        if len(others) != len(nodes):
            differences.append(path)
            continue
        for old, new in zip(nodes, others):
            if contains_touched(path):
                same = old.text == new.text
            else:
                same = before.source(old) == after.source(new)
            if not same:
                differences.append(path)
                break

    return differences
