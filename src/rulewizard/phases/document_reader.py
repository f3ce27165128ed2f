"""
Document Snapshot Reader.

Parses an XML build descriptor into an immutable tree that remembers the
byte offsets of every element, so that the writer can later splice edits
into the original bytes without reformatting anything else. The raw bytes
are kept as-is; unknown elements are simply nodes like any other.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union
from xml.parsers import expat

from ..errors import MalformedDocument
from ..models.document_path import (
    PathSegment,
    file_relative_path,
    is_file_path,
    split_path,
)

logger = logging.getLogger(__name__)

# Children of these tags are addressed by identity in iter_paths()
KEYED_TAGS = {"plugin", "profile", "dependency", "extension", "execution", "repository", "pluginRepository"}


class _NotFound:
    """Sentinel returned by value_at() for missing paths."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()


@dataclass(frozen=True)
class DocNode:
    """
    One element of the document with its byte span.

    Offsets:
        start: '<' of the start tag
        start_tag_end: just after the start tag's '>'
        inner_end: '<' of the end tag (== start_tag_end when self-closing)
        end: just after the whole element
    """

    tag: str
    start: int
    start_tag_end: int
    inner_end: int
    end: int
    self_closing: bool
    text: str
    children: tuple["DocNode", ...] = ()
    qname: str = ""

    def child(self, tag: str) -> Optional["DocNode"]:
        for c in self.children:
            if c.tag == tag:
                return c
        return None

    def child_text(self, tag: str) -> Optional[str]:
        c = self.child(tag)
        return c.text if c is not None else None

    def identities(self) -> set[str]:
        """Names this node answers to in a keyed path segment."""
        found = set()
        node_id = self.child_text("id")
        artifact_id = self.child_text("artifactId")
        group_id = self.child_text("groupId")
        if node_id:
            found.add(node_id)
        if artifact_id:
            found.add(artifact_id)
            if group_id:
                found.add(f"{group_id}:{artifact_id}")
        return found

    def identity(self) -> Optional[str]:
        """Preferred identity for display and path building."""
        node_id = self.child_text("id")
        if node_id:
            return node_id
        artifact_id = self.child_text("artifactId")
        group_id = self.child_text("groupId")
        if artifact_id and group_id and self.tag == "dependency":
            return f"{group_id}:{artifact_id}"
        return artifact_id


@dataclass(frozen=True)
class DocumentSnapshot:
    """Immutable, read-only view of a document at run start."""

    raw: bytes
    root: DocNode
    digest: str
    files: frozenset[str] = frozenset()

    @property
    def text(self) -> str:
        return self.raw.decode("utf-8")

    def source(self, node: DocNode) -> str:
        """Original text of a node, exactly as it appears in the document."""
        return self.raw[node.start:node.end].decode("utf-8")


def document_digest(raw: Union[str, bytes]) -> str:
    """SHA-256 of the document bytes, used to detect external modification."""
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def _local_name(tag: str) -> str:
    return tag.rsplit(":", 1)[-1]


def _scan_tag_end(raw: bytes, start: int) -> int:
    """Return the offset just after the '>' closing the tag at `start`."""
    quote = None
    i = start + 1
    while i < len(raw):
        ch = raw[i:i + 1]
        if quote:
            if ch == quote:
                quote = None
        elif ch in (b'"', b"'"):
            quote = ch
        elif ch == b">":
            return i + 1
        i += 1
    raise MalformedDocument(f"Unterminated tag at byte {start}")


class _TreeBuilder:
    """Collects expat events into DocNode trees."""

    def __init__(self, raw: bytes, parser):
        self.raw = raw
        self.parser = parser
        self.stack: list[dict] = []
        self.root: Optional[DocNode] = None

    def start(self, name: str, attrs: dict) -> None:
        start = self.parser.CurrentByteIndex
        tag_end = _scan_tag_end(self.raw, start)
        self.stack.append({
            "tag": _local_name(name),
            "qname": name,
            "start": start,
            "start_tag_end": tag_end,
            "self_closing": self.raw[tag_end - 2:tag_end] == b"/>",
            "text": [],
            "children": [],
        })

    def end(self, name: str) -> None:
        frame = self.stack.pop()
        if frame["self_closing"]:
            inner_end = end = frame["start_tag_end"]
        else:
            inner_end = self.parser.CurrentByteIndex
            end = self.raw.index(b">", inner_end) + 1

        node = DocNode(
            tag=frame["tag"],
            start=frame["start"],
            start_tag_end=frame["start_tag_end"],
            inner_end=inner_end,
            end=end,
            self_closing=frame["self_closing"],
            text="".join(frame["text"]).strip(),
            children=tuple(frame["children"]),
            qname=frame["qname"],
        )
        if self.stack:
            self.stack[-1]["children"].append(node)
        else:
            self.root = node

    def characters(self, data: str) -> None:
        if self.stack:
            self.stack[-1]["text"].append(data)


def parse(raw_document: Union[str, bytes], files: Iterable[str] = ()) -> DocumentSnapshot:
    """
    Parse a raw XML document into a DocumentSnapshot.

    Args:
        raw_document: Document text (or UTF-8 bytes)
        files: Relative paths of artifact files that already exist

    Returns:
        Immutable DocumentSnapshot

    Raises:
        MalformedDocument: If the document is empty or not well-formed XML
    """
    raw = raw_document.encode("utf-8") if isinstance(raw_document, str) else bytes(raw_document)

    if not raw.strip():
        raise MalformedDocument("Document is empty")

    # Force UTF-8 so byte offsets match the bytes we splice later
    parser = expat.ParserCreate(encoding="utf-8")
    builder = _TreeBuilder(raw, parser)
    parser.StartElementHandler = builder.start
    parser.EndElementHandler = builder.end
    parser.CharacterDataHandler = builder.characters

    try:
        parser.Parse(raw, True)
    except expat.ExpatError as e:
        raise MalformedDocument(f"Document is not well-formed XML: {e}") from e

    if builder.root is None:
        raise MalformedDocument("Document has no root element")

    snapshot = DocumentSnapshot(
        raw=raw,
        root=builder.root,
        digest=document_digest(raw),
        files=frozenset(files),
    )
    logger.debug(f"Parsed <{snapshot.root.tag}> document ({len(raw)} bytes, digest {snapshot.digest[:12]})")
    return snapshot


def _select(node: DocNode, segment: PathSegment) -> Optional[DocNode]:
    if segment.is_keyed:
        for c in node.children:
            if segment.key in c.identities():
                return c
        return None
    return node.child(segment.tag)


def find_node(snapshot: DocumentSnapshot, path: str) -> Optional[DocNode]:
    """Resolve an XML path to its node, or None if absent."""
    node: Optional[DocNode] = snapshot.root
    for segment in split_path(path):
        node = _select(node, segment)
        if node is None:
            return None
    return node


def find_deepest(snapshot: DocumentSnapshot, path: str) -> tuple[DocNode, int]:
    """
    Walk a path as far as it exists.

    Returns:
        (deepest existing node, number of segments resolved)
    """
    node = snapshot.root
    resolved = 0
    for segment in split_path(path):
        found = _select(node, segment)
        if found is None:
            break
        node = found
        resolved += 1
    return node, resolved


def exists(snapshot: DocumentSnapshot, path: str) -> bool:
    """Check whether a path (XML node or artifact file) exists in the snapshot."""
    if is_file_path(path):
        return file_relative_path(path) in snapshot.files
    return find_node(snapshot, path) is not None


def value_at(snapshot: DocumentSnapshot, path: str) -> Union[str, _NotFound]:
    """Return the stripped text of the node at `path`, or NOT_FOUND."""
    if is_file_path(path):
        return NOT_FOUND
    node = find_node(snapshot, path)
    if node is None:
        return NOT_FOUND
    return node.text


def iter_paths(snapshot: DocumentSnapshot) -> Iterator[tuple[str, DocNode]]:
    """
    Yield (path, node) for every element below the root, depth first.

    Identity-bearing children of list containers get keyed segments, so
    paths match the ones used by mutation operations.
    """

    def walk(node: DocNode, prefix: str) -> Iterator[tuple[str, DocNode]]:
        for c in node.children:
            identity = c.identity() if c.tag in KEYED_TAGS else None
            segment = f"[{identity}]" if identity else c.tag
            path = f"{prefix}/{segment}" if prefix else segment
            yield path, c
            yield from walk(c, path)

    yield from walk(snapshot.root, "")
