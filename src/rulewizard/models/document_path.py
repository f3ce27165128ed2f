"""
Stable addressing of nodes in a build descriptor.

Paths are relative to the document root element:

    properties/jacoco.version
    build/plugins/[maven-compiler-plugin]
    profiles/[jacoco]
    dependencies/[org.slf4j:slf4j-api]
    files/docs/diagrams/class-diagram.puml

A bracketed segment selects a child by identity (its <id>, its
<artifactId>, or groupId:artifactId). The "files/" prefix addresses
artifact files next to the document rather than XML nodes.
"""

import re
from dataclasses import dataclass
from typing import Optional

FILES_PREFIX = "files/"

_KEYED_SEGMENT = re.compile(r"^\[([^\[\]]+)\]$")
_TAG_SEGMENT = re.compile(r"^[A-Za-z_][\w.\-]*$")


class InvalidPath(ValueError):
    """Raised for syntactically invalid document paths."""


@dataclass(frozen=True)
class PathSegment:
    """One step in a document path: a child tag or a keyed child lookup."""

    tag: Optional[str] = None
    key: Optional[str] = None

    @property
    def is_keyed(self) -> bool:
        return self.key is not None

    def __str__(self) -> str:
        return f"[{self.key}]" if self.is_keyed else str(self.tag)


def is_file_path(path: str) -> bool:
    """Check whether a path addresses an artifact file."""
    return path.startswith(FILES_PREFIX)


def file_relative_path(path: str) -> str:
    """Strip the files/ prefix from an artifact path."""
    if not is_file_path(path):
        raise InvalidPath(f"Not an artifact path: {path}")
    return path[len(FILES_PREFIX):]


def split_path(path: str) -> tuple[PathSegment, ...]:
    """
    Parse an XML document path into segments.

    Args:
        path: Slash-separated path (must not use the files/ prefix)

    Returns:
        Tuple of PathSegment

    Raises:
        InvalidPath: If the path is empty or a segment is malformed
    """
    if not path or not path.strip():
        raise InvalidPath("Path is empty")
    if is_file_path(path):
        raise InvalidPath(f"Artifact path is not an XML path: {path}")

    segments = []
    # Keyed segments may contain '/' only inside brackets, which we do not allow
    for raw in path.strip("/").split("/"):
        keyed = _KEYED_SEGMENT.match(raw)
        if keyed:
            segments.append(PathSegment(key=keyed.group(1)))
        elif _TAG_SEGMENT.match(raw):
            segments.append(PathSegment(tag=raw))
        else:
            raise InvalidPath(f"Malformed segment '{raw}' in path '{path}'")

    if segments[0].is_keyed:
        raise InvalidPath(f"Path cannot start with a keyed segment: {path}")

    return tuple(segments)


def validate_path(path: str) -> None:
    """Validate either kind of path, raising InvalidPath on error."""
    if is_file_path(path):
        relative = file_relative_path(path)
        if not relative or relative.startswith("/") or ".." in relative.split("/"):
            raise InvalidPath(f"Artifact path must be relative and stay inside the project: {path}")
        return
    split_path(path)


def join_path(*segments: PathSegment) -> str:
    """Build the canonical string form of a path."""
    return "/".join(str(s) for s in segments)
