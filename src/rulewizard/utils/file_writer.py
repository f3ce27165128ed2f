"""
All-or-nothing file writes for a finished run.

Every destination is first staged as a temp file in its own directory.
Once everything is staged, the destinations are checked against what the
run read and then swapped in with os.replace(). If anything fails part
way, destinations already replaced get their previous content back, new
files and directories are removed, and the staged temps are deleted.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Mapping, Optional, Union

from ..errors import WriteConflict

logger = logging.getLogger(__name__)

NEW_FILE_MODE = 0o644

Content = Union[str, bytes]


def _read(path: Path) -> Optional[bytes]:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def _missing_dirs(directory: Path) -> list[Path]:
    """Ancestors of `directory` (itself included) that do not exist yet, outermost first."""
    missing = []
    while not directory.exists():
        missing.append(directory)
        directory = directory.parent
    return list(reversed(missing))


def _stage(path: Path, content: Content) -> Path:
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    data = content.encode("utf-8") if isinstance(content, str) else content
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    if path.exists():
        shutil.copymode(path, tmp)
    else:
        os.chmod(tmp, NEW_FILE_MODE)
    return Path(tmp)


class FileBatch:
    """One set of destination files written together."""

    def __init__(
        self,
        contents: Mapping[Path, Content],
        expected: Optional[Mapping[Path, Optional[bytes]]] = None,
    ):
        """
        Args:
            contents: New content per destination; str is written as UTF-8
                with line endings untouched
            expected: Bytes each destination must still hold right before
                the swap; None means it must still be absent
        """
        self.contents = {Path(p): c for p, c in sorted(contents.items(), key=lambda item: str(item[0]))}
        self.expected = {Path(p): b for p, b in (expected or {}).items()}

        self._staged: dict[Path, Path] = {}
        self._previous: dict[Path, Optional[bytes]] = {}
        self._created_dirs: list[Path] = []
        self._replaced: list[Path] = []

    def write(self) -> list[Path]:
        """
        Write every destination or none of them.

        Returns:
            Destinations written, in write order

        Raises:
            WriteConflict: If a guarded destination changed since it was read
            OSError: If a destination cannot be written (for example it is a
                directory); nothing is left changed
        """
        try:
            self._stage_all()
            self._check_expected()
            for path, tmp in self._staged.items():
                os.replace(tmp, path)
                self._replaced.append(path)
        except BaseException:
            self._roll_back()
            raise

        logger.info(f"Wrote {len(self._replaced)} file(s)")
        return list(self._replaced)

    def _stage_all(self) -> None:
        for path, content in self.contents.items():
            if path.is_dir():
                raise IsADirectoryError(f"Cannot write {path}: a directory is in the way")
            missing = _missing_dirs(path.parent)
            for directory in missing:
                directory.mkdir()
                self._created_dirs.append(directory)
            self._previous[path] = _read(path)
            self._staged[path] = _stage(path, content)

    def _check_expected(self) -> None:
        for path, wanted in self.expected.items():
            if _read(path) != wanted:
                state = "appeared" if wanted is None else "changed"
                raise WriteConflict(f"{path} {state} on disk since it was read", in_flight=str(path))

    def _roll_back(self) -> None:
        for path in reversed(self._replaced):
            previous = self._previous[path]
            try:
                if previous is None:
                    path.unlink(missing_ok=True)
                else:
                    path.write_bytes(previous)
            except OSError as e:
                logger.error(f"Could not restore {path}: {e}")

        for tmp in self._staged.values():
            tmp.unlink(missing_ok=True)

        for directory in reversed(self._created_dirs):
            if not any(directory.iterdir()):
                directory.rmdir()

        if self._replaced:
            logger.warning(f"Rolled back {len(self._replaced)} file(s)")
        self._replaced = []


def write_all(
    contents: Mapping[Path, Content],
    expected: Optional[Mapping[Path, Optional[bytes]]] = None,
) -> list[Path]:
    """Write a batch of files all or nothing. See FileBatch."""
    return FileBatch(contents, expected).write()
