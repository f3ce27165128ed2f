"""
Response Store - per-run, append-only answer log.

A later answer for the same key supersedes the earlier one; nothing is
ever edited in place, so the full history stays available for transcripts.
"""

import logging
from typing import Iterable, Optional

from ..models.questions import Answer

logger = logging.getLogger(__name__)


class ResponseStore:
    """Answers keyed by question key, scoped to a single run."""

    def __init__(self, declared_keys: Iterable[str]):
        self._declared: set[str] = set(declared_keys)
        self._records: list[Answer] = []

    def declare(self, key: str) -> None:
        """Register a key created during the run (conflict sub-questions)."""
        self._declared.add(key)

    def is_declared(self, key: str) -> bool:
        return key in self._declared

    def record(self, answer: Answer) -> None:
        """Append an answer; it supersedes any earlier answer for the same key."""
        if answer.key not in self._declared:
            raise KeyError(f"Answer for undeclared key '{answer.key}'")
        if self.get(answer.key) is not None:
            logger.info(f"Answer for '{answer.key}' superseded")
        self._records.append(answer)

    def get(self, key: str) -> Optional[Answer]:
        """Latest answer for a key, or None."""
        for answer in reversed(self._records):
            if answer.key == key:
                return answer
        return None

    def records(self) -> list[Answer]:
        """All records in capture order, including superseded ones."""
        return list(self._records)

    def latest(self) -> dict[str, Answer]:
        """Current answer per key, in first-capture order."""
        current: dict[str, Answer] = {}
        for answer in self._records:
            current[answer.key] = answer
        return current

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self.latest())
