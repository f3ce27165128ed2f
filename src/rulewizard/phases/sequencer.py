"""
Question Sequencer.

Surfaces catalogue questions strictly in declared order, one at a time.
A question whose gate evaluates false is skipped: it is never surfaced
and never recorded. Nothing is ever answered by default.

Conflict sub-questions pushed by the Conflict Resolver are surfaced after
the template questions, in the order they were pushed.
"""

import logging
import re
from collections import deque
from typing import Sequence, Union

from ..errors import InvalidAnswer
from ..models.catalogue import Catalogue
from ..models.questions import Answer, QuestionNode
from .condition_evaluator import evaluate
from .document_reader import DocumentSnapshot
from .response_store import ResponseStore

logger = logging.getLogger(__name__)


class _Done:
    """Sentinel returned by next_question() when nothing is left to ask."""

    def __repr__(self) -> str:
        return "DONE"

    def __bool__(self) -> bool:
        return False


DONE = _Done()

AnswerValue = Union[str, Sequence[str]]


def normalize_answer(node: QuestionNode, value: AnswerValue) -> tuple[str, ...]:
    """
    Validate a raw answer against a question and return its canonical values.

    Multi-select answers may be given as a list or a comma-separated string;
    they are returned in option declaration order so that planning does not
    depend on the order the user typed them in.

    Raises:
        InvalidAnswer: If the answer is empty, not an allowed literal, or
            does not match the free-text pattern
    """
    if value is None:
        raise InvalidAnswer(node.key, value, "an answer is required")

    if isinstance(value, str):
        parts = value.split(",") if node.multiple else [value]
    else:
        parts = [str(v) for v in value]

    values = [p.strip() for p in parts if p is not None and str(p).strip()]

    if not values:
        raise InvalidAnswer(node.key, value, "an answer is required")
    if not node.multiple and len(values) > 1:
        raise InvalidAnswer(node.key, value, "exactly one answer expected")
    if len(set(values)) != len(values):
        raise InvalidAnswer(node.key, value, "duplicate selections")

    if node.is_free_text:
        if node.pattern and not all(re.fullmatch(node.pattern, v) for v in values):
            raise InvalidAnswer(node.key, value, f"must match pattern {node.pattern}")
        return tuple(values)

    unknown = [v for v in values if v not in node.options]
    if unknown:
        raise InvalidAnswer(
            node.key, value, f"{', '.join(unknown)} not in options ({', '.join(node.options)})"
        )
    return tuple(o for o in node.options if o in values)


class QuestionSequencer:
    """Drives the question/answer loop for a single run."""

    def __init__(self, catalogue: Catalogue, responses: ResponseStore, snapshot: DocumentSnapshot):
        self._nodes = [QuestionNode.from_spec(spec, i) for i, spec in enumerate(catalogue.questions)]
        self._responses = responses
        self._snapshot = snapshot
        self._cursor = 0
        self._pending: Union[QuestionNode, None] = None
        self._conflicts: deque[QuestionNode] = deque()

        self.surfaced: list[str] = []
        self.skipped: list[str] = []

    @property
    def pending(self) -> Union[QuestionNode, None]:
        return self._pending

    @property
    def templates_exhausted(self) -> bool:
        """True once every template question was answered or gated off."""
        if self._pending is not None and not self._pending.is_conflict:
            return False
        return self._cursor >= len(self._nodes)

    @property
    def conflicts_outstanding(self) -> bool:
        pending_conflict = self._pending is not None and self._pending.is_conflict
        return pending_conflict or bool(self._conflicts)

    def next_question(self) -> Union[QuestionNode, _Done]:
        """
        Return the question awaiting an answer, or DONE.

        Calling this repeatedly without answering returns the same question.
        """
        if self._pending is not None:
            return self._pending

        while self._cursor < len(self._nodes):
            node = self._nodes[self._cursor]
            self._cursor += 1
            if evaluate(node.gate, self._responses, self._snapshot, in_flight=node.key):
                self._pending = node
                self.surfaced.append(node.key)
                logger.debug(f"Surfacing question '{node.key}' (#{node.ordinal})", extra={"question": node.key})
                return node
            self.skipped.append(node.key)
            logger.debug(f"Gate closed, skipping question '{node.key}'", extra={"question": node.key})

        if self._conflicts:
            node = self._conflicts.popleft()
            self._pending = node
            self.surfaced.append(node.key)
            logger.debug(f"Surfacing conflict question '{node.key}'", extra={"question": node.key})
            return node

        return DONE

    def submit_answer(self, key: str, value: AnswerValue) -> Answer:
        """
        Validate and record an answer to the pending question.

        Raises:
            InvalidAnswer: If no question is pending, the key is not the
                pending one, or the value is not acceptable. The pending
                question stays pending.
        """
        pending = self._pending
        if pending is None:
            raise InvalidAnswer(key, value, "no question is pending")
        if key != pending.key:
            raise InvalidAnswer(key, value, f"expected an answer to '{pending.key}'")

        answer = Answer(key=key, values=normalize_answer(pending, value))
        self._responses.record(answer)
        self._pending = None
        logger.info(f"Answered '{key}': {answer.value}", extra={"question": key})
        return answer

    def push_conflict(self, node: QuestionNode) -> None:
        """Queue a synthesized conflict question."""
        self._responses.declare(node.key)
        self._conflicts.append(node)
