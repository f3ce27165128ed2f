"""
Conflict Resolver.

Gatekeeper between the planner and the writer. An op whose target is
absent is approved automatically; an op whose target already exists needs
an explicit keep/override decision from the user, recorded as a
ConflictRecord. When two features target the same path, the one declared
first in the catalogue wins and later ops are suppressed.
"""

import logging
from typing import Optional, Union

from ..models.document_path import file_relative_path, is_file_path
from ..models.mutations import (
    Approved,
    ConflictRecord,
    MutationOp,
    NeedsDecision,
    Resolution,
    Suppressed,
)
from ..models.questions import CONFLICT_KEY_PREFIX, Answer, QuestionNode
from .document_reader import DocumentSnapshot, exists, find_node

logger = logging.getLogger(__name__)

KEEP = "keep"
OVERRIDE = "override"

Decision = Union[Approved, Suppressed, NeedsDecision]


class ConflictResolver:
    """Resolves each planned op against the snapshot, one op at a time."""

    def __init__(self, snapshot: DocumentSnapshot, first_ordinal: int = 0):
        self._snapshot = snapshot
        self._next_ordinal = first_ordinal
        self._claimed: dict[str, MutationOp] = {}
        self._awaiting: dict[str, NeedsDecision] = {}
        self.records: list[ConflictRecord] = []

    @property
    def awaiting(self) -> list[NeedsDecision]:
        return list(self._awaiting.values())

    def _existing_source(self, target: str) -> str:
        if is_file_path(target):
            return f"existing file {file_relative_path(target)}"
        node = find_node(self._snapshot, target)
        return self._snapshot.source(node) if node is not None else ""

    def _conflict_question(self, op: MutationOp) -> QuestionNode:
        ordinal = self._next_ordinal
        self._next_ordinal += 1
        return QuestionNode(
            key=f"{CONFLICT_KEY_PREFIX}{op.target}",
            ordinal=ordinal,
            prompt=(
                f"'{op.target}' already exists. Keep the existing configuration "
                f"or override it with the '{op.feature}' template?"
            ),
            options=(KEEP, OVERRIDE),
            option_labels=("keep the existing configuration", "replace it with the template version"),
        )

    def resolve(self, op: MutationOp) -> Decision:
        """
        Decide what happens to a planned op.

        Returns:
            Approved if the target is absent, Suppressed if an earlier op
            already claimed the target, NeedsDecision if the target exists
            in the document
        """
        claimed = self._claimed.get(op.target)
        if claimed is not None:
            record = ConflictRecord(
                op=op,
                existing=f"planned by feature '{claimed.feature}'",
                resolution=Resolution.SKIP,
                reason="first-declared feature wins",
            )
            self.records.append(record)
            logger.info(f"{op.describe()} shadowed by feature '{claimed.feature}'", extra={"op": op.describe()})
            return Suppressed(record)

        self._claimed[op.target] = op

        if not exists(self._snapshot, op.target):
            logger.debug(f"{op.describe()} approved (target absent)", extra={"op": op.describe()})
            return Approved(op)

        decision = NeedsDecision(
            op=op,
            existing=self._existing_source(op.target),
            question=self._conflict_question(op),
        )
        self._awaiting[decision.question.key] = decision
        logger.info(
            f"{op.describe()} collides with existing content, decision required", extra={"op": op.describe()}
        )
        return decision

    def record_decision(self, answer: Answer) -> Optional[MutationOp]:
        """
        Record the user's keep/override answer.

        Returns:
            The op flagged for override, or None if the existing content is kept

        Raises:
            KeyError: If no decision is awaiting this question key
        """
        decision = self._awaiting.pop(answer.key)

        if answer.value == OVERRIDE:
            resolution = Resolution.OVERRIDE
            result: Optional[MutationOp] = decision.op.with_override()
        else:
            resolution = Resolution.KEEP_EXISTING
            result = None

        self.records.append(ConflictRecord(op=decision.op, existing=decision.existing, resolution=resolution))
        logger.info(f"{decision.op.describe()}: {resolution.value}", extra={"op": decision.op.describe()})
        return result
