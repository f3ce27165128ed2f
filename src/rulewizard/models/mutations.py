"""
Planned document mutations and conflict records.

Every operation is add-if-absent; an override only happens after an
explicit, recorded user decision.
"""

from dataclasses import dataclass, replace
from enum import Enum

from .questions import QuestionNode


class OpKind(str, Enum):
    """Tagged variant of mutation operations."""

    ADD_PROPERTY = "AddProperty"
    ADD_PLUGIN = "AddPlugin"
    ADD_PROFILE = "AddProfile"
    ADD_DEPENDENCY = "AddDependency"
    ADD_FILE_ARTIFACT = "AddFileArtifact"


class Precondition(str, Enum):
    IF_ABSENT = "if-absent"
    IF_CONFIRMED_OVERRIDE = "if-confirmed-override"


class Resolution(str, Enum):
    """Outcome of a conflict between a planned op and existing content."""

    KEEP_EXISTING = "keep-existing"
    OVERRIDE = "override"
    SKIP = "skip"


@dataclass(frozen=True)
class MutationOp:
    """One idempotent edit: a target path, a payload fragment, a precondition."""

    kind: OpKind
    target: str
    payload: str
    feature: str
    precondition: Precondition = Precondition.IF_ABSENT

    @property
    def is_override(self) -> bool:
        return self.precondition == Precondition.IF_CONFIRMED_OVERRIDE

    def with_override(self) -> "MutationOp":
        return replace(self, precondition=Precondition.IF_CONFIRMED_OVERRIDE)

    def describe(self) -> str:
        return f"{self.kind.value} {self.target}"


@dataclass(frozen=True)
class ConflictRecord:
    """A planned op paired with the node it collided with and the decision taken."""

    op: MutationOp
    existing: str
    resolution: Resolution
    reason: str = ""


@dataclass(frozen=True)
class Approved:
    op: MutationOp


@dataclass(frozen=True)
class Suppressed:
    record: ConflictRecord


@dataclass(frozen=True)
class NeedsDecision:
    """The resolver needs a keep/override answer before the op may proceed."""

    op: MutationOp
    existing: str
    question: QuestionNode
