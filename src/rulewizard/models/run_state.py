"""Run lifecycle states and the structured run summary."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .mutations import MutationOp


class RunState(str, Enum):
    """
    Per-run state machine.

    INIT → ASKING_QUESTIONS → PLANNING → RESOLVING_CONFLICTS → WRITING → DONE
    INIT → ABORTED on a malformed document; any fatal error → ABORTED.
    """

    INIT = "Init"
    ASKING_QUESTIONS = "AskingQuestions"
    PLANNING = "Planning"
    RESOLVING_CONFLICTS = "ResolvingConflicts"
    WRITING = "Writing"
    DONE = "Done"
    ABORTED = "Aborted"


class OpStatus(str, Enum):
    APPLIED = "applied"
    OVERRIDDEN = "overridden"
    KEPT_EXISTING = "kept-existing"
    SHADOWED = "shadowed"
    ALREADY_PRESENT = "already-present"


class FeatureStatus(str, Enum):
    APPLIED = "applied"
    OVERRIDDEN = "overridden"
    ALREADY_PRESENT = "already-present"
    SKIPPED_KEPT_EXISTING = "skipped-kept-existing"
    SKIPPED_SHADOWED = "skipped-shadowed"
    SKIPPED_NOT_SELECTED = "skipped-not-selected"


@dataclass(frozen=True)
class OpOutcome:
    op: MutationOp
    status: OpStatus


@dataclass
class FeatureOutcome:
    """Summary line for one catalogue feature."""

    feature: str
    status: FeatureStatus
    ops: list[OpOutcome] = field(default_factory=list)

    @classmethod
    def from_ops(cls, feature: str, ops: list[OpOutcome]) -> "FeatureOutcome":
        statuses = {o.status for o in ops}
        if OpStatus.APPLIED in statuses:
            status = FeatureStatus.APPLIED
        elif OpStatus.OVERRIDDEN in statuses:
            status = FeatureStatus.OVERRIDDEN
        elif OpStatus.KEPT_EXISTING in statuses:
            status = FeatureStatus.SKIPPED_KEPT_EXISTING
        elif OpStatus.ALREADY_PRESENT in statuses:
            status = FeatureStatus.ALREADY_PRESENT
        else:
            status = FeatureStatus.SKIPPED_SHADOWED
        return cls(feature=feature, status=status, ops=ops)


@dataclass
class RunSummary:
    """Structured result of a run: per-feature outcomes plus answered questions."""

    catalogue: str
    catalogue_version: str
    state: RunState
    features: list[FeatureOutcome] = field(default_factory=list)
    answered: dict[str, str] = field(default_factory=dict)
    artifacts: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def feature(self, name: str) -> Optional[FeatureOutcome]:
        for outcome in self.features:
            if outcome.feature == name:
                return outcome
        return None

    def op_status(self, target: str) -> Optional[OpStatus]:
        for outcome in self.features:
            for op in outcome.ops:
                if op.op.target == target:
                    return op.status
        return None

    def to_dict(self) -> dict:
        return {
            "catalogue": self.catalogue,
            "catalogue_version": self.catalogue_version,
            "state": self.state.value,
            "answered": dict(self.answered),
            "artifacts": list(self.artifacts),
            "error": self.error,
            "features": [
                {
                    "feature": f.feature,
                    "status": f.status.value,
                    "ops": [
                        {"kind": o.op.kind.value, "target": o.op.target, "status": o.status.value}
                        for o in f.ops
                    ],
                }
                for f in self.features
            ],
        }
