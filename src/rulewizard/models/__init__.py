"""Data models for catalogues, questions, mutations, and run state."""

from .catalogue import (
    Catalogue,
    QuestionSpec,
    OptionSpec,
    FeatureSpec,
    FragmentSpec,
    FragmentKind,
    placeholders,
)
from .conditions import (
    Condition,
    AnswerIs,
    PathExists,
    AllOf,
    AnyOf,
    Not,
    parse_condition,
    referenced_keys,
    describe_condition,
    ConditionSyntaxError,
)
from .document_path import PathSegment, InvalidPath, split_path, validate_path
from .questions import QuestionNode, Answer, CONFLICT_KEY_PREFIX
from .mutations import (
    MutationOp,
    OpKind,
    Precondition,
    Resolution,
    ConflictRecord,
    Approved,
    Suppressed,
    NeedsDecision,
)
from .run_state import RunState, OpStatus, FeatureStatus, OpOutcome, FeatureOutcome, RunSummary

__all__ = [
    # Catalogue models
    "Catalogue",
    "QuestionSpec",
    "OptionSpec",
    "FeatureSpec",
    "FragmentSpec",
    "FragmentKind",
    "placeholders",
    # Conditions
    "Condition",
    "AnswerIs",
    "PathExists",
    "AllOf",
    "AnyOf",
    "Not",
    "parse_condition",
    "referenced_keys",
    "describe_condition",
    "ConditionSyntaxError",
    # Paths
    "PathSegment",
    "InvalidPath",
    "split_path",
    "validate_path",
    # Questions
    "QuestionNode",
    "Answer",
    "CONFLICT_KEY_PREFIX",
    # Mutations
    "MutationOp",
    "OpKind",
    "Precondition",
    "Resolution",
    "ConflictRecord",
    "Approved",
    "Suppressed",
    "NeedsDecision",
    # Run state
    "RunState",
    "OpStatus",
    "FeatureStatus",
    "OpOutcome",
    "FeatureOutcome",
    "RunSummary",
]
