"""
Run phases for the rule wizard.

Stages:
1. Read - parse() the document into an immutable snapshot
2. Ask - QuestionSequencer surfaces gated questions one at a time
3. Plan - MutationPlanner turns answers into add-if-absent ops
4. Resolve - ConflictResolver asks keep/override for existing targets
5. Write - DocumentWriter splices approved ops into the original bytes

WizardRun ties the stages together as a state machine; drive() runs a
whole session with an answer callback.
"""

from .document_reader import (
    DocNode,
    DocumentSnapshot,
    NOT_FOUND,
    parse,
    find_node,
    exists,
    value_at,
    iter_paths,
    document_digest,
)

from .condition_evaluator import evaluate

from .response_store import ResponseStore

from .sequencer import (
    DONE,
    QuestionSequencer,
    normalize_answer,
)

from .planner import (
    MutationPlanner,
    substitute,
)

from .conflicts import (
    ConflictResolver,
    KEEP,
    OVERRIDE,
)

from .document_writer import (
    DocumentWriter,
    WriteResult,
    untouched_paths_preserved,
)

from .run import (
    WizardRun,
    ask_all,
    drive,
)

from .transcript import (
    Transcript,
    ScriptedAnswers,
    save_transcript,
    load_transcript,
    TRANSCRIPT_VERSION,
)

from .validation import (
    ValidationResult,
    validate_catalogue,
    validate_questions,
    validate_features,
    validate_usage,
)

__all__ = [
    # Stage 1: Read
    "DocNode",
    "DocumentSnapshot",
    "NOT_FOUND",
    "parse",
    "find_node",
    "exists",
    "value_at",
    "iter_paths",
    "document_digest",
    # Conditions
    "evaluate",
    # Stage 2: Ask
    "ResponseStore",
    "DONE",
    "QuestionSequencer",
    "normalize_answer",
    # Stage 3: Plan
    "MutationPlanner",
    "substitute",
    # Stage 4: Resolve
    "ConflictResolver",
    "KEEP",
    "OVERRIDE",
    # Stage 5: Write
    "DocumentWriter",
    "WriteResult",
    "untouched_paths_preserved",
    # Run
    "WizardRun",
    "ask_all",
    "drive",
    # Transcripts
    "Transcript",
    "ScriptedAnswers",
    "save_transcript",
    "load_transcript",
    "TRANSCRIPT_VERSION",
    # Catalogue validation
    "ValidationResult",
    "validate_catalogue",
    "validate_questions",
    "validate_features",
    "validate_usage",
]
