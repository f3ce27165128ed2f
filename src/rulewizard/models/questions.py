"""Run-time question and answer records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .catalogue import QuestionSpec
from .conditions import Condition

# Prefix used for synthesized keep/override questions
CONFLICT_KEY_PREFIX = "conflict:"


@dataclass(frozen=True)
class QuestionNode:
    """
    A question instantiated for one run.

    Never mutated after creation; it is only ever answered.
    """

    key: str
    ordinal: int
    prompt: str
    options: tuple[str, ...] = ()
    option_labels: tuple[Optional[str], ...] = ()
    pattern: Optional[str] = None
    multiple: bool = False
    gate: Optional[Condition] = None
    help: Optional[str] = None
    default_forbidden: bool = True

    @classmethod
    def from_spec(cls, spec: QuestionSpec, ordinal: int) -> "QuestionNode":
        return cls(
            key=spec.key,
            ordinal=ordinal,
            prompt=spec.prompt,
            options=tuple(o.value for o in spec.options),
            option_labels=tuple(o.label for o in spec.options),
            pattern=spec.pattern,
            multiple=spec.multiple,
            gate=spec.gate,
            help=spec.help,
        )

    @property
    def is_free_text(self) -> bool:
        return not self.options

    @property
    def is_conflict(self) -> bool:
        return self.key.startswith(CONFLICT_KEY_PREFIX)

    def to_request(self) -> dict:
        """Interactive surface payload: {questionKey, promptText, options}."""
        return {
            "questionKey": self.key,
            "promptText": self.prompt,
            "options": list(self.options),
        }


@dataclass(frozen=True)
class Answer:
    """An immutable answer record owned by the response store."""

    key: str
    values: tuple[str, ...]
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def value(self) -> str:
        """Single-value view; multi-select answers are joined with commas."""
        return ",".join(self.values)
