"""
Error taxonomy for wizard runs.

- MalformedDocument: fatal, raised before any question is asked
- InvalidAnswer: recoverable, the same question is asked again
- UnboundReference: fatal, a catalogue references an undeclared key
- WriteConflict: fatal but restartable, nothing is written
- CatalogueError: a catalogue file fails validation
- UnansweredQuestion: a scripted answer source has no answer for a question
"""

from typing import Optional


class RuleWizardError(Exception):
    """Base class for all wizard errors.

    Attributes:
        in_flight: Question key or mutation target being processed when
            the error occurred (None if not applicable)
    """

    def __init__(self, message: str, in_flight: Optional[str] = None):
        super().__init__(message)
        self.in_flight = in_flight

    def __str__(self) -> str:
        message = super().__str__()
        if self.in_flight:
            return f"{message} (in flight: {self.in_flight})"
        return message


class MalformedDocument(RuleWizardError):
    """Raised when the target document cannot be parsed at all."""


class InvalidAnswer(RuleWizardError):
    """Raised when a submitted answer is not acceptable for the pending question."""

    def __init__(self, key: str, value: object, reason: str):
        super().__init__(f"Invalid answer {value!r} for '{key}': {reason}", in_flight=key)
        self.key = key
        self.value = value
        self.reason = reason


class UnboundReference(RuleWizardError):
    """Raised when a condition or fragment references an undeclared answer key."""

    def __init__(self, reference: str, in_flight: Optional[str] = None):
        super().__init__(f"Unbound reference to '{reference}'", in_flight=in_flight)
        self.reference = reference


class WriteConflict(RuleWizardError):
    """Raised when the document changed externally between planning and writing."""


class CatalogueError(RuleWizardError):
    """Raised when a template catalogue fails schema or semantic validation."""

    def __init__(self, message: str, errors: Optional[list[str]] = None, in_flight: Optional[str] = None):
        super().__init__(message, in_flight=in_flight)
        self.errors = errors or []


class UnansweredQuestion(RuleWizardError):
    """Raised when a non-interactive answer source has no answer to give."""
