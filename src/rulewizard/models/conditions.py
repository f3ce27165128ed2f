"""
Gate condition expressions.

Catalogues write conditions as nested YAML mappings:

    {answer: coverage, equals: "yes"}
    {answer: test_libraries, in: [junit5, assertj]}
    {exists: properties/maven.compiler.release}
    {all: [...]}, {any: [...]}, {not: {...}}
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

from .document_path import InvalidPath, validate_path


@dataclass(frozen=True)
class AnswerIs:
    """True when the answer to `key` equals a literal or falls in a set."""

    key: str
    equals: Optional[str] = None
    any_of: frozenset[str] = frozenset()


@dataclass(frozen=True)
class PathExists:
    """True when the document snapshot contains `path`."""

    path: str


@dataclass(frozen=True)
class AllOf:
    terms: tuple["Condition", ...]


@dataclass(frozen=True)
class AnyOf:
    terms: tuple["Condition", ...]


@dataclass(frozen=True)
class Not:
    term: "Condition"


Condition = Union[AnswerIs, PathExists, AllOf, AnyOf, Not]


class ConditionSyntaxError(ValueError):
    """Raised when a condition mapping cannot be parsed."""


def parse_condition(data: Any) -> Condition:
    """
    Parse a YAML condition mapping into a Condition tree.

    Args:
        data: Mapping as loaded from YAML

    Returns:
        Parsed Condition

    Raises:
        ConditionSyntaxError: On unknown operators or malformed operands
    """
    if not isinstance(data, dict) or not data:
        raise ConditionSyntaxError(f"Condition must be a non-empty mapping, got {data!r}")

    if "answer" in data:
        return _parse_answer(data)

    if len(data) != 1:
        raise ConditionSyntaxError(f"Expected exactly one operator, got {sorted(data)}")

    operator, operand = next(iter(data.items()))

    if operator == "exists":
        if not isinstance(operand, str):
            raise ConditionSyntaxError(f"'exists' expects a path string, got {operand!r}")
        try:
            validate_path(operand)
        except InvalidPath as e:
            raise ConditionSyntaxError(str(e)) from e
        return PathExists(path=operand)

    if operator in ("all", "any"):
        if not isinstance(operand, list) or not operand:
            raise ConditionSyntaxError(f"'{operator}' expects a non-empty list")
        terms = tuple(parse_condition(item) for item in operand)
        return AllOf(terms) if operator == "all" else AnyOf(terms)

    if operator == "not":
        return Not(parse_condition(operand))

    raise ConditionSyntaxError(f"Unknown condition operator '{operator}'")


def _parse_answer(data: dict) -> AnswerIs:
    key = data["answer"]
    if not isinstance(key, str) or not key:
        raise ConditionSyntaxError(f"'answer' expects a question key, got {key!r}")

    extra = set(data) - {"answer", "equals", "in"}
    if extra:
        raise ConditionSyntaxError(f"Unexpected keys in answer condition: {sorted(extra)}")

    has_equals = "equals" in data
    has_in = "in" in data
    if has_equals == has_in:
        raise ConditionSyntaxError(f"Answer condition on '{key}' needs exactly one of 'equals' or 'in'")

    if has_equals:
        if isinstance(data["equals"], bool):
            raise ConditionSyntaxError(f"'equals' on '{key}' parsed as a boolean, quote the value")
        return AnswerIs(key=key, equals=str(data["equals"]))

    values = data["in"]
    if not isinstance(values, list) or not values:
        raise ConditionSyntaxError(f"'in' on '{key}' expects a non-empty list")
    if any(isinstance(v, bool) for v in values):
        raise ConditionSyntaxError(f"'in' on '{key}' contains a boolean, quote the values")
    return AnswerIs(key=key, any_of=frozenset(str(v) for v in values))


def referenced_keys(condition: Optional[Condition]) -> set[str]:
    """Collect every answer key a condition refers to."""
    if condition is None:
        return set()
    if isinstance(condition, AnswerIs):
        return {condition.key}
    if isinstance(condition, PathExists):
        return set()
    if isinstance(condition, Not):
        return referenced_keys(condition.term)
    keys: set[str] = set()
    for term in condition.terms:
        keys |= referenced_keys(term)
    return keys


def describe_condition(condition: Optional[Condition]) -> str:
    """Render a condition as a short human-readable phrase."""
    if condition is None:
        return "always"
    if isinstance(condition, AnswerIs):
        if condition.equals is not None:
            return f"{condition.key} = {condition.equals}"
        return f"{condition.key} in {{{', '.join(sorted(condition.any_of))}}}"
    if isinstance(condition, PathExists):
        return f"{condition.path} exists"
    if isinstance(condition, Not):
        return f"not ({describe_condition(condition.term)})"
    joiner = " and " if isinstance(condition, AllOf) else " or "
    return "(" + joiner.join(describe_condition(t) for t in condition.terms) + ")"
