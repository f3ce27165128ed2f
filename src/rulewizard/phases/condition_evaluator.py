"""
Condition Evaluator.

Pure evaluation of gate expressions against the response store and the
document snapshot. References to keys the catalogue never declared are a
template authoring bug and raise UnboundReference instead of defaulting
to false.
"""

from typing import Optional

from ..errors import UnboundReference
from ..models.conditions import AllOf, AnswerIs, AnyOf, Condition, Not, PathExists
from .document_reader import DocumentSnapshot, exists
from .response_store import ResponseStore


def evaluate(
    expr: Optional[Condition],
    responses: ResponseStore,
    snapshot: DocumentSnapshot,
    in_flight: Optional[str] = None,
) -> bool:
    """
    Evaluate a condition.

    Args:
        expr: Condition tree (None means "always")
        responses: Response store for the current run
        snapshot: Document snapshot taken at run start
        in_flight: Question key or op target being evaluated, for diagnostics

    Returns:
        True if the condition holds

    Raises:
        UnboundReference: If an answer condition names an undeclared key
    """
    if expr is None:
        return True

    if isinstance(expr, AnswerIs):
        if not responses.is_declared(expr.key):
            raise UnboundReference(expr.key, in_flight=in_flight)
        answer = responses.get(expr.key)
        if answer is None:
            # Declared but gated off or not asked yet
            return False
        if expr.equals is not None:
            return answer.values == (expr.equals,)
        return any(v in expr.any_of for v in answer.values)

    if isinstance(expr, PathExists):
        return exists(snapshot, expr.path)

    if isinstance(expr, Not):
        return not evaluate(expr.term, responses, snapshot, in_flight)

    if isinstance(expr, AllOf):
        return all(evaluate(t, responses, snapshot, in_flight) for t in expr.terms)

    if isinstance(expr, AnyOf):
        return any(evaluate(t, responses, snapshot, in_flight) for t in expr.terms)

    raise TypeError(f"Unsupported condition type: {type(expr).__name__}")
