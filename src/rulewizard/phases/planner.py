"""
Mutation Planner.

Turns the answers of a run into an ordered list of add-if-absent
operations. Order follows the catalogue (feature order, then fragment
order), never the order in which questions happened to be answered, so
the same answers always produce the same plan.
"""

import logging
from xml.sax.saxutils import escape

from ..errors import CatalogueError, UnboundReference
from ..models.catalogue import PLACEHOLDER_PATTERN, Catalogue, FeatureSpec, FragmentKind
from ..models.document_path import InvalidPath, validate_path
from ..models.mutations import MutationOp, OpKind
from .condition_evaluator import evaluate
from .document_reader import DocumentSnapshot
from .response_store import ResponseStore

logger = logging.getLogger(__name__)

FRAGMENT_OPS = {
    FragmentKind.PROPERTY: OpKind.ADD_PROPERTY,
    FragmentKind.PLUGIN: OpKind.ADD_PLUGIN,
    FragmentKind.PROFILE: OpKind.ADD_PROFILE,
    FragmentKind.DEPENDENCY: OpKind.ADD_DEPENDENCY,
    FragmentKind.FILE: OpKind.ADD_FILE_ARTIFACT,
}


def substitute(text: str, responses: ResponseStore, in_flight: str, xml: bool = False) -> str:
    """
    Replace ${key} placeholders with answers.

    With xml=True answers are escaped as XML character data, so free text
    such as "Tom & Jerry" cannot break the document. Otherwise they are
    inserted verbatim.

    Raises:
        UnboundReference: If a key is undeclared or has no answer
    """

    def replace(match) -> str:
        key = match.group(1)
        if not responses.is_declared(key):
            raise UnboundReference(key, in_flight=in_flight)
        answer = responses.get(key)
        if answer is None:
            raise UnboundReference(f"{key} (never answered)", in_flight=in_flight)
        return escape(answer.value) if xml else answer.value

    return PLACEHOLDER_PATTERN.sub(replace, text)


class MutationPlanner:
    """Maps a response store onto the catalogue's fragment table."""

    def __init__(self, catalogue: Catalogue):
        self.catalogue = catalogue

    def is_selected(self, feature: FeatureSpec, responses: ResponseStore, snapshot: DocumentSnapshot) -> bool:
        return evaluate(feature.when, responses, snapshot, in_flight=f"feature:{feature.name}")

    def plan(self, responses: ResponseStore, snapshot: DocumentSnapshot) -> list[MutationOp]:
        """
        Build the ordered mutation plan.

        Args:
            responses: Answers collected during the run
            snapshot: Document snapshot taken at run start

        Returns:
            Ordered list of MutationOp, all with the if-absent precondition
        """
        ops: list[MutationOp] = []

        for feature in self.catalogue.features:
            if not self.is_selected(feature, responses, snapshot):
                logger.debug(f"Feature '{feature.name}' not selected")
                continue

            for index, fragment in enumerate(feature.fragments, start=1):
                in_flight = f"{feature.name}#{index}"
                target = substitute(fragment.target_template(), responses, in_flight)
                try:
                    validate_path(target)
                except InvalidPath as e:
                    raise CatalogueError(f"Fragment {in_flight} resolves to an invalid target: {e}") from e

                op = MutationOp(
                    kind=FRAGMENT_OPS[fragment.kind],
                    target=target,
                    payload=substitute(
                        fragment.payload_template(), responses, target, xml=fragment.kind != FragmentKind.FILE
                    ),
                    feature=feature.name,
                )
                ops.append(op)

            logger.info(f"Feature '{feature.name}' selected ({len(feature.fragments)} fragment(s))")

        return ops
