"""
Validation rules for template catalogues.

Runs after the schema check, before a catalogue is used for a run:
anything reported as an error here would otherwise surface mid-run as an
UnboundReference or a broken document.
"""

import re
import logging
from dataclasses import dataclass, field
from xml.parsers import expat

from ..errors import MalformedDocument
from ..models.catalogue import PLACEHOLDER_PATTERN, Catalogue, FragmentKind
from ..models.conditions import referenced_keys
from ..models.document_path import InvalidPath, split_path, validate_path
from .document_reader import parse

logger = logging.getLogger(__name__)

# Stand-in used when checking fragments that still contain placeholders
PLACEHOLDER_PROBE = "probe"

# Fragment kinds addressed by an identity key inside their payload
KEYED_KINDS = (FragmentKind.PLUGIN, FragmentKind.PROFILE, FragmentKind.DEPENDENCY)


@dataclass
class ValidationResult:
    """Result of validating a catalogue."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    catalogue_name: str = ""

    # Extracted metadata for reporting
    questions_found: int = 0
    features_found: int = 0
    fragments_found: int = 0
    duplicate_targets: list[str] = field(default_factory=list)

    def error(self, message: str) -> None:
        self.is_valid = False
        self.errors.append(message)


def _probe(text: str) -> str:
    return PLACEHOLDER_PATTERN.sub(PLACEHOLDER_PROBE, text)


def _is_well_formed(fragment: str) -> bool:
    parser = expat.ParserCreate()
    try:
        # Wrap so that several sibling elements are still accepted
        parser.Parse(f"<fragment>{fragment}</fragment>", True)
    except expat.ExpatError:
        return False
    return True


def _identity_error(kind: FragmentKind, target: str, payload: str) -> str | None:
    """Check that a keyed payload is one element that answers to its target key."""
    key = split_path(target)[-1].key
    try:
        root = parse(payload).root
    except MalformedDocument:
        return f"payload must be a single <{kind.value}> element"
    if root.tag != kind.value:
        return f"payload root is <{root.tag}>, expected <{kind.value}>"
    if key not in root.identities():
        found = ", ".join(sorted(root.identities())) or "none"
        return f"payload identity does not match target key '{key}' (found: {found})"
    return None


def validate_questions(catalogue: Catalogue, result: ValidationResult) -> None:
    """
    Question rules:
    1. Keys are unique
    2. A question has either options or a free-text pattern, not both
    3. Patterns compile; options are unique
    4. Gates only reference questions declared earlier
    """
    seen: set[str] = set()

    for question in catalogue.questions:
        key = question.key

        if key in seen:
            result.error(f"Question '{key}' is declared more than once")
            continue

        if question.options and question.pattern:
            result.error(f"Question '{key}' declares both options and a pattern")
        elif not question.options and not question.pattern:
            result.warnings.append(f"Question '{key}' accepts any non-empty free text (no pattern)")

        if question.pattern:
            try:
                re.compile(question.pattern)
            except re.error as e:
                result.error(f"Question '{key}' has an invalid pattern: {e}")

        values = [o.value for o in question.options]
        if len(set(values)) != len(values):
            result.error(f"Question '{key}' has duplicate options")

        for ref in sorted(referenced_keys(question.gate)):
            if ref == key:
                result.error(f"Question '{key}' gate references itself")
            elif ref not in seen:
                result.error(f"Question '{key}' gate references '{ref}', which is not declared before it")

        seen.add(key)

    result.questions_found = len(seen)


def validate_features(catalogue: Catalogue, result: ValidationResult) -> None:
    """
    Feature rules:
    1. Names are unique
    2. Conditions and placeholders reference declared questions
    3. Fragment targets are valid paths and XML payloads are well formed
    4. Plugin, profile and dependency payloads answer to their target key,
       so a second run finds what the first one added
    5. Two fragments targeting the same path are reported (first one wins)
    """
    declared = set(catalogue.question_keys())
    names: set[str] = set()
    targets: dict[str, str] = {}

    for feature in catalogue.features:
        if feature.name in names:
            result.error(f"Feature '{feature.name}' is declared more than once")
        names.add(feature.name)

        when_keys = referenced_keys(feature.when)
        for ref in sorted(when_keys - declared):
            result.error(f"Feature '{feature.name}' condition references undeclared question '{ref}'")
        if not when_keys:
            result.warnings.append(f"Feature '{feature.name}' does not depend on any answer")

        for index, fragment in enumerate(feature.fragments, start=1):
            label = f"{feature.name}#{index}"
            result.fragments_found += 1

            for ref in fragment.referenced_keys():
                if ref not in declared:
                    result.error(f"Fragment {label} references undeclared question '{ref}'")

            target = _probe(fragment.target_template())
            try:
                validate_path(target)
            except InvalidPath as e:
                result.error(f"Fragment {label} has an invalid target: {e}")
                continue

            payload = _probe(fragment.payload_template())
            if fragment.kind != FragmentKind.FILE and not _is_well_formed(payload):
                result.error(f"Fragment {label} payload is not well-formed XML")
            elif fragment.kind in KEYED_KINDS:
                problem = _identity_error(fragment.kind, target, payload)
                if problem:
                    result.error(f"Fragment {label} {problem}")

            # Only literal targets can be compared before the run
            if fragment.target_template() == target:
                if target in targets:
                    result.duplicate_targets.append(target)
                    result.warnings.append(
                        f"Fragment {label} targets {target}, already claimed by feature "
                        f"'{targets[target]}' (first declared wins)"
                    )
                else:
                    targets[target] = feature.name

    result.features_found = len(names)


def validate_usage(catalogue: Catalogue, result: ValidationResult) -> None:
    """Warn about questions nothing depends on."""
    used: set[str] = set()
    for question in catalogue.questions:
        used |= referenced_keys(question.gate)
    for feature in catalogue.features:
        used |= referenced_keys(feature.when)
        for fragment in feature.fragments:
            used |= set(fragment.referenced_keys())

    for key in catalogue.question_keys():
        if key not in used:
            result.warnings.append(f"Question '{key}' is never used by a gate, feature, or fragment")


def validate_catalogue(catalogue: Catalogue) -> ValidationResult:
    """
    Validate a catalogue.

    Errors make the catalogue unusable; warnings are informational.

    Args:
        catalogue: Schema-valid catalogue

    Returns:
        ValidationResult with is_valid flag and any errors/warnings
    """
    result = ValidationResult(is_valid=True, catalogue_name=catalogue.name)

    validate_questions(catalogue, result)
    validate_features(catalogue, result)
    validate_usage(catalogue, result)

    if not catalogue.features:
        result.warnings.append("Catalogue has no features; runs will never change the document")

    return result
