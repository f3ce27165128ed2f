"""Whole runs of each bundled catalogue with every option selected."""

import pytest

from rulewizard.models import FeatureStatus, RunState
from rulewizard.phases import WizardRun, drive
from rulewizard.phases.document_reader import find_node, parse
from rulewizard.utils import BUNDLED_DIR, load_catalogue


BUNDLED = ("maven-plugins", "maven-dependencies", "plantuml-diagrams")

BARE_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project>
    <modelVersion>4.0.0</modelVersion>
</project>
"""

FREE_TEXT_ANSWERS = {
    "coverage_threshold": "0.80",
    "diagrams_dir": "docs/diagrams",
    "system_name": "Demo Shop",
}


def everything(node):
    """Pick every option (except 'none'), the first single option, or a sample text."""
    if node.is_conflict:
        return "keep"
    if node.is_free_text:
        return FREE_TEXT_ANSWERS[node.key]
    if node.multiple:
        return [o for o in node.options if o != "none"]
    return node.options[0]


def run_catalogue(name, document, existing_files=()):
    catalogue = load_catalogue(BUNDLED_DIR / f"{name}.yaml")
    run = WizardRun(catalogue, document, existing_files=existing_files)
    summary = drive(run, everything)
    return run, summary


@pytest.mark.parametrize("name", BUNDLED)
class TestBundledCatalogueRuns:
    """Every bundled catalogue applies cleanly and converges."""

    def test_output_parses_and_every_target_resolves(self, name):
        run, summary = run_catalogue(name, BARE_POM)

        assert summary.state == RunState.DONE
        assert run.result.changed
        snapshot = parse(run.result.document)
        for op in run.result.applied:
            if not op.target.startswith("files/"):
                assert find_node(snapshot, op.target) is not None, op.target

    def test_every_feature_applied(self, name):
        _, summary = run_catalogue(name, BARE_POM)

        assert {f.status for f in summary.features} == {FeatureStatus.APPLIED}

    def test_rerun_on_output_changes_nothing(self, name):
        first, _ = run_catalogue(name, BARE_POM)

        second, summary = run_catalogue(name, first.result.document, existing_files=first.result.artifacts)

        assert second.result.document == first.result.document
        assert second.result.artifacts == {}
        assert not second.result.changed
        # compiler is gated on the property it added, so it is not selected again
        assert {f.status for f in summary.features} <= {
            FeatureStatus.SKIPPED_KEPT_EXISTING,
            FeatureStatus.SKIPPED_NOT_SELECTED,
        }
