"""End-to-end tests for WizardRun: scenarios, determinism, idempotence."""

import pytest

from rulewizard.errors import CatalogueError, InvalidAnswer, MalformedDocument, UnansweredQuestion, WriteConflict
from rulewizard.models import (
    Catalogue,
    FeatureOutcome,
    FeatureStatus,
    MutationOp,
    OpKind,
    OpOutcome,
    OpStatus,
    RunState,
)
from rulewizard.phases import DONE, ScriptedAnswers, WizardRun, drive
from rulewizard.phases.document_reader import find_node, parse
from rulewizard.phases.document_writer import untouched_paths_preserved


COVERAGE_ANSWERS = {"coverage": "yes", "coverage_threshold": "80", "extras": "none"}


def run_with(catalogue, document, answers, **kwargs):
    run = WizardRun(catalogue, document, run_id="test")
    summary = drive(run, ScriptedAnswers(answers), **kwargs)
    return run, summary


class TestScenarioA:
    """No existing coverage configuration; coverage requested at 80%."""

    def test_property_and_profile_added(self, catalogue, basic_pom):
        run, summary = run_with(catalogue, basic_pom, COVERAGE_ANSWERS)

        snapshot = parse(run.result.document)
        assert find_node(snapshot, "properties/coverage.level").text == "80"
        assert find_node(snapshot, "profiles/[jacoco]") is not None

    def test_summary_lists_feature_as_applied(self, catalogue, basic_pom):
        _, summary = run_with(catalogue, basic_pom, COVERAGE_ANSWERS)

        assert summary.state == RunState.DONE
        assert summary.feature("coverage").status == FeatureStatus.APPLIED
        assert summary.op_status("properties/coverage.level") == OpStatus.APPLIED
        assert summary.op_status("profiles/[jacoco]") == OpStatus.APPLIED
        assert summary.feature("compiler").status == FeatureStatus.SKIPPED_NOT_SELECTED
        assert summary.answered == COVERAGE_ANSWERS


class TestScenarioB:
    """A jacoco profile already exists; the user keeps it."""

    answers = {**COVERAGE_ANSWERS, "conflict:profiles/[jacoco]": "keep"}

    def test_conflict_question_is_asked(self, catalogue, jacoco_pom):
        run = WizardRun(catalogue, jacoco_pom)
        source = ScriptedAnswers(self.answers)

        drive(run, source)

        assert "conflict:profiles/[jacoco]" in source.used
        assert run.resolver.records[-1].op.target == "profiles/[jacoco]"

    def test_existing_profile_untouched(self, catalogue, jacoco_pom):
        run, summary = run_with(catalogue, jacoco_pom, self.answers)

        before = parse(jacoco_pom)
        after = parse(run.result.document)
        assert after.source(find_node(after, "profiles/[jacoco]")) == before.source(find_node(before, "profiles/[jacoco]"))
        assert summary.op_status("profiles/[jacoco]") == OpStatus.KEPT_EXISTING

    def test_everything_kept_leaves_document_identical(self, catalogue, jacoco_pom):
        document = jacoco_pom.replace(
            "        <maven.compiler.release>21</maven.compiler.release>\n",
            "        <maven.compiler.release>21</maven.compiler.release>\n"
            "        <coverage.level>60</coverage.level>\n",
        )
        answers = {**self.answers, "conflict:properties/coverage.level": "keep"}

        run, summary = run_with(catalogue, document, answers)

        assert run.result.document == document
        assert summary.feature("coverage").status == FeatureStatus.SKIPPED_KEPT_EXISTING

    def test_override_replaces_profile(self, catalogue, jacoco_pom):
        answers = {**COVERAGE_ANSWERS, "conflict:profiles/[jacoco]": "override"}

        run, summary = run_with(catalogue, jacoco_pom, answers)

        assert "<jacoco.enabled>true</jacoco.enabled>" in run.result.document
        assert "custom.setting" not in run.result.document
        assert summary.op_status("profiles/[jacoco]") == OpStatus.OVERRIDDEN

    def test_no_op_reaches_writer_without_decision(self, catalogue, jacoco_pom):
        run = WizardRun(catalogue, jacoco_pom)
        for key in ("coverage", "coverage_threshold", "extras"):
            node = run.next_question()
            run.submit_answer(node.key, COVERAGE_ANSWERS[node.key])

        assert run.next_question().key == "conflict:profiles/[jacoco]"
        assert not run.ready_to_write
        assert [op.target for op in run.approved_plan()] == ["properties/coverage.level"]
        with pytest.raises(UnansweredQuestion):
            run.finish()


class TestScenarioC:
    """Unparseable document: abort before any question."""

    def test_aborts_without_asking(self, catalogue, malformed_pom):
        run = WizardRun(catalogue, malformed_pom)

        def never_called(node):
            raise AssertionError(f"asked {node.key}")

        with pytest.raises(MalformedDocument):
            drive(run, never_called)

        assert run.state == RunState.ABORTED
        assert run.result is None
        assert run.summary().error is not None


class TestScenarioD:
    """Answer outside the option set."""

    def test_invalid_answer_keeps_question_pending(self, catalogue, basic_pom):
        run = WizardRun(catalogue, basic_pom)
        node = run.next_question()

        with pytest.raises(InvalidAnswer):
            run.submit_answer(node.key, "maybe")

        assert run.next_question() is node
        assert run.responses.get(node.key) is None
        assert run.state == RunState.ASKING_QUESTIONS

    def test_drive_reasks_after_invalid_answer(self, catalogue, basic_pom):
        replies = iter(["maybe", "no", "none"])
        rejected = []

        run = WizardRun(catalogue, basic_pom)
        summary = drive(run, lambda node: next(replies), on_invalid=lambda node, e: rejected.append(node.key))

        assert rejected == ["coverage"]
        assert summary.state == RunState.DONE


class TestRunProperties:
    """Determinism, idempotence and preservation across whole runs."""

    def test_gated_questions_never_surfaced(self, catalogue, basic_pom):
        source = ScriptedAnswers({"coverage": "no", "extras": "none"})
        run = WizardRun(catalogue, basic_pom)

        drive(run, source)

        assert "java_version" not in source.used
        assert "coverage_threshold" not in source.used
        assert "java_version" in run.sequencer.skipped

    def test_same_answers_same_document(self, catalogue, basic_pom):
        first, _ = run_with(catalogue, basic_pom, {**COVERAGE_ANSWERS, "extras": "surefire,enforcer"})
        second, _ = run_with(catalogue, basic_pom, {**COVERAGE_ANSWERS, "extras": ["enforcer", "surefire"]})

        assert first.result.document == second.result.document

    def test_rerun_on_output_changes_nothing(self, catalogue, basic_pom):
        first, _ = run_with(catalogue, basic_pom, COVERAGE_ANSWERS)
        answers = {
            **COVERAGE_ANSWERS,
            "conflict:properties/coverage.level": "keep",
            "conflict:profiles/[jacoco]": "keep",
        }

        second, summary = run_with(catalogue, first.result.document, answers)

        assert second.result.document == first.result.document
        assert not second.result.changed
        assert summary.feature("coverage").status == FeatureStatus.SKIPPED_KEPT_EXISTING

    def test_identical_override_reported_already_present(self, catalogue, basic_pom):
        first, _ = run_with(catalogue, basic_pom, COVERAGE_ANSWERS)
        answers = {
            **COVERAGE_ANSWERS,
            "conflict:properties/coverage.level": "override",
            "conflict:profiles/[jacoco]": "override",
        }

        second, summary = run_with(catalogue, first.result.document, answers)

        assert second.result.document == first.result.document
        assert summary.op_status("properties/coverage.level") == OpStatus.ALREADY_PRESENT
        assert summary.feature("coverage").status == FeatureStatus.ALREADY_PRESENT

    def test_untouched_paths_preserved(self, catalogue, basic_pom):
        run, _ = run_with(catalogue, basic_pom, {**COVERAGE_ANSWERS, "extras": "enforcer,surefire"})

        touched = [op.target for op in run.approved_plan()]
        assert untouched_paths_preserved(parse(basic_pom), parse(run.result.document), touched) == []

    def test_gate_depends_on_document(self, catalogue):
        document = "<project>\n    <properties/>\n</project>\n"
        run, summary = run_with(catalogue, document, {"java_version": "17", "coverage": "no", "extras": "none"})

        assert "<maven.compiler.release>17</maven.compiler.release>" in run.result.document
        assert summary.feature("compiler").status == FeatureStatus.APPLIED

    def test_first_declared_feature_wins(self, catalogue_data, basic_pom):
        catalogue_data["features"].append({
            "name": "strict-coverage",
            "when": {"answer": "coverage", "equals": "yes"},
            "fragments": [{"kind": "property", "name": "coverage.level", "value": "95"}],
        })
        catalogue = Catalogue(**catalogue_data)

        run, summary = run_with(catalogue, basic_pom, COVERAGE_ANSWERS)

        assert "<coverage.level>80</coverage.level>" in run.result.document
        assert "95" not in run.result.document
        assert summary.feature("strict-coverage").ops[0].status == OpStatus.SHADOWED
        assert summary.feature("strict-coverage").status == FeatureStatus.SKIPPED_SHADOWED


class TestFreeTextAnswers:
    """Free-text answers land in the document as character data."""

    @pytest.fixture
    def described(self, catalogue_data):
        catalogue_data["questions"].append({"key": "desc", "prompt": "Project summary?"})
        catalogue_data["features"].append({
            "name": "describe",
            "when": {"answer": "coverage", "equals": "yes"},
            "fragments": [{"kind": "property", "name": "project.summary", "value": "${desc}"}],
        })
        return Catalogue(**catalogue_data)

    def test_markup_characters_escaped(self, described, basic_pom):
        run, summary = run_with(described, basic_pom, {**COVERAGE_ANSWERS, "desc": "Tom & Jerry <demo>"})

        assert "<project.summary>Tom &amp; Jerry &lt;demo&gt;</project.summary>" in run.result.document
        assert find_node(parse(run.result.document), "properties/project.summary").text == "Tom & Jerry <demo>"
        assert summary.feature("describe").status == FeatureStatus.APPLIED

    def test_rerun_with_escaped_answer_changes_nothing(self, described, basic_pom):
        answers = {**COVERAGE_ANSWERS, "desc": "Tom & Jerry <demo>"}
        first, _ = run_with(described, basic_pom, answers)
        keep = {
            "conflict:properties/coverage.level": "keep",
            "conflict:profiles/[jacoco]": "keep",
            "conflict:properties/project.summary": "keep",
        }

        second, _ = run_with(described, first.result.document, {**answers, **keep})

        assert second.result.document == first.result.document


class TestRunLifecycle:
    """State machine transitions and failure handling."""

    def test_write_conflict_aborts_run(self, catalogue, basic_pom):
        run = WizardRun(catalogue, basic_pom)
        external = basic_pom.replace("1.0.0", "1.0.1")

        with pytest.raises(WriteConflict):
            drive(run, ScriptedAnswers(COVERAGE_ANSWERS), current_raw=external)

        assert run.state == RunState.ABORTED
        assert run.result is None

    def test_payload_breaking_document_aborts_run(self, catalogue_data, basic_pom):
        profile = catalogue_data["features"][1]["fragments"][1]
        profile["xml"] = profile["xml"].replace("<id>jacoco</id>", "<id>coverage</id>")
        run = WizardRun(Catalogue(**catalogue_data), basic_pom)

        with pytest.raises(CatalogueError, match="identity"):
            drive(run, ScriptedAnswers(COVERAGE_ANSWERS))

        assert run.state == RunState.ABORTED
        assert run.result is None

    def test_unchanged_document_passes_concurrency_check(self, catalogue, basic_pom):
        run = WizardRun(catalogue, basic_pom)

        summary = drive(run, ScriptedAnswers(COVERAGE_ANSWERS), current_raw=basic_pom)

        assert summary.state == RunState.DONE

    def test_missing_scripted_answer(self, catalogue, basic_pom):
        run = WizardRun(catalogue, basic_pom)

        with pytest.raises(UnansweredQuestion, match="coverage_threshold"):
            drive(run, ScriptedAnswers({"coverage": "yes"}))

        assert run.result is None

    def test_cancel_before_writing(self, catalogue, basic_pom):
        run = WizardRun(catalogue, basic_pom)
        run.next_question()

        run.cancel()

        assert run.state == RunState.ABORTED
        assert run.next_question() is DONE

    def test_start_twice_rejected(self, catalogue, basic_pom):
        run = WizardRun(catalogue, basic_pom)
        run.start()

        with pytest.raises(RuntimeError):
            run.start()

    def test_summary_to_dict(self, catalogue, basic_pom):
        _, summary = run_with(catalogue, basic_pom, COVERAGE_ANSWERS)

        data = summary.to_dict()

        assert data["state"] == "Done"
        coverage = next(f for f in data["features"] if f["feature"] == "coverage")
        assert coverage["status"] == "applied"
        assert {"kind": "AddProperty", "target": "properties/coverage.level", "status": "applied"} in coverage["ops"]


class TestFeatureOutcome:
    """Tests for FeatureOutcome.from_ops()."""

    def outcome(self, *statuses):
        op = MutationOp(kind=OpKind.ADD_PROPERTY, target="properties/a", payload="<a>1</a>", feature="f")
        return FeatureOutcome.from_ops("f", [OpOutcome(op=op, status=s) for s in statuses])

    @pytest.mark.parametrize(
        "statuses, expected",
        [
            ((OpStatus.APPLIED, OpStatus.KEPT_EXISTING), FeatureStatus.APPLIED),
            ((OpStatus.SHADOWED, OpStatus.OVERRIDDEN), FeatureStatus.OVERRIDDEN),
            ((OpStatus.KEPT_EXISTING, OpStatus.ALREADY_PRESENT), FeatureStatus.SKIPPED_KEPT_EXISTING),
            ((OpStatus.ALREADY_PRESENT, OpStatus.SHADOWED), FeatureStatus.ALREADY_PRESENT),
            ((OpStatus.SHADOWED,), FeatureStatus.SKIPPED_SHADOWED),
        ],
    )
    def test_status_from_ops(self, statuses, expected):
        assert self.outcome(*statuses).status == expected
