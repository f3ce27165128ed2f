"""Unit tests for answer transcripts and scripted answers."""

import json
import logging

import pytest

from rulewizard.errors import UnansweredQuestion
from rulewizard.models import QuestionNode
from rulewizard.phases import ScriptedAnswers, WizardRun, drive, load_transcript, save_transcript
from rulewizard.phases.transcript import TRANSCRIPT_VERSION


ANSWERS = {"coverage": "yes", "coverage_threshold": "80", "extras": ["surefire", "enforcer"]}


@pytest.fixture
def finished_run(catalogue, basic_pom):
    run = WizardRun(catalogue, basic_pom, run_id="abc123")
    drive(run, ScriptedAnswers(ANSWERS))
    return run


class TestSaveLoad:
    """Tests for save_transcript() and load_transcript()."""

    def test_round_trip(self, finished_run, tmp_path):
        path = save_transcript(finished_run, tmp_path / "runs" / "answers.json")

        transcript = load_transcript(path)

        assert transcript.catalogue == "coverage-test"
        assert transcript.catalogue_version == "1.0"
        assert transcript.run_id == "abc123"
        assert transcript.latest() == {
            "coverage": ("yes",),
            "coverage_threshold": ("80",),
            "extras": ("enforcer", "surefire"),
        }

    def test_file_layout(self, finished_run, tmp_path):
        path = save_transcript(finished_run, tmp_path / "answers.json")

        data = json.loads(path.read_text(encoding="utf-8"))

        assert data["version"] == TRANSCRIPT_VERSION
        assert [a["key"] for a in data["answers"]] == ["coverage", "coverage_threshold", "extras"]
        assert "captured_at" in data["answers"][0]

    def test_replay_produces_same_document(self, finished_run, catalogue, basic_pom, tmp_path):
        path = save_transcript(finished_run, tmp_path / "answers.json")

        replay = WizardRun(catalogue, basic_pom)
        drive(replay, ScriptedAnswers.from_file(path))

        assert replay.result.document == finished_run.result.document

    def test_not_a_transcript(self, tmp_path):
        path = tmp_path / "other.json"
        path.write_text('{"hello": "world"}', encoding="utf-8")

        with pytest.raises(ValueError, match="Not a transcript"):
            load_transcript(path)

    def test_version_mismatch_warns(self, tmp_path, caplog):
        path = tmp_path / "old.json"
        path.write_text(json.dumps({"version": 0, "catalogue": "c", "answers": []}), encoding="utf-8")

        with caplog.at_level(logging.WARNING):
            transcript = load_transcript(path)

        assert transcript.answers == []
        assert "version mismatch" in caplog.text


class TestScriptedAnswers:
    """Tests for ScriptedAnswers."""

    node = QuestionNode(key="coverage", ordinal=0, prompt="?", options=("yes", "no"))

    def test_returns_prepared_answer(self):
        source = ScriptedAnswers({"coverage": "yes", "extras": "none"})

        assert source(self.node) == "yes"
        assert source.used == ["coverage"]
        assert source.unused() == ["extras"]

    def test_missing_answer_raises(self):
        source = ScriptedAnswers({})

        with pytest.raises(UnansweredQuestion) as exc_info:
            source(self.node)

        assert exc_info.value.in_flight == "coverage"

    def test_yaml_answers_read_as_text(self, tmp_path):
        path = tmp_path / "answers.yaml"
        path.write_text("coverage: yes\ncoverage_threshold: 80\nextras: [surefire]\n", encoding="utf-8")

        source = ScriptedAnswers.from_file(path)

        assert source.answers == {"coverage": "yes", "coverage_threshold": "80", "extras": ["surefire"]}

    def test_yaml_must_be_a_mapping(self, tmp_path):
        path = tmp_path / "answers.yaml"
        path.write_text("- yes\n- no\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            ScriptedAnswers.from_file(path)
