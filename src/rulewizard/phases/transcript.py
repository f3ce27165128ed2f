"""
Answer transcripts - serialize/deserialize a run's answers for replay.

Saves every recorded answer (superseded ones included) so that `--answers`
can feed the same answers into a later run without prompting.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Union

import yaml

from ..errors import UnansweredQuestion
from ..models.questions import Answer, QuestionNode
from .run import WizardRun
from .sequencer import AnswerValue

logger = logging.getLogger(__name__)

# Schema version for forward compatibility
TRANSCRIPT_VERSION = 1


@dataclass
class Transcript:
    """Answers captured during one run."""

    catalogue: str
    catalogue_version: str
    run_id: str = ""
    answers: list[Answer] = field(default_factory=list)

    def latest(self) -> dict[str, tuple[str, ...]]:
        current: dict[str, tuple[str, ...]] = {}
        for answer in self.answers:
            current[answer.key] = answer.values
        return current


def save_transcript(run: WizardRun, path: Union[str, Path]) -> Path:
    """
    Serialize the answers of a run to JSON.

    Args:
        run: Run whose answers to save
        path: Destination file

    Returns:
        Path to the saved file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "version": TRANSCRIPT_VERSION,
        "catalogue": run.catalogue.name,
        "catalogue_version": run.catalogue.version,
        "run_id": run.run_id,
        "answers": [_serialize_answer(a) for a in run.responses.records()],
    }

    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"Saved transcript: {path}")
    return path


def load_transcript(path: Union[str, Path]) -> Transcript:
    """
    Deserialize a transcript saved by save_transcript().

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a transcript
    """
    path = Path(path)
    data = json.loads(path.read_text(encoding="utf-8"))

    if not isinstance(data, dict) or "answers" not in data:
        raise ValueError(f"Not a transcript file: {path}")

    version = data.get("version", 0)
    if version != TRANSCRIPT_VERSION:
        logger.warning(f"Transcript version mismatch: {version} != {TRANSCRIPT_VERSION}")

    return Transcript(
        catalogue=data.get("catalogue", ""),
        catalogue_version=str(data.get("catalogue_version", "")),
        run_id=data.get("run_id", ""),
        answers=[_deserialize_answer(a) for a in data["answers"]],
    )


# --- Serialization helpers ---

def _serialize_answer(answer: Answer) -> dict:
    return {
        "key": answer.key,
        "values": list(answer.values),
        "captured_at": answer.captured_at.isoformat(),
    }


def _deserialize_answer(data: dict) -> Answer:
    return Answer(
        key=data["key"],
        values=tuple(str(v) for v in data["values"]),
        captured_at=datetime.fromisoformat(data["captured_at"]),
    )


class ScriptedAnswers:
    """
    Answer source that replays prepared answers.

    Never invents an answer: a question with no prepared answer raises
    UnansweredQuestion.
    """

    def __init__(self, answers: dict[str, AnswerValue]):
        self.answers = dict(answers)
        self.used: list[str] = []

    def __call__(self, node: QuestionNode) -> AnswerValue:
        if node.key not in self.answers:
            raise UnansweredQuestion(f"No prepared answer for '{node.key}'", in_flight=node.key)
        self.used.append(node.key)
        return self.answers[node.key]

    def unused(self) -> list[str]:
        return [k for k in self.answers if k not in self.used]

    @classmethod
    def from_transcript(cls, transcript: Transcript) -> "ScriptedAnswers":
        return cls({key: list(values) for key, values in transcript.latest().items()})

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ScriptedAnswers":
        """
        Load answers from a transcript (.json) or a plain YAML mapping.

        YAML scalars are read as text, so `coverage: yes` means "yes".
        """
        path = Path(path)
        if path.suffix == ".json":
            return cls.from_transcript(load_transcript(path))

        data = yaml.load(path.read_text(encoding="utf-8"), Loader=yaml.BaseLoader)
        if not isinstance(data, dict):
            raise ValueError(f"Answers file must be a mapping of question key to answer: {path}")
        return cls(data)
