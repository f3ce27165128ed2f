"""
Wizard run - the per-run context object and its state machine.

    Init → AskingQuestions → Planning → ResolvingConflicts ⟲ → Writing → Done
    Init → Aborted (malformed document); any fatal error → Aborted

Nothing outside the run is touched until finish(): the snapshot is never
mutated, so abandoning a run at any earlier point has no side effect.
"""

import logging
import uuid
from typing import Callable, Iterable, Optional, Union

from ..errors import InvalidAnswer, MalformedDocument, RuleWizardError, UnansweredQuestion
from ..models.catalogue import Catalogue
from ..models.mutations import Approved, MutationOp, NeedsDecision, Suppressed
from ..models.questions import CONFLICT_KEY_PREFIX, Answer, QuestionNode
from ..models.run_state import FeatureOutcome, FeatureStatus, OpOutcome, OpStatus, RunState, RunSummary
from .conflicts import ConflictResolver
from .document_reader import DocumentSnapshot, parse
from .document_writer import DocumentWriter, WriteResult
from .planner import MutationPlanner
from .response_store import ResponseStore
from .sequencer import DONE, AnswerValue, QuestionSequencer, _Done

logger = logging.getLogger(__name__)

AnswerSource = Callable[[QuestionNode], AnswerValue]


class WizardRun:
    """
    One interactive session against one document.

    Usage:
        run = WizardRun(catalogue, pom_text)
        while (question := run.next_question()) is not DONE:
            run.submit_answer(question.key, ask(question))
        summary = run.finish()
        new_pom = run.result.document
    """

    def __init__(
        self,
        catalogue: Catalogue,
        raw_document: Union[str, bytes],
        existing_files: Iterable[str] = (),
        writer: Optional[DocumentWriter] = None,
        run_id: Optional[str] = None,
    ):
        self.catalogue = catalogue
        self.raw_document = raw_document
        self.existing_files = frozenset(existing_files)
        self.writer = writer or DocumentWriter()
        self.run_id = run_id or uuid.uuid4().hex[:8]

        self.state = RunState.INIT
        self.snapshot: Optional[DocumentSnapshot] = None
        self.responses = ResponseStore(catalogue.question_keys())
        self.planner = MutationPlanner(catalogue)
        self.sequencer: Optional[QuestionSequencer] = None
        self.resolver: Optional[ConflictResolver] = None

        self.plan: list[MutationOp] = []
        # Per plan position: decided status, or None while awaiting a decision
        self._statuses: list[Optional[OpStatus]] = []
        self._final_ops: list[MutationOp] = []
        self._awaiting: dict[str, int] = {}

        self.result: Optional[WriteResult] = None
        self.error: Optional[RuleWizardError] = None

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------

    def _transition(self, state: RunState) -> None:
        logger.info(
            f"Run {self.run_id}: {self.state.value} → {state.value}",
            extra={"run_id": self.run_id, "state": state.value},
        )
        self.state = state

    def _abort(self, error: RuleWizardError) -> None:
        self.error = error
        logger.error(
            f"Run {self.run_id} aborted: {error}",
            extra={"run_id": self.run_id, "state": RunState.ABORTED.value},
        )
        self.state = RunState.ABORTED

    def cancel(self) -> None:
        """Abandon the run. Allowed any time before writing starts."""
        if self.state in (RunState.WRITING, RunState.DONE, RunState.ABORTED):
            return
        self._abort(RuleWizardError("Run cancelled"))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Parse the document and start asking questions.

        Raises:
            MalformedDocument: If the document cannot be parsed; the run is
                aborted before any question is asked
        """
        if self.state != RunState.INIT:
            raise RuntimeError(f"Run already started ({self.state.value})")

        try:
            self.snapshot = parse(self.raw_document, files=self.existing_files)
        except MalformedDocument as e:
            self._abort(e)
            raise

        self.sequencer = QuestionSequencer(self.catalogue, self.responses, self.snapshot)
        self.resolver = ConflictResolver(self.snapshot, first_ordinal=len(self.catalogue.questions))
        self._transition(RunState.ASKING_QUESTIONS)

    def next_question(self) -> Union[QuestionNode, _Done]:
        """
        Return the next question to ask, or DONE when the plan is ready to write.

        Moves from asking template questions to planning and conflict
        resolution on its own.
        """
        if self.state == RunState.INIT:
            self.start()

        if self.state not in (RunState.ASKING_QUESTIONS, RunState.RESOLVING_CONFLICTS):
            return DONE

        try:
            node = self.sequencer.next_question()
            if self.state == RunState.ASKING_QUESTIONS and self.sequencer.templates_exhausted:
                self._plan()
                node = self.sequencer.next_question()
        except RuleWizardError as e:
            self._abort(e)
            raise

        return node

    def submit_answer(self, key: str, value: AnswerValue) -> Answer:
        """
        Answer the pending question.

        Raises:
            InvalidAnswer: The run stays where it is and the same question
                is returned by the next call to next_question()
        """
        if self.state not in (RunState.ASKING_QUESTIONS, RunState.RESOLVING_CONFLICTS):
            raise InvalidAnswer(key, value, f"run is not accepting answers ({self.state.value})")

        answer = self.sequencer.submit_answer(key, value)

        if key.startswith(CONFLICT_KEY_PREFIX):
            self._record_decision(answer)

        return answer

    def _plan(self) -> None:
        self._transition(RunState.PLANNING)
        self.plan = self.planner.plan(self.responses, self.snapshot)
        self._final_ops = list(self.plan)
        self._statuses = [None] * len(self.plan)

        self._transition(RunState.RESOLVING_CONFLICTS)
        for position, op in enumerate(self.plan):
            decision = self.resolver.resolve(op)
            if isinstance(decision, Approved):
                self._statuses[position] = OpStatus.APPLIED
            elif isinstance(decision, Suppressed):
                self._statuses[position] = OpStatus.SHADOWED
            elif isinstance(decision, NeedsDecision):
                self._awaiting[decision.question.key] = position
                self.sequencer.push_conflict(decision.question)

        logger.info(
            f"Planned {len(self.plan)} op(s), {len(self._awaiting)} conflict(s) to resolve",
            extra={"run_id": self.run_id, "state": self.state.value},
        )

    def _record_decision(self, answer: Answer) -> None:
        position = self._awaiting.pop(answer.key)
        override = self.resolver.record_decision(answer)
        if override is None:
            self._statuses[position] = OpStatus.KEPT_EXISTING
        else:
            self._final_ops[position] = override
            self._statuses[position] = OpStatus.OVERRIDDEN

    @property
    def ready_to_write(self) -> bool:
        return (
            self.state == RunState.RESOLVING_CONFLICTS
            and not self.sequencer.conflicts_outstanding
            and all(s is not None for s in self._statuses)
        )

    def approved_plan(self) -> list[MutationOp]:
        """Ops that may reach the writer, in planner order."""
        return [
            op
            for op, status in zip(self._final_ops, self._statuses)
            if status in (OpStatus.APPLIED, OpStatus.OVERRIDDEN)
        ]

    def finish(
        self,
        current_raw: Optional[str] = None,
        current_files: Optional[Iterable[str]] = None,
    ) -> RunSummary:
        """
        Write the approved plan.

        Args:
            current_raw: The document as it is now, to detect external edits
            current_files: Artifact files present now, to detect external edits

        Returns:
            RunSummary of the completed run

        Raises:
            UnansweredQuestion: If a question is still waiting for an answer
            WriteConflict: If the document changed since the run started;
                the run is aborted and nothing is written
            CatalogueError: If an approved op would break the document; the
                run is aborted and nothing is written
        """
        node = self.next_question()
        if node is not DONE:
            raise UnansweredQuestion(f"Question '{node.key}' has not been answered", in_flight=node.key)
        if not self.ready_to_write:
            raise RuntimeError(f"Run cannot be finished from state {self.state.value}")

        self._transition(RunState.WRITING)
        try:
            self.result = self.writer.apply(self.snapshot, self.approved_plan(), current_raw, current_files)
        except RuleWizardError as e:
            self._abort(e)
            raise

        unchanged = {id(op) for op in self.result.unchanged}
        for position, op in enumerate(self._final_ops):
            if id(op) in unchanged and self._statuses[position] in (OpStatus.APPLIED, OpStatus.OVERRIDDEN):
                self._statuses[position] = OpStatus.ALREADY_PRESENT

        self._transition(RunState.DONE)
        return self.summary()

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def summary(self) -> RunSummary:
        """Structured summary of the run in its current state."""
        summary = RunSummary(
            catalogue=self.catalogue.name,
            catalogue_version=self.catalogue.version,
            state=self.state,
            answered={key: answer.value for key, answer in self.responses.latest().items()},
            error=str(self.error) if self.error else None,
        )

        if self.result is not None:
            summary.artifacts = sorted(self.result.artifacts)

        if self.state not in (RunState.RESOLVING_CONFLICTS, RunState.WRITING, RunState.DONE):
            return summary

        for feature in self.catalogue.features:
            outcomes = [
                OpOutcome(op=op, status=status)
                for op, status in zip(self._final_ops, self._statuses)
                if op.feature == feature.name and status is not None
            ]
            selected = any(op.feature == feature.name for op in self.plan)
            if not selected:
                summary.features.append(FeatureOutcome(feature.name, FeatureStatus.SKIPPED_NOT_SELECTED))
            elif outcomes:
                summary.features.append(FeatureOutcome.from_ops(feature.name, outcomes))

        return summary


def ask_all(
    run: WizardRun,
    answer_source: AnswerSource,
    on_invalid: Optional[Callable[[QuestionNode, InvalidAnswer], None]] = None,
) -> None:
    """
    Ask every question (template and conflict) until the run is ready to write.

    Args:
        run: Fresh WizardRun
        answer_source: Called with each question, returns the answer
        on_invalid: Called when an answer is rejected; the question is then
            asked again. If None, InvalidAnswer propagates.
    """
    while True:
        node = run.next_question()
        if node is DONE:
            return
        while True:
            value = answer_source(node)
            try:
                run.submit_answer(node.key, value)
                break
            except InvalidAnswer as e:
                if on_invalid is None:
                    raise
                on_invalid(node, e)


def drive(
    run: WizardRun,
    answer_source: AnswerSource,
    on_invalid: Optional[Callable[[QuestionNode, InvalidAnswer], None]] = None,
    current_raw: Optional[str] = None,
    current_files: Optional[Iterable[str]] = None,
) -> RunSummary:
    """
    Run a whole session with an answer callback.

    Args:
        run: Fresh WizardRun
        answer_source: Called with each question, returns the answer
        on_invalid: See ask_all()
        current_raw: Passed to finish() for concurrent-change detection
        current_files: Passed to finish() for concurrent-change detection

    Returns:
        RunSummary of the completed run
    """
    ask_all(run, answer_source, on_invalid)
    return run.finish(current_raw=current_raw, current_files=current_files)
