"""Quiz session state machine — one learner's pass through one quiz.

State changes go through ``quiz_reducer``: an action in, a new frozen
``QuizState`` out. ``QuizSession`` is the handle the rest of the client
works with; it is also a context manager that makes itself the
``active_session()`` for code that has no explicit reference to it.

Status only moves forward: in_progress -> submitted -> reviewing.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

from dsa_quiz.grading import hint_penalty, reference_answer
from dsa_quiz.question_models import CamelModel, Question
from dsa_quiz.quiz_models import (
    AttemptStatus,
    QuestionResult,
    QuizDetail,
    QuizResults,
    Submission,
)

logger = logging.getLogger(__name__)


class QuizState(CamelModel):
    model_config = ConfigDict(frozen=True)

    quiz_id: str
    questions: list[Question]
    current_index: int = 0
    answers: dict[str, Any] = Field(default_factory=dict)
    hints_used: dict[str, list[str]] = Field(default_factory=dict)
    time_remaining: int | None = None  # seconds, None = untimed
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: AttemptStatus = AttemptStatus.in_progress
    results: QuizResults | None = None


# --- Actions ---


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


class SetAnswer(_Action):
    question_id: str
    answer: Any


class UseHint(_Action):
    question_id: str
    hint_id: str


class NextQuestion(_Action):
    pass


class PrevQuestion(_Action):
    pass


class GoToQuestion(_Action):
    index: int


class TickTimer(_Action):
    pass


class SubmitQuiz(_Action):
    pass


class SetResults(_Action):
    results: QuizResults


class StartReview(_Action):
    pass


QuizAction = Union[
    SetAnswer,
    UseHint,
    NextQuestion,
    PrevQuestion,
    GoToQuestion,
    TickTimer,
    SubmitQuiz,
    SetResults,
    StartReview,
]


def _clamp(index: int, count: int) -> int:
    return max(0, min(index, count - 1))


def quiz_reducer(state: QuizState, action: QuizAction) -> QuizState:
    """Apply one action. Actions that are not allowed in the current status
    return the state unchanged."""
    in_progress = state.status == AttemptStatus.in_progress

    if isinstance(action, SetAnswer):
        if not in_progress:
            return state
        return state.model_copy(
            update={"answers": {**state.answers, action.question_id: action.answer}}
        )

    if isinstance(action, UseHint):
        current = state.hints_used.get(action.question_id, [])
        if not in_progress or action.hint_id in current:
            return state
        return state.model_copy(
            update={
                "hints_used": {
                    **state.hints_used,
                    action.question_id: [*current, action.hint_id],
                }
            }
        )

    if isinstance(action, NextQuestion):
        index = _clamp(state.current_index + 1, len(state.questions))
        return state.model_copy(update={"current_index": index})

    if isinstance(action, PrevQuestion):
        index = _clamp(state.current_index - 1, len(state.questions))
        return state.model_copy(update={"current_index": index})

    if isinstance(action, GoToQuestion):
        index = _clamp(action.index, len(state.questions))
        return state.model_copy(update={"current_index": index})

    if isinstance(action, TickTimer):
        if not in_progress or state.time_remaining is None or state.time_remaining <= 0:
            return state
        remaining = state.time_remaining - 1
        update: dict[str, Any] = {"time_remaining": remaining}
        if remaining == 0:
            update["status"] = AttemptStatus.submitted
        return state.model_copy(update=update)

    if isinstance(action, SubmitQuiz):
        if not in_progress:
            return state
        return state.model_copy(update={"status": AttemptStatus.submitted})

    if isinstance(action, SetResults):
        if state.status != AttemptStatus.submitted:
            return state
        return state.model_copy(update={"results": action.results})

    if isinstance(action, StartReview):
        if state.status != AttemptStatus.submitted or state.results is None:
            return state
        return state.model_copy(
            update={"status": AttemptStatus.reviewing, "current_index": 0}
        )

    return state


class ReviewEntry(CamelModel):
    """One question replayed in review mode with its correctness overlay."""

    question: Question
    answer: Any = None
    result: QuestionResult | None = None
    hints_used: list[str] = Field(default_factory=list)
    correct_answer: Any = None
    explanation: str | None = None


_active_session: ContextVar[QuizSession | None] = ContextVar(
    "active_quiz_session", default=None
)


def active_session() -> QuizSession:
    """Return the session bound by the enclosing ``with QuizSession(...)``."""
    session = _active_session.get()
    if session is None:
        raise RuntimeError("active_session() must be used within an open QuizSession")
    return session


class QuizSession:
    """Handle over a ``QuizState`` for one attempt.

    Created per attempt and discarded once the results have been reviewed or
    the attempt is abandoned.
    """

    def __init__(
        self,
        quiz_id: str,
        questions: list[Question],
        time_limit: int | None = None,
        started_at: datetime | None = None,
    ) -> None:
        self.attempt_key = uuid.uuid4().hex
        self.state = QuizState(
            quiz_id=quiz_id,
            questions=questions,
            time_remaining=time_limit or None,
            started_at=started_at or datetime.now(timezone.utc),
        )
        self._token: Token | None = None

    @classmethod
    def for_quiz(cls, quiz: QuizDetail) -> QuizSession:
        return cls(quiz.id, quiz.questions, quiz.time_limit)

    def __enter__(self) -> QuizSession:
        self._token = _active_session.set(self)
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._token is not None:
            _active_session.reset(self._token)
            self._token = None

    def dispatch(self, action: QuizAction) -> QuizState:
        self.state = quiz_reducer(self.state, action)
        return self.state

    # --- Read-only views ---

    @property
    def status(self) -> AttemptStatus:
        return self.state.status

    @property
    def current_question(self) -> Question | None:
        questions = self.state.questions
        if 0 <= self.state.current_index < len(questions):
            return questions[self.state.current_index]
        return None

    @property
    def can_go_next(self) -> bool:
        return self.state.current_index < len(self.state.questions) - 1

    @property
    def can_go_prev(self) -> bool:
        return self.state.current_index > 0

    @property
    def progress(self) -> float:
        """Position in the quiz as a percentage."""
        if not self.state.questions:
            return 0.0
        return (self.state.current_index + 1) / len(self.state.questions) * 100

    @property
    def answered_count(self) -> int:
        return len(self.state.answers)

    def current_hint_penalty(self) -> int:
        """XP the current question would lose to the hints revealed so far."""
        question = self.current_question
        if question is None:
            return 0
        return hint_penalty(question, self.state.hints_used.get(question.id))

    # --- Events ---

    def set_answer(self, answer: Any) -> None:
        question = self.current_question
        if question is not None:
            self.dispatch(SetAnswer(question_id=question.id, answer=answer))

    def use_hint(self, hint_id: str) -> None:
        question = self.current_question
        if question is not None:
            self.dispatch(UseHint(question_id=question.id, hint_id=hint_id))

    def next_question(self) -> None:
        self.dispatch(NextQuestion())

    def prev_question(self) -> None:
        self.dispatch(PrevQuestion())

    def go_to(self, index: int) -> None:
        self.dispatch(GoToQuestion(index=index))

    def tick(self) -> None:
        before = self.state.status
        self.dispatch(TickTimer())
        if before != self.state.status:
            logger.info("Time is up for quiz %s, submitting", self.state.quiz_id)

    def submit(self) -> None:
        self.dispatch(SubmitQuiz())

    def apply_results(self, results: QuizResults) -> None:
        """Store graded results and replay the quiz from the first question."""
        self.dispatch(SetResults(results=results))
        self.dispatch(StartReview())

    # --- Payloads ---

    def to_submission(self, now: datetime | None = None) -> Submission:
        now = now or datetime.now(timezone.utc)
        elapsed = int((now - self.state.started_at).total_seconds())
        return Submission(
            answers=dict(self.state.answers),
            hints_used={k: list(v) for k, v in self.state.hints_used.items()},
            time_spent=max(0, elapsed),
            started_at=self.state.started_at,
            attempt_key=self.attempt_key,
        )

    def review_entries(self) -> list[ReviewEntry]:
        results = self.state.results
        by_id = {r.question_id: r for r in results.question_results} if results else {}
        return [
            ReviewEntry(
                question=q,
                answer=self.state.answers.get(q.id),
                result=by_id.get(q.id),
                hints_used=self.state.hints_used.get(q.id, []),
                correct_answer=reference_answer(q),
                explanation=q.explanation,
            )
            for q in self.state.questions
        ]


async def run_timer(session: QuizSession, interval: float = 1.0) -> None:
    """Tick ``session`` once per ``interval`` until it is no longer running."""
    while (
        session.status == AttemptStatus.in_progress
        and session.state.time_remaining is not None
        and session.state.time_remaining > 0
    ):
        await asyncio.sleep(interval)
        session.tick()
