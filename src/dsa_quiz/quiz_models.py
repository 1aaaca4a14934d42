"""Quiz data models — quiz definitions, submissions and grading results."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import Field

from dsa_quiz.question_models import CamelModel, Question


class AttemptStatus(str, Enum):
    """Lifecycle of a quiz attempt. Transitions only move forward."""

    in_progress = "in_progress"
    submitted = "submitted"
    reviewing = "reviewing"


class GradedBy(str, Enum):
    """How a question's verdict was reached."""

    rules = "rules"  # type-specific comparison
    execution = "execution"  # test cases run by the code runner
    heuristic = "heuristic"  # fallback for code questions


class Quiz(CamelModel):
    """An ordered, fixed list of questions with a pass threshold."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    title: str = "Untitled Quiz"
    description: str = ""
    question_ids: list[str] = Field(default_factory=list)
    passing_score: int = Field(default=70, ge=0, le=100)  # percent
    time_limit: int | None = Field(default=None, gt=0)  # seconds, None = untimed
    is_published: bool = True


class QuizDetail(Quiz):
    """A quiz with its questions resolved, in quiz order."""

    questions: list[Question] = Field(default_factory=list)


class Submission(CamelModel):
    """Everything the client sends when a learner submits a quiz."""

    answers: dict[str, Any] = Field(default_factory=dict)  # questionId -> answer
    hints_used: dict[str, list[str]] = Field(default_factory=dict)  # questionId -> hintIds
    time_spent: int = Field(default=0, ge=0)  # seconds
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    attempt_key: str | None = None  # client session id, makes resubmission idempotent


class TestCaseResult(CamelModel):
    """Outcome of running submitted code against one test case."""

    __test__ = False  # not a pytest class

    id: str
    passed: bool
    input: str = ""
    expected_output: str = ""
    actual_output: str = ""
    execution_time: str | None = None
    error: str | None = None


class QuestionResult(CamelModel):
    question_id: str
    is_correct: bool
    xp_earned: int = 0
    hints_used: int = 0
    graded_by: GradedBy = GradedBy.rules
    test_results: list[TestCaseResult] | None = None


class QuizResults(CamelModel):
    """The grading response returned after a submission."""

    attempt_id: str | None = None
    score: int  # percent, 0-100
    correct_count: int
    total_count: int
    xp_earned: int
    time_spent: int = 0
    passed: bool
    question_results: list[QuestionResult]
