"""Attempt persistence and the XP / progress ledger.

Recording an attempt, its per-question answers, the user's XP and the
running progress aggregate happens in one transaction: either all of it is
written or none of it is.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import ConfigDict
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, relationship

from dsa_quiz.db import DATABASE_URL, Base, make_engine, make_session_factory
from dsa_quiz.question_models import CamelModel, Question
from dsa_quiz.quiz_models import GradedBy, QuestionResult, Quiz, QuizResults, Submission

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    xp = Column(Integer, nullable=False, default=0)
    last_active_at = Column(DateTime(timezone=True), nullable=True)


class UserProgress(Base):
    __tablename__ = "user_progress"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    total_xp = Column(Integer, nullable=False, default=0)
    total_quizzes = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=False, default=0)
    last_quiz_at = Column(DateTime(timezone=True), nullable=True)


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (UniqueConstraint("user_id", "attempt_key"),)

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    quiz_id = Column(String, index=True, nullable=False)
    attempt_key = Column(String, nullable=True)  # client session id
    score = Column(Integer, nullable=False)
    xp_earned = Column(Integer, nullable=False)
    correct_count = Column(Integer, nullable=False)
    total_count = Column(Integer, nullable=False)
    passed = Column(Boolean, nullable=False)
    time_spent = Column(Integer, nullable=False)  # seconds
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=False)

    answers = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AttemptAnswer.position",
    )


class AttemptAnswer(Base):
    __tablename__ = "attempt_answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attempt_id = Column(String, ForeignKey("quiz_attempts.id"), index=True, nullable=False)
    position = Column(Integer, nullable=False)  # order within the quiz
    question_id = Column(String, nullable=False)
    # The question as it was graded; later edits must not change history
    question_snapshot = Column(JSON, nullable=False)
    user_answer = Column(JSON, nullable=True)
    is_correct = Column(Boolean, nullable=False)
    xp_earned = Column(Integer, nullable=False)
    hints_used = Column(Integer, nullable=False)
    hint_ids = Column(JSON, nullable=False)
    graded_by = Column(String, nullable=False)
    test_results = Column(JSON, nullable=True)

    attempt = relationship("QuizAttempt", back_populates="answers")


class SubmissionError(RuntimeError):
    """Grading succeeded but the attempt could not be recorded."""


# --- Read models ---


class UserStats(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    xp: int = 0
    total_xp: int = 0
    total_quizzes: int = 0
    total_questions: int = 0
    correct_answers: int = 0
    accuracy: int = 0  # percent of answered questions that were correct
    last_quiz_at: datetime | None = None


class AttemptAnswerOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    question_id: str
    question_snapshot: dict
    user_answer: Any = None
    is_correct: bool
    xp_earned: int
    hints_used: int
    hint_ids: list[str]
    graded_by: str


class AttemptSummary(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str
    score: int
    xp_earned: int
    correct_count: int
    total_count: int
    passed: bool
    time_spent: int
    completed_at: datetime


class AttemptDetail(AttemptSummary):
    user_id: str
    answers: list[AttemptAnswerOut]


class AttemptLedger:
    """Stores graded attempts and credits XP, one transaction per attempt."""

    def __init__(self, url: str = DATABASE_URL, engine: Engine | None = None) -> None:
        self.engine = engine or make_engine(url)
        Base.metadata.create_all(bind=self.engine)
        self._sessions = make_session_factory(self.engine)

    def _find_existing(self, db: Session, user_id: str, attempt_key: str | None) -> str | None:
        if not attempt_key:
            return None
        return db.scalar(
            select(QuizAttempt.id).where(
                QuizAttempt.user_id == user_id,
                QuizAttempt.attempt_key == attempt_key,
            )
        )

    def _ensure_user(self, user_id: str) -> None:
        """Create the user's XP and progress rows if they do not exist yet."""
        try:
            with self._sessions.begin() as db:
                if db.get(User, user_id) is None:
                    db.add(User(id=user_id, xp=0))
                if db.get(UserProgress, user_id) is None:
                    db.add(
                        UserProgress(
                            user_id=user_id,
                            total_xp=0,
                            total_quizzes=0,
                            total_questions=0,
                            correct_answers=0,
                        )
                    )
        except IntegrityError:
            # A concurrent submission created them first
            logger.debug("Ledger rows for user %s already exist", user_id)

    def _credit(self, db: Session, user_id: str, results: QuizResults) -> None:
        # Increments run in SQL so concurrent submissions cannot overwrite each other
        now = _now()
        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(xp=User.xp + results.xp_earned, last_active_at=now)
        )
        db.execute(
            update(UserProgress)
            .where(UserProgress.user_id == user_id)
            .values(
                total_xp=UserProgress.total_xp + results.xp_earned,
                total_quizzes=UserProgress.total_quizzes + 1,
                total_questions=UserProgress.total_questions + results.total_count,
                correct_answers=UserProgress.correct_answers + results.correct_count,
                last_quiz_at=now,
            )
        )

    def _stored_results(self, db: Session, attempt_id: str) -> QuizResults:
        attempt = db.get(QuizAttempt, attempt_id)
        return QuizResults(
            attempt_id=attempt.id,
            score=attempt.score,
            correct_count=attempt.correct_count,
            total_count=attempt.total_count,
            xp_earned=attempt.xp_earned,
            time_spent=attempt.time_spent,
            passed=attempt.passed,
            question_results=[
                QuestionResult(
                    question_id=a.question_id,
                    is_correct=a.is_correct,
                    xp_earned=a.xp_earned,
                    hints_used=a.hints_used,
                    graded_by=GradedBy(a.graded_by),
                    test_results=a.test_results,
                )
                for a in attempt.answers
            ],
        )

    def recorded_results(self, user_id: str, attempt_key: str | None) -> QuizResults | None:
        """Results already stored for this attempt key, if any."""
        try:
            with self._sessions() as db:
                existing = self._find_existing(db, user_id, attempt_key)
                if existing is None:
                    return None
                return self._stored_results(db, existing)
        except SQLAlchemyError as e:
            logger.error("Failed to look up attempt for user %s: %s", user_id, e)
            raise SubmissionError("Failed to look up quiz attempt") from e

    def record(
        self,
        user_id: str,
        quiz: Quiz,
        questions: list[Question],
        submission: Submission,
        results: QuizResults,
    ) -> QuizResults:
        """Persist a graded attempt and credit its XP.

        Returns ``results`` with the new attempt id. Resubmitting an attempt
        key that is already recorded returns the stored results instead and
        credits nothing.
        """
        by_id = {r.question_id: r for r in results.question_results}
        try:
            self._ensure_user(user_id)
            with self._sessions.begin() as db:
                existing = self._find_existing(db, user_id, submission.attempt_key)
                if existing is not None:
                    logger.info(
                        "Attempt %s already recorded for user %s", existing, user_id
                    )
                    return self._stored_results(db, existing)

                attempt = QuizAttempt(
                    id=uuid.uuid4().hex,
                    user_id=user_id,
                    quiz_id=quiz.id,
                    attempt_key=submission.attempt_key,
                    score=results.score,
                    xp_earned=results.xp_earned,
                    correct_count=results.correct_count,
                    total_count=results.total_count,
                    passed=results.passed,
                    time_spent=submission.time_spent,
                    started_at=submission.started_at,
                    completed_at=_now(),
                )
                for position, question in enumerate(questions):
                    result = by_id[question.id]
                    attempt.answers.append(
                        AttemptAnswer(
                            position=position,
                            question_id=question.id,
                            question_snapshot=question.model_dump(mode="json", by_alias=True),
                            user_answer=submission.answers.get(question.id),
                            is_correct=result.is_correct,
                            xp_earned=result.xp_earned,
                            hints_used=result.hints_used,
                            hint_ids=list(submission.hints_used.get(question.id, [])),
                            graded_by=result.graded_by.value,
                            test_results=(
                                [r.model_dump(mode="json") for r in result.test_results]
                                if result.test_results is not None
                                else None
                            ),
                        )
                    )
                db.add(attempt)
                self._credit(db, user_id, results)
                attempt_id = attempt.id
        except IntegrityError as e:
            # A concurrent submission with the same key won the race
            stored = self.recorded_results(user_id, submission.attempt_key)
            if stored is not None:
                return stored
            logger.error("Failed to record attempt for user %s: %s", user_id, e)
            raise SubmissionError("Failed to record quiz attempt") from e
        except SQLAlchemyError as e:
            logger.error("Failed to record attempt for user %s: %s", user_id, e)
            raise SubmissionError("Failed to record quiz attempt") from e

        logger.info(
            "Recorded attempt %s for user %s (+%d XP)", attempt_id, user_id, results.xp_earned
        )
        return results.model_copy(update={"attempt_id": attempt_id})

    def stats(self, user_id: str) -> UserStats:
        with self._sessions() as db:
            user = db.get(User, user_id)
            progress = db.get(UserProgress, user_id)
            if user is None or progress is None:
                return UserStats(user_id=user_id)
            accuracy = 0
            if progress.total_questions:
                accuracy = (
                    200 * progress.correct_answers + progress.total_questions
                ) // (2 * progress.total_questions)
            return UserStats(
                user_id=user_id,
                xp=user.xp,
                total_xp=progress.total_xp,
                total_quizzes=progress.total_quizzes,
                total_questions=progress.total_questions,
                correct_answers=progress.correct_answers,
                accuracy=accuracy,
                last_quiz_at=progress.last_quiz_at,
            )

    def recent_attempts(self, user_id: str, limit: int = 10) -> list[AttemptSummary]:
        with self._sessions() as db:
            rows = db.scalars(
                select(QuizAttempt)
                .where(QuizAttempt.user_id == user_id)
                .order_by(QuizAttempt.completed_at.desc())
                .limit(limit)
            ).all()
            return [AttemptSummary.model_validate(row) for row in rows]

    def get_attempt(self, attempt_id: str) -> AttemptDetail:
        with self._sessions() as db:
            attempt = db.get(QuizAttempt, attempt_id)
            if attempt is None:
                raise LookupError(f"Attempt not found: {attempt_id}")
            return AttemptDetail.model_validate(attempt)
