"""Quiz engine — JSON storage for questions and quizzes + attempt submission."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from dsa_quiz.attempts import AttemptLedger
from dsa_quiz.grading import grade_quiz
from dsa_quiz.judge0 import CodeRunner
from dsa_quiz.question_models import Difficulty, Question, QuestionType
from dsa_quiz.quiz_models import Quiz, QuizDetail, QuizResults, Submission

logger = logging.getLogger(__name__)

# Default storage directory (override with QUIZ_DIR env var)
QUIZ_DIR = Path(
    os.environ.get("QUIZ_DIR", Path(__file__).parent.parent.parent / "quizzes")
)


class QuizStore:
    """JSON file-based storage for questions and quizzes."""

    def __init__(self, directory: Path = QUIZ_DIR) -> None:
        self.directory = Path(directory)
        self.questions_dir = self.directory / "questions"
        self.quizzes_dir = self.directory / "quizzes"
        self.questions_dir.mkdir(parents=True, exist_ok=True)
        self.quizzes_dir.mkdir(parents=True, exist_ok=True)

    # --- Questions ---

    def _question_path(self, question_id: str) -> Path:
        return self.questions_dir / f"{question_id}.json"

    def save_question(self, question: Question) -> Question:
        path = self._question_path(question.id)
        path.write_text(
            json.dumps(question.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)
        )
        return question

    def load_question(self, question_id: str) -> Question:
        path = self._question_path(question_id)
        if not path.exists():
            raise FileNotFoundError(f"Question not found: {question_id}")
        return Question.model_validate(json.loads(path.read_text()))

    def delete_question(self, question_id: str) -> None:
        path = self._question_path(question_id)
        if path.exists():
            path.unlink()

    def list_questions(
        self,
        question_type: QuestionType | None = None,
        difficulty: Difficulty | None = None,
        topic: str | None = None,
        is_public: bool | None = None,
        search: str | None = None,
    ) -> list[Question]:
        questions = []
        for p in sorted(self.questions_dir.glob("*.json")):
            try:
                q = Question.model_validate(json.loads(p.read_text()))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning("Skipping unreadable question file %s: %s", p.name, e)
                continue
            if question_type is not None and q.type != question_type:
                continue
            if difficulty is not None and q.difficulty != difficulty:
                continue
            if topic is not None and topic not in q.topics:
                continue
            if is_public is not None and q.is_public != is_public:
                continue
            if search:
                haystack = f"{q.title} {q.description or ''}".lower()
                if search.lower() not in haystack:
                    continue
            questions.append(q)
        return questions

    # --- Quizzes ---

    def _quiz_path(self, quiz_id: str) -> Path:
        return self.quizzes_dir / f"{quiz_id}.json"

    def save_quiz(self, quiz: Quiz) -> Quiz:
        path = self._quiz_path(quiz.id)
        path.write_text(
            json.dumps(quiz.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)
        )
        return quiz

    def has_quiz(self, quiz_id: str) -> bool:
        return self._quiz_path(quiz_id).exists()

    def load_quiz(self, quiz_id: str) -> Quiz:
        path = self._quiz_path(quiz_id)
        if not path.exists():
            raise FileNotFoundError(f"Quiz not found: {quiz_id}")
        return Quiz.model_validate(json.loads(path.read_text()))

    def delete_quiz(self, quiz_id: str) -> None:
        path = self._quiz_path(quiz_id)
        if path.exists():
            path.unlink()

    def list_quizzes(self) -> list[dict[str, object]]:
        quizzes = []
        for p in sorted(self.quizzes_dir.glob("*.json")):
            try:
                data = json.loads(p.read_text())
                quizzes.append(
                    {
                        "id": data.get("id", p.stem),
                        "title": data.get("title", "Untitled"),
                        "questionCount": len(data.get("questionIds", [])),
                        "passingScore": data.get("passingScore", 70),
                        "timeLimit": data.get("timeLimit"),
                    }
                )
            except (json.JSONDecodeError, KeyError):
                continue
        return quizzes

    def load_quiz_detail(self, quiz_id: str) -> QuizDetail:
        """Load a quiz with its questions, in quiz order."""
        quiz = self.load_quiz(quiz_id)
        questions = [self.load_question(qid) for qid in quiz.question_ids]
        return QuizDetail(**quiz.model_dump(), questions=questions)


def submit_attempt(
    user_id: str,
    quiz: QuizDetail,
    submission: Submission,
    ledger: AttemptLedger,
    runner: CodeRunner | None = None,
) -> QuizResults:
    """Grade a submission and record it, returning results with the attempt id.

    An attempt key that is already recorded is not graded again; its stored
    results are returned. Raises ``SubmissionError`` if the attempt could not
    be recorded; nothing is credited in that case.
    """
    stored = ledger.recorded_results(user_id, submission.attempt_key)
    if stored is not None:
        logger.info("Returning recorded attempt %s for user %s", stored.attempt_id, user_id)
        return stored
    results = grade_quiz(quiz, quiz.questions, submission, runner)
    return ledger.record(user_id, quiz, quiz.questions, submission, results)
