"""MCP tools for grading answers without recording an attempt."""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from dsa_quiz.grading import grade, grade_quiz, reference_answer
from dsa_quiz.judge0 import CodeRunner
from dsa_quiz.question_models import Question
from dsa_quiz.quiz_engine import QuizStore
from dsa_quiz.quiz_models import Submission


def grade_single(
    question: dict[str, Any], answer: Any, runner: CodeRunner | None = None
) -> dict:
    parsed = Question.model_validate(question)
    outcome = grade(parsed, answer, runner)
    return {
        **outcome.model_dump(mode="json", by_alias=True),
        "correctAnswer": reference_answer(parsed),
    }


def preview_submission(
    store: QuizStore, quiz_id: str, submission: dict[str, Any], runner: CodeRunner | None = None
) -> dict:
    quiz = store.load_quiz_detail(quiz_id)
    results = grade_quiz(quiz, quiz.questions, Submission.model_validate(submission), runner)
    return results.model_dump(mode="json", by_alias=True)


def register(mcp: FastMCP, store: QuizStore, runner: CodeRunner | None) -> None:
    @mcp.tool()
    def grade_answer(question: dict[str, Any], answer: Any) -> dict:
        """Grade one learner answer against a question definition.

        Returns whether the answer is correct, how it was graded (rules,
        execution or heuristic), any test results, and the correct answer.

        Args:
            question: Question JSON (camelCase keys, content matching its type)
            answer: The learner's answer, shaped as list_question_types describes
        """
        return grade_single(question, answer, runner)

    @mcp.tool()
    def grade_quiz_submission(quiz_id: str, submission: dict[str, Any]) -> dict:
        """Grade a full quiz submission without recording it or awarding XP.

        Args:
            quiz_id: ID of a stored quiz
            submission: {answers: {questionId: answer}, hintsUsed: {questionId: [hintId]},
                timeSpent: seconds}
        """
        return preview_submission(store, quiz_id, submission, runner)
