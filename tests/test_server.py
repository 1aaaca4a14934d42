"""Tests for the MCP tools."""

import asyncio

import pytest

from dsa_quiz import server
from dsa_quiz.quiz_engine import QuizStore
from dsa_quiz.quiz_models import Quiz
from dsa_quiz.tools.grading import grade_single, preview_submission
from dsa_quiz.tools.questions import check_question, list_question_types


def test_tools_are_registered():
    tools = asyncio.run(server.mcp.list_tools())
    names = {t.name for t in tools}
    assert names == {
        "list_question_types",
        "validate_question",
        "grade_answer",
        "grade_quiz_submission",
    }


class TestQuestionTools:
    def test_list_question_types(self):
        types = [t["type"] for t in list_question_types()]
        assert len(types) == 10
        assert "parsons" in types

    def test_check_valid_question(self, question_data):
        assert check_question(question_data["drag_order"])["isValid"] is True

    def test_check_reports_shape_errors(self, question_data):
        data = dict(question_data["drag_order"], type="fill_blank")
        result = check_question(data)
        assert result["isValid"] is False
        assert result["errors"]

    def test_check_reports_builder_errors(self, question_data):
        data = dict(question_data["fill_blank"])
        data["content"] = {**data["content"], "template": "{{b1}} {{b9}}"}
        result = check_question(data)
        assert result["isValid"] is False
        assert result["errors"][0]["field"] == "blanks"


class TestGradingTools:
    def test_grade_single(self, question_data):
        result = grade_single(question_data["multi_select"], ["a", "b"])
        assert result["isCorrect"] is True
        assert result["gradedBy"] == "rules"
        assert result["correctAnswer"] == ["a", "b"]

    def test_grade_single_wrong(self, question_data):
        assert grade_single(question_data["true_false"], False)["isCorrect"] is False

    def test_preview_submission_records_nothing(self, tmp_path, questions):
        store = QuizStore(directory=tmp_path)
        for q in questions.values():
            store.save_question(q)
        store.save_quiz(Quiz(id="quiz-1", question_ids=["mc-1", "tf-1"]))

        results = preview_submission(
            store, "quiz-1", {"answers": {"mc-1": "b", "tf-1": False}, "timeSpent": 12}
        )
        assert results["score"] == 50
        assert results["attemptId"] is None
        assert results["timeSpent"] == 12

    def test_preview_unknown_quiz(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            preview_submission(QuizStore(directory=tmp_path), "missing", {})
