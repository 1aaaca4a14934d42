"""Tests for question models and builder validation."""

import pytest
from pydantic import ValidationError

from dsa_quiz.question_models import Difficulty, Question, QuestionType
from dsa_quiz.validation import validate_question


def _messages(result):
    return [e.message for e in result.errors]


def _build(question_data, qtype, **content):
    data = dict(question_data[qtype])
    data["content"] = {**data["content"], **content}
    return Question.model_validate(data)


class TestQuestionModel:
    def test_content_type_follows_question_type(self, questions):
        for qtype, q in questions.items():
            assert q.content.type == qtype

    def test_content_must_match_type(self, question_data):
        data = dict(question_data["true_false"])
        data["type"] = "multiple_choice"
        with pytest.raises(ValidationError):
            Question.model_validate(data)

    def test_explicit_mismatched_content_type(self, question_data):
        data = dict(question_data["true_false"])
        data["content"] = {**data["content"], "type": "true_false"}
        data["type"] = "debugging"
        with pytest.raises(ValidationError):
            Question.model_validate(data)

    def test_topics_required(self, question_data):
        data = dict(question_data["true_false"], topics=[])
        with pytest.raises(ValidationError):
            Question.model_validate(data)

    def test_xp_reward_bounds(self, question_data):
        with pytest.raises(ValidationError):
            Question.model_validate(dict(question_data["true_false"], xpReward=0))

    def test_defaults(self, questions):
        q = questions["true_false"]
        assert q.difficulty == Difficulty.medium
        assert q.xp_reward == 10
        assert q.is_public is False

    def test_difficulty_is_ordered(self):
        ranks = [d.rank for d in Difficulty]
        assert ranks == sorted(ranks)
        assert Difficulty.beginner.rank < Difficulty.expert.rank

    def test_hints_sorted_by_order(self, question_data):
        data = dict(
            question_data["true_false"],
            hints=[
                {"id": "late", "text": "second", "order": 2},
                {"id": "early", "text": "first", "order": 1},
            ],
        )
        q = Question.model_validate(data)
        assert [h.id for h in q.hints] == ["early", "late"]
        assert q.hints[0].xp_penalty == 5

    def test_test_cases_get_ids(self, questions):
        cases = questions["code_writing"].content.test_cases
        assert [c.id for c in cases] == ["test-1", "test-2"]
        assert cases[1].is_hidden

    def test_camel_case_round_trip(self, questions):
        dumped = questions["drag_match"].model_dump(by_alias=True)
        assert dumped["content"]["leftItems"][0]["matchId"] == "r1"
        assert "xpReward" in dumped


class TestValidateQuestion:
    @pytest.mark.parametrize("qtype", [t.value for t in QuestionType])
    def test_samples_are_valid(self, qtype, questions):
        result = validate_question(questions[qtype])
        assert result.is_valid, _messages(result)

    def test_missing_description_is_a_warning(self, questions):
        result = validate_question(questions["true_false"])
        assert result.is_valid
        assert any(w.field == "description" for w in result.warnings)

    def test_multiple_choice_needs_exactly_one_correct(self, question_data):
        q = _build(
            question_data,
            "multiple_choice",
            options=[
                {"id": "a", "text": "A", "isCorrect": True},
                {"id": "b", "text": "B", "isCorrect": True},
            ],
        )
        assert "Multiple choice should have exactly one correct answer" in _messages(
            validate_question(q)
        )

    def test_choices_need_a_correct_option(self, question_data):
        q = _build(
            question_data,
            "multi_select",
            options=[{"id": "a", "text": "A"}, {"id": "b", "text": "B"}],
        )
        assert "At least one correct answer is required" in _messages(validate_question(q))

    def test_single_correct_multi_select_warns(self, question_data):
        q = _build(
            question_data,
            "multi_select",
            options=[{"id": "a", "text": "A", "isCorrect": True}, {"id": "b", "text": "B"}],
        )
        result = validate_question(q)
        assert result.is_valid
        assert any(w.field == "options" for w in result.warnings)

    def test_undefined_blank(self, question_data):
        q = _build(question_data, "fill_blank", template="{{b1}} then {{b2}}")
        assert 'Blank "{{b2}}" is not defined' in _messages(validate_question(q))

    def test_positions_without_gaps(self, question_data):
        q = _build(
            question_data,
            "drag_order",
            items=[
                {"id": "i1", "text": "a", "correctPosition": 0},
                {"id": "i2", "text": "b", "correctPosition": 2},
            ],
        )
        assert not validate_question(q).is_valid

    def test_match_to_unknown_item(self, question_data):
        q = _build(
            question_data,
            "drag_match",
            leftItems=[
                {"id": "l1", "text": "Stack", "matchId": "r1"},
                {"id": "l2", "text": "Queue", "matchId": "r9"},
            ],
        )
        assert not validate_question(q).is_valid

    def test_code_writing_needs_test_cases(self, question_data):
        q = _build(question_data, "code_writing", testCases=[])
        assert "At least one test case is required" in _messages(validate_question(q))

    def test_bug_past_end_of_code(self, question_data):
        q = _build(
            question_data,
            "debugging",
            bugs=[{"lineNumber": 9, "correctCode": "pass"}],
        )
        assert not validate_question(q).is_valid

    def test_summary_shape(self, questions):
        summary = validate_question(questions["multiple_choice"]).summary()
        assert set(summary) == {"errors", "warnings", "isValid"}
        assert summary["isValid"] is True
