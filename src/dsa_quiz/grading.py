"""Answer grading — per-type correctness rules, hint penalties and XP.

``grade`` judges one answer; ``grade_quiz`` grades a whole submission and
aggregates score and XP. A bad question or a malformed answer only ever costs
that one question: it is graded incorrect and logged, never raised.
"""

from __future__ import annotations

import difflib
import logging
from typing import Any, Callable

from dsa_quiz.judge0 import CodeRunner, all_tests_passed
from dsa_quiz.question_models import (
    CamelModel,
    CodeWritingContent,
    DebuggingContent,
    DragCodeBlocksContent,
    DragMatchContent,
    DragOrderContent,
    FillBlankContent,
    MultipleChoiceContent,
    MultiSelectContent,
    ParsonsContent,
    Question,
    QuestionType,
    TrueFalseContent,
)
from dsa_quiz.quiz_models import (
    GradedBy,
    QuestionResult,
    Quiz,
    QuizResults,
    Submission,
    TestCaseResult,
)

logger = logging.getLogger(__name__)

# Minimum number of changed characters for the code-writing heuristic
MIN_CODE_CHANGE = 10


class GradeOutcome(CamelModel):
    is_correct: bool
    graded_by: GradedBy = GradedBy.rules
    test_results: list[TestCaseResult] | None = None


def _id_list(answer: Any) -> list:
    if not isinstance(answer, (list, tuple)):
        raise TypeError(f"expected a list of ids, got {type(answer).__name__}")
    return list(answer)


def _position(order: list, item_id: str) -> int:
    return order.index(item_id) if item_id in order else -1


# --- Rule-based graders ---


def grade_multiple_choice(content: MultipleChoiceContent, answer: Any) -> bool:
    correct = next((o.id for o in content.options if o.is_correct), None)
    return correct is not None and answer == correct


def grade_multi_select(content: MultiSelectContent, answer: Any) -> bool:
    """Exact set equality; order and partial overlap do not matter."""
    selected = set(_id_list(answer))
    return selected == {o.id for o in content.options if o.is_correct}


def grade_true_false(content: TrueFalseContent, answer: Any) -> bool:
    return isinstance(answer, bool) and answer == content.is_true


def grade_fill_blank(content: FillBlankContent, answer: Any) -> bool:
    """Every blank must match one of its accepted answers.

    A blank missing from the answer counts as the empty string.
    """
    if not isinstance(answer, dict):
        raise TypeError(f"expected blankId -> text, got {type(answer).__name__}")
    for blank in content.blanks:
        value = answer.get(blank.id) or ""
        if not isinstance(value, str):
            raise TypeError(f"blank '{blank.id}' answer is not text")
        if blank.case_sensitive:
            ok = value in blank.accepted_answers
        else:
            ok = value.lower() in {a.lower() for a in blank.accepted_answers}
        if not ok:
            return False
    return True


def grade_drag_order(content: DragOrderContent, answer: Any) -> bool:
    """Each item must sit at its correct position.

    Distractors (items at position -1 and the separate distractor list) must
    be left out of the answer.
    """
    order = _id_list(answer)
    if not all(_position(order, i.id) == i.correct_position for i in content.items):
        return False
    return all(d.id not in order for d in content.distractors)


def grade_drag_match(content: DragMatchContent, answer: Any) -> bool:
    if not isinstance(answer, dict):
        raise TypeError(f"expected leftId -> rightId, got {type(answer).__name__}")
    return all(answer.get(item.id) == item.match_id for item in content.left_items)


def grade_drag_code_blocks(content: DragCodeBlocksContent, answer: Any) -> bool:
    order = _id_list(answer)
    return all(
        _position(order, block.id) == block.correct_position
        for block in content.blocks
        if block.correct_position >= 0
    )


def grade_parsons(content: ParsonsContent, answer: Any) -> bool:
    """Each line needs the right id *and* indent at its position."""
    placed = _id_list(answer)
    for line in content.code_lines:
        if line.correct_position >= len(placed):
            return False
        entry = placed[line.correct_position]
        if not isinstance(entry, dict):
            raise TypeError("parsons answer entries must be {id, indent}")
        if entry.get("id") != line.id or entry.get("indent") != line.correct_indent:
            return False
    return True


# --- Code questions ---


def _changed_chars(before: str, after: str) -> int:
    matcher = difflib.SequenceMatcher(None, before, after, autojunk=False)
    return sum(
        max(i2 - i1, j2 - j1)
        for tag, i1, i2, j1, j2 in matcher.get_opcodes()
        if tag != "equal"
    )


def code_writing_heuristic(content: CodeWritingContent, code: str) -> bool:
    """Low-fidelity stand-in: did the learner meaningfully change the starter?"""
    submitted = code.strip()
    if not submitted:
        return False
    return _changed_chars(content.starter_code.strip(), submitted) > MIN_CODE_CHANGE


def debugging_heuristic(content: DebuggingContent, code: str) -> bool:
    """Every declared bug line must equal its fix, ignoring surrounding space."""
    if not content.bugs:
        return code.strip() != content.buggy_code.strip()
    lines = code.splitlines()
    for bug in content.bugs:
        if bug.line_number > len(lines):
            return False
        if lines[bug.line_number - 1].strip() != bug.correct_code.strip():
            return False
    return True


def _grade_code(
    question: Question,
    code: Any,
    heuristic: Callable[[Any, str], bool],
    runner: CodeRunner | None,
) -> GradeOutcome:
    if not isinstance(code, str):
        raise TypeError(f"expected source code, got {type(code).__name__}")
    content = question.content

    if runner is None or not content.test_cases:
        return GradeOutcome(
            is_correct=heuristic(content, code), graded_by=GradedBy.heuristic
        )

    try:
        results = runner.run_test_cases(code, content.language, content.test_cases)
    except Exception as e:
        logger.warning(
            "Code execution failed for question %s, grading heuristically: %s",
            question.id,
            e,
        )
        return GradeOutcome(
            is_correct=heuristic(content, code), graded_by=GradedBy.heuristic
        )

    return GradeOutcome(
        is_correct=all_tests_passed(results),
        graded_by=GradedBy.execution,
        test_results=results,
    )


_RULES: dict[QuestionType, Callable[[Any, Any], bool]] = {
    QuestionType.multiple_choice: grade_multiple_choice,
    QuestionType.multi_select: grade_multi_select,
    QuestionType.true_false: grade_true_false,
    QuestionType.fill_blank: grade_fill_blank,
    QuestionType.drag_order: grade_drag_order,
    QuestionType.drag_match: grade_drag_match,
    QuestionType.drag_code_blocks: grade_drag_code_blocks,
    QuestionType.parsons: grade_parsons,
}

_HEURISTICS: dict[QuestionType, Callable[[Any, str], bool]] = {
    QuestionType.code_writing: code_writing_heuristic,
    QuestionType.debugging: debugging_heuristic,
}


def grade(question: Question, answer: Any, runner: CodeRunner | None = None) -> GradeOutcome:
    """Grade a single answer against its question."""
    if answer is None:
        return GradeOutcome(is_correct=False)

    qtype = question.type
    try:
        if qtype in _HEURISTICS:
            return _grade_code(question, answer, _HEURISTICS[qtype], runner)
        rule = _RULES.get(qtype)
        if rule is None:
            logger.warning("No grader for question %s of type %r", question.id, qtype)
            return GradeOutcome(is_correct=False)
        return GradeOutcome(is_correct=rule(question.content, answer))
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        logger.warning("Malformed answer for question %s (%s): %s", question.id, qtype, e)
        return GradeOutcome(is_correct=False)


# --- XP and scoring ---


def revealed_hints(question: Question, used_ids: list[str] | None) -> list[str]:
    """Distinct hint ids of this question that the learner revealed."""
    used = set(used_ids or ())
    return [h.id for h in question.hints if h.id in used]


def hint_penalty(question: Question, used_ids: list[str] | None) -> int:
    used = set(used_ids or ())
    return sum(h.xp_penalty for h in question.hints if h.id in used)


def xp_for(question: Question, is_correct: bool, penalty: int) -> int:
    """Hints only cost XP on a correct answer; wrong answers earn nothing."""
    if not is_correct:
        return 0
    return max(0, question.xp_reward - penalty)


def score_percent(correct: int, total: int) -> int:
    """``round(100 * correct / total)`` with halves rounded up."""
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


def grade_quiz(
    quiz: Quiz,
    questions: list[Question],
    submission: Submission,
    runner: CodeRunner | None = None,
) -> QuizResults:
    """Grade every question of a quiz and aggregate the results.

    ``questions`` must be in quiz order. Unanswered questions are incorrect.
    """
    question_results: list[QuestionResult] = []
    for question in questions:
        used = submission.hints_used.get(question.id, [])
        outcome = grade(question, submission.answers.get(question.id), runner)
        question_results.append(
            QuestionResult(
                question_id=question.id,
                is_correct=outcome.is_correct,
                xp_earned=xp_for(question, outcome.is_correct, hint_penalty(question, used)),
                hints_used=len(revealed_hints(question, used)),
                graded_by=outcome.graded_by,
                test_results=outcome.test_results,
            )
        )

    correct = sum(1 for r in question_results if r.is_correct)
    total = len(question_results)
    score = score_percent(correct, total)
    xp = sum(r.xp_earned for r in question_results)
    logger.info(
        "Graded quiz %s: %d/%d correct, score %d, %d XP", quiz.id, correct, total, score, xp
    )

    return QuizResults(
        score=score,
        correct_count=correct,
        total_count=total,
        xp_earned=xp,
        time_spent=submission.time_spent,
        passed=score >= quiz.passing_score,
        question_results=question_results,
    )


# --- Review ---


def _apply_fixes(content: DebuggingContent) -> str:
    lines = content.buggy_code.splitlines()
    for bug in content.bugs:
        if bug.line_number <= len(lines):
            original = lines[bug.line_number - 1]
            indent = original[: len(original) - len(original.lstrip())]
            lines[bug.line_number - 1] = indent + bug.correct_code.strip()
    return "\n".join(lines)


def reference_answer(question: Question) -> Any:
    """The correct answer in the shape a learner would submit it.

    Code-writing questions return their solution code, which may be None.
    """
    content = question.content
    qtype = question.type
    if qtype == QuestionType.multiple_choice:
        return next((o.id for o in content.options if o.is_correct), None)
    if qtype == QuestionType.multi_select:
        return [o.id for o in content.options if o.is_correct]
    if qtype == QuestionType.true_false:
        return content.is_true
    if qtype == QuestionType.fill_blank:
        return {b.id: b.accepted_answers[0] for b in content.blanks if b.accepted_answers}
    if qtype == QuestionType.drag_order:
        placed = sorted(
            (i for i in content.items if i.correct_position >= 0),
            key=lambda i: i.correct_position,
        )
        return [i.id for i in placed]
    if qtype == QuestionType.drag_match:
        return {item.id: item.match_id for item in content.left_items}
    if qtype == QuestionType.drag_code_blocks:
        placed = sorted(
            (b for b in content.blocks if b.correct_position >= 0),
            key=lambda b: b.correct_position,
        )
        return [b.id for b in placed]
    if qtype == QuestionType.parsons:
        lines = sorted(content.code_lines, key=lambda line: line.correct_position)
        return [{"id": line.id, "indent": line.correct_indent} for line in lines]
    if qtype == QuestionType.code_writing:
        return content.solution_code
    if qtype == QuestionType.debugging:
        return _apply_fixes(content)
    return None
