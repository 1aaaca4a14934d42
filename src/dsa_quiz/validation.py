"""Question builder validation.

Pydantic guarantees a question's shape; these checks cover what makes a
question answerable (enough options, exactly one correct choice, every
template blank defined, ...). Errors block saving, warnings do not.
"""

from __future__ import annotations

import re

from pydantic import Field

from dsa_quiz.question_models import CamelModel, Question, QuestionType

BLANK_MARKER = re.compile(r"\{\{(\w+)\}\}")


class ValidationIssue(CamelModel):
    field: str
    message: str


class ValidationResult(CamelModel):
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, field: str, message: str) -> None:
        self.errors.append(ValidationIssue(field=field, message=message))

    def warn(self, field: str, message: str) -> None:
        self.warnings.append(ValidationIssue(field=field, message=message))

    def summary(self) -> dict:
        return {
            "errors": [e.model_dump() for e in self.errors],
            "warnings": [w.model_dump() for w in self.warnings],
            "isValid": self.is_valid,
        }


def _check_choices(q: Question, result: ValidationResult) -> None:
    options = q.content.options
    if len(options) < 2:
        result.error("options", "At least 2 options are required")
        return
    correct = sum(1 for o in options if o.is_correct)
    if correct == 0:
        result.error("options", "At least one correct answer is required")
    if q.type == QuestionType.multiple_choice and correct > 1:
        result.error("options", "Multiple choice should have exactly one correct answer")
    if q.type == QuestionType.multi_select and correct == 1:
        result.warn("options", "Multi-select typically has multiple correct answers")
    if any(not o.text.strip() for o in options):
        result.error("options", "All options must have text")
    if len({o.id for o in options}) != len(options):
        result.error("options", "Option ids must be unique")


def _check_fill_blank(q: Question, result: ValidationResult) -> None:
    content = q.content
    if not content.template.strip():
        result.error("template", "Template is required")
        return
    defined = {b.id for b in content.blanks}
    for blank_id in BLANK_MARKER.findall(content.template):
        if blank_id not in defined:
            result.error("blanks", f'Blank "{{{{{blank_id}}}}}" is not defined')
    for blank in content.blanks:
        if not blank.accepted_answers:
            result.error("blanks", f'Blank "{blank.id}" needs at least one accepted answer')


def _check_positions(field: str, positions: list[int], result: ValidationResult) -> None:
    placed = sorted(p for p in positions if p >= 0)
    if placed != list(range(len(placed))):
        result.error(field, "Correct positions must run 0, 1, 2, ... without gaps")


def _check_drag_order(q: Question, result: ValidationResult) -> None:
    items = q.content.items
    if len(items) < 2:
        result.error("items", "At least 2 items are required")
    if any(not i.text.strip() for i in items):
        result.error("items", "All items must have text")
    _check_positions("items", [i.correct_position for i in items], result)


def _check_drag_match(q: Question, result: ValidationResult) -> None:
    content = q.content
    if len(content.left_items) < 2 or len(content.right_items) < 2:
        result.error("items", "At least 2 items on each side are required")
    if any(not i.text.strip() for i in [*content.left_items, *content.right_items]):
        result.error("items", "All items must have text")
    right_ids = {r.id for r in content.right_items}
    for item in content.left_items:
        if item.match_id not in right_ids:
            result.error("leftItems", f'"{item.id}" matches unknown item "{item.match_id}"')


def _check_code_blocks(q: Question, result: ValidationResult) -> None:
    blocks = q.content.blocks
    if len(blocks) < 2:
        result.error("blocks", "At least 2 code blocks are required")
    if any(not b.code.strip() for b in blocks):
        result.error("blocks", "All blocks must have code")
    _check_positions("blocks", [b.correct_position for b in blocks], result)


def _check_parsons(q: Question, result: ValidationResult) -> None:
    lines = q.content.code_lines
    if len(lines) < 2:
        result.error("codeLines", "At least 2 code lines are required")
    if any(not line.code.strip() for line in lines):
        result.error("codeLines", "All lines must have code")
    _check_positions("codeLines", [line.correct_position for line in lines], result)


def _check_code(q: Question, result: ValidationResult) -> None:
    content = q.content
    if not content.prompt.strip():
        result.error("prompt", "Problem prompt is required")
    if not content.test_cases:
        result.error("testCases", "At least one test case is required")
    if not content.language:
        result.error("language", "Programming language is required")
    if q.type == QuestionType.debugging:
        if not content.buggy_code.strip():
            result.error("buggyCode", "Buggy code is required for debugging questions")
        line_count = len(content.buggy_code.splitlines())
        for bug in content.bugs:
            if bug.line_number > line_count:
                result.error("bugs", f"Bug on line {bug.line_number} is past the end of the code")


def _check_true_false(q: Question, result: ValidationResult) -> None:
    if not q.content.statement.strip():
        result.error("statement", "Statement is required")


_CHECKS = {
    QuestionType.multiple_choice: _check_choices,
    QuestionType.multi_select: _check_choices,
    QuestionType.fill_blank: _check_fill_blank,
    QuestionType.drag_order: _check_drag_order,
    QuestionType.drag_match: _check_drag_match,
    QuestionType.drag_code_blocks: _check_code_blocks,
    QuestionType.parsons: _check_parsons,
    QuestionType.code_writing: _check_code,
    QuestionType.debugging: _check_code,
    QuestionType.true_false: _check_true_false,
}


def validate_question(question: Question) -> ValidationResult:
    result = ValidationResult()

    if not question.title.strip():
        result.error("title", "Title is required")
    if not any(t.strip() for t in question.topics):
        result.error("topics", "At least one topic is required")
    if len({h.id for h in question.hints}) != len(question.hints):
        result.error("hints", "Hint ids must be unique")

    if not (question.description or "").strip():
        result.warn("description", "Description is recommended")
    if not (question.explanation or "").strip():
        result.warn("explanation", "Explanation is recommended for learning")

    _CHECKS[question.type](question, result)
    return result
