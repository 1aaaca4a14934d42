"""Question data models — the ten question formats as a tagged union.

A question's ``content`` shape is selected by its ``type``. The content models
carry the same ``type`` as a discriminator so that pydantic picks the right
variant and rejects content that does not belong to the declared type.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case attributes in Python, camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionType(str, Enum):
    """The closed set of question formats."""

    multiple_choice = "multiple_choice"
    multi_select = "multi_select"
    true_false = "true_false"
    fill_blank = "fill_blank"
    drag_order = "drag_order"
    drag_match = "drag_match"
    drag_code_blocks = "drag_code_blocks"
    parsons = "parsons"
    code_writing = "code_writing"
    debugging = "debugging"


class Difficulty(str, Enum):
    """Question difficulty, declared from easiest to hardest."""

    beginner = "beginner"
    easy = "easy"
    medium = "medium"
    hard = "hard"
    expert = "expert"

    @property
    def rank(self) -> int:
        return list(Difficulty).index(self)


class Hint(CamelModel):
    id: str
    text: str
    xp_penalty: int = Field(default=5, ge=0)
    order: int = Field(default=0, ge=0)


class TestCase(CamelModel):
    """A stdin/stdout pair run against submitted code."""

    __test__ = False  # not a pytest class

    id: str = ""
    input: str = ""
    expected_output: str = ""
    is_hidden: bool = False
    explanation: str | None = None


def number_test_cases(cases: list[TestCase]) -> list[TestCase]:
    # Test case results are keyed by id, so every case needs one
    return [
        case if case.id else case.model_copy(update={"id": f"test-{n}"})
        for n, case in enumerate(cases, start=1)
    ]


# --- Content variants ---


class Option(CamelModel):
    id: str
    text: str = ""
    is_correct: bool = False


class MultipleChoiceContent(CamelModel):
    type: Literal["multiple_choice"] = "multiple_choice"
    question: str = ""
    options: list[Option]
    shuffle_options: bool = False


class MultiSelectContent(CamelModel):
    type: Literal["multi_select"] = "multi_select"
    question: str = ""
    instruction: str | None = None
    options: list[Option]
    shuffle_options: bool = False
    partial_credit: bool = False  # display only; grading is all-or-nothing


class TrueFalseContent(CamelModel):
    type: Literal["true_false"] = "true_false"
    statement: str = ""
    is_true: bool


class Blank(CamelModel):
    id: str
    accepted_answers: list[str]
    case_sensitive: bool = False
    placeholder: str | None = None


class FillBlankContent(CamelModel):
    type: Literal["fill_blank"] = "fill_blank"
    template: str = ""  # "{{blankId}}" marks each blank
    blanks: list[Blank]
    language: str | None = None


class OrderItem(CamelModel):
    id: str
    text: str = ""
    correct_position: int = Field(ge=-1)  # -1 = distractor


class Distractor(CamelModel):
    id: str
    text: str = ""


class DragOrderContent(CamelModel):
    type: Literal["drag_order"] = "drag_order"
    instruction: str = ""
    items: list[OrderItem]
    include_distractors: bool = False
    distractors: list[Distractor] = Field(default_factory=list)


class MatchItem(CamelModel):
    id: str
    text: str = ""
    match_id: str


class MatchTarget(CamelModel):
    id: str
    text: str = ""


class DragMatchContent(CamelModel):
    type: Literal["drag_match"] = "drag_match"
    instruction: str = ""
    left_items: list[MatchItem]
    right_items: list[MatchTarget]


class CodeBlock(CamelModel):
    id: str
    code: str = ""
    correct_position: int = Field(ge=-1)  # -1 = distractor
    indent_level: int = Field(default=0, ge=0)


class DistractorBlock(CamelModel):
    id: str
    code: str = ""


class DragCodeBlocksContent(CamelModel):
    type: Literal["drag_code_blocks"] = "drag_code_blocks"
    instruction: str = ""
    language: str = "python"
    blocks: list[CodeBlock]
    distractor_blocks: list[DistractorBlock] = Field(default_factory=list)


class CodeLine(CamelModel):
    id: str
    code: str = ""
    correct_position: int = Field(ge=0)
    correct_indent: int = Field(default=0, ge=0)


class ParsonsContent(CamelModel):
    type: Literal["parsons"] = "parsons"
    instruction: str = ""
    language: str = "python"
    code_lines: list[CodeLine]


class CodeWritingContent(CamelModel):
    type: Literal["code_writing"] = "code_writing"
    prompt: str = ""
    starter_code: str = ""
    language: str
    test_cases: list[TestCase] = Field(default_factory=list)
    constraints: list[str] = Field(default_factory=list)
    solution_code: str | None = None
    allowed_languages: list[str] = Field(default_factory=list)

    @field_validator("test_cases")
    @classmethod
    def _number_cases(cls, cases: list[TestCase]) -> list[TestCase]:
        return number_test_cases(cases)


class Bug(CamelModel):
    line_number: int = Field(ge=1)  # 1-based line in the buggy code
    bug_description: str = ""
    correct_code: str


class DebuggingContent(CamelModel):
    type: Literal["debugging"] = "debugging"
    prompt: str = ""
    buggy_code: str
    language: str
    bugs: list[Bug] = Field(default_factory=list)
    test_cases: list[TestCase] = Field(default_factory=list)

    @field_validator("test_cases")
    @classmethod
    def _number_cases(cls, cases: list[TestCase]) -> list[TestCase]:
        return number_test_cases(cases)


QuestionContent = Annotated[
    Union[
        MultipleChoiceContent,
        MultiSelectContent,
        TrueFalseContent,
        FillBlankContent,
        DragOrderContent,
        DragMatchContent,
        DragCodeBlocksContent,
        ParsonsContent,
        CodeWritingContent,
        DebuggingContent,
    ],
    Field(discriminator="type"),
]


class Question(CamelModel):
    """A question as authored in the question builder."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    type: QuestionType
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    difficulty: Difficulty = Difficulty.medium
    topics: list[str] = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)
    xp_reward: int = Field(default=10, ge=1, le=1000)
    time_limit: int | None = Field(default=None, gt=0)  # seconds
    hints: list[Hint] = Field(default_factory=list)
    explanation: str | None = None
    content: QuestionContent
    is_public: bool = False
    created_by: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _tag_content(cls, data: Any) -> Any:
        """Copy the question type into raw content so the union can dispatch."""
        if not isinstance(data, dict):
            return data
        content = data.get("content")
        qtype = data.get("type")
        if isinstance(content, dict) and "type" not in content and qtype is not None:
            tag = qtype.value if isinstance(qtype, QuestionType) else qtype
            data = {**data, "content": {**content, "type": tag}}
        return data

    @model_validator(mode="after")
    def _check_content_type(self) -> Question:
        if self.content.type != self.type.value:
            raise ValueError(
                f"content of type '{self.content.type}' does not match "
                f"question type '{self.type.value}'"
            )
        return self

    @field_validator("hints")
    @classmethod
    def _sort_hints(cls, hints: list[Hint]) -> list[Hint]:
        return sorted(hints, key=lambda h: h.order)
