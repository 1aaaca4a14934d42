"""MCP tools for authoring questions (read-only, nothing is stored)."""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from dsa_quiz.question_models import Question, QuestionType
from dsa_quiz.validation import validate_question

# What a learner submits for each question type
ANSWER_SHAPES = {
    QuestionType.multiple_choice: "option id",
    QuestionType.multi_select: "list of option ids",
    QuestionType.true_false: "boolean",
    QuestionType.fill_blank: "object mapping blank id to text",
    QuestionType.drag_order: "ordered list of item ids",
    QuestionType.drag_match: "object mapping left item id to right item id",
    QuestionType.drag_code_blocks: "ordered list of block ids",
    QuestionType.parsons: "ordered list of {id, indent}",
    QuestionType.code_writing: "source code string",
    QuestionType.debugging: "fixed source code string",
}


def list_question_types() -> list[dict[str, str]]:
    """List the supported question types and the answer shape each expects."""
    return [{"type": t.value, "answer": ANSWER_SHAPES[t]} for t in QuestionType]


def check_question(question: dict[str, Any]) -> dict:
    """Validate a question definition the way the question builder does.

    Returns the builder's errors and warnings. A definition whose shape does
    not match its type is reported as errors too.

    Args:
        question: Question JSON (camelCase keys, content matching its type)
    """
    try:
        parsed = Question.model_validate(question)
    except ValidationError as e:
        return {
            "errors": [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ],
            "warnings": [],
            "isValid": False,
        }
    return validate_question(parsed).summary()


def register(mcp: FastMCP) -> None:
    mcp.tool()(list_question_types)
    mcp.tool(name="validate_question")(check_question)
