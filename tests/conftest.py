"""Shared fixtures: one sample question per type and a few quiz helpers."""

import os
import tempfile

# Keep module-level stores off the developer's database and quiz directory
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("QUIZ_DIR", tempfile.mkdtemp(prefix="dsa-quiz-"))
os.environ.pop("API_KEY", None)
os.environ.pop("JUDGE0_API_KEY", None)

import pytest

from dsa_quiz.question_models import Question

SAMPLE_QUESTIONS = {
    "multiple_choice": {
        "id": "mc-1",
        "type": "multiple_choice",
        "title": "Binary search complexity",
        "topics": ["searching"],
        "xpReward": 10,
        "hints": [{"id": "h1", "text": "Halves each step", "xpPenalty": 3}],
        "explanation": "Each comparison halves the range.",
        "content": {
            "question": "What is the time complexity of binary search?",
            "options": [
                {"id": "a", "text": "O(n)"},
                {"id": "b", "text": "O(log n)", "isCorrect": True},
                {"id": "c", "text": "O(1)"},
            ],
        },
    },
    "multi_select": {
        "id": "ms-1",
        "type": "multi_select",
        "title": "Stable sorts",
        "topics": ["sorting"],
        "content": {
            "question": "Which sorts are stable?",
            "options": [
                {"id": "a", "text": "Merge sort", "isCorrect": True},
                {"id": "b", "text": "Insertion sort", "isCorrect": True},
                {"id": "c", "text": "Heap sort"},
                {"id": "d", "text": "Quick sort"},
            ],
        },
    },
    "true_false": {
        "id": "tf-1",
        "type": "true_false",
        "title": "Hash table lookups",
        "topics": ["hashing"],
        "content": {"statement": "Hash table lookup is O(1) on average.", "isTrue": True},
    },
    "fill_blank": {
        "id": "fb-1",
        "type": "fill_blank",
        "title": "Array length",
        "topics": ["arrays"],
        "content": {
            "template": "arr.{{b1}} returns the number of elements",
            "blanks": [{"id": "b1", "acceptedAnswers": ["length"]}],
        },
    },
    "drag_order": {
        "id": "do-1",
        "type": "drag_order",
        "title": "Growth rates",
        "topics": ["complexity"],
        "content": {
            "instruction": "Order from slowest to fastest growing",
            "items": [
                {"id": "i1", "text": "O(1)", "correctPosition": 0},
                {"id": "i2", "text": "O(log n)", "correctPosition": 1},
                {"id": "i3", "text": "O(n)", "correctPosition": 2},
            ],
        },
    },
    "drag_match": {
        "id": "dm-1",
        "type": "drag_match",
        "title": "Structures and operations",
        "topics": ["data-structures"],
        "content": {
            "leftItems": [
                {"id": "l1", "text": "Stack", "matchId": "r1"},
                {"id": "l2", "text": "Queue", "matchId": "r2"},
            ],
            "rightItems": [{"id": "r1", "text": "LIFO"}, {"id": "r2", "text": "FIFO"}],
        },
    },
    "drag_code_blocks": {
        "id": "dcb-1",
        "type": "drag_code_blocks",
        "title": "Swap two values",
        "topics": ["basics"],
        "content": {
            "blocks": [
                {"id": "k1", "code": "tmp = a", "correctPosition": 0},
                {"id": "k2", "code": "a = b", "correctPosition": 1},
                {"id": "k3", "code": "b = tmp", "correctPosition": 2},
            ],
            "distractorBlocks": [{"id": "x1", "code": "b = a"}],
        },
    },
    "parsons": {
        "id": "p-1",
        "type": "parsons",
        "title": "Sum a list",
        "topics": ["loops"],
        "content": {
            "codeLines": [
                {"id": "c1", "code": "total = 0", "correctPosition": 0, "correctIndent": 0},
                {"id": "c2", "code": "for x in xs:", "correctPosition": 1, "correctIndent": 0},
                {"id": "c3", "code": "total += x", "correctPosition": 2, "correctIndent": 1},
            ],
        },
    },
    "code_writing": {
        "id": "cw-1",
        "type": "code_writing",
        "title": "Reverse a string",
        "topics": ["strings"],
        "xpReward": 20,
        "content": {
            "prompt": "Print the input reversed",
            "starterCode": "def solve(s):\n    pass",
            "language": "python",
            "testCases": [
                {"input": "abc", "expectedOutput": "cba"},
                {"input": "ab", "expectedOutput": "ba", "isHidden": True},
            ],
            "solutionCode": "print(input()[::-1])",
        },
    },
    "debugging": {
        "id": "dbg-1",
        "type": "debugging",
        "title": "Off by one",
        "topics": ["loops"],
        "content": {
            "prompt": "Fix the loop so it prints 0..n-1",
            "buggyCode": "n = int(input())\nfor i in range(n + 1):\n    print(i)",
            "language": "python",
            "bugs": [
                {
                    "lineNumber": 2,
                    "bugDescription": "loop runs one step too far",
                    "correctCode": "for i in range(n):",
                }
            ],
            "testCases": [{"input": "3", "expectedOutput": "0\n1\n2"}],
        },
    },
}

CORRECT_ANSWERS = {
    "multiple_choice": "b",
    "multi_select": ["b", "a"],
    "true_false": True,
    "fill_blank": {"b1": "Length"},
    "drag_order": ["i1", "i2", "i3"],
    "drag_match": {"l1": "r1", "l2": "r2"},
    "drag_code_blocks": ["k1", "k2", "k3"],
    "parsons": [
        {"id": "c1", "indent": 0},
        {"id": "c2", "indent": 0},
        {"id": "c3", "indent": 1},
    ],
    "code_writing": "def solve(s):\n    return s[::-1]\n\nprint(solve(input()))",
    "debugging": "n = int(input())\nfor i in range(n):\n    print(i)",
}


@pytest.fixture
def question_data():
    """Raw camelCase question JSON keyed by type."""
    return {k: dict(v) for k, v in SAMPLE_QUESTIONS.items()}


@pytest.fixture
def questions():
    """Parsed sample questions keyed by type."""
    return {k: Question.model_validate(v) for k, v in SAMPLE_QUESTIONS.items()}


@pytest.fixture
def correct_answers():
    return dict(CORRECT_ANSWERS)
