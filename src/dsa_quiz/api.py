"""FastAPI HTTP layer for questions, quizzes, submissions and code execution."""

from __future__ import annotations

import hmac
import json
import logging
import os

import httpx
from fastapi import Body, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import Field, ValidationError, field_validator

from dsa_quiz.attempts import AttemptLedger, SubmissionError
from dsa_quiz.judge0 import (
    DEMO_OUTPUT,
    LANGUAGE_IDS,
    CodeExecutionError,
    ExecutionRequest,
    runner_from_env,
    simulated_test_results,
)
from dsa_quiz.question_models import (
    CamelModel,
    Difficulty,
    Question,
    QuestionType,
    TestCase,
    number_test_cases,
)
from dsa_quiz.quiz_engine import QuizStore, submit_attempt
from dsa_quiz.quiz_models import Quiz, Submission
from dsa_quiz.validation import validate_question

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="DSA Quiz API",
    description="Quiz taking, grading and code execution for DSA practice",
    version="0.1.0",
)

API_KEY = os.getenv("API_KEY")
if not API_KEY:
    logger.warning("API_KEY not set. All requests will be allowed.")


@app.middleware("http")
async def verify_api_key(request: Request, call_next):
    if API_KEY and request.url.path != "/health":
        key = request.headers.get("x-api-key", "")
        if not hmac.compare_digest(key, API_KEY):
            return JSONResponse(status_code=401, content={"detail": "Invalid API key"})
    return await call_next(request)


@app.get("/health")
def health():
    """Unauthenticated health check."""
    return {"status": "ok"}


quiz_store = QuizStore()
ledger = AttemptLedger()
code_runner = runner_from_env()


# --- Request models ---


class ExecuteRequest(CamelModel):
    code: str = Field(min_length=1)
    language: str
    stdin: str | None = None
    time_limit: float | None = Field(default=None, ge=1, le=10)
    memory_limit: int | None = Field(default=None, ge=1024, le=512000)


class TestRunRequest(CamelModel):
    __test__ = False  # not a pytest class

    code: str = Field(min_length=1)
    language: str
    test_cases: list[TestCase] = Field(min_length=1)
    time_limit: float | None = Field(default=None, ge=1, le=10)

    @field_validator("test_cases")
    @classmethod
    def _number_cases(cls, cases: list[TestCase]) -> list[TestCase]:
        return number_test_cases(cases)


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _require_user(user_id: str | None) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


# --- Question endpoints ---


@app.get("/api/questions")
def list_questions(
    question_type: QuestionType | None = Query(default=None, alias="type"),
    difficulty: Difficulty | None = None,
    topic: str | None = None,
    is_public: bool | None = Query(default=None, alias="isPublic"),
    search: str | None = None,
    limit: int = 20,
    offset: int = 0,
):
    """List questions, optionally filtered."""
    if not 1 <= limit <= 100 or offset < 0:
        raise HTTPException(status_code=400, detail="limit must be 1-100, offset >= 0")
    questions = quiz_store.list_questions(
        question_type=question_type,
        difficulty=difficulty,
        topic=topic,
        is_public=is_public,
        search=search,
    )
    page = questions[offset : offset + limit]
    return {
        "questions": [_dump(q) for q in page],
        "total": len(questions),
        "limit": limit,
        "offset": offset,
    }


@app.post("/api/questions/validate")
def validate_question_endpoint(question: Question):
    """Run the question builder checks without saving."""
    return validate_question(question).summary()


@app.post("/api/questions")
def create_question(question: Question, x_user_id: str | None = Header(default=None)):
    """Create a question after validating it."""
    result = validate_question(question)
    if not result.is_valid:
        raise HTTPException(
            status_code=400,
            detail={"error": "Validation failed", **result.summary()},
        )
    if x_user_id and question.created_by is None:
        question.created_by = x_user_id
    logger.info("Creating %s question %s", question.type.value, question.id)
    return _dump(quiz_store.save_question(question))


@app.get("/api/questions/{question_id}")
def get_question(question_id: str):
    try:
        return _dump(quiz_store.load_question(question_id))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Question not found: {question_id}")


@app.put("/api/questions/{question_id}")
def update_question(question_id: str, question: Question):
    """Update an existing question. Past attempts keep their own snapshot."""
    question.id = question_id
    result = validate_question(question)
    if not result.is_valid:
        raise HTTPException(
            status_code=400,
            detail={"error": "Validation failed", **result.summary()},
        )
    return _dump(quiz_store.save_question(question))


@app.delete("/api/questions/{question_id}")
def delete_question(question_id: str):
    quiz_store.delete_question(question_id)
    return {"status": "deleted"}


# --- Quiz endpoints ---


def _check_question_ids(quiz: Quiz) -> None:
    missing = []
    for qid in quiz.question_ids:
        try:
            quiz_store.load_question(qid)
        except FileNotFoundError:
            missing.append(qid)
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown questions: {', '.join(missing)}")


@app.get("/api/quizzes")
def list_quizzes():
    """List all saved quizzes."""
    return quiz_store.list_quizzes()


@app.post("/api/quizzes")
def create_quiz(quiz: Quiz):
    """Create a new quiz from existing questions."""
    _check_question_ids(quiz)
    return _dump(quiz_store.save_quiz(quiz))


def _load_quiz_detail(quiz_id: str):
    try:
        return quiz_store.load_quiz_detail(quiz_id)
    except FileNotFoundError as e:
        if not quiz_store.has_quiz(quiz_id):
            raise HTTPException(status_code=404, detail=f"Quiz not found: {quiz_id}")
        # The quiz exists but one of its questions was deleted
        raise HTTPException(status_code=409, detail=str(e))
    except (ValidationError, json.JSONDecodeError) as e:
        logger.error("Stored data for quiz %s is invalid: %s", quiz_id, e)
        raise HTTPException(status_code=500, detail=f"Quiz {quiz_id} has invalid stored data")


@app.get("/api/quizzes/{quiz_id}")
def get_quiz(quiz_id: str):
    """Load a quiz with its questions in order."""
    return _dump(_load_quiz_detail(quiz_id))


@app.put("/api/quizzes/{quiz_id}")
def update_quiz(quiz_id: str, quiz: Quiz):
    """Update an existing quiz."""
    quiz.id = quiz_id
    _check_question_ids(quiz)
    return _dump(quiz_store.save_quiz(quiz))


@app.delete("/api/quizzes/{quiz_id}")
def delete_quiz(quiz_id: str):
    """Delete a quiz."""
    quiz_store.delete_quiz(quiz_id)
    return {"status": "deleted"}


@app.post("/api/quizzes/{quiz_id}/submit")
def submit_quiz(
    quiz_id: str,
    submission: Submission,
    x_user_id: str | None = Header(default=None),
):
    """Grade a submission, record the attempt and credit XP."""
    user_id = _require_user(x_user_id)
    quiz = _load_quiz_detail(quiz_id)
    try:
        results = submit_attempt(user_id, quiz, submission, ledger, code_runner)
    except SubmissionError as e:
        logger.error("Error submitting quiz %s: %s", quiz_id, e)
        raise HTTPException(status_code=500, detail="Failed to submit quiz")
    return _dump(results)


@app.get("/api/attempts/{attempt_id}")
def get_attempt(attempt_id: str):
    """An attempt with the answers and question snapshots it was graded on."""
    try:
        return _dump(ledger.get_attempt(attempt_id))
    except LookupError:
        raise HTTPException(status_code=404, detail=f"Attempt not found: {attempt_id}")


@app.get("/api/users/{user_id}/stats")
def get_user_stats(user_id: str, limit: int = 10):
    """XP, progress totals and recent attempts for a user."""
    return {
        "stats": _dump(ledger.stats(user_id)),
        "recentAttempts": [_dump(a) for a in ledger.recent_attempts(user_id, limit)],
    }


# --- Code execution ---


def _validation_message(e: ValidationError) -> str:
    first = e.errors()[0]
    where = ".".join(str(p) for p in first.get("loc", ()))
    return f"{where}: {first['msg']}" if where else first["msg"]


@app.post("/api/execute")
def execute(body: dict = Body(...), mode: str = "execute"):
    """Run code once (``mode=execute``) or against test cases (``mode=test``)."""
    model = TestRunRequest if mode == "test" else ExecuteRequest
    try:
        req = model.model_validate(body)
    except ValidationError as e:
        return JSONResponse(
            status_code=400, content={"success": False, "error": _validation_message(e)}
        )
    if req.language.lower() not in LANGUAGE_IDS:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Unsupported programming language"},
        )

    if code_runner is None:
        if mode == "test":
            results = simulated_test_results(req.test_cases)
            return {"success": True, "testResults": [_dump(r) for r in results]}
        return {
            "success": True,
            "result": {
                "status": {"id": 13, "description": "Demo Mode"},
                "stdout": f"{DEMO_OUTPUT}\nSet JUDGE0_API_KEY to enable code execution.",
                "stderr": None,
                "compile_output": None,
                "time": None,
                "memory": None,
            },
        }

    try:
        if mode == "test":
            results = code_runner.run_test_cases(
                req.code, req.language, req.test_cases, req.time_limit
            )
            return {"success": True, "testResults": [_dump(r) for r in results]}
        result = code_runner.execute(
            ExecutionRequest(
                code=req.code,
                language=req.language,
                stdin=req.stdin,
                time_limit=req.time_limit,
                memory_limit=req.memory_limit,
            )
        )
        return {"success": True, "result": result.model_dump()}
    except (CodeExecutionError, httpx.HTTPError) as e:
        logger.error("Code execution error: %s", e)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})


@app.get("/api/execute/languages")
def list_languages():
    """Languages the code runner accepts."""
    return {"languages": [{"name": name, "id": lid} for name, lid in LANGUAGE_IDS.items()]}


def main():
    """Run the API server."""
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
