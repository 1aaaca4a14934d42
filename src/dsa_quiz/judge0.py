"""Code execution through the Judge0 CE API.

Graders only depend on the ``CodeRunner`` protocol; ``Judge0Client`` is the
HTTP implementation. Without ``JUDGE0_API_KEY`` no runner is configured and
code questions are graded heuristically.
"""

from __future__ import annotations

import base64
import logging
import os
import time
from enum import IntEnum
from typing import Callable, Protocol
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel

from dsa_quiz.question_models import TestCase
from dsa_quiz.quiz_models import TestCaseResult

logger = logging.getLogger(__name__)

JUDGE0_API_URL = os.environ.get("JUDGE0_API_URL", "https://judge0-ce.p.rapidapi.com")
JUDGE0_API_KEY = os.environ.get("JUDGE0_API_KEY", "")

DEFAULT_CPU_TIME_LIMIT = 2  # seconds
DEFAULT_MEMORY_LIMIT = 128000  # KB

DEMO_OUTPUT = "[Demo mode - Judge0 API not configured]"

# Language name -> Judge0 language id
LANGUAGE_IDS: dict[str, int] = {
    "javascript": 63,  # Node.js
    "typescript": 74,
    "python": 71,  # Python 3
    "python3": 71,
    "java": 62,  # OpenJDK 13
    "cpp": 54,  # GCC 9.2.0
    "c++": 54,
    "c": 50,  # GCC 9.2.0
    "csharp": 51,  # Mono 6.6.0
    "c#": 51,
    "go": 60,
    "rust": 73,
    "ruby": 72,
    "php": 68,
    "swift": 83,
    "kotlin": 78,
    "scala": 81,
    "sql": 82,  # SQLite 3.27.2
}


class SubmissionStatus(IntEnum):
    in_queue = 1
    processing = 2
    accepted = 3
    wrong_answer = 4
    time_limit_exceeded = 5
    compilation_error = 6
    runtime_error_sigsegv = 7
    runtime_error_sigxfsz = 8
    runtime_error_sigfpe = 9
    runtime_error_sigabrt = 10
    runtime_error_nzec = 11
    runtime_error_other = 12
    internal_error = 13
    exec_format_error = 14


class CodeExecutionError(RuntimeError):
    """Raised when code cannot be executed or its result cannot be fetched."""


class ExecutionRequest(BaseModel):
    code: str
    language: str
    stdin: str | None = None
    expected_output: str | None = None
    time_limit: float | None = None  # seconds
    memory_limit: int | None = None  # KB


class ExecutionStatus(BaseModel):
    id: int
    description: str = ""


class ExecutionResult(BaseModel):
    """A finished Judge0 submission, outputs already decoded."""

    status: ExecutionStatus
    stdout: str | None = None
    stderr: str | None = None
    compile_output: str | None = None
    time: str | None = None  # seconds, as reported by Judge0
    memory: int | None = None  # KB
    token: str | None = None
    message: str | None = None


class CodeRunner(Protocol):
    def run_test_cases(
        self,
        code: str,
        language: str,
        test_cases: list[TestCase],
        time_limit: float | None = None,
    ) -> list[TestCaseResult]: ...


def language_id(language: str) -> int:
    try:
        return LANGUAGE_IDS[language.lower()]
    except KeyError:
        raise CodeExecutionError(f"Unsupported language: {language}") from None


def _encode(text: str | None) -> str | None:
    if text is None:
        return None
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _decode(text: str | None) -> str | None:
    if not text:
        return None
    return base64.b64decode(text).decode("utf-8", errors="replace")


class Judge0Client:
    """Submits code to Judge0 and polls until the submission finishes."""

    def __init__(
        self,
        api_key: str = JUDGE0_API_KEY,
        base_url: str = JUDGE0_API_URL,
        *,
        max_wait: float = 30.0,
        poll_interval: float = 1.0,
        http: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_wait = max_wait
        self.poll_interval = poll_interval
        self._headers = {
            "Content-Type": "application/json",
            "X-RapidAPI-Key": api_key,
            "X-RapidAPI-Host": urlparse(self.base_url).hostname or "",
        }
        self._http = http or httpx.Client(timeout=10.0)
        self._sleep = sleep

    def close(self) -> None:
        self._http.close()

    def submit(self, request: ExecutionRequest) -> str:
        """Create a submission and return its token."""
        payload = {
            "source_code": _encode(request.code),
            "language_id": language_id(request.language),
            "stdin": _encode(request.stdin),
            "expected_output": _encode(request.expected_output),
            "cpu_time_limit": request.time_limit or DEFAULT_CPU_TIME_LIMIT,
            "memory_limit": request.memory_limit or DEFAULT_MEMORY_LIMIT,
        }
        resp = self._http.post(
            f"{self.base_url}/submissions",
            params={"base64_encoded": "true", "wait": "false"},
            json={k: v for k, v in payload.items() if v is not None},
            headers=self._headers,
        )
        if not resp.is_success:
            raise CodeExecutionError(f"Judge0 submission failed: {resp.text}")
        return resp.json()["token"]

    def get_result(self, token: str) -> ExecutionResult:
        resp = self._http.get(
            f"{self.base_url}/submissions/{token}",
            params={
                "base64_encoded": "true",
                "fields": "status,stdout,stderr,compile_output,time,memory,message",
            },
            headers=self._headers,
        )
        if not resp.is_success:
            raise CodeExecutionError(f"Failed to get submission result: {resp.text}")
        data = resp.json()
        return ExecutionResult(
            status=data["status"],
            stdout=_decode(data.get("stdout")),
            stderr=_decode(data.get("stderr")),
            compile_output=_decode(data.get("compile_output")),
            time=data.get("time"),
            memory=data.get("memory"),
            token=token,
            message=data.get("message"),
        )

    def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Submit and poll until Judge0 is done, or fail after ``max_wait``."""
        token = self.submit(request)
        started = time.monotonic()
        while time.monotonic() - started < self.max_wait:
            result = self.get_result(token)
            if result.status.id > SubmissionStatus.processing:
                return result
            self._sleep(self.poll_interval)
        raise CodeExecutionError("Execution timed out")

    def run_test_cases(
        self,
        code: str,
        language: str,
        test_cases: list[TestCase],
        time_limit: float | None = None,
    ) -> list[TestCaseResult]:
        """Run ``code`` once per test case; a failing case never stops the rest."""
        language_id(language)  # unsupported language fails the whole run

        results: list[TestCaseResult] = []
        for case in test_cases:
            try:
                result = self.execute(
                    ExecutionRequest(
                        code=code,
                        language=language,
                        stdin=case.input,
                        expected_output=case.expected_output,
                        time_limit=time_limit,
                    )
                )
            except (CodeExecutionError, httpx.HTTPError) as e:
                logger.warning("Test case %s failed to execute: %s", case.id, e)
                results.append(
                    TestCaseResult(
                        id=case.id,
                        passed=False,
                        input=case.input,
                        expected_output=case.expected_output,
                        error=str(e) or "Unknown error",
                    )
                )
                continue

            actual = (result.stdout or "").strip()
            results.append(
                TestCaseResult(
                    id=case.id,
                    passed=actual == case.expected_output.strip(),
                    input=case.input,
                    expected_output=case.expected_output,
                    actual_output=actual,
                    execution_time=result.time,
                    error=result.stderr or result.compile_output or None,
                )
            )
        return results


def all_tests_passed(results: list[TestCaseResult]) -> bool:
    return len(results) > 0 and all(r.passed for r in results)


def simulated_test_results(test_cases: list[TestCase]) -> list[TestCaseResult]:
    """Placeholder results returned by the execute endpoint in demo mode."""
    return [
        TestCaseResult(
            id=case.id,
            passed=False,
            input=case.input,
            expected_output=case.expected_output,
            actual_output=DEMO_OUTPUT,
            error="Code execution requires Judge0 API configuration. "
            "Set JUDGE0_API_KEY to enable it.",
        )
        for case in test_cases
    ]


def runner_from_env() -> Judge0Client | None:
    """Return a Judge0 client if an API key is configured, else None."""
    if not JUDGE0_API_KEY:
        logger.warning(
            "JUDGE0_API_KEY not set. Code questions will be graded heuristically."
        )
        return None
    return Judge0Client()
