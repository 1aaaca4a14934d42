"""MCP Server — question authoring and grading tools for assistants.

Tools:
- list_question_types / validate_question  (question authoring)
- grade_answer / grade_quiz_submission      (grading previews, nothing recorded)
"""

from __future__ import annotations

import argparse
import logging

from mcp.server.fastmcp import FastMCP

from dsa_quiz.judge0 import runner_from_env
from dsa_quiz.quiz_engine import QuizStore
from dsa_quiz.tools import grading, questions

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

mcp = FastMCP("dsa-quiz")

# Shared store used by the grading tools
store = QuizStore()

questions.register(mcp)
grading.register(mcp, store, runner_from_env())


def main():
    """Run the MCP server."""
    parser = argparse.ArgumentParser(description="DSA Quiz MCP Server")
    parser.add_argument(
        "--sse",
        type=int,
        metavar="PORT",
        help="Run with SSE transport on specified port",
    )
    parser.add_argument(
        "--http",
        type=int,
        metavar="PORT",
        help="Run with Streamable HTTP transport on specified port",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.sse:
        transport = "sse"
        port = args.sse
    elif args.http:
        transport = "http"
        port = args.http
    else:
        transport = "stdio"
        port = None

    logger.info("Starting DSA Quiz MCP server (transport: %s)...", transport)

    if transport == "stdio":
        mcp.run(transport="stdio")
    elif transport == "sse":
        mcp.settings.host = "0.0.0.0"
        mcp.settings.port = port
        mcp.run(transport="sse")
    elif transport == "http":
        mcp.settings.host = "0.0.0.0"
        mcp.settings.port = port
        mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
