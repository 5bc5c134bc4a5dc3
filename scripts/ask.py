#!/usr/bin/env python3
"""
Ask the agentic RAG loop a question from the command line.

Ingests the configured sources (SOURCE_URLS), then streams each node's output
as the graph runs. Use --check to only verify the LLM endpoint is reachable.

Run from project root:

    python scripts/ask.py "What does Lilian Weng say about types of reward hacking?"
    python scripts/ask.py --check
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Project root on path so "agentic_rag" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from agentic_rag.agent.llm import check_connection
from agentic_rag.core.config import MAX_REWRITES, OPENAI_BASE_URL
from agentic_rag.core.errors import ServiceUnavailableError
from agentic_rag.services.agent_service import build_orchestrator


async def _check() -> int:
    try:
        models = await check_connection()
    except ServiceUnavailableError as e:
        print(f"Cannot connect to LLM endpoint at {OPENAI_BASE_URL}")
        print(f"Error: {e.message}")
        return 1
    print(f"LLM endpoint is running at {OPENAI_BASE_URL}! Available models:")
    for m in models:
        print(f"  - {m}")
    return 0


async def _ask(question: str, max_rewrites: int) -> int:
    print("Creating vector store, retriever...")
    orchestrator = await build_orchestrator(max_rewrites=max_rewrites)
    exit_code = 0
    async for evt in orchestrator.run_stream(question):
        if evt["event"] == "node":
            print(f"Output from node: '{evt['node']}'")
            if evt.get("verdict"):
                print(f"  verdict: {evt['verdict']}")
            for turn in evt["turns"]:
                print(f"  [{turn['role']}] {turn['content']}")
                for tc in turn.get("tool_calls", []):
                    print(f"    tool_call {tc['name']}({tc['arguments']}) id={tc['id']}")
            print("---\n")
        elif evt["event"] == "done":
            print(f"Run {evt['status']} after {evt['iterations']} rewrite(s).")
            if evt["status"] != "succeeded":
                print(f"  node={evt['failed_node']} error={evt['error']}")
                exit_code = 1
        else:
            print(f"Error: {evt.get('message')}")
            exit_code = 1
    return exit_code


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the agentic RAG loop for one question.")
    parser.add_argument("question", nargs="?", help="Question to ask.")
    parser.add_argument("--check", action="store_true", help="Only check the LLM endpoint and list its models.")
    parser.add_argument("--max-rewrites", type=int, default=MAX_REWRITES, help="Rewrite cycles before the run aborts.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    if args.check:
        sys.exit(asyncio.run(_check()))
    if not args.question:
        parser.error("question is required unless --check is given")
    sys.exit(asyncio.run(_ask(args.question, args.max_rewrites)))


if __name__ == "__main__":
    main()
