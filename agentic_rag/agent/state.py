"""
Graph state and the closed set of node names for the RAG agent state machine.
"""

import operator
from enum import Enum
from typing import Annotated, TypedDict

from agentic_rag.agent.conversation import Turn


class Node(str, Enum):
    QUERY_OR_RESPOND = "query_or_respond"
    # Tool execution runs inline inside query_or_respond; named here so the
    # state set stays closed and it can be reported in events.
    TOOL_EXECUTION = "tool_execution"
    GRADE_DOCUMENTS = "grade_documents"
    REWRITE = "rewrite"
    GENERATE = "generate"
    TERMINATED = "terminated"


class GradeVerdict(str, Enum):
    RELEVANT = "relevant"
    IRRELEVANT = "irrelevant"


class AgentState(TypedDict):
    turns: Annotated[list[Turn], operator.add]  # append-only; nodes return new turns only
    iteration: int  # completed rewrite cycles
    max_rewrites: int
    verdict: GradeVerdict | None  # routing decision from grade_documents; never a Turn
