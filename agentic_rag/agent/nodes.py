"""
LangGraph nodes for the agentic RAG loop.

    query_or_respond: model decides to answer directly or call tools; tools run inline
    grade_documents:  structured yes/no relevance of the latest content to the seed question
    rewrite:          reformulate the seed question
    generate:         concise answer from the seed question and latest content

Nodes never mutate state in place: they return new turns to append plus any
scalar updates. Gateway errors propagate to the orchestrator.
"""

import logging
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from agentic_rag.agent.conversation import ConversationLog, Turn
from agentic_rag.agent.llm import LLMGateway
from agentic_rag.agent.state import AgentState, GradeVerdict
from agentic_rag.agent.tools import ToolRegistry, execute_tool_calls
from agentic_rag.core.config import TOOL_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

GRADE_PROMPT = """You are a grader assessing relevance of retrieved docs to a user question.
Here are the retrieved docs:
-------
{context}
-------
Here is the user question: {question}
If the content of the docs are relevant to the users question, score them as relevant.
Give a binary score 'yes' or 'no' score to indicate whether the docs are relevant to the question.
Yes: The docs are relevant to the question.
No: The docs are not relevant to the question."""

REWRITE_PROMPT = """Look at the input and try to reason about the underlying semantic intent / meaning.
Here is the initial question:
-------
{question}
-------
Formulate an improved question:"""

GENERATE_PROMPT = """You are an assistant for question-answering tasks.
Use the following pieces of retrieved context to answer the question.
If you don't know the answer, just say that you don't know.
Use three sentences maximum and keep the answer concise.
Question: {question}
Context: {context}"""


class GradeDocuments(BaseModel):
    """Grade documents using a binary score for relevance check."""

    binary_score: Literal["yes", "no"] = Field(description="Relevance score 'yes' or 'no'")

    @field_validator("binary_score", mode="before")
    @classmethod
    def _normalize(cls, v: object) -> object:
        return v.strip().lower() if isinstance(v, str) else v


class AgentNodes:
    """Node implementations bound to one gateway and one tool registry."""

    def __init__(
        self,
        gateway: LLMGateway,
        registry: ToolRegistry,
        tool_timeout: float | None = TOOL_TIMEOUT_SECONDS,
    ) -> None:
        self.gateway = gateway
        self.registry = registry
        self.tool_timeout = tool_timeout

    async def query_or_respond(self, state: AgentState) -> dict:
        """Answer directly, or run the requested tools once and answer over their output."""
        log = ConversationLog(state["turns"])
        view = log.for_model()
        logger.info("[graph:query_or_respond] IN  turns=%d model_view=%d", len(log), len(view))
        reply = await self.gateway.generate_with_tools(view, self.registry.specs())
        logger.info("[graph:query_or_respond] tool_calls=%d", len(reply.tool_calls))
        if not reply.tool_calls:
            logger.info("[graph:query_or_respond] OUT direct response content_len=%d", len(reply.content))
            return {"turns": [reply]}

        results = await execute_tool_calls(self.registry, reply.tool_calls, timeout=self.tool_timeout)
        tool_turns = [r.to_turn() for r in results]
        # Free-form, not generate_with_tools: this reply must never carry tool calls left unanswered in the log
        follow_up = await self.gateway.generate([*view, reply, *tool_turns])
        logger.info(
            "[graph:query_or_respond] OUT tool_results=%d errors=%d follow_up_len=%d",
            len(results),
            sum(1 for r in results if r.is_error),
            len(follow_up.content),
        )
        return {"turns": [reply, *tool_turns, follow_up]}

    async def grade_documents(self, state: AgentState) -> dict:
        log = ConversationLog(state["turns"])
        question = log.first().content
        context = log.latest().content
        logger.info("[graph:grade_documents] IN  question=%r context_len=%d", question, len(context))
        prompt = GRADE_PROMPT.format(context=context, question=question)
        score = await self.gateway.generate_structured([Turn.user(prompt)], GradeDocuments)
        verdict = GradeVerdict.RELEVANT if score.binary_score == "yes" else GradeVerdict.IRRELEVANT
        logger.info("[graph:grade_documents] OUT binary_score=%s verdict=%s", score.binary_score, verdict.value)
        return {"verdict": verdict}

    async def rewrite(self, state: AgentState) -> dict:
        """Reformulate the original question; intervening turns are ignored."""
        question = ConversationLog(state["turns"]).first().content
        iteration = state.get("iteration") or 0
        logger.info("[graph:rewrite] IN  iteration=%d original_question=%r", iteration, question)
        response = await self.gateway.generate([Turn.user(REWRITE_PROMPT.format(question=question))])
        rewritten = response.content.strip() or question
        logger.info("[graph:rewrite] OUT rewritten_question=%r", rewritten)
        return {"turns": [Turn.user(rewritten)], "iteration": iteration + 1}

    async def generate(self, state: AgentState) -> dict:
        log = ConversationLog(state["turns"])
        question = log.first().content
        context = log.latest().content
        logger.info("[graph:generate] IN  question=%r context_len=%d", question, len(context))
        answer = await self.gateway.generate([Turn.user(GENERATE_PROMPT.format(question=question, context=context))])
        logger.info("[graph:generate] OUT answer_len=%d", len(answer.content))
        return {"turns": [answer]}
