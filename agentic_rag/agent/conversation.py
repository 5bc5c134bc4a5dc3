"""
Conversation log: the ordered, append-only turn sequence shared by all agent nodes.

Turns are frozen; nodes read a log and return new turns for the orchestrator to append.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


# Roles the model sees when deciding whether to call tools
MODEL_ROLES = frozenset({Role.USER, Role.ASSISTANT, Role.TOOL})


@dataclass(frozen=True)
class ToolCall:
    """A model request to invoke a named tool."""

    name: str
    arguments: dict[str, Any]
    call_id: str


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool call; content is always text."""

    call_id: str
    content: str
    is_error: bool = False

    def to_turn(self) -> "Turn":
        return Turn(role=Role.TOOL, content=self.content, tool_call_id=self.call_id)


@dataclass(frozen=True)
class Turn:
    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = field(default_factory=tuple)
    tool_call_id: str | None = None

    def __post_init__(self) -> None:
        if self.tool_calls and self.role != Role.ASSISTANT:
            raise ValueError(f"only assistant turns can request tool calls, got role={self.role.value}")
        if self.tool_call_id is not None and self.role != Role.TOOL:
            raise ValueError(f"only tool turns carry tool_call_id, got role={self.role.value}")
        if self.role == Role.TOOL and not self.tool_call_id:
            raise ValueError("tool turns must carry tool_call_id")

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str = "", tool_calls: Iterable[ToolCall] = ()) -> "Turn":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view used by the API and stream events."""
        out: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            out["tool_calls"] = [
                {"id": tc.call_id, "name": tc.name, "arguments": tc.arguments} for tc in self.tool_calls
            ]
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        return out

    def to_openai(self) -> dict[str, Any]:
        """OpenAI chat-completions message format."""
        msg: dict[str, Any] = {"role": self.role.value, "content": self.content or ""}
        if self.tool_calls:
            msg["tool_calls"] = [
                {
                    "id": tc.call_id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments or {})},
                }
                for tc in self.tool_calls
            ]
        if self.tool_call_id is not None:
            msg["tool_call_id"] = self.tool_call_id
        return msg


class ConversationLog:
    """
    Append-only turn sequence for a single run.

    Enforces that each tool turn answers a call_id emitted by an earlier assistant turn.
    There is no deletion; the log only grows.
    """

    def __init__(self, turns: Iterable[Turn] = ()) -> None:
        self._turns: list[Turn] = []
        self._call_ids: set[str] = set()
        self.append(turns)

    def append(self, turns: Turn | Iterable[Turn]) -> None:
        if isinstance(turns, Turn):
            turns = [turns]
        for turn in turns:
            if turn.role == Role.TOOL and turn.tool_call_id not in self._call_ids:
                raise ValueError(f"tool turn references unknown call_id={turn.tool_call_id!r}")
            self._turns.append(turn)
            self._call_ids.update(tc.call_id for tc in turn.tool_calls)

    def first(self) -> Turn:
        """The seed turn: the original question. A leading system priming turn is skipped."""
        for turn in self._turns:
            if turn.role == Role.USER:
                return turn
        raise IndexError("conversation log has no user turn")

    def latest(self) -> Turn:
        if not self._turns:
            raise IndexError("conversation log is empty")
        return self._turns[-1]

    def for_model(self) -> list[Turn]:
        """User/assistant/tool turns only; system priming stays in the log for audit."""
        return [t for t in self._turns if t.role in MODEL_ROLES]

    def current_pass(self) -> list[Turn]:
        """Turns appended after the most recent user turn (the current question's pass)."""
        for i in range(len(self._turns) - 1, -1, -1):
            if self._turns[i].role == Role.USER:
                return self._turns[i + 1 :]
        return list(self._turns)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))
