"""
Agent and service errors.

ToolInvocationError is recovered inside tool execution (it becomes error text in
the log). GatewayError, SchemaViolation and RunAbortedError end a run. Use
ServiceUnavailableError when a dependency (LLM endpoint, vector store) is
misconfigured or unreachable so the API can return 503 with a user-facing message.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. LLM endpoint, embeddings API) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ToolInvocationError(Exception):
    """A named tool failed, rejected its arguments, or could not be resolved."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        self.message = message
        super().__init__(f"{tool_name}: {message}")


class GatewayError(Exception):
    """The generation capability failed (transport, timeout, malformed response)."""

    def __init__(self, message: str, node: str | None = None) -> None:
        self.message = message
        self.node = node
        super().__init__(message)


class SchemaViolation(GatewayError):
    """Structured output did not parse into the requested schema."""


class RunAbortedError(Exception):
    """The rewrite cycle hit the configured iteration cap."""

    def __init__(self, iterations: int, max_rewrites: int) -> None:
        self.iterations = iterations
        self.max_rewrites = max_rewrites
        super().__init__(
            f"Run aborted after {iterations} rewrite(s): retrieved documents never graded relevant "
            f"(max_rewrites={max_rewrites})"
        )
