"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the agent and services decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


# OpenAI-compatible endpoint (OpenAI itself, or a local LM Studio server)
OPENAI_BASE_URL: str = (
    os.getenv("OPENAI_BASE_URL", "http://127.0.0.1:1234/v1").strip()
    or "http://127.0.0.1:1234/v1"
)
# Local servers ignore the key but the SDK requires one
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip() or "lm-studio"
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "granite-4.0-h-tiny").strip() or "granite-4.0-h-tiny"
)
OPENAI_EMBED_MODEL: str = (
    os.getenv("OPENAI_EMBED_MODEL", "text-embedding-nomic-embed-text-v1.5").strip()
    or "text-embedding-nomic-embed-text-v1.5"
)

# Generation
LLM_TEMPERATURE: float = _env_float("LLM_TEMPERATURE", 0.0)
AGENT_MAX_TOKENS: int = _env_int("AGENT_MAX_TOKENS", 500)

# API timeouts (seconds)
LLM_API_TIMEOUT: float = _env_float("LLM_API_TIMEOUT", 60.0)
FETCH_TIMEOUT: float = _env_float("FETCH_TIMEOUT", 30.0)
HEALTH_CHECK_TIMEOUT: float = 5.0

# Agent graph
MAX_REWRITES: int = _env_int("MAX_REWRITES", 3)
RUN_TIMEOUT_SECONDS: float = _env_float("RUN_TIMEOUT_SECONDS", 120.0)
TOOL_TIMEOUT_SECONDS: float = _env_float("TOOL_TIMEOUT_SECONDS", 30.0)

# Knowledge source
DEFAULT_SOURCE_URLS: tuple[str, ...] = (
    "https://lilianweng.github.io/posts/2023-06-23-agent/",
    "https://lilianweng.github.io/posts/2023-03-15-prompt-engineering/",
    "https://lilianweng.github.io/posts/2023-10-25-adv-attack-llm/",
)
SOURCE_URLS: tuple[str, ...] = tuple(
    u.strip() for u in os.getenv("SOURCE_URLS", "").split(",") if u.strip()
) or DEFAULT_SOURCE_URLS

# Chunking defaults (tuning these affects retrieval quality)
CHUNK_SIZE: int = _env_int("CHUNK_SIZE", 500)
CHUNK_OVERLAP: int = _env_int("CHUNK_OVERLAP", 50)

# Retrieval
SEARCH_TOP_K: int = _env_int("SEARCH_TOP_K", 4)
EMBED_BATCH_SIZE: int = 32

# Retriever tool exposed to the model
RETRIEVER_TOOL_NAME: str = "retrieve_blog_posts"
RETRIEVER_TOOL_DESCRIPTION: str = (
    "Search and return information about Lilian Weng blog posts on LLM agents, "
    "prompt engineering, and adversarial attacks on LLMs."
)
