"""
Text processing for RAG: HTML extraction, cleaning and chunking.

Cleaning reduces noise and encoding inconsistencies so embeddings and retrieval
focus on content. Chunk quality directly impacts retrieval accuracy.
"""

import re
import unicodedata

from bs4 import BeautifulSoup

# Elements that never carry article text
_NON_CONTENT_TAGS = ("script", "style", "noscript", "nav", "header", "footer", "svg")


def html_to_text(html: str) -> str:
    """Extract readable text from an HTML page, preferring the <article> body when present."""
    if not html or not html.strip():
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_NON_CONTENT_TAGS):
        tag.decompose()
    root = soup.find("article") or soup.body or soup
    return root.get_text("\n")


def clean_text(text: str) -> str:
    """
    Normalize and clean raw document text.

    NFKC-normalizes, strips each line, drops consecutive duplicate lines and
    collapses runs of blank lines to one.
    """
    if not text or not text.strip():
        return ""
    text = unicodedata.normalize("NFKC", text)
    result: list[str] = []
    for line in (line.strip() for line in text.splitlines()):
        if result and result[-1] == line:
            continue
        result.append(line)
    return "\n".join(result).strip()


def _tail_overlap(parts: list[str], overlap: int) -> list[str]:
    """Trailing parts whose joined length fits in overlap; carried into the next chunk."""
    kept: list[str] = []
    size = 0
    for part in reversed(parts):
        if size + len(part) + 1 > overlap:
            break
        kept.append(part)
        size += len(part) + 1
    kept.reverse()
    return kept


def _joined_len(parts: list[str]) -> int:
    return sum(len(p) for p in parts) + max(0, len(parts) - 1)


def chunk_text(text: str, chunk_size: int = 500, overlap: int = 50) -> list[str]:
    """
    Split text into overlapping chunks on sentence boundaries.

    Sentences longer than chunk_size are split on words. The tail of each chunk
    (up to overlap characters, whole sentences or words only) starts the next one.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be >= 0 and smaller than chunk_size")
    if not text or not text.strip():
        return []
    text = text.strip()
    if len(text) <= chunk_size:
        return [text]

    units: list[str] = []
    for sent in re.split(r"(?<=[.!?])\s+|\n+", text):
        sent = sent.strip()
        if not sent:
            continue
        units.extend(sent.split() if len(sent) > chunk_size else [sent])

    chunks: list[str] = []
    current: list[str] = []
    for unit in units:
        if current and _joined_len(current) + 1 + len(unit) > chunk_size:
            chunks.append(" ".join(current))
            current = _tail_overlap(current, overlap)
            if current and _joined_len(current) + 1 + len(unit) > chunk_size:
                current = []
        current.append(unit)
    if current:
        chunks.append(" ".join(current))
    return chunks
