from __future__ import annotations

"""Answer generator protocol and the offline extractive answerer."""

from dataclasses import dataclass
from typing import Protocol

from src.rag.types import SearchResult

DEFAULT_REFUSAL = "I don't know based on the provided context."


class AnswerGenerator(Protocol):
    """Produce an answer to a question from retrieved context."""

    async def generate(self, question: str, contexts: list[SearchResult]) -> str:
        raise NotImplementedError


@dataclass
class ExtractiveAnswerer:
    """Return a short extract from the highest scoring chunk."""
    max_chars: int = 480

    async def generate(self, question: str, contexts: list[SearchResult]) -> str:
        """Generate an extractive answer from context."""
        if not contexts:
            return DEFAULT_REFUSAL
        best = max(contexts, key=lambda result: result.score)
        snippet = self._truncate(best.chunk.text.strip())
        if not snippet:
            return DEFAULT_REFUSAL
        return f"Based on the provided context: {snippet}"

    def _truncate(self, text: str) -> str:
        """Trim text to the max character budget without cutting words."""
        if len(text) <= self.max_chars:
            return text
        return text[: self.max_chars].rsplit(" ", 1)[0] + "..."
