from __future__ import annotations

"""LLM answerers that answer strictly from retrieved context."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from src.rag.answerer import DEFAULT_REFUSAL
from src.rag.errors import ConfigurationError, UpstreamError
from src.rag.types import SearchResult

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a question answering assistant. "
    "Use only the pieces of context supplied with the question. "
    "If the answer is not in the context, reply exactly: "
    f"\"{DEFAULT_REFUSAL}\" "
    "Do not use outside knowledge and do not make up an answer."
)


class LLMError(UpstreamError):
    """Raised when an LLM call fails or returns an unusable payload."""
    pass


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling and prompt settings shared by every provider."""
    model: str
    temperature: float = 0.7
    max_tokens: int = 512
    timeout: float = 30.0
    context_max_chars: int = 12000
    system_prompt: str = SYSTEM_PROMPT


def build_context_block(contexts: list[SearchResult], max_chars: int) -> str:
    """Join chunk texts into a context block capped at max_chars."""
    pieces: list[str] = []
    used = 0
    for result in contexts:
        text = result.chunk.text.strip()
        if not text:
            continue
        budget = max_chars - used
        if budget <= 0:
            break
        pieces.append(text[:budget])
        used += len(pieces[-1]) + 2
    return "\n\n".join(pieces)


def build_user_prompt(question: str, contexts: list[SearchResult], max_chars: int) -> str:
    """Present retrieved context followed by the question."""
    return (
        f"Context:\n{build_context_block(contexts, max_chars)}\n\n"
        f"Question: {question}\n"
        "Answer using only the context above."
    )


def chat_messages(
    question: str, contexts: list[SearchResult], options: GenerationOptions
) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": options.system_prompt},
        {
            "role": "user",
            "content": build_user_prompt(question, contexts, options.context_max_chars),
        },
    ]


def _message_content(message: Any, provider: str) -> str:
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        raise LLMError(f"Invalid {provider} response content")
    return content.strip()


@dataclass(frozen=True)
class OpenAIAnswerer:
    """Chat completions against an OpenAI-compatible endpoint."""
    api_key: str
    base_url: str
    options: GenerationOptions
    client: httpx.AsyncClient | None = None

    async def generate(self, question: str, contexts: list[SearchResult]) -> str:
        if not contexts:
            return DEFAULT_REFUSAL
        data = await _post_json(
            self.client,
            f"{self.base_url}/chat/completions",
            {
                "model": self.options.model,
                "messages": chat_messages(question, contexts, self.options),
                "temperature": self.options.temperature,
                "max_tokens": self.options.max_tokens,
            },
            timeout=self.options.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        choices = data.get("choices") or []
        if not choices:
            raise LLMError("OpenAI response has no choices")
        return _message_content(choices[0].get("message"), "OpenAI")


@dataclass(frozen=True)
class OllamaAnswerer:
    """Non-streaming chat against a local Ollama server."""
    base_url: str
    options: GenerationOptions
    client: httpx.AsyncClient | None = None

    async def generate(self, question: str, contexts: list[SearchResult]) -> str:
        if not contexts:
            return DEFAULT_REFUSAL
        data = await _post_json(
            self.client,
            f"{self.base_url}/api/chat",
            {
                "model": self.options.model,
                "messages": chat_messages(question, contexts, self.options),
                "stream": False,
                "options": {
                    "temperature": self.options.temperature,
                    "num_predict": self.options.max_tokens,
                },
            },
            timeout=self.options.timeout,
        )
        return _message_content(data.get("message"), "Ollama")


@dataclass(frozen=True)
class GeminiAnswerer:
    """Single-turn generation through the google-generativeai SDK."""
    api_key: str
    options: GenerationOptions

    async def generate(self, question: str, contexts: list[SearchResult]) -> str:
        if not contexts:
            return DEFAULT_REFUSAL
        import google.generativeai as genai

        options = self.options
        prompt = (
            f"{options.system_prompt}\n\n"
            f"{build_user_prompt(question, contexts, options.context_max_chars)}"
        )

        def _run() -> str:
            genai.configure(api_key=self.api_key)
            response = genai.GenerativeModel(options.model).generate_content(
                prompt,
                generation_config={
                    "temperature": options.temperature,
                    "max_output_tokens": options.max_tokens,
                },
            )
            return getattr(response, "text", "") or ""

        try:
            content = await asyncio.wait_for(asyncio.to_thread(_run), timeout=options.timeout)
        except Exception as exc:
            logger.error("llm_request_failed", extra={"provider": "gemini", "detail": type(exc).__name__})
            raise LLMError(str(exc) or type(exc).__name__) from exc
        return content.strip()


async def _post_json(
    client: httpx.AsyncClient | None,
    url: str,
    payload: dict[str, Any],
    timeout: float,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """POST a JSON payload, reusing the injected client when present."""
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout)
    try:
        response = await client.post(url, json=payload, headers=headers)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as exc:
        logger.error("llm_request_failed", extra={"url": url, "detail": type(exc).__name__})
        raise LLMError(str(exc)) from exc
    except ValueError as exc:
        raise LLMError("LLM response is not valid JSON") from exc
    finally:
        if owns_client:
            await client.aclose()
    if not isinstance(data, dict):
        raise LLMError("LLM response is not a JSON object")
    return data


def build_llm_answerer(
    provider: str,
    *,
    api_key_openai: str | None,
    api_key_gemini: str | None,
    openai_base_url: str,
    openai_model: str | None,
    gemini_model: str | None,
    ollama_base_url: str,
    ollama_model: str,
    temperature: float,
    max_tokens: int,
    timeout: float,
    context_max_chars: int,
) -> OpenAIAnswerer | OllamaAnswerer | GeminiAnswerer:
    """Build the answerer for RAG_LLM_PROVIDER, checking its credentials."""
    normalized = provider.strip().lower()

    def options(model: str) -> GenerationOptions:
        return GenerationOptions(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            context_max_chars=context_max_chars,
        )

    if normalized == "openai":
        if not api_key_openai:
            raise ConfigurationError("OPENAI_API_KEY is required for the openai provider")
        if not openai_model:
            raise ConfigurationError("OPENAI_CHAT_MODEL is required for the openai provider")
        return OpenAIAnswerer(
            api_key=api_key_openai,
            base_url=openai_base_url.rstrip("/"),
            options=options(openai_model),
        )
    if normalized in {"gemini", "google"}:
        if not api_key_gemini:
            raise ConfigurationError("GEMINI_API_KEY is required for the gemini provider")
        if not gemini_model:
            raise ConfigurationError("GEMINI_CHAT_MODEL is required for the gemini provider")
        return GeminiAnswerer(api_key=api_key_gemini, options=options(gemini_model))
    if normalized == "ollama":
        return OllamaAnswerer(
            base_url=ollama_base_url.rstrip("/"), options=options(ollama_model)
        )
    raise ConfigurationError(f"Unsupported LLM provider: {provider}")
