from __future__ import annotations

"""Grounded answer synthesis over chat-completion providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import asyncio
import logging
from typing import Any, Protocol

import httpx

from insight_rag.rag.errors import (
    ConfigurationError,
    GenerationServiceError,
    MalformedGenerationResponse,
)
from insight_rag.rag.types import ContextBlock


class LLMConfigError(ConfigurationError):
    """Raised when the generation provider is misconfigured."""
    pass


logger = logging.getLogger(__name__)


DEFAULT_BLOG_DESCRIPTION = "a technical blog about AI and backend engineering"
DEFAULT_FALLBACK_ANSWER = "I don't have information on that in my articles yet."
GROQ_BASE_URL = "https://api.groq.com/openai/v1"
OPENAI_BASE_URL = "https://api.openai.com/v1"

_CONTEXT_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class PromptTemplate:
    """Persona and grounding instructions for answer prompts."""
    blog_description: str = DEFAULT_BLOG_DESCRIPTION
    fallback_answer: str = DEFAULT_FALLBACK_ANSWER

    def render(self, question: str, context: str) -> str:
        return (
            f"You are a helpful assistant for {self.blog_description}.\n\n"
            "Answer the question using ONLY the context provided below. "
            "Be concise and practical.\n"
            f"If the answer is not in the context, say \"{self.fallback_answer}\"\n\n"
            f"Context:\n{context}\n\n"
            f"Question: {question}\n\n"
            "Answer:"
        )


def build_context_block(contexts: list[ContextBlock], max_chars: int) -> str:
    """Join context passages labelled by their article title."""
    blocks: list[str] = []
    total = 0
    for context in contexts:
        header = f"From \"{context.title}\":\n"
        text = context.text.strip()
        block = header + text
        if total + len(block) > max_chars:
            remaining = max_chars - total
            if remaining <= len(header):
                break
            block = header + text[: remaining - len(header)]
        blocks.append(block)
        total += len(block) + len(_CONTEXT_SEPARATOR)
        if total >= max_chars:
            break
    return _CONTEXT_SEPARATOR.join(blocks)


def build_prompt(
    question: str,
    contexts: list[ContextBlock],
    template: PromptTemplate,
    context_max_chars: int,
) -> str:
    """Render the single prompt sent to the generation service."""
    context = build_context_block(contexts, context_max_chars)
    return template.render(question.strip(), context)


class AnswerSynthesizer(Protocol):
    """Protocol for grounded answer generation."""

    async def synthesize(self, question: str, contexts: list[ContextBlock]) -> str:
        """Return an answer grounded in ``contexts``."""
        raise NotImplementedError


@dataclass(frozen=True)
class ChatSynthesizer(ABC):
    """Shared prompt handling for chat-based providers."""
    model: str
    temperature: float = 0.2
    max_tokens: int = 512
    timeout: float = 30.0
    context_max_chars: int = 12000
    template: PromptTemplate = field(default_factory=PromptTemplate)

    async def synthesize(self, question: str, contexts: list[ContextBlock]) -> str:
        """Generate a grounded answer for the question."""
        prompt = build_prompt(question, contexts, self.template, self.context_max_chars)
        answer = (await self._complete(prompt)).strip()
        if not answer:
            logger.warning("llm_empty_answer", extra={"model": self.model})
            return self.template.fallback_answer
        return answer

    @abstractmethod
    async def _complete(self, prompt: str) -> str:
        """Return the raw completion text for ``prompt``."""


@dataclass(frozen=True)
class OpenAICompatibleSynthesizer(ChatSynthesizer):
    """Synthesizer backed by an OpenAI-compatible chat completions API."""
    api_key: str = ""
    base_url: str = OPENAI_BASE_URL
    provider: str = "openai"
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False, compare=False)

    async def _complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = await _post_json(
            f"{self.base_url}/chat/completions",
            payload,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
            provider=self.provider,
        )
        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise MalformedGenerationResponse(f"Invalid {self.provider} response")
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise MalformedGenerationResponse(f"Invalid {self.provider} response content")
        return content


@dataclass(frozen=True)
class OllamaSynthesizer(ChatSynthesizer):
    """Synthesizer backed by the Ollama chat API."""
    base_url: str = "http://localhost:11434"
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False, compare=False)

    async def _complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        }
        data = await _post_json(
            f"{self.base_url}/api/chat",
            payload,
            timeout=self.timeout,
            transport=self.transport,
            provider="ollama",
        )
        message = data.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise MalformedGenerationResponse("Invalid Ollama response")
        return content


@dataclass(frozen=True)
class GeminiSynthesizer(ChatSynthesizer):
    """Synthesizer backed by Gemini generative models."""
    api_key: str = ""
    client: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Configure the Gemini client once per synthesizer."""
        if self.client is not None:
            return
        try:
            import google.generativeai as genai
        except ImportError as exc:
            raise LLMConfigError("google-generativeai is required for GeminiSynthesizer") from exc
        genai.configure(api_key=self.api_key)
        object.__setattr__(self, "client", genai)

    async def _complete(self, prompt: str) -> str:
        def _run() -> Any:
            model = self.client.GenerativeModel(self.model)
            return model.generate_content(
                prompt,
                generation_config={
                    "temperature": self.temperature,
                    "max_output_tokens": self.max_tokens,
                },
            )

        try:
            response = await asyncio.wait_for(asyncio.to_thread(_run), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise GenerationServiceError("Gemini generation timed out") from exc
        except Exception as exc:
            raise GenerationServiceError(f"Gemini generation failed: {exc}") from exc
        try:
            text = response.text
        except (AttributeError, ValueError) as exc:
            raise MalformedGenerationResponse("Gemini response has no text") from exc
        if not isinstance(text, str):
            raise MalformedGenerationResponse("Gemini response has no text")
        return text


async def _post_json(
    url: str,
    payload: dict[str, Any],
    *,
    timeout: float,
    provider: str,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """POST a JSON payload and return the decoded object body."""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPError as exc:
        raise GenerationServiceError(f"{provider} request failed: {exc}") from exc
    except ValueError as exc:
        raise MalformedGenerationResponse(f"{provider} response is not JSON") from exc
    if not isinstance(data, dict):
        raise MalformedGenerationResponse(f"{provider} response is not an object")
    return data


def build_synthesizer(
    provider: str,
    *,
    groq_api_key: str | None,
    groq_base_url: str,
    groq_model: str,
    openai_api_key: str | None,
    openai_base_url: str,
    openai_model: str | None,
    gemini_api_key: str | None,
    gemini_model: str | None,
    ollama_base_url: str,
    ollama_model: str,
    temperature: float,
    max_tokens: int,
    timeout: float,
    context_max_chars: int,
    template: PromptTemplate | None = None,
) -> ChatSynthesizer:
    """Factory for answer synthesizers based on provider."""
    resolved_template = template or PromptTemplate()
    common = {
        "temperature": temperature,
        "max_tokens": max_tokens,
        "timeout": timeout,
        "context_max_chars": context_max_chars,
        "template": resolved_template,
    }
    normalized = provider.strip().lower()
    if normalized == "groq":
        if not groq_api_key:
            raise LLMConfigError("GROQ_API_KEY is required for Groq provider")
        return OpenAICompatibleSynthesizer(
            model=groq_model,
            api_key=groq_api_key,
            base_url=groq_base_url.rstrip("/"),
            provider="groq",
            **common,
        )
    if normalized == "openai":
        if not openai_api_key:
            raise LLMConfigError("OPENAI_API_KEY is required for OpenAI provider")
        if not openai_model:
            raise LLMConfigError("OPENAI_CHAT_MODEL is required for OpenAI provider")
        return OpenAICompatibleSynthesizer(
            model=openai_model,
            api_key=openai_api_key,
            base_url=openai_base_url.rstrip("/"),
            provider="openai",
            **common,
        )
    if normalized in {"gemini", "google"}:
        if not gemini_api_key:
            raise LLMConfigError("GEMINI_API_KEY is required for Gemini provider")
        if not gemini_model:
            raise LLMConfigError("GEMINI_CHAT_MODEL is required for Gemini provider")
        return GeminiSynthesizer(model=gemini_model, api_key=gemini_api_key, **common)
    if normalized == "ollama":
        return OllamaSynthesizer(
            model=ollama_model, base_url=ollama_base_url.rstrip("/"), **common
        )
    raise LLMConfigError(f"Unsupported LLM provider: {provider}")
