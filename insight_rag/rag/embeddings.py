from __future__ import annotations

"""Embedding providers and configuration validation."""

import asyncio
import hashlib
import math
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from insight_rag.rag.errors import (
    ConfigurationError,
    EmbeddingServiceError,
    MalformedEmbeddingResponse,
)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class EmbeddingConfigError(ConfigurationError):
    """Raised when embedding configuration is invalid."""
    pass


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""
    dimension: int

    async def embed(self, text: str) -> list[float]:
        """Return an embedding vector for the provided text."""
        raise NotImplementedError


def validate_vector(vector: Any, dimension: int) -> list[float]:
    """Validate an embedding vector; ``dimension`` 0 accepts any length."""
    if not isinstance(vector, (list, tuple)) or not vector:
        raise MalformedEmbeddingResponse("Embedding response contained no vector")
    if dimension > 0 and len(vector) != dimension:
        raise MalformedEmbeddingResponse(
            f"Embedding dimension mismatch: expected {dimension}, got {len(vector)}"
        )
    cleaned: list[float] = []
    for value in vector:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedEmbeddingResponse("Embedding contains a non-numeric value")
        if not math.isfinite(value):
            raise MalformedEmbeddingResponse("Embedding contains a non-finite value")
        cleaned.append(float(value))
    return cleaned


def _require_text(text: str) -> str:
    cleaned = text.strip()
    if not cleaned:
        raise ValueError("Cannot embed empty text")
    return cleaned


@dataclass
class HashEmbedder:
    """Deterministic hash-based embedder for testing or offline use."""
    dimension: int = 256

    async def embed(self, text: str) -> list[float]:
        """Embed text using token hashing and L2 normalization."""
        tokens = _TOKEN_RE.findall(_require_text(text).lower())
        vector = [0.0] * self.dimension
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            idx = digest[0] % self.dimension
            vector[idx] += 1.0
        return validate_vector(self._l2_normalize(vector), self.dimension)

    def _l2_normalize(self, vector: list[float]) -> list[float]:
        """Normalize vector magnitude to 1.0."""
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0:
            return vector
        return [value / norm for value in vector]


def resolve_openai_dimension(model: str) -> int | None:
    """Return expected dimension for OpenAI embedding model."""
    mapping = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }
    return mapping.get(model)


def resolve_gemini_dimension(model: str) -> int | None:
    """Return the default dimension for Gemini embedding models."""
    mapping = {
        "gemini-embedding-001": 3072,
        "text-embedding-004": 768,
    }
    return mapping.get(model.removeprefix("models/"))


@dataclass(frozen=True)
class EmbeddingConfigReport:
    """Validation report for embedding configuration."""
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None
    ok: bool
    status: str
    detail: str | None = None
    action: str | None = None


def build_embedding_config_report(
    provider: str,
    model: str | None,
    dimension: int,
    corpus_dimension: int | None = None,
) -> EmbeddingConfigReport:
    """Build a validation report for embedding settings.

    ``corpus_dimension`` is the dimension of the loaded corpus, when known.
    Query vectors must live in the same space as the corpus vectors.
    """
    normalized = provider.lower().strip()
    if normalized == "hash":
        if dimension <= 0:
            return EmbeddingConfigReport(
                provider="hash",
                model=None,
                configured_dimension=dimension,
                expected_dimension=corpus_dimension,
                ok=False,
                status="error",
                detail="EMBEDDING_DIMENSION must be greater than zero for hash embeddings.",
                action="Set EMBEDDING_DIMENSION to a positive integer.",
            )
        expected = dimension
        model = None
    elif normalized in {"openai", "gemini", "google"}:
        normalized = "openai" if normalized == "openai" else "gemini"
        if not model:
            variable = "OPENAI_EMBEDDING_MODEL" if normalized == "openai" else "GEMINI_EMBEDDING_MODEL"
            return EmbeddingConfigReport(
                provider=normalized,
                model=None,
                configured_dimension=dimension,
                expected_dimension=corpus_dimension,
                ok=False,
                status="error",
                detail=f"{variable} is required for {normalized} embeddings.",
                action=f"Set {variable} in .env.",
            )
        if normalized == "openai":
            expected = resolve_openai_dimension(model)
        else:
            expected = resolve_gemini_dimension(model)
        if dimension > 0:
            expected = dimension
    else:
        return EmbeddingConfigReport(
            provider=normalized,
            model=model,
            configured_dimension=dimension,
            expected_dimension=None,
            ok=False,
            status="error",
            detail="Unsupported embedding provider.",
            action="Set EMBEDDING_PROVIDER to gemini, openai, or hash.",
        )

    if corpus_dimension is not None and expected is not None and expected != corpus_dimension:
        return EmbeddingConfigReport(
            provider=normalized,
            model=model,
            configured_dimension=dimension,
            expected_dimension=corpus_dimension,
            ok=False,
            status="error",
            detail="Query embeddings do not match the corpus embedding dimension.",
            action="Use the embedding model the corpus was built with.",
        )
    if expected is None:
        return EmbeddingConfigReport(
            provider=normalized,
            model=model,
            configured_dimension=dimension,
            expected_dimension=corpus_dimension,
            ok=True,
            status="warning",
            detail="Model dimension cannot be auto-validated. Confirm EMBEDDING_DIMENSION manually.",
        )
    return EmbeddingConfigReport(
        provider=normalized,
        model=model,
        configured_dimension=dimension,
        expected_dimension=expected,
        ok=True,
        status="ok",
    )


@dataclass
class OpenAIEmbedder:
    """Embedding provider using the OpenAI embeddings REST API."""
    api_key: str
    model: str
    dimension: int = 0
    base_url: str = "https://api.openai.com/v1"
    timeout: float = 15.0
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Validate OpenAI configuration."""
        if not self.api_key:
            raise EmbeddingConfigError("OPENAI_API_KEY is required for OpenAIEmbedder")
        if not self.model:
            raise EmbeddingConfigError("OPENAI_EMBEDDING_MODEL is required for OpenAIEmbedder")
        resolved = resolve_openai_dimension(self.model)
        if self.dimension > 0 and resolved is not None and self.dimension != resolved:
            raise EmbeddingConfigError(
                f"EMBEDDING_DIMENSION should be {resolved} for model {self.model}"
            )
        self.base_url = self.base_url.rstrip("/")

    async def embed(self, text: str) -> list[float]:
        """Embed text using the OpenAI embeddings API."""
        payload = {"model": self.model, "input": _require_text(text)}
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/embeddings", json=payload, headers=headers
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise EmbeddingServiceError(f"OpenAI embedding request failed: {exc}") from exc
        except ValueError as exc:
            raise MalformedEmbeddingResponse("OpenAI embedding response is not JSON") from exc
        if not isinstance(data, dict):
            raise MalformedEmbeddingResponse("Invalid OpenAI embedding response")
        items = data.get("data") or []
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            raise MalformedEmbeddingResponse("OpenAI embedding response missing data")
        return validate_vector(items[0].get("embedding"), self.dimension)


@dataclass
class GeminiEmbedder:
    """Embedding provider using Gemini embeddings API."""
    api_key: str
    model: str
    dimension: int = 0
    timeout: float = 15.0
    client: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Validate Gemini configuration and create a client."""
        if not self.api_key:
            raise EmbeddingConfigError("GEMINI_API_KEY is required for GeminiEmbedder")
        if not self.model:
            raise EmbeddingConfigError("GEMINI_EMBEDDING_MODEL is required for GeminiEmbedder")
        if self.client is not None:
            return
        try:
            import google.generativeai as genai
        except ImportError as exc:
            raise EmbeddingConfigError(
                "google-generativeai package is required for GeminiEmbedder"
            ) from exc
        genai.configure(api_key=self.api_key)
        self.client = genai

    async def embed(self, text: str) -> list[float]:
        """Embed text using the Gemini embeddings API."""
        content = _require_text(text)

        def _run() -> Any:
            return self.client.embed_content(model=self.model, content=content)

        try:
            result = await asyncio.wait_for(asyncio.to_thread(_run), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise EmbeddingServiceError("Gemini embedding request timed out") from exc
        except Exception as exc:
            raise EmbeddingServiceError(f"Gemini embedding request failed: {exc}") from exc
        embedding = None
        if isinstance(result, dict):
            embedding = result.get("embedding")
        if embedding is None:
            embedding = getattr(result, "embedding", None)
        if embedding is None:
            raise MalformedEmbeddingResponse("Gemini embedding response missing embedding vector")
        return validate_vector(embedding, self.dimension)
