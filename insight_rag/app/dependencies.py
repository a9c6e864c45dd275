from __future__ import annotations

import threading
from pathlib import Path

from insight_rag.app.settings import settings
from insight_rag.rag.corpus import CorpusStore
from insight_rag.rag.embeddings import (
    EmbeddingConfigError,
    EmbeddingConfigReport,
    EmbeddingProvider,
    GeminiEmbedder,
    HashEmbedder,
    OpenAIEmbedder,
    build_embedding_config_report,
)
from insight_rag.rag.llm import ChatSynthesizer, PromptTemplate, build_synthesizer
from insight_rag.rag.pipeline import RAGPipeline
from insight_rag.rag.ratelimit import FixedWindowRateLimiter

_pipeline: RAGPipeline | None = None
_pipeline_lock = threading.Lock()


def get_pipeline() -> RAGPipeline:
    """Return the process-wide pipeline, building it exactly once."""
    global _pipeline
    pipeline = _pipeline
    if pipeline is not None:
        return pipeline
    with _pipeline_lock:
        if _pipeline is None:
            _pipeline = build_pipeline()
        return _pipeline


def reset_pipeline_cache() -> None:
    global _pipeline
    with _pipeline_lock:
        _pipeline = None


def build_pipeline() -> RAGPipeline:
    return RAGPipeline(
        corpus=CorpusStore(path=Path(settings.corpus_path)),
        embedder=build_embedder(),
        synthesizer=build_answer_synthesizer(),
        rate_limiter=FixedWindowRateLimiter(
            max_requests=settings.rate_limit,
            window_seconds=settings.rate_window_seconds,
            max_identities=settings.rate_limit_max_identities,
        ),
        top_k=settings.top_k,
    )


def build_embedder() -> EmbeddingProvider:
    provider = settings.embedding_provider.lower().strip()
    if provider == "hash":
        if settings.embedding_dimension <= 0:
            raise EmbeddingConfigError("EMBEDDING_DIMENSION must be set for hash embeddings")
        return HashEmbedder(dimension=settings.embedding_dimension)
    if provider == "openai":
        return OpenAIEmbedder(
            api_key=settings.openai_api_key or "",
            model=settings.openai_embedding_model or "",
            dimension=settings.embedding_dimension,
            base_url=settings.openai_base_url,
            timeout=settings.embedding_timeout,
        )
    if provider in {"gemini", "google"}:
        return GeminiEmbedder(
            api_key=settings.gemini_api_key or "",
            model=settings.gemini_embedding_model,
            dimension=settings.embedding_dimension,
            timeout=settings.embedding_timeout,
        )
    raise EmbeddingConfigError(f"Unsupported embedding provider: {provider}")


def build_answer_synthesizer() -> ChatSynthesizer:
    return build_synthesizer(
        settings.llm_provider,
        groq_api_key=settings.groq_api_key,
        groq_base_url=settings.groq_base_url,
        groq_model=settings.groq_model,
        openai_api_key=settings.openai_api_key,
        openai_base_url=settings.openai_base_url,
        openai_model=settings.openai_chat_model,
        gemini_api_key=settings.gemini_api_key,
        gemini_model=settings.gemini_chat_model,
        ollama_base_url=settings.ollama_base_url,
        ollama_model=settings.ollama_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout,
        context_max_chars=settings.llm_context_max_chars,
        template=PromptTemplate(
            blog_description=settings.blog_description,
            fallback_answer=settings.fallback_answer,
        ),
    )


def get_embedding_config_report(corpus_dimension: int | None = None) -> EmbeddingConfigReport:
    return build_embedding_config_report(
        settings.embedding_provider,
        settings.embedding_model,
        settings.embedding_dimension,
        corpus_dimension=corpus_dimension,
    )
