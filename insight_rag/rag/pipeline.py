from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from insight_rag.rag.citations import build_contexts, dedupe_sources
from insight_rag.rag.corpus import CorpusStore
from insight_rag.rag.embeddings import EmbeddingProvider
from insight_rag.rag.errors import (
    MalformedEmbeddingResponse,
    QuestionValidationError,
    RateLimitExceeded,
)
from insight_rag.rag.llm import AnswerSynthesizer
from insight_rag.rag.ranking import rank
from insight_rag.rag.ratelimit import FixedWindowRateLimiter
from insight_rag.rag.types import RAGResponse, ScoredChunk

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 3


def hash_identity(identity: str) -> str:
    """Return a short, non-reversible tag for logging client identities."""
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()[:12]


@dataclass
class RAGPipeline:
    corpus: CorpusStore
    embedder: EmbeddingProvider
    synthesizer: AnswerSynthesizer
    rate_limiter: FixedWindowRateLimiter
    top_k: int = DEFAULT_TOP_K

    async def retrieve(self, question: str) -> list[ScoredChunk]:
        corpus = self.corpus.load()
        vector = await self.embedder.embed(question)
        if len(vector) != corpus.dimension:
            raise MalformedEmbeddingResponse(
                f"Query embedding has dimension {len(vector)}, corpus uses {corpus.dimension}"
            )
        results = rank(vector, corpus.chunks, self.top_k)
        logger.info(
            "retrieval_complete",
            extra={
                "results": len(results),
                "query_length": len(question),
                "top_score": results[0].score if results else None,
            },
        )
        return results

    async def answer(self, question: str | None, identity: str) -> RAGResponse:
        """Answer ``question`` for the client ``identity``.

        Blank questions and rate-limited identities are rejected before any
        embedding or generation call is made.
        """
        cleaned = (question or "").strip()
        if not cleaned:
            raise QuestionValidationError("No question provided")
        if not self.rate_limiter.allow(identity):
            retry_after = self.rate_limiter.retry_after(identity)
            logger.info(
                "rate_limited",
                extra={"identity": hash_identity(identity), "retry_after": retry_after},
            )
            raise RateLimitExceeded(identity, retry_after)
        ranked = await self.retrieve(cleaned)
        answer = await self.synthesizer.synthesize(cleaned, build_contexts(ranked))
        return RAGResponse(answer=answer, sources=dedupe_sources(ranked))
