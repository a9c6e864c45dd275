from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import json
import os
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["EMBEDDING_PROVIDER"] = "hash"
os.environ["EMBEDDING_DIMENSION"] = "2"
os.environ["RAG_LLM_PROVIDER"] = "ollama"
os.environ["RAG_PRELOAD_CORPUS"] = "false"
os.environ.setdefault("RAG_METRICS_ENABLED", "true")
os.environ.pop("GEMINI_API_KEY", None)
os.environ.pop("GROQ_API_KEY", None)
os.environ.pop("OPENAI_API_KEY", None)

from insight_rag.rag.corpus import CorpusStore
from insight_rag.rag.pipeline import RAGPipeline
from insight_rag.rag.ratelimit import FixedWindowRateLimiter
from insight_rag.rag.types import ContextBlock


class FakeEmbedder:
    """Embedder returning canned vectors and counting calls."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, default: list[float] | None = None):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0]
        self.dimension = len(self.default)
        self.calls: list[str] = []
        self.error: Exception | None = None

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vectors.get(text, self.default))


class FakeSynthesizer:
    """Synthesizer recording the contexts it was given."""

    def __init__(self, answer: str = "Chunking splits documents into pieces."):
        self.answer = answer
        self.calls: list[tuple[str, list[ContextBlock]]] = []
        self.error: Exception | None = None

    async def synthesize(self, question: str, contexts: list[ContextBlock]) -> str:
        self.calls.append((question, contexts))
        if self.error is not None:
            raise self.error
        return self.answer


class ManualClock:
    """Controllable monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def corpus_record(
    text: str,
    embedding: list[float],
    url: str,
    title: str | None = None,
    category: str = "rag",
) -> dict[str, Any]:
    return {
        "text": text,
        "embedding": embedding,
        "source": {"title": title or url.rsplit("/", 1)[-1], "url": url, "category": category},
    }


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def record() -> Callable[..., dict[str, Any]]:
    return corpus_record


@pytest.fixture
def write_corpus(tmp_path: Path) -> Callable[[Any], Path]:
    def _write(records: Any, name: str = "embeddings.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(records), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()


@pytest.fixture
def make_pipeline(
    write_corpus: Callable[[Any], Path],
    fake_embedder: FakeEmbedder,
    fake_synthesizer: FakeSynthesizer,
    clock: ManualClock,
) -> Callable[..., RAGPipeline]:
    def _make(records: list[dict[str, Any]], max_requests: int = 20, top_k: int = 3) -> RAGPipeline:
        return RAGPipeline(
            corpus=CorpusStore(path=write_corpus(records)),
            embedder=fake_embedder,
            synthesizer=fake_synthesizer,
            rate_limiter=FixedWindowRateLimiter(
                max_requests=max_requests, window_seconds=3600, clock=clock
            ),
            top_k=top_k,
        )

    return _make
