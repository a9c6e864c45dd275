from __future__ import annotations

import pytest

from insight_rag.rag.errors import (
    CorpusUnavailable,
    EmbeddingServiceError,
    GenerationServiceError,
    MalformedEmbeddingResponse,
    QuestionValidationError,
    RateLimitExceeded,
)

pytestmark = pytest.mark.anyio


def blog_corpus(record) -> list[dict]:
    return [
        record(
            "Chunking splits documents into pieces",
            [1.0, 0.0],
            "https://blog.test/rag/chunking",
            title="Chunking strategies",
        ),
        record(
            "Kubernetes schedules pods onto nodes",
            [0.0, 1.0],
            "https://blog.test/infra/k8s",
            title="Kubernetes basics",
        ),
    ]


async def test_grounded_answer_excludes_distractor(
    make_pipeline, record, fake_embedder, fake_synthesizer
) -> None:
    pipeline = make_pipeline(blog_corpus(record), top_k=1)

    response = await pipeline.answer("What is chunking?", "10.0.0.1")

    assert response.answer == "Chunking splits documents into pieces."
    assert [source.url for source in response.sources] == ["https://blog.test/rag/chunking"]
    question, contexts = fake_synthesizer.calls[0]
    assert question == "What is chunking?"
    assert [block.title for block in contexts] == ["Chunking strategies"]
    assert fake_embedder.calls == ["What is chunking?"]


async def test_default_k_keeps_distractor_last_in_small_corpus(
    make_pipeline, record, fake_synthesizer
) -> None:
    pipeline = make_pipeline(blog_corpus(record))

    response = await pipeline.answer("What is chunking?", "10.0.0.1")

    assert pipeline.top_k == 3
    assert [source.url for source in response.sources] == [
        "https://blog.test/rag/chunking",
        "https://blog.test/infra/k8s",
    ]
    _, contexts = fake_synthesizer.calls[0]
    assert [block.title for block in contexts] == ["Chunking strategies", "Kubernetes basics"]


async def test_default_k_excludes_distractor_when_enough_matches(
    make_pipeline, record, fake_synthesizer
) -> None:
    records = blog_corpus(record) + [
        record("Overlap keeps context", [0.9, 0.1], "https://blog.test/rag/overlap", title="Overlap"),
        record("Chunk size matters", [0.8, 0.2], "https://blog.test/rag/size", title="Chunk size"),
    ]
    pipeline = make_pipeline(records)

    response = await pipeline.answer("What is chunking?", "10.0.0.1")

    urls = [source.url for source in response.sources]
    assert "https://blog.test/infra/k8s" not in urls
    _, contexts = fake_synthesizer.calls[0]
    assert [block.title for block in contexts] == ["Chunking strategies", "Overlap", "Chunk size"]


async def test_sources_are_ranked_and_deduplicated(
    make_pipeline, record, fake_synthesizer
) -> None:
    records = [
        record("a1", [0.9, 0.1], "https://blog.test/a", title="A"),
        record("b1", [0.8, 0.2], "https://blog.test/b", title="B"),
        record("a2", [1.0, 0.0], "https://blog.test/a", title="A"),
        record("c1", [0.0, 1.0], "https://blog.test/c", title="C"),
    ]
    pipeline = make_pipeline(records, top_k=3)

    response = await pipeline.answer("question", "client")

    assert [source.url for source in response.sources] == [
        "https://blog.test/a",
        "https://blog.test/b",
    ]
    _, contexts = fake_synthesizer.calls[0]
    assert [block.text for block in contexts] == ["a2", "a1", "b1"]


@pytest.mark.parametrize("question", ["", "   ", None])
async def test_blank_question_makes_no_downstream_calls(
    make_pipeline, record, fake_embedder, fake_synthesizer, question
) -> None:
    pipeline = make_pipeline(blog_corpus(record))

    with pytest.raises(QuestionValidationError):
        await pipeline.answer(question, "client")

    assert fake_embedder.calls == []
    assert fake_synthesizer.calls == []
    assert pipeline.rate_limiter.get("client") is None


async def test_rate_limited_calls_make_no_downstream_calls(
    make_pipeline, record, fake_embedder, fake_synthesizer
) -> None:
    pipeline = make_pipeline(blog_corpus(record), max_requests=2)
    await pipeline.answer("first", "client")
    await pipeline.answer("second", "client")

    with pytest.raises(RateLimitExceeded) as excinfo:
        await pipeline.answer("third", "client")

    assert excinfo.value.retry_after == 3600
    assert len(fake_embedder.calls) == 2
    assert len(fake_synthesizer.calls) == 2


async def test_embedding_failure_short_circuits(
    make_pipeline, record, fake_embedder, fake_synthesizer
) -> None:
    fake_embedder.error = EmbeddingServiceError("quota exceeded")
    pipeline = make_pipeline(blog_corpus(record))

    with pytest.raises(EmbeddingServiceError):
        await pipeline.answer("What is chunking?", "client")

    assert fake_synthesizer.calls == []


async def test_generation_failure_propagates(make_pipeline, record, fake_synthesizer) -> None:
    fake_synthesizer.error = GenerationServiceError("upstream down")
    pipeline = make_pipeline(blog_corpus(record))

    with pytest.raises(GenerationServiceError):
        await pipeline.answer("What is chunking?", "client")


async def test_query_dimension_mismatch_is_malformed(
    make_pipeline, record, fake_embedder, fake_synthesizer
) -> None:
    fake_embedder.default = [1.0, 0.0, 0.0]
    pipeline = make_pipeline(blog_corpus(record))

    with pytest.raises(MalformedEmbeddingResponse):
        await pipeline.answer("What is chunking?", "client")

    assert fake_synthesizer.calls == []


async def test_missing_corpus_fails_before_embedding(
    make_pipeline, record, fake_embedder, tmp_path
) -> None:
    pipeline = make_pipeline(blog_corpus(record))
    pipeline.corpus.path = tmp_path / "gone.json"

    with pytest.raises(CorpusUnavailable):
        await pipeline.answer("What is chunking?", "client")

    assert fake_embedder.calls == []
