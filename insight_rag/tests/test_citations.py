from __future__ import annotations

from insight_rag.rag.citations import build_contexts, dedupe_sources
from insight_rag.rag.types import Chunk, ScoredChunk, Source


def scored(url: str, text: str, score: float) -> ScoredChunk:
    source = Source(title=f"Post {url}", url=url, category="notes")
    return ScoredChunk(chunk=Chunk(text=text, embedding=(1.0,), source=source), score=score)


def test_dedupe_keeps_first_seen_order() -> None:
    ranked = [scored("A", "a1", 0.9), scored("B", "b1", 0.8), scored("A", "a2", 0.7), scored("C", "c1", 0.6)]

    sources = dedupe_sources(ranked)

    assert [source.url for source in sources] == ["A", "B", "C"]


def test_build_contexts_labels_by_title() -> None:
    contexts = build_contexts([scored("A", "first passage", 0.9), scored("A", "second passage", 0.5)])

    assert [(block.title, block.text) for block in contexts] == [
        ("Post A", "first passage"),
        ("Post A", "second passage"),
    ]
