from __future__ import annotations

"""Citation helpers for attaching sources to answers."""

from typing import Iterable

from insight_rag.rag.types import ContextBlock, ScoredChunk, Source


def build_contexts(ranked: Iterable[ScoredChunk]) -> list[ContextBlock]:
    """Turn ranked chunks into title-labelled context passages."""
    return [
        ContextBlock(title=item.chunk.source.title, text=item.chunk.text)
        for item in ranked
    ]


def dedupe_sources(ranked: Iterable[ScoredChunk]) -> list[Source]:
    """Return one source per URL, keeping the first (highest ranked) occurrence."""
    seen: set[str] = set()
    sources: list[Source] = []
    for item in ranked:
        source = item.chunk.source
        if source.url in seen:
            continue
        seen.add(source.url)
        sources.append(source)
    return sources
