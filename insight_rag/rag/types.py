from __future__ import annotations

"""Core data types for corpus chunks and answers."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Source:
    """Article a chunk was taken from."""
    title: str
    url: str
    category: str = ""

    def as_dict(self) -> dict[str, str]:
        return {"title": self.title, "url": self.url, "category": self.category}


@dataclass(frozen=True)
class Chunk:
    """Embedded passage of an article."""
    text: str
    embedding: tuple[float, ...]
    source: Source


@dataclass(frozen=True)
class ScoredChunk:
    """Chunk with its similarity to the question."""
    chunk: Chunk
    score: float


@dataclass(frozen=True)
class ContextBlock:
    """Context passage handed to the answer synthesizer."""
    title: str
    text: str


@dataclass(frozen=True)
class Corpus:
    """Read-only view over the loaded chunks."""
    chunks: tuple[Chunk, ...]
    dimension: int
    path: str = ""

    def __len__(self) -> int:
        return len(self.chunks)


@dataclass
class RAGResponse:
    answer: str
    sources: list[Source] = field(default_factory=list)
