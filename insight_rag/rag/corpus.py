from __future__ import annotations

"""Precomputed corpus loading with a one-time, process-wide cache."""

import json
import logging
import math
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from insight_rag.rag.errors import CorpusUnavailable
from insight_rag.rag.types import Chunk, Corpus, Source

logger = logging.getLogger(__name__)


def read_corpus_file(path: Path) -> str:
    """Read the corpus artifact from disk."""
    return path.read_text(encoding="utf-8")


def parse_corpus(raw: str, path: str = "") -> Corpus:
    """Parse and validate the JSON corpus artifact."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorpusUnavailable(f"Corpus is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise CorpusUnavailable("Corpus must be a JSON array of chunk records")
    if not data:
        raise CorpusUnavailable("Corpus contains no chunks")
    chunks: list[Chunk] = []
    dimension = 0
    for idx, record in enumerate(data):
        chunk = _parse_record(record, idx)
        if dimension == 0:
            dimension = len(chunk.embedding)
        elif len(chunk.embedding) != dimension:
            raise CorpusUnavailable(
                f"Record {idx} has dimension {len(chunk.embedding)}, expected {dimension}"
            )
        chunks.append(chunk)
    return Corpus(chunks=tuple(chunks), dimension=dimension, path=path)


def _parse_record(record: Any, idx: int) -> Chunk:
    """Build a Chunk from a single corpus record."""
    if not isinstance(record, dict):
        raise CorpusUnavailable(f"Record {idx} is not an object")
    text = record.get("text", record.get("chunk"))
    if not isinstance(text, str) or not text.strip():
        raise CorpusUnavailable(f"Record {idx} is missing text")
    embedding = record.get("embedding")
    if not isinstance(embedding, list) or not embedding:
        raise CorpusUnavailable(f"Record {idx} is missing an embedding")
    values: list[float] = []
    for value in embedding:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CorpusUnavailable(f"Record {idx} embedding contains a non-numeric value")
        if not math.isfinite(value):
            raise CorpusUnavailable(f"Record {idx} embedding contains a non-finite value")
        values.append(float(value))
    source = record.get("source")
    if not isinstance(source, dict):
        raise CorpusUnavailable(f"Record {idx} is missing source metadata")
    title = source.get("title")
    url = source.get("url")
    category = source.get("category", "")
    if not isinstance(title, str) or not isinstance(url, str) or not url:
        raise CorpusUnavailable(f"Record {idx} source requires title and url")
    if not isinstance(category, str):
        category = str(category)
    return Chunk(
        text=text,
        embedding=tuple(values),
        source=Source(title=title, url=url, category=category),
    )


@dataclass
class CorpusStore:
    """Loads the corpus once and serves the cached copy afterwards."""
    path: Path
    reader: Callable[[Path], str] = read_corpus_file
    _corpus: Corpus | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def loaded(self) -> bool:
        return self._corpus is not None

    def load(self) -> Corpus:
        """Return the corpus, reading storage on the first successful call only."""
        corpus = self._corpus
        if corpus is not None:
            return corpus
        with self._lock:
            if self._corpus is None:
                self._corpus = self._read()
            return self._corpus

    def _read(self) -> Corpus:
        try:
            raw = self.reader(self.path)
        except OSError as exc:
            raise CorpusUnavailable(f"Corpus file unavailable: {self.path}") from exc
        corpus = parse_corpus(raw, path=str(self.path))
        logger.info(
            "corpus_loaded",
            extra={
                "path": str(self.path),
                "chunks": len(corpus),
                "dimension": corpus.dimension,
            },
        )
        return corpus

    def stats(self) -> dict[str, int | str]:
        """Return basic stats for the loaded corpus."""
        corpus = self.load()
        return {
            "path": corpus.path,
            "chunk_count": len(corpus),
            "source_count": len({chunk.source.url for chunk in corpus.chunks}),
            "embedding_dimension": corpus.dimension,
        }
