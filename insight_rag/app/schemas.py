from __future__ import annotations

from pydantic import BaseModel


class AskRequest(BaseModel):
    question: str | None = None


class SourceItem(BaseModel):
    title: str
    url: str
    category: str = ""


class AskResponse(BaseModel):
    answer: str
    sources: list[SourceItem]


class ErrorResponse(BaseModel):
    error: str


class CorpusStatsResponse(BaseModel):
    path: str
    chunk_count: int
    source_count: int
    embedding_dimension: int


class EmbeddingHealthResponse(BaseModel):
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None = None
    ok: bool
    status: str
    detail: str | None = None
    action: str | None = None
