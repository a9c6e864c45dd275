from __future__ import annotations

"""Error taxonomy for the question-answering pipeline."""


class RAGError(RuntimeError):
    """Base class for pipeline failures."""
    pass


class QuestionValidationError(RAGError):
    """Raised when the question is missing or blank."""
    pass


class RateLimitExceeded(RAGError):
    """Raised when a client identity exhausted its request window."""

    def __init__(self, identity: str, retry_after: int) -> None:
        super().__init__("rate limit exceeded")
        self.identity = identity
        self.retry_after = retry_after


class ConfigurationError(RAGError):
    """Raised when the pipeline cannot be built from the current settings."""
    pass


class CorpusUnavailable(RAGError):
    """Raised when the corpus artifact is missing or malformed."""
    pass


class EmbeddingServiceError(RAGError):
    """Raised when the embedding service fails or times out."""
    pass


class GenerationServiceError(RAGError):
    """Raised when the generation service fails or times out."""
    pass


class MalformedUpstreamResponse(RAGError):
    """Raised when an upstream service returns a payload we cannot parse."""
    pass


class MalformedEmbeddingResponse(EmbeddingServiceError, MalformedUpstreamResponse):
    """Embedding payload missing fields or carrying an invalid vector."""
    pass


class MalformedGenerationResponse(GenerationServiceError, MalformedUpstreamResponse):
    """Generation payload missing the generated text."""
    pass
