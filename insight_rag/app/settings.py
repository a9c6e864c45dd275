from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from insight_rag.rag.llm import (
    DEFAULT_BLOG_DESCRIPTION,
    DEFAULT_FALLBACK_ANSWER,
    GROQ_BASE_URL,
    OPENAI_BASE_URL,
)

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    corpus_path: str = os.getenv("RAG_CORPUS_PATH", "public/embeddings.json")
    preload_corpus: bool = _env_flag("RAG_PRELOAD_CORPUS", "true")
    top_k: int = int(os.getenv("RAG_TOP_K", "3"))
    rate_limit: int = int(os.getenv("RAG_RATE_LIMIT", "20"))
    rate_window_seconds: float = float(os.getenv("RAG_RATE_WINDOW_SECONDS", "3600"))
    rate_limit_max_identities: int = int(os.getenv("RAG_RATE_LIMIT_MAX_IDENTITIES", "10000"))
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "gemini")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "0"))
    embedding_timeout: float = float(os.getenv("EMBEDDING_TIMEOUT", "15"))
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_embedding_model: str = os.getenv("GEMINI_EMBEDDING_MODEL", "models/gemini-embedding-001")
    gemini_chat_model: str | None = os.getenv("GEMINI_CHAT_MODEL")
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", OPENAI_BASE_URL)
    openai_embedding_model: str | None = os.getenv("OPENAI_EMBEDDING_MODEL")
    openai_chat_model: str | None = os.getenv("OPENAI_CHAT_MODEL")
    llm_provider: str = os.getenv("RAG_LLM_PROVIDER", "groq")
    groq_api_key: str | None = os.getenv("GROQ_API_KEY")
    groq_base_url: str = os.getenv("GROQ_BASE_URL", GROQ_BASE_URL)
    groq_model: str = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.1:8b")
    llm_temperature: float = float(os.getenv("LLM_TEMPERATURE", "0.2"))
    llm_max_tokens: int = int(os.getenv("LLM_MAX_TOKENS", "512"))
    llm_timeout: float = float(os.getenv("LLM_TIMEOUT", "30"))
    llm_context_max_chars: int = int(os.getenv("RAG_LLM_CONTEXT_MAX_CHARS", "12000"))
    blog_description: str = os.getenv("RAG_BLOG_DESCRIPTION", DEFAULT_BLOG_DESCRIPTION)
    fallback_answer: str = os.getenv("RAG_FALLBACK_ANSWER", DEFAULT_FALLBACK_ANSWER)
    metrics_enabled: bool = _env_flag("RAG_METRICS_ENABLED", "true")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def embedding_model(self) -> str | None:
        provider = self.embedding_provider.lower().strip()
        if provider == "openai":
            return self.openai_embedding_model
        if provider in {"gemini", "google"}:
            return self.gemini_embedding_model
        return None


settings = Settings()
