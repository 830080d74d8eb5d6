"""
Configuration loader for the lead ranking engine.

Loads all settings from environment variables (.env file).
Validates required settings and provides type-safe access.
"""

import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Config:
    """
    Centralized configuration for embedding, scoring and optimizer components.

    All values loaded from environment variables - NO SECRETS IN CODE.
    """

    # ===== Embedding Provider =====
    # One of: huggingface (default), openai, gemini
    AI_PROVIDER: str = os.getenv("AI_PROVIDER", "huggingface").lower()

    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_EMBED_MODEL: str = os.getenv("OPENAI_EMBED_MODEL", "text-embedding-3-small")

    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_EMBED_MODEL: str = os.getenv("GEMINI_EMBED_MODEL", "gemini-embedding-001")

    HUGGINGFACE_TOKEN: str = os.getenv("HUGGINGFACE_TOKEN", "") or os.getenv("HF_TOKEN", "")
    HF_EMBED_MODEL: str = os.getenv(
        "HF_EMBED_MODEL",
        "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2",
    )
    HF_INFERENCE_URL: str = os.getenv("HF_INFERENCE_URL", "https://router.huggingface.co")

    # Hard timeout per embedding request (seconds)
    EMBED_TIMEOUT_SECONDS: float = _env_float("EMBED_TIMEOUT_SECONDS", 90.0)
    # Maximum chunk requests in flight for one embed_batch call
    EMBED_MAX_CONCURRENCY: int = _env_int("EMBED_MAX_CONCURRENCY", 4) or 1

    # ===== Optimizer LLM =====
    # Priority: Gemini > Groq > Anthropic > OpenAI
    GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    OPTIMIZER_PROVIDER: str = os.getenv("OPTIMIZER_PROVIDER", "").lower()
    OPTIMIZER_MODEL: str = os.getenv("OPTIMIZER_MODEL", "")
    OPTIMIZER_TEMPERATURE: float = _env_float("OPTIMIZER_TEMPERATURE", 0.65)
    OPTIMIZER_MAX_TOKENS: int = _env_int("OPTIMIZER_MAX_TOKENS", 900) or 900

    # ===== Scoring =====
    # Tuned against a single evaluation set; override per deployment
    AVOID_PENALTY_WEIGHT: float = _env_float("AVOID_PENALTY_WEIGHT", 0.35)
    PREFER_BONUS_WEIGHT: float = _env_float("PREFER_BONUS_WEIGHT", 0.25)
    # Affine window mapping the combined score into [0, 1]
    SCORE_NORM_OFFSET: float = _env_float("SCORE_NORM_OFFSET", 1.35)
    SCORE_NORM_SPAN: float = _env_float("SCORE_NORM_SPAN", 2.6)
    SCORE_TOP_N: int = _env_int("SCORE_TOP_N", 10) or 10
    SCORE_MIN: float = _env_float("SCORE_MIN", 0.3)
    MAX_LEADS: Optional[int] = _env_int("MAX_LEADS", None)

    # ===== Evaluation Set =====
    EVAL_CSV_PATH: str = os.getenv("EVAL_CSV_PATH", "data/eval/eval_set.csv")
    EVAL_EMBEDDINGS_PATH: str = os.getenv(
        "EVAL_EMBEDDINGS_PATH",
        "data/eval/eval_embeddings.json",
    )

    DEFAULT_MODELS = {
        "gemini": "gemini-2.5-flash",
        "groq": "llama-3.3-70b-versatile",
        "anthropic": "claude-3-5-haiku-20241022",
        "openai": "gpt-4o-mini",
    }

    @classmethod
    def get_embedding_provider(cls) -> str:
        """Embedding backend selected for this process."""
        return cls.AI_PROVIDER or "huggingface"

    @classmethod
    def get_embedding_api_key(cls) -> str:
        """API key for the configured embedding backend ('' when missing)."""
        provider = cls.get_embedding_provider()
        if provider == "gemini":
            return cls.GEMINI_API_KEY
        if provider == "huggingface":
            return cls.HUGGINGFACE_TOKEN
        return cls.OPENAI_API_KEY

    @classmethod
    def get_optimizer_provider(cls) -> Optional[str]:
        """
        Get the LLM provider used to propose refined personas.

        Explicit OPTIMIZER_PROVIDER wins when its key is present; otherwise
        the first configured of Gemini, Groq, Anthropic, OpenAI.

        Returns:
            "gemini", "groq", "anthropic", "openai", or None if nothing is configured
        """
        keys = {
            "gemini": cls.GEMINI_API_KEY,
            "groq": cls.GROQ_API_KEY,
            "anthropic": cls.ANTHROPIC_API_KEY,
            "openai": cls.OPENAI_API_KEY,
        }
        if cls.OPTIMIZER_PROVIDER and keys.get(cls.OPTIMIZER_PROVIDER):
            return cls.OPTIMIZER_PROVIDER
        for provider in ("gemini", "groq", "anthropic", "openai"):
            if keys[provider].strip():
                return provider
        return None

    @classmethod
    def get_optimizer_model(cls, provider: str) -> str:
        """Model name for the optimizer provider."""
        return cls.OPTIMIZER_MODEL or cls.DEFAULT_MODELS.get(provider, cls.DEFAULT_MODELS["openai"])

    @classmethod
    def validate(cls) -> None:
        """
        Validate that the embedding backend is usable.
        Raises ValueError if critical settings are missing.
        """
        provider = cls.get_embedding_provider()
        if provider not in ("huggingface", "openai", "gemini"):
            raise ValueError(
                f"Unknown AI_PROVIDER '{provider}'. Use huggingface, openai or gemini."
            )
        if not cls.get_embedding_api_key():
            raise ValueError(
                f"Missing API key for embedding provider '{provider}'. "
                f"Please check your .env file."
            )
        if not 0 <= cls.SCORE_MIN <= 1:
            raise ValueError(f"SCORE_MIN must be within [0, 1], got {cls.SCORE_MIN}")

    @classmethod
    def summary(cls) -> str:
        """Return a summary of the current configuration (safe for logging)."""
        optimizer = cls.get_optimizer_provider()
        return f"""
Configuration Summary:
  Embeddings: {cls.get_embedding_provider()} {'✓' if cls.get_embedding_api_key() else '✗ Missing key'}
  Optimizer LLM: {optimizer or '✗ Not configured'}
  Weights: avoid={cls.AVOID_PENALTY_WEIGHT} prefer={cls.PREFER_BONUS_WEIGHT}
  Top-N: {cls.SCORE_TOP_N}  Min score: {cls.SCORE_MIN}
  Max leads: {cls.MAX_LEADS or 'unlimited'}
  Eval set: {cls.EVAL_CSV_PATH}
        """.strip()
