"""
Error taxonomy for ranking and prompt optimization.

Every error raised by this package derives from LeadRankError. Embedding
failures derive from EmbeddingError and carry the provider plus the persona
slot or lead chunk that triggered them, so callers can report where a
ranking broke without parsing messages.

Recovery contract:
- EmbeddingCountMismatch is recovered locally (lead embeddings recomputed)
- EmbeddingQuotaExceeded / EmbeddingTimeout are surfaced as retryable
- EmbeddingFormatError is fatal and never retried
"""

from typing import Optional


class LeadRankError(Exception):
    """Base class for all lead ranking errors."""


class EmptyProfile(LeadRankError):
    """Raised when a persona has no Target after parsing."""

    def __init__(self, message: str = "Profile cannot be empty."):
        super().__init__(message)


class EvalSetTooSmall(LeadRankError):
    """Raised when the evaluation set cannot support a rank correlation."""

    def __init__(self, size: int, minimum: int):
        self.size = size
        self.minimum = minimum
        super().__init__(
            f"Evaluation set has too few ranked leads ({size}). Need at least {minimum}."
        )


class OptimizerUnavailable(LeadRankError):
    """No text-generation provider is configured for prompt optimization."""

    def __init__(self, message: str = (
        "No optimizer LLM configured. Set GEMINI_API_KEY, GROQ_API_KEY, "
        "ANTHROPIC_API_KEY or OPENAI_API_KEY."
    )):
        super().__init__(message)


class EmbeddingError(LeadRankError):
    """
    Base class for embedding gateway failures.

    Attributes:
        provider: Backend name ("openai", "gemini", "huggingface")
        slot: Persona slot being embedded ("target", "avoid", "prefer")
        batch_index: Index of the lead chunk that failed
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        slot: Optional[str] = None,
        batch_index: Optional[int] = None,
    ):
        self.provider = provider
        self.slot = slot
        self.batch_index = batch_index
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return False

    def __str__(self) -> str:
        base = super().__str__()
        context = []
        if self.provider:
            context.append(f"provider={self.provider}")
        if self.slot:
            context.append(f"slot={self.slot}")
        if self.batch_index is not None:
            context.append(f"batch={self.batch_index}")
        if context:
            return f"{base} ({', '.join(context)})"
        return base


class EmbeddingUnavailable(EmbeddingError):
    """No embedding provider is configured."""


class EmbeddingQuotaExceeded(EmbeddingError):
    """Provider kept rate limiting after all retries were spent."""

    def __init__(self, message: str, attempts: int = 0, **kwargs):
        self.attempts = attempts
        super().__init__(message, **kwargs)

    @property
    def retryable(self) -> bool:
        return True


class EmbeddingTimeout(EmbeddingError):
    """Provider did not answer within the hard request timeout."""

    @property
    def retryable(self) -> bool:
        return True


class EmbeddingFormatError(EmbeddingError):
    """Provider response could not be normalized to numeric vectors."""


class EmbeddingCountMismatch(EmbeddingError):
    """Supplied lead embeddings are not aligned with the lead list."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected} lead embeddings, got {actual}")


class EmbeddingDimensionMismatch(LeadRankError, ValueError):
    """Two vectors of different length were compared."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Vectors must have the same length ({left} != {right})")


# ===== Provider-level signals (consumed by the gateway) =====

class RateLimitSignal(Exception):
    """
    Raised by a provider when the backend answered 429 / RESOURCE_EXHAUSTED.

    Attributes:
        retry_after: Provider-suggested wait in seconds, when present
    """

    def __init__(self, message: str, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(message)


class ProviderTimeout(Exception):
    """Raised by a provider when a request exceeded its hard timeout."""
