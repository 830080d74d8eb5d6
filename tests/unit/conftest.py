"""
Global fixtures for all unit tests.

This conftest provides:
- Environment isolation (no real credentials reach Config)
- Fake embedding providers and text generators (no network calls)
- Gateways wired with a recording no-op sleep so retry waits cost nothing

These fixtures apply to ALL tests in tests/unit/.
"""

from typing import Dict, List, Optional, Sequence

import pytest

from leadrank.common.config import Config
from leadrank.common.rate_limiter import RateLimiter
from leadrank.embeddings.gateway import EmbeddingGateway, reset_embedding_gateway


VOCAB = ("sales", "hr", "enterprise", "engineer", "marketing", "finance", "startup", "recruit")


def keyword_vector(text: str, vocab: Sequence[str] = VOCAB) -> List[float]:
    """Bag-of-keywords vector with a small bias so no vector is all zeros."""
    lower = text.lower()
    return [float(lower.count(word)) for word in vocab] + [0.1]


class KeywordEmbeddingProvider:
    """Deterministic provider: counts vocabulary words in each text."""

    name = "fake"
    max_batch_size = 4
    max_concurrency = 2
    batch_pause_seconds = 0.0

    def __init__(self, vocab: Sequence[str] = VOCAB):
        self.vocab = vocab
        self.calls: List[List[str]] = []

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [keyword_vector(t, self.vocab) for t in texts]


class ScriptedEmbeddingProvider(KeywordEmbeddingProvider):
    """
    Keyword provider that first plays back a script.

    Each script entry is consumed by one call: an exception instance is
    raised, None means answer normally.
    """

    def __init__(self, script: Optional[list] = None, fail_when=None, **kwargs):
        super().__init__(**kwargs)
        self.script = list(script or [])
        self.fail_when = fail_when

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.fail_when is not None:
            error = self.fail_when(texts)
            if error is not None:
                raise error
        if self.script:
            step = self.script.pop(0)
            if step is not None:
                raise step
        return [keyword_vector(t, self.vocab) for t in texts]


class MappedEmbeddingProvider(KeywordEmbeddingProvider):
    """Returns fixed vectors per exact text; unknown texts fall back to keywords."""

    def __init__(self, vectors: Dict[str, List[float]], **kwargs):
        super().__init__(**kwargs)
        self.vectors = vectors

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [list(self.vectors.get(t, keyword_vector(t, self.vocab))) for t in texts]


class RecordingSleep:
    """Awaitable sleep replacement that records requested waits."""

    def __init__(self):
        self.waits: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


class FakeTextGenerator:
    """
    TextGenerator returning scripted replies in order.

    A reply that is an exception instance is raised instead. When the
    script runs out the last reply repeats.
    """

    def __init__(self, replies: Sequence):
        self.replies = list(replies)
        self.calls: List[Dict[str, str]] = []

    async def propose(self, system_instruction: str, user_content: str) -> str:
        self.calls.append({"system": system_instruction, "user": user_content})
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        reply = self.replies[index]
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate tests from real credentials and configuration.

    Config reads the environment at import time, so the class attributes
    are patched directly as well.
    """
    for var in (
        "OPENAI_API_KEY",
        "GEMINI_API_KEY",
        "GROQ_API_KEY",
        "ANTHROPIC_API_KEY",
        "HUGGINGFACE_TOKEN",
        "HF_TOKEN",
        "MAX_LEADS",
    ):
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setattr(Config, "AI_PROVIDER", "huggingface")
    monkeypatch.setattr(Config, "OPENAI_API_KEY", "")
    monkeypatch.setattr(Config, "GEMINI_API_KEY", "")
    monkeypatch.setattr(Config, "GROQ_API_KEY", "")
    monkeypatch.setattr(Config, "ANTHROPIC_API_KEY", "")
    monkeypatch.setattr(Config, "HUGGINGFACE_TOKEN", "")
    monkeypatch.setattr(Config, "OPTIMIZER_PROVIDER", "")
    monkeypatch.setattr(Config, "OPTIMIZER_MODEL", "")
    monkeypatch.setattr(Config, "AVOID_PENALTY_WEIGHT", 0.35)
    monkeypatch.setattr(Config, "PREFER_BONUS_WEIGHT", 0.25)
    monkeypatch.setattr(Config, "SCORE_NORM_OFFSET", 1.35)
    monkeypatch.setattr(Config, "SCORE_NORM_SPAN", 2.6)
    monkeypatch.setattr(Config, "SCORE_TOP_N", 10)
    monkeypatch.setattr(Config, "SCORE_MIN", 0.3)
    monkeypatch.setattr(Config, "MAX_LEADS", None)
    monkeypatch.setattr(Config, "EMBED_MAX_CONCURRENCY", 4)

    reset_embedding_gateway()
    yield
    reset_embedding_gateway()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def keyword_provider():
    return KeywordEmbeddingProvider()


@pytest.fixture
def make_gateway(recording_sleep):
    """Factory: gateway over any provider, with an unthrottled limiter and no real sleeps."""

    def _make(provider, **kwargs) -> EmbeddingGateway:
        kwargs.setdefault("rate_limiter", RateLimiter(provider.name, requests_per_minute=100000))
        kwargs.setdefault("sleep", recording_sleep)
        return EmbeddingGateway(provider, **kwargs)

    return _make


@pytest.fixture
def gateway(make_gateway, keyword_provider):
    return make_gateway(keyword_provider)


@pytest.fixture
def scripted_provider_cls():
    return ScriptedEmbeddingProvider


@pytest.fixture
def mapped_provider_cls():
    return MappedEmbeddingProvider


@pytest.fixture
def text_generator_cls():
    return FakeTextGenerator


@pytest.fixture
def sample_leads():
    """Three leads with clearly different profiles."""
    return [
        {"Full Name": "Hana Reed", "Title": "HR Recruiter", "Company": "PeopleCo"},
        {"Full Name": "Sam Vale", "Title": "VP Sales", "Company": "Enterprise Corp", "Employee Range": "enterprise"},
        {"Full Name": "Eli Park", "Title": "Software Engineer", "Company": "Startup Inc"},
    ]
