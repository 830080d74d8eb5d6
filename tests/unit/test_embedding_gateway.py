"""
Unit tests for leadrank/embeddings/gateway.py.

Tests:
- Chunking preserves order and count
- Rate-limit retries honour the provider hint, clamped to [5s, 120s]
- Retry exhaustion becomes EmbeddingQuotaExceeded
- Timed-out chunks fall back to per-item requests
- Failures carry provider and chunk index
- Process-wide gateway construction
"""

import asyncio
import logging

import pytest

from leadrank.common.config import Config
from leadrank.common.exceptions import (
    EmbeddingError,
    EmbeddingFormatError,
    EmbeddingQuotaExceeded,
    EmbeddingTimeout,
    EmbeddingUnavailable,
    ProviderTimeout,
    RateLimitSignal,
)
from leadrank.common.rate_limiter import RateLimiter
from leadrank.embeddings.gateway import (
    DEFAULT_RATE_LIMIT_WAIT,
    MAX_RATE_LIMIT_RETRIES,
    EmbeddingGateway,
    get_embedding_gateway,
    rate_limit_wait,
    reset_embedding_gateway,
)
from leadrank.embeddings.providers import HuggingFaceEmbeddingProvider


class TestRateLimitWait:
    """Tests for the retry wait policy."""

    def test_default_without_hint(self):
        assert rate_limit_wait(None) == DEFAULT_RATE_LIMIT_WAIT == 60.0

    def test_hint_used(self):
        assert rate_limit_wait(58.01) == 58.01

    def test_hint_clamped(self):
        assert rate_limit_wait(1) == 5.0
        assert rate_limit_wait(600) == 120.0


class TestEmbedBatch:
    """Tests for order-preserving batch embedding."""

    @pytest.mark.asyncio
    async def test_empty_input(self, gateway, keyword_provider):
        assert await gateway.embed_batch([]) == []
        assert keyword_provider.calls == []

    @pytest.mark.asyncio
    async def test_one_vector_per_text_in_order(self, gateway, keyword_provider):
        texts = [f"text {i} " + ("sales " * i) for i in range(10)]

        vectors = await gateway.embed_batch(texts)

        assert len(vectors) == 10
        assert [v[0] for v in vectors] == [float(i) for i in range(10)]
        # provider batch size is 4
        assert sorted(len(call) for call in keyword_provider.calls) == [2, 4, 4]

    @pytest.mark.asyncio
    async def test_order_kept_when_chunks_finish_out_of_order(self, make_gateway, keyword_provider):
        """Earlier chunks finishing last must not reorder results."""

        class SlowFirstChunk(type(keyword_provider)):
            async def embed_batch(self, texts):
                if "first" in texts[0]:
                    await asyncio.sleep(0.05)
                return await super().embed_batch(texts)

        provider = SlowFirstChunk()
        gateway = make_gateway(provider, max_concurrency=3)
        texts = ["first sales"] + ["hr"] * 3 + ["enterprise"] * 4 + ["engineer"]

        vectors = await gateway.embed_batch(texts)

        assert vectors[0][0] == 1.0
        assert vectors[1][1] == 1.0
        assert vectors[4][2] == 1.0
        assert vectors[8][3] == 1.0

    @pytest.mark.asyncio
    async def test_embed_single(self, gateway):
        vector = await gateway.embed("sales sales")

        assert vector[0] == 2.0

    @pytest.mark.asyncio
    async def test_count_mismatch_is_format_error(self, make_gateway, keyword_provider):
        class DropsOne(type(keyword_provider)):
            async def embed_batch(self, texts):
                return (await super().embed_batch(texts))[:-1]

        gateway = make_gateway(DropsOne())

        with pytest.raises(EmbeddingFormatError) as exc_info:
            await gateway.embed_batch(["a", "b"])

        assert exc_info.value.batch_index == 0
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_batch_pause_between_chunks(self, make_gateway, keyword_provider, recording_sleep):
        """Providers with a pause wait between chunks, not after the last one."""

        class Paced(type(keyword_provider)):
            max_concurrency = 1
            batch_pause_seconds = 2.5

        gateway = make_gateway(Paced())

        await gateway.embed_batch(["x"] * 9)

        assert recording_sleep.waits == [2.5, 2.5]

    @pytest.mark.asyncio
    async def test_throttle_waits_are_logged(self, make_gateway, keyword_provider, caplog):
        """A batch that had to wait for the limiter reports its throttling."""
        limiter = RateLimiter("fake", requests_per_minute=1, window_seconds=0.01)
        gateway = make_gateway(keyword_provider, rate_limiter=limiter)

        with caplog.at_level(logging.INFO, logger="leadrank.embeddings.gateway"):
            vectors = await asyncio.wait_for(gateway.embed_batch(["sales"] * 9), timeout=5)

        assert len(vectors) == 9
        assert limiter.get_stats().waits_count >= 1
        assert "fake throttling so far" in caplog.text


class TestRateLimitRetries:
    """Tests for tenacity-driven quota retries."""

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, make_gateway, scripted_provider_cls, recording_sleep):
        provider = scripted_provider_cls(script=[
            RateLimitSignal("429 RESOURCE_EXHAUSTED", retry_after=58.01),
            RateLimitSignal("429"),
            None,
        ])
        gateway = make_gateway(provider)

        vectors = await gateway.embed_batch(["sales"])

        assert vectors[0][0] == 1.0
        assert recording_sleep.waits == [58.01, 60.0]
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_short_hint_is_raised_to_minimum(self, make_gateway, scripted_provider_cls, recording_sleep):
        provider = scripted_provider_cls(script=[RateLimitSignal("429", retry_after=0.5), None])

        await make_gateway(provider).embed_batch(["sales"])

        assert recording_sleep.waits == [5.0]

    @pytest.mark.asyncio
    async def test_generic_quota_message_is_retried(self, make_gateway, scripted_provider_cls, recording_sleep):
        """SDK errors mentioning quota are treated as rate limits."""
        provider = scripted_provider_cls(script=[RuntimeError("quota exceeded, retry in 7s"), None])

        await make_gateway(provider).embed_batch(["sales"])

        assert recording_sleep.waits == [7.0]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_quota_exceeded(self, make_gateway, scripted_provider_cls, recording_sleep):
        provider = scripted_provider_cls(fail_when=lambda texts: RateLimitSignal("429 Too Many Requests"))
        gateway = make_gateway(provider)

        with pytest.raises(EmbeddingQuotaExceeded) as exc_info:
            await gateway.embed_batch(["sales"])

        error = exc_info.value
        assert error.retryable
        assert error.attempts == MAX_RATE_LIMIT_RETRIES + 1
        assert error.provider == "fake"
        assert error.batch_index == 0
        assert len(provider.calls) == MAX_RATE_LIMIT_RETRIES + 1
        assert recording_sleep.waits == [60.0] * MAX_RATE_LIMIT_RETRIES

    @pytest.mark.asyncio
    async def test_custom_retry_budget(self, make_gateway, scripted_provider_cls):
        provider = scripted_provider_cls(fail_when=lambda texts: RateLimitSignal("429"))

        with pytest.raises(EmbeddingQuotaExceeded):
            await make_gateway(provider, max_retries=1).embed_batch(["sales"])

        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self, make_gateway, scripted_provider_cls, recording_sleep):
        provider = scripted_provider_cls(script=[ValueError("bad payload")])

        with pytest.raises(EmbeddingError, match="Failed to generate embeddings: bad payload"):
            await make_gateway(provider).embed_batch(["sales"])

        assert len(provider.calls) == 1
        assert recording_sleep.waits == []


class TestTimeouts:
    """Tests for timeout handling."""

    @pytest.mark.asyncio
    async def test_timed_out_chunk_falls_back_to_single_items(self, make_gateway, scripted_provider_cls):
        def slow_batches(texts):
            return ProviderTimeout("slow") if len(texts) > 1 else None

        provider = scripted_provider_cls(fail_when=slow_batches)
        gateway = make_gateway(provider)

        vectors = await gateway.embed_batch(["sales", "hr", "enterprise"])

        assert [v.index(1.0) for v in vectors] == [0, 1, 2]
        assert [len(call) for call in provider.calls] == [3, 1, 1, 1]

    @pytest.mark.asyncio
    async def test_single_item_timeout_raises(self, make_gateway, scripted_provider_cls):
        provider = scripted_provider_cls(fail_when=lambda texts: ProviderTimeout("slow"))

        with pytest.raises(EmbeddingTimeout) as exc_info:
            await make_gateway(provider).embed_batch(["sales"])

        assert exc_info.value.retryable
        assert exc_info.value.provider == "fake"

    @pytest.mark.asyncio
    async def test_item_timeout_after_fallback_raises(self, make_gateway, scripted_provider_cls):
        def hr_hangs(texts):
            if len(texts) > 1 or texts == ["hr"]:
                return ProviderTimeout("slow")
            return None

        provider = scripted_provider_cls(fail_when=hr_hangs)

        with pytest.raises(EmbeddingTimeout):
            await make_gateway(provider).embed_batch(["sales", "hr"])

    @pytest.mark.asyncio
    async def test_hard_timeout_enforced(self, make_gateway, keyword_provider):
        class Hangs(type(keyword_provider)):
            async def embed_batch(self, texts):
                await asyncio.sleep(5)
                return []

        gateway = make_gateway(Hangs(), request_timeout=0.01)

        with pytest.raises(EmbeddingTimeout, match="exceeded"):
            await gateway.embed_batch(["sales"])


class TestErrorContext:
    """Failures identify the chunk that broke."""

    @pytest.mark.asyncio
    async def test_batch_index_of_failing_chunk(self, make_gateway, scripted_provider_cls):
        def third_chunk_fails(texts):
            return EmbeddingFormatError("garbage") if "boom" in texts else None

        provider = scripted_provider_cls(fail_when=third_chunk_fails)
        gateway = make_gateway(provider, max_concurrency=1)
        texts = ["a"] * 8 + ["boom"]

        with pytest.raises(EmbeddingFormatError) as exc_info:
            await gateway.embed_batch(texts)

        assert exc_info.value.batch_index == 2
        assert exc_info.value.provider == "fake"
        assert "batch=2" in str(exc_info.value)


class TestGatewayConstruction:
    """Tests for concurrency defaults and the process-wide gateway."""

    def test_concurrency_capped_by_config(self, keyword_provider, monkeypatch):
        monkeypatch.setattr(Config, "EMBED_MAX_CONCURRENCY", 1)

        gateway = EmbeddingGateway(keyword_provider)

        assert gateway.max_concurrency == 1
        assert gateway.chunk_size == 4
        assert gateway.provider_name == "fake"

    def test_no_provider_configured(self):
        with pytest.raises(EmbeddingUnavailable, match="HUGGINGFACE_TOKEN"):
            get_embedding_gateway()

    def test_singleton(self, monkeypatch):
        monkeypatch.setattr(Config, "HUGGINGFACE_TOKEN", "hf_test")

        first = get_embedding_gateway()

        assert get_embedding_gateway() is first
        assert isinstance(first.provider, HuggingFaceEmbeddingProvider)

        reset_embedding_gateway()
        second = get_embedding_gateway()
        assert second is not first
        assert second.rate_limiter is not first.rate_limiter
