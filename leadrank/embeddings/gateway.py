"""
Embedding Gateway.

Single entry point for turning text into vectors:

    gateway = get_embedding_gateway()
    vector = await gateway.embed("Target profile: VP Sales")
    vectors = await gateway.embed_batch(lead_texts)

Behaviour:
- Oversized batches are split into provider-sized chunks. Chunks run
  concurrently (bounded per provider) and results are reassembled in input
  order, so the output always has one vector per input text.
- Rate-limit rejections are retried with tenacity. The wait honours the
  provider's "retry in Ns" hint, clamped to [5s, 120s], else 60s. Once the
  attempt ceiling is reached the call fails with EmbeddingQuotaExceeded.
- A timed-out multi-item chunk is re-requested one item at a time; a
  single item that still times out fails with EmbeddingTimeout.
- Failures carry the provider name and the index of the failing chunk.

The gateway holds no cache.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from leadrank.common.config import Config
from leadrank.common.exceptions import (
    EmbeddingError,
    EmbeddingFormatError,
    EmbeddingQuotaExceeded,
    EmbeddingTimeout,
    ProviderTimeout,
    RateLimitSignal,
)
from leadrank.common.rate_limiter import RateLimiter, get_rate_limiter, reset_rate_limiters
from leadrank.embeddings.providers import (
    EmbeddingProvider,
    create_embedding_provider,
    is_rate_limit_message,
    parse_retry_hint,
)

logger = logging.getLogger(__name__)

MAX_RATE_LIMIT_RETRIES = 5
DEFAULT_RATE_LIMIT_WAIT = 60.0
MIN_RATE_LIMIT_WAIT = 5.0
MAX_RATE_LIMIT_WAIT = 120.0


def rate_limit_wait(retry_after: Optional[float]) -> float:
    """Seconds to wait before retrying a rate-limited request."""
    if retry_after is None:
        return DEFAULT_RATE_LIMIT_WAIT
    return min(MAX_RATE_LIMIT_WAIT, max(MIN_RATE_LIMIT_WAIT, retry_after))


def _wait_from_hint(retry_state) -> float:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    return rate_limit_wait(getattr(exc, "retry_after", None))


def _chunk(texts: Sequence[str], size: int) -> List[List[str]]:
    return [list(texts[i:i + size]) for i in range(0, len(texts), size)]


class EmbeddingGateway:
    """
    Order-preserving batch embedding over one provider.

    Args:
        provider: Backend implementation
        max_retries: Rate-limit retries after the first attempt
        max_concurrency: Chunk requests in flight (default: provider's own limit)
        request_timeout: Hard timeout per provider request, seconds
        rate_limiter: Request pacer (default: shared limiter for the provider)
        sleep: Awaitable sleep used for retry waits and batch pauses
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        max_retries: int = MAX_RATE_LIMIT_RETRIES,
        max_concurrency: Optional[int] = None,
        request_timeout: Optional[float] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.max_retries = max_retries
        self.max_concurrency = max(
            1,
            max_concurrency or min(getattr(provider, "max_concurrency", 1), Config.EMBED_MAX_CONCURRENCY),
        )
        self.request_timeout = request_timeout if request_timeout is not None else Config.EMBED_TIMEOUT_SECONDS
        self.rate_limiter = rate_limiter or get_rate_limiter(provider.name)
        self._sleep = sleep

    @property
    def provider_name(self) -> str:
        return self.provider.name

    @property
    def chunk_size(self) -> int:
        return max(1, getattr(self.provider, "max_batch_size", 32))

    async def embed(self, text: str) -> List[float]:
        """Embed a single text."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed texts, one vector per input in input order.

        Raises:
            EmbeddingQuotaExceeded: Rate limited past the retry ceiling
            EmbeddingTimeout: An item timed out on its own
            EmbeddingFormatError: Provider answered with something that is not vectors
        """
        if not texts:
            return []

        chunks = _chunk(texts, self.chunk_size)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        pause = getattr(self.provider, "batch_pause_seconds", 0.0)

        async def run(index: int, chunk: List[str]) -> List[List[float]]:
            async with semaphore:
                try:
                    vectors = await self._embed_chunk(chunk)
                except EmbeddingError as e:
                    if e.batch_index is None:
                        e.batch_index = index
                    if e.provider is None:
                        e.provider = self.provider_name
                    raise
                if pause and index < len(chunks) - 1:
                    await self._sleep(pause)
                return vectors

        if len(chunks) > 1:
            logger.debug(f"Embedding {len(texts)} texts in {len(chunks)} chunks via {self.provider_name}")

        tasks = [asyncio.ensure_future(run(i, chunk)) for i, chunk in enumerate(chunks)]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        vectors: List[List[float]] = []
        for chunk_vectors in results:
            vectors.extend(chunk_vectors)

        if len(chunks) > 1:
            stats = self.rate_limiter.get_stats()
            if stats.waits_count:
                logger.info(
                    f"{self.provider_name} throttling so far: {stats.waits_count} waits, "
                    f"{stats.total_wait_time_seconds:.1f}s total"
                )
        return vectors

    async def _embed_chunk(self, chunk: List[str]) -> List[List[float]]:
        try:
            return await self._request_with_retry(chunk)
        except ProviderTimeout as e:
            if len(chunk) == 1:
                raise EmbeddingTimeout(str(e), provider=self.provider_name) from e
            logger.warning(
                f"Chunk of {len(chunk)} timed out on {self.provider_name}, retrying one at a time"
            )

        vectors = []
        for text in chunk:
            try:
                vectors.extend(await self._request_with_retry([text]))
            except ProviderTimeout as e:
                raise EmbeddingTimeout(str(e), provider=self.provider_name) from e
        return vectors

    async def _request_with_retry(self, texts: List[str]) -> List[List[float]]:
        def log_wait(retry_state):
            wait = retry_state.next_action.sleep if retry_state.next_action else 0
            logger.warning(
                f"Embedding rate limit on {self.provider_name}. Waiting {wait:.0f}s before retry "
                f"(attempt {retry_state.attempt_number}/{self.max_retries})"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=_wait_from_hint,
            retry=retry_if_exception_type(RateLimitSignal),
            before_sleep=log_wait,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._request(texts)
        except RateLimitSignal as e:
            raise EmbeddingQuotaExceeded(
                f"Embedding quota exceeded after {self.max_retries} retries: {e}",
                attempts=self.max_retries + 1,
                provider=self.provider_name,
            ) from e
        raise EmbeddingError("Embedding retry loop ended without a result", provider=self.provider_name)

    async def _request(self, texts: List[str]) -> List[List[float]]:
        await self.rate_limiter.acquire_async()
        try:
            vectors = await asyncio.wait_for(self.provider.embed_batch(texts), timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(
                f"{self.provider_name} request exceeded {self.request_timeout:.0f}s"
            ) from e
        except (RateLimitSignal, ProviderTimeout, EmbeddingError):
            raise
        except Exception as e:
            message = str(e)
            if is_rate_limit_message(message):
                raise RateLimitSignal(message, retry_after=parse_retry_hint(message)) from e
            raise EmbeddingError(
                f"Failed to generate embeddings: {message}", provider=self.provider_name
            ) from e

        if len(vectors) != len(texts):
            raise EmbeddingFormatError(
                f"{self.provider_name} returned {len(vectors)} embeddings, expected {len(texts)}",
                provider=self.provider_name,
            )
        return [list(v) for v in vectors]


_gateway: Optional[EmbeddingGateway] = None


def get_embedding_gateway() -> EmbeddingGateway:
    """
    Process-wide gateway over the configured provider, built on first use.

    Raises:
        EmbeddingUnavailable: No usable provider is configured
    """
    global _gateway
    if _gateway is None:
        _gateway = EmbeddingGateway(create_embedding_provider())
    return _gateway


def reset_embedding_gateway() -> None:
    """Forget the process-wide gateway and its request pacing (configuration changed, tests)."""
    global _gateway
    _gateway = None
    reset_rate_limiters()
