"""
Embedding provider backends.

Each backend implements the same small capability: turn a list of texts into
one vector per text, in order. Providers only speak their wire format and
translate transport failures into two signals the gateway understands:

- RateLimitSignal: 429 / RESOURCE_EXHAUSTED / quota, with an optional hint
- ProviderTimeout: the request exceeded its hard timeout

Retries, chunk scheduling and error enrichment live in the gateway.

The backend is chosen once per process from AI_PROVIDER via
create_embedding_provider().
"""

import logging
import re
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote

import httpx

from leadrank.common.config import Config
from leadrank.common.exceptions import (
    EmbeddingError,
    EmbeddingFormatError,
    EmbeddingUnavailable,
    ProviderTimeout,
    RateLimitSignal,
)

logger = logging.getLogger(__name__)

_RETRY_HINT = re.compile(r"[Rr]etry in ([\d.]+)s")
_RATE_LIMIT_MARKERS = ("429", "RESOURCE_EXHAUSTED", "quota")


class EmbeddingProvider(Protocol):
    """Capability interface every embedding backend satisfies."""

    name: str
    max_batch_size: int
    max_concurrency: int
    batch_pause_seconds: float

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        ...


def is_rate_limit_message(message: str) -> bool:
    """True when an error message reads like a quota or rate-limit rejection."""
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


def parse_retry_hint(message: str) -> Optional[float]:
    """Extract 'retry in 58.01s' style hints (seconds), or None."""
    match = _RETRY_HINT.search(message or "")
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def extract_vector(value: Any) -> Optional[List[float]]:
    """
    Return the first list of numbers found at any nesting depth.

    Feature-extraction endpoints answer [...], [[...]] or token-level
    [[[...]]] depending on model and input shape.
    """
    while isinstance(value, list) and value:
        head = value[0]
        if isinstance(head, (int, float)) and not isinstance(head, bool):
            if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
                return None
            return [float(v) for v in value]
        value = head
    return None


class HttpEmbeddingProvider:
    """Shared httpx plumbing for the REST backends."""

    name = "http"
    max_batch_size = 32
    max_concurrency = 4
    batch_pause_seconds = 0.0

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout if timeout is not None else Config.EMBED_TIMEOUT_SECONDS
        self.transport = transport

    async def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"{self.name} request timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise EmbeddingError(f"{self.name} request failed: {e}", provider=self.name) from e

        if response.status_code >= 400:
            body = response.text
            message = f"{self.name} API {response.status_code}: {body or response.reason_phrase}"
            if response.status_code == 429 or is_rate_limit_message(body):
                retry_after = parse_retry_hint(body)
                header = response.headers.get("retry-after")
                if retry_after is None and header:
                    try:
                        retry_after = float(header)
                    except ValueError:
                        retry_after = None
                raise RateLimitSignal(message, retry_after=retry_after)
            raise EmbeddingError(message, provider=self.name)

        try:
            return response.json()
        except ValueError as e:
            raise EmbeddingFormatError(f"{self.name} returned non-JSON body", provider=self.name) from e

    def _require(self, vectors: List[Optional[List[float]]], expected: int) -> List[List[float]]:
        if len(vectors) != expected:
            raise EmbeddingFormatError(
                f"{self.name} returned {len(vectors)} embeddings, expected {expected}",
                provider=self.name,
            )
        for index, vector in enumerate(vectors):
            if not vector:
                raise EmbeddingFormatError(
                    f"{self.name} returned an unreadable embedding at position {index}",
                    provider=self.name,
                )
        return vectors


class OpenAIEmbeddingProvider(HttpEmbeddingProvider):
    """OpenAI /v1/embeddings (native batch input)."""

    name = "openai"
    max_batch_size = 256
    max_concurrency = 4

    def __init__(self, api_key: str, model: Optional[str] = None, base_url: str = "https://api.openai.com/v1", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model or Config.OPENAI_EMBED_MODEL
        self.base_url = base_url.rstrip("/")

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        data = await self._post(
            f"{self.base_url}/embeddings",
            headers={"Authorization": f"Bearer {self.api_key}"},
            payload={"model": self.model, "input": texts},
        )
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise EmbeddingFormatError("openai response has no data list", provider=self.name)
        items = sorted(data["data"], key=lambda item: item.get("index", 0))
        return self._require([extract_vector(item.get("embedding")) for item in items], len(texts))


class GeminiEmbeddingProvider(HttpEmbeddingProvider):
    """
    Gemini batchEmbedContents with SEMANTIC_SIMILARITY task type.

    Free tier allows 100 requests/min, so chunks go out one at a time with a
    short pause in between.
    """

    name = "gemini"
    max_batch_size = 50
    max_concurrency = 1
    batch_pause_seconds = 2.5

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model or Config.GEMINI_EMBED_MODEL
        self.base_url = base_url.rstrip("/")

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        model_ref = f"models/{self.model}"
        payload = {
            "requests": [
                {
                    "model": model_ref,
                    "content": {"parts": [{"text": text}]},
                    "taskType": "SEMANTIC_SIMILARITY",
                }
                for text in texts
            ]
        }
        data = await self._post(
            f"{self.base_url}/{model_ref}:batchEmbedContents",
            headers={"x-goog-api-key": self.api_key},
            payload=payload,
        )
        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not isinstance(embeddings, list):
            raise EmbeddingFormatError("gemini response has no embeddings list", provider=self.name)
        return self._require(
            [extract_vector(item.get("values") if isinstance(item, dict) else None) for item in embeddings],
            len(texts),
        )


class HuggingFaceEmbeddingProvider(HttpEmbeddingProvider):
    """Hugging Face router feature-extraction pipeline."""

    name = "huggingface"
    max_batch_size = 32
    max_concurrency = 2

    def __init__(self, token: str, model: Optional[str] = None, base_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.token = token
        self.model = model or Config.HF_EMBED_MODEL
        self.base_url = (base_url or Config.HF_INFERENCE_URL).rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.base_url}/hf-inference/models/{quote(self.model, safe='')}/pipeline/feature-extraction"

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        data = await self._post(
            self.url,
            headers={"Authorization": f"Bearer {self.token}"},
            payload={"inputs": texts},
        )
        if not isinstance(data, list):
            raise EmbeddingFormatError(
                f"huggingface returned {type(data).__name__}, expected a list of embeddings",
                provider=self.name,
            )
        return self._require([extract_vector(item) for item in data], len(texts))


_REMEDIATION = {
    "openai": "Set OPENAI_API_KEY, or choose another AI_PROVIDER.",
    "gemini": "Set GEMINI_API_KEY, or choose another AI_PROVIDER.",
    "huggingface": (
        "Set HUGGINGFACE_TOKEN (or HF_TOKEN); tokens are issued at "
        "https://huggingface.co/settings/tokens"
    ),
}


def create_embedding_provider(provider: Optional[str] = None) -> EmbeddingProvider:
    """
    Build the embedding backend for this process.

    Args:
        provider: Override AI_PROVIDER (huggingface, openai, gemini)

    Raises:
        EmbeddingUnavailable: Unknown provider or missing credentials
    """
    name = (provider or Config.get_embedding_provider()).lower()
    keys = {
        "openai": Config.OPENAI_API_KEY,
        "gemini": Config.GEMINI_API_KEY,
        "huggingface": Config.HUGGINGFACE_TOKEN,
    }
    if name not in keys:
        raise EmbeddingUnavailable(
            f"Unknown embedding provider '{name}'. Use huggingface, openai or gemini.",
            provider=name,
        )
    key = keys[name]
    if not key:
        raise EmbeddingUnavailable(
            f"No credentials for embedding provider '{name}'. {_REMEDIATION[name]}",
            provider=name,
        )

    logger.info(f"Embedding provider: {name}")
    if name == "openai":
        return OpenAIEmbeddingProvider(api_key=key)
    if name == "gemini":
        return GeminiEmbeddingProvider(api_key=key)
    return HuggingFaceEmbeddingProvider(token=key)
