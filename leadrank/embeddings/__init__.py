"""
Embedding gateway, provider backends and vector similarity.
"""

from leadrank.embeddings.gateway import (
    EmbeddingGateway,
    get_embedding_gateway,
    reset_embedding_gateway,
)
from leadrank.embeddings.providers import EmbeddingProvider, create_embedding_provider
from leadrank.embeddings.similarity import cosine_similarity, cosine_similarity_matrix

__all__ = [
    "EmbeddingGateway",
    "EmbeddingProvider",
    "cosine_similarity",
    "cosine_similarity_matrix",
    "create_embedding_provider",
    "get_embedding_gateway",
    "reset_embedding_gateway",
]
