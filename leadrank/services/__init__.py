"""
Services Package

Caller-facing ranking and persona optimization, plus the evaluation set.
"""

from leadrank.services.eval_set import EvalEmbeddingCache, load_eval_set
from leadrank.services.ranking_service import (
    LeadRankingService,
    optimize_prompt,
    rank_leads,
)

__all__ = [
    "EvalEmbeddingCache",
    "LeadRankingService",
    "load_eval_set",
    "optimize_prompt",
    "rank_leads",
]
