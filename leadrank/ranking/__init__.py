"""
Lead ranking: persona parsing, lead serialization and embedding-space scoring.

Flow:
1. parse_persona() splits profile text into Target / Avoid / Prefer
2. lead_to_text() projects each lead to descriptive text
3. ScoringEngine embeds both sides and ranks leads by combined similarity
"""

from leadrank.ranking.example_profile import EXAMPLE_PERSONA
from leadrank.ranking.lead_text import lead_to_text
from leadrank.ranking.persona_parser import parse_persona
from leadrank.ranking.scoring import (
    DEFAULT_MIN_SCORE,
    DEFAULT_TOP_N,
    ScoringEngine,
    ScoringWeights,
    rank_scored,
    ranks_from_scores,
    score_embeddings,
)

__all__ = [
    "DEFAULT_MIN_SCORE",
    "DEFAULT_TOP_N",
    "EXAMPLE_PERSONA",
    "ScoringEngine",
    "ScoringWeights",
    "lead_to_text",
    "parse_persona",
    "rank_scored",
    "ranks_from_scores",
    "score_embeddings",
]
