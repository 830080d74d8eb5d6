"""
Scoring Engine.

Scores leads against a parsed persona by cosine similarity in embedding
space:

    raw = sim(target) - W_avoid * sim(avoid) + W_prefer * sim(prefer)

With Avoid or Prefer present the raw score is mapped into [0, 1] through a
fixed affine window; with Target alone the plain similarity is mapped as
(sim + 1) / 2. One call uses exactly one of the two paths.

Results are sorted by score (stable on input order), truncated to top-N,
ranked 1..K, and only then filtered by the score floor, so the floor can
shrink the top-N but never refill it from further down.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from leadrank.common.config import Config
from leadrank.common.exceptions import EmbeddingCountMismatch, EmbeddingError, EmptyProfile
from leadrank.common.logger import get_logger
from leadrank.common.types import EmbeddingVector, Lead, Persona, RankedResult
from leadrank.embeddings.gateway import EmbeddingGateway
from leadrank.embeddings.similarity import cosine_similarity_matrix
from leadrank.ranking.lead_text import is_descriptive, lead_to_text

DEFAULT_TOP_N = 10
DEFAULT_MIN_SCORE = 0.3


@dataclass(frozen=True)
class ScoringWeights:
    """
    Combination weights and the normalization window for Avoid/Prefer scoring.

    A raw score r maps to clamp((r + norm_offset) / norm_span, 0, 1).
    Defaults were tuned on a single evaluation set.
    """

    avoid: float = 0.35
    prefer: float = 0.25
    norm_offset: float = 1.35
    norm_span: float = 2.6

    def __post_init__(self):
        if self.avoid < 0 or self.prefer < 0:
            raise ValueError("Scoring weights must be non-negative")
        if self.norm_span <= 0:
            raise ValueError("norm_span must be positive")

    @classmethod
    def from_config(cls) -> "ScoringWeights":
        return cls(
            avoid=Config.AVOID_PENALTY_WEIGHT,
            prefer=Config.PREFER_BONUS_WEIGHT,
            norm_offset=Config.SCORE_NORM_OFFSET,
            norm_span=Config.SCORE_NORM_SPAN,
        )


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def normalize_similarity(similarity: float) -> float:
    """Map a plain cosine similarity into [0, 1]."""
    return _clamp01((similarity + 1) / 2)


def combine_similarities(
    sim_target: float,
    sim_avoid: Optional[float],
    sim_prefer: Optional[float],
    weights: ScoringWeights,
) -> float:
    """Raw Target/Avoid/Prefer combination (unbounded)."""
    raw = sim_target
    if sim_avoid is not None:
        raw -= weights.avoid * sim_avoid
    if sim_prefer is not None:
        raw += weights.prefer * sim_prefer
    return raw


def normalize_combined(raw: float, weights: ScoringWeights) -> float:
    """Map a raw combined score into [0, 1]."""
    return _clamp01((raw + weights.norm_offset) / weights.norm_span)


def score_embeddings(
    slot_vectors: Dict[str, EmbeddingVector],
    lead_embeddings: Sequence[EmbeddingVector],
    weights: ScoringWeights,
) -> List[Tuple[float, float]]:
    """
    Score pre-embedded leads against embedded persona slots.

    Args:
        slot_vectors: "target" plus optional "avoid" / "prefer" vectors
        lead_embeddings: One vector per lead; an empty vector scores 0
        weights: Combination weights

    Returns:
        (normalized score, target similarity) per lead, in input order

    Raises:
        EmbeddingDimensionMismatch: A lead vector's length differs from the persona's
    """
    present = [i for i, vec in enumerate(lead_embeddings) if vec]
    rows = [lead_embeddings[i] for i in present]
    results: List[Tuple[float, float]] = [(0.0, 0.0)] * len(lead_embeddings)
    if not rows:
        return results

    sims_target = cosine_similarity_matrix(slot_vectors["target"], rows)
    sims_avoid = cosine_similarity_matrix(slot_vectors["avoid"], rows) if "avoid" in slot_vectors else None
    sims_prefer = cosine_similarity_matrix(slot_vectors["prefer"], rows) if "prefer" in slot_vectors else None
    combined = sims_avoid is not None or sims_prefer is not None

    for row, lead_index in enumerate(present):
        sim_target = float(sims_target[row])
        if combined:
            raw = combine_similarities(
                sim_target,
                float(sims_avoid[row]) if sims_avoid is not None else None,
                float(sims_prefer[row]) if sims_prefer is not None else None,
                weights,
            )
            score = normalize_combined(raw, weights)
        else:
            score = normalize_similarity(sim_target)
        results[lead_index] = (score, sim_target)
    return results


def rank_scored(
    leads: Sequence[Lead],
    scored: Sequence[Tuple[float, float]],
    top_n: int = DEFAULT_TOP_N,
    min_score: float = DEFAULT_MIN_SCORE,
) -> List[RankedResult]:
    """Sort (stable), truncate to top_n, assign ranks, then apply the score floor."""
    order = sorted(range(len(leads)), key=lambda i: -scored[i][0])
    ranked = [
        RankedResult(lead=leads[i], score=scored[i][0], similarity=scored[i][1], rank=position + 1)
        for position, i in enumerate(order[:max(0, top_n)])
    ]
    return [r for r in ranked if r.score >= min_score]


def ranks_from_scores(scores: Sequence[float]) -> List[int]:
    """1-based rank of each position by descending score (ties keep input order)."""
    order = sorted(range(len(scores)), key=lambda i: -scores[i])
    ranks = [0] * len(scores)
    for position, index in enumerate(order):
        ranks[index] = position + 1
    return ranks


class ScoringEngine:
    """
    Embeds persona slots and leads, then scores and ranks.

    Usage:
        engine = ScoringEngine(gateway)
        results = await engine.score_leads(parse_persona(text), leads)
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        weights: Optional[ScoringWeights] = None,
        top_n: Optional[int] = None,
        min_score: Optional[float] = None,
        run_id: Optional[str] = None,
    ):
        self.gateway = gateway
        self.weights = weights or ScoringWeights.from_config()
        self.top_n = top_n if top_n is not None else Config.SCORE_TOP_N
        self.min_score = min_score if min_score is not None else Config.SCORE_MIN
        self._logger = get_logger(__name__, run_id=run_id, layer="scoring")

    async def embed_persona(self, persona: Persona) -> Dict[str, EmbeddingVector]:
        """
        Embed each present persona slot (one request per slot).

        Raises:
            EmptyProfile: Target is empty
            EmbeddingError: With .slot naming the slot that failed
        """
        if not persona.target.strip():
            raise EmptyProfile()

        async def embed_slot(slot: str, text: str) -> EmbeddingVector:
            try:
                return await self.gateway.embed(text)
            except EmbeddingError as e:
                if e.slot is None:
                    e.slot = slot
                raise

        slots = persona.slots()
        tasks = [asyncio.ensure_future(embed_slot(slot, text)) for slot, text in slots.items()]
        try:
            vectors = await asyncio.gather(*tasks)
        except BaseException:
            # One failed slot fails the ranking; stop the others' requests and retries
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return dict(zip(slots.keys(), vectors))

    async def embed_leads(
        self,
        leads: Sequence[Lead],
        lead_embeddings: Optional[Sequence[EmbeddingVector]] = None,
    ) -> List[EmbeddingVector]:
        """
        Lead vectors aligned with leads.

        Supplied embeddings are reused when they line up 1:1 with the leads;
        otherwise they are discarded and recomputed from lead_to_text.
        """
        if lead_embeddings is not None:
            try:
                return self._aligned(leads, lead_embeddings)
            except EmbeddingCountMismatch as e:
                self._logger.warning(f"{e}; recomputing lead embeddings")
        blank = sum(1 for lead in leads if not is_descriptive(lead))
        if blank:
            self._logger.warning(f"{blank} of {len(leads)} leads have no descriptive fields")
        return await self.gateway.embed_batch([lead_to_text(lead) for lead in leads])

    @staticmethod
    def _aligned(leads: Sequence[Lead], lead_embeddings: Sequence[EmbeddingVector]) -> List[EmbeddingVector]:
        if len(lead_embeddings) != len(leads):
            raise EmbeddingCountMismatch(len(leads), len(lead_embeddings))
        return [list(vec) for vec in lead_embeddings]

    async def score_leads(
        self,
        persona: Persona,
        leads: Sequence[Lead],
        lead_embeddings: Optional[Sequence[EmbeddingVector]] = None,
        top_n: Optional[int] = None,
        min_score: Optional[float] = None,
    ) -> List[RankedResult]:
        """
        Rank leads against a persona.

        Args:
            persona: Parsed persona
            leads: Leads to rank
            lead_embeddings: Optional precomputed vectors aligned with leads
            top_n: Override the engine's top-N
            min_score: Override the engine's score floor

        Returns:
            Ranked results, best first (all-or-nothing: any failure raises)
        """
        slot_vectors = await self.embed_persona(persona)
        if not leads:
            return []
        vectors = await self.embed_leads(leads, lead_embeddings)
        scored = score_embeddings(slot_vectors, vectors, self.weights)
        results = rank_scored(
            leads,
            scored,
            top_n=self.top_n if top_n is None else top_n,
            min_score=self.min_score if min_score is None else min_score,
        )
        mode = "target/avoid/prefer" if persona.has_modifiers else "target only"
        self._logger.info(f"Scored {len(leads)} leads ({mode}), {len(results)} matched")
        return results
