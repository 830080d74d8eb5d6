"""
Persona evaluation against the gold-ranked evaluation set.

Only the persona is embedded per evaluation; lead vectors come from the
precomputed evaluation-set embeddings and are never recomputed here.
"""

from typing import Optional, Sequence

from leadrank.common.logger import get_logger
from leadrank.common.types import EmbeddingVector, EvalLead, Evaluation
from leadrank.optimizer.agreement import (
    mean_reciprocal_rank_at_k,
    recall_at_k,
    spearman_correlation,
)
from leadrank.optimizer.feedback import FEEDBACK_TOP_K
from leadrank.ranking.persona_parser import parse_persona
from leadrank.ranking.scoring import ScoringEngine, ranks_from_scores, score_embeddings

MIN_EVAL_LEADS = 5


class PersonaEvaluator:
    """
    Scores persona text by rank agreement with the gold ranking.

    Leads without an embedding score 0 and therefore sink to the bottom of
    the produced ranking.
    """

    def __init__(self, engine: ScoringEngine, top_k: int = FEEDBACK_TOP_K, run_id: Optional[str] = None):
        self.engine = engine
        self.top_k = top_k
        self._logger = get_logger(__name__, run_id=run_id, layer="evaluation")

    async def evaluate(
        self,
        persona_text: str,
        eval_leads: Sequence[EvalLead],
        lead_embeddings: Sequence[EmbeddingVector],
    ) -> Evaluation:
        """
        Evaluate one persona.

        Raises:
            EmptyProfile: The persona has no Target
            EmbeddingError: Persona slots could not be embedded (with .slot)
        """
        persona = parse_persona(persona_text)
        slot_vectors = await self.engine.embed_persona(persona)

        if len(lead_embeddings) != len(eval_leads):
            self._logger.warning(
                f"{len(lead_embeddings)} embeddings for {len(eval_leads)} eval leads; "
                f"unmatched leads score 0"
            )
        aligned = [
            lead_embeddings[i] if i < len(lead_embeddings) else []
            for i in range(len(eval_leads))
        ]

        scored = score_embeddings(slot_vectors, aligned, self.engine.weights)
        our_ranks = ranks_from_scores([score for score, _ in scored])
        gold_ranks = [e.gold_rank for e in eval_leads]
        k = min(self.top_k, len(eval_leads))

        return Evaluation(
            score=spearman_correlation(our_ranks, gold_ranks),
            our_ranks=our_ranks,
            gold_ranks=gold_ranks,
            recall_at_k=recall_at_k(our_ranks, gold_ranks, k),
            mrr_at_k=mean_reciprocal_rank_at_k(our_ranks, gold_ranks, k),
        )
