"""
Lead Ranking Service.

Caller-facing operations:

    service = LeadRankingService()
    result = await service.rank_leads(persona_text, leads)
    optimized = await service.optimize_prompt(persona_text, max_iterations=4)

Ranking is all-or-nothing: any embedding failure raises and no partial
ranking is returned. Optimization returns its best persona once at least
one evaluation succeeded.
"""

import logging
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from leadrank.common.config import Config
from leadrank.common.error_handling import log_on_exception
from leadrank.common.exceptions import EmptyProfile, EvalSetTooSmall
from leadrank.common.logger import get_logger, new_run_id
from leadrank.common.types import (
    EmbeddingVector,
    EvalLead,
    Lead,
    OptimizationResult,
    RankingResult,
)
from leadrank.embeddings.gateway import EmbeddingGateway, get_embedding_gateway
from leadrank.optimizer.evaluation import MIN_EVAL_LEADS, PersonaEvaluator
from leadrank.optimizer.loop import DEFAULT_MAX_ITERATIONS, MAX_ITERATIONS_LIMIT, PromptOptimizer
from leadrank.optimizer.proposer import (
    LangChainTextGenerator,
    PersonaProposer,
    TextGenerator,
    create_optimizer_llm,
)
from leadrank.ranking.persona_parser import parse_persona
from leadrank.ranking.scoring import ScoringEngine, ScoringWeights
from leadrank.services.eval_set import EvalEmbeddingCache, load_eval_embeddings, load_eval_set


class RankOptions(BaseModel):
    """Validated ranking options."""

    top_n: Optional[int] = Field(default=None, ge=1)
    min_score: Optional[float] = Field(default=None, ge=0, le=1)
    max_leads: Optional[int] = Field(default=None, ge=1)


class OptimizeOptions(BaseModel):
    """Validated optimization options; out-of-range iteration counts fall back to the default."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS

    @field_validator("max_iterations", mode="before")
    @classmethod
    def fallback_to_default(cls, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            return DEFAULT_MAX_ITERATIONS
        if not 1 <= value <= MAX_ITERATIONS_LIMIT:
            return DEFAULT_MAX_ITERATIONS
        return value


class LeadRankingService:
    """
    Ranks leads and optimizes personas over one embedding gateway.

    Args:
        gateway: Embedding gateway (default: process-wide gateway)
        weights: Scoring weights (default: from Config)
        text_generator: Optimizer LLM (default: built from Config on first optimize)
        eval_cache: Eval embedding cache (default: JSON file at EVAL_EMBEDDINGS_PATH)
    """

    def __init__(
        self,
        gateway: Optional[EmbeddingGateway] = None,
        weights: Optional[ScoringWeights] = None,
        text_generator: Optional[TextGenerator] = None,
        eval_cache: Optional[EvalEmbeddingCache] = None,
    ):
        self._gateway = gateway
        self.weights = weights or ScoringWeights.from_config()
        self._text_generator = text_generator
        self._eval_cache = eval_cache

    @property
    def gateway(self) -> EmbeddingGateway:
        if self._gateway is None:
            self._gateway = get_embedding_gateway()
        return self._gateway

    @property
    def text_generator(self) -> TextGenerator:
        if self._text_generator is None:
            self._text_generator = LangChainTextGenerator(create_optimizer_llm())
        return self._text_generator

    @property
    def eval_cache(self) -> EvalEmbeddingCache:
        if self._eval_cache is None:
            self._eval_cache = EvalEmbeddingCache(provider=self.gateway.provider_name)
        return self._eval_cache

    async def rank_leads(
        self,
        persona: str,
        leads: Sequence[Lead],
        lead_embeddings: Optional[Sequence[EmbeddingVector]] = None,
        top_n: Optional[int] = None,
        min_score: Optional[float] = None,
        max_leads: Optional[int] = None,
    ) -> RankingResult:
        """
        Rank leads against persona text.

        Args:
            persona: Profile text (free-form or Target/Avoid/Prefer)
            leads: Leads in source order
            lead_embeddings: Optional vectors aligned with leads
            top_n: Results kept before the score floor (default: Config.SCORE_TOP_N)
            min_score: Score floor (default: Config.SCORE_MIN)
            max_leads: Only the first max_leads leads are scored (default: Config.MAX_LEADS)

        Raises:
            EmptyProfile: Persona is blank or has an empty Target
            EmbeddingError: Any embedding failure
        """
        if not (persona or "").strip():
            raise EmptyProfile()
        options = RankOptions(top_n=top_n, min_score=min_score, max_leads=max_leads)

        run_id = new_run_id()
        log = get_logger(__name__, run_id=run_id, layer="rank")

        cap = options.max_leads or Config.MAX_LEADS
        selected = list(leads)
        embeddings = list(lead_embeddings) if lead_embeddings is not None else None
        if cap and len(selected) > cap:
            log.info(f"Capping {len(selected)} leads to the first {cap}")
            if embeddings is not None and len(embeddings) == len(selected):
                embeddings = embeddings[:cap]
            selected = selected[:cap]

        engine = ScoringEngine(self.gateway, weights=self.weights, run_id=run_id)
        with log_on_exception(log, "rank leads", level=logging.ERROR):
            ranked = await engine.score_leads(
                parse_persona(persona),
                selected,
                lead_embeddings=embeddings,
                top_n=options.top_n,
                min_score=options.min_score,
            )
        return RankingResult(
            ranked_leads=ranked,
            total_processed=len(selected),
            total_matched=len(ranked),
        )

    async def optimize_prompt(
        self,
        initial_persona: str,
        max_iterations: Any = DEFAULT_MAX_ITERATIONS,
        eval_leads: Optional[Sequence[EvalLead]] = None,
        eval_lead_embeddings: Optional[Sequence[EmbeddingVector]] = None,
    ) -> OptimizationResult:
        """
        Refine persona text against the gold-ranked evaluation set.

        Args:
            initial_persona: Starting profile text
            max_iterations: 1..10; anything else falls back to 4
            eval_leads: Evaluation set (default: loaded from EVAL_CSV_PATH)
            eval_lead_embeddings: Vectors aligned with eval_leads
                (default: cached or computed once)

        Raises:
            EmptyProfile: Persona is blank
            EvalSetTooSmall: Fewer than 5 ranked eval leads
            OptimizerUnavailable: No optimizer LLM configured
            EmbeddingError: Eval embeddings or the first evaluation failed
        """
        persona = (initial_persona or "").strip()
        if not persona:
            raise EmptyProfile("Profile text is required.")
        options = OptimizeOptions(max_iterations=max_iterations)

        run_id = new_run_id()
        log = get_logger(__name__, run_id=run_id, layer="optimize")

        leads: List[EvalLead] = list(eval_leads) if eval_leads is not None else load_eval_set()
        if len(leads) < MIN_EVAL_LEADS:
            raise EvalSetTooSmall(len(leads), MIN_EVAL_LEADS)

        generator = self.text_generator

        if eval_lead_embeddings is None or len(eval_lead_embeddings) != len(leads):
            if eval_lead_embeddings is not None:
                log.warning(
                    f"{len(eval_lead_embeddings)} eval embeddings supplied for {len(leads)} leads; recomputing"
                )
            cache = self.eval_cache if eval_leads is None else None
            vectors, from_cache = await load_eval_embeddings(self.gateway, leads, cache)
            log.info(f"Eval embeddings ready ({'cache' if from_cache else 'computed'}, {len(vectors)} leads)")
        else:
            vectors = list(eval_lead_embeddings)

        engine = ScoringEngine(self.gateway, weights=self.weights, run_id=run_id)
        optimizer = PromptOptimizer(
            evaluator=PersonaEvaluator(engine, run_id=run_id),
            proposer=PersonaProposer(generator),
            run_id=run_id,
        )
        return await optimizer.run(persona, leads, vectors, max_iterations=options.max_iterations)


async def rank_leads(
    persona: str,
    leads: Sequence[Lead],
    lead_embeddings: Optional[Sequence[EmbeddingVector]] = None,
    **kwargs,
) -> RankingResult:
    """Rank leads with a default service."""
    return await LeadRankingService().rank_leads(persona, leads, lead_embeddings, **kwargs)


async def optimize_prompt(
    initial_persona: str,
    max_iterations: Any = DEFAULT_MAX_ITERATIONS,
    eval_leads: Optional[Sequence[EvalLead]] = None,
    eval_lead_embeddings: Optional[Sequence[EmbeddingVector]] = None,
) -> OptimizationResult:
    """Optimize persona text with a default service."""
    return await LeadRankingService().optimize_prompt(
        initial_persona, max_iterations, eval_leads, eval_lead_embeddings
    )
