"""
Prompt Optimizer.

Bounded hill climb over persona text:

    evaluate current -> (stop if last iteration) -> feedback -> propose
    -> accept or fall back to best -> evaluate ...

Only best_score / best_prompt are monotonic. The best is replaced on a
strictly higher score, so ties keep the earlier text. The last iteration
evaluates without proposing.

A proposal that fails, comes back empty, is too short, has no Target, or
repeats the current text even after a must-differ re-request is dropped,
and the next iteration evaluates the best-known text. Proposal failures
never end a run. An evaluation failure ends the run with the best result so
far, or propagates if nothing was evaluated yet.
"""

import re
from typing import List, Optional, Sequence

from leadrank.common.error_handling import ErrorCollector
from leadrank.common.exceptions import EvalSetTooSmall, LeadRankError
from leadrank.common.logger import get_logger
from leadrank.common.types import EmbeddingVector, EvalLead, HistoryEntry, OptimizationResult
from leadrank.optimizer.evaluation import MIN_EVAL_LEADS, PersonaEvaluator
from leadrank.optimizer.feedback import build_feedback
from leadrank.optimizer.proposer import PersonaProposer
from leadrank.ranking.persona_parser import parse_persona

DEFAULT_MAX_ITERATIONS = 4
MAX_ITERATIONS_LIMIT = 10
HISTORY_WINDOW = 3
MIN_PROMPT_LENGTH = 20

# Below any Spearman score, so the first evaluation always becomes the best
INITIAL_BEST_SCORE = -2.0


def normalize_prompt(prompt: str) -> str:
    """Case- and whitespace-insensitive form used to detect repeats."""
    return re.sub(r"\s+", " ", (prompt or "").strip()).lower()


def is_same_prompt(a: str, b: str) -> bool:
    return normalize_prompt(a) == normalize_prompt(b)


class PromptOptimizer:
    """
    Runs one optimization per call to run(); no state survives between runs.

    Args:
        evaluator: Scores persona text against the gold ranking
        proposer: Produces refined persona text
        history_window: Recent attempts shown to the proposer
        min_prompt_length: Shorter proposals are rejected
        run_id: Log correlation id
    """

    def __init__(
        self,
        evaluator: PersonaEvaluator,
        proposer: PersonaProposer,
        history_window: int = HISTORY_WINDOW,
        min_prompt_length: int = MIN_PROMPT_LENGTH,
        run_id: Optional[str] = None,
    ):
        self.evaluator = evaluator
        self.proposer = proposer
        self.history_window = history_window
        self.min_prompt_length = min_prompt_length
        self._logger = get_logger(__name__, run_id=run_id, layer="optimizer")

    def _is_acceptable(self, proposal: str, current: str) -> bool:
        if not proposal or len(proposal) < self.min_prompt_length:
            self._logger.info(f"Rejected proposal: too short ({len(proposal or '')} chars)")
            return False
        if not parse_persona(proposal).target.strip():
            self._logger.info("Rejected proposal: no Target section")
            return False
        if is_same_prompt(proposal, current):
            self._logger.info("Rejected proposal: identical to current persona")
            return False
        return True

    async def _propose(
        self,
        current: str,
        score: float,
        history: Sequence[HistoryEntry],
        feedback: str,
        iteration: int,
        errors: ErrorCollector,
    ) -> str:
        recent = list(history[-self.history_window:])
        try:
            proposal = await self.proposer.propose(current, score, recent, feedback)
            if is_same_prompt(proposal, current):
                self._logger.info("Proposal repeated the current persona, asking for a different one")
                proposal = await self.proposer.propose(
                    current, score, recent, feedback, require_different=True
                )
        except Exception as e:
            self._logger.warning(f"Proposal failed at iteration {iteration + 1}: {e}")
            errors.add_error(
                layer="optimizer",
                operation="propose",
                message=str(e) or type(e).__name__,
                severity="medium",
                exception=e,
                iteration=iteration + 1,
            )
            return ""
        return proposal

    async def run(
        self,
        initial_prompt: str,
        eval_leads: Sequence[EvalLead],
        lead_embeddings: Sequence[EmbeddingVector],
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> OptimizationResult:
        """
        Optimize persona text against the evaluation set.

        Args:
            initial_prompt: Caller's persona text
            eval_leads: Gold-ranked evaluation leads
            lead_embeddings: Precomputed vectors aligned with eval_leads
            max_iterations: Evaluations to run (1..10)

        Raises:
            ValueError: max_iterations out of range
            EvalSetTooSmall: Fewer than 5 evaluation leads
            LeadRankError: The first evaluation failed
        """
        if not 1 <= max_iterations <= MAX_ITERATIONS_LIMIT:
            raise ValueError(f"max_iterations must be within 1..{MAX_ITERATIONS_LIMIT}, got {max_iterations}")
        if len(eval_leads) < MIN_EVAL_LEADS:
            raise EvalSetTooSmall(len(eval_leads), MIN_EVAL_LEADS)

        errors = ErrorCollector()
        history: List[HistoryEntry] = []
        current = initial_prompt
        best_prompt = initial_prompt
        best_score = INITIAL_BEST_SCORE

        self._logger.info(f"Starting optimization: {max_iterations} iterations, {len(eval_leads)} eval leads")

        for iteration in range(max_iterations):
            try:
                evaluation = await self.evaluator.evaluate(current, eval_leads, lead_embeddings)
            except LeadRankError as e:
                if not history:
                    raise
                self._logger.error(f"Evaluation failed at iteration {iteration + 1}, returning best so far: {e}")
                errors.add_error(
                    layer="optimizer",
                    operation="evaluate",
                    message=str(e),
                    severity="high",
                    exception=e,
                    iteration=iteration + 1,
                )
                break

            history.append(HistoryEntry(prompt=current, score=evaluation.score))
            improved = evaluation.score > best_score
            if improved:
                best_score = evaluation.score
                best_prompt = current
            self._logger.info(
                f"Iteration {iteration + 1}/{max_iterations}: spearman={evaluation.score:.3f} "
                f"recall@k={evaluation.recall_at_k:.2f} mrr@k={evaluation.mrr_at_k:.2f}"
                f"{' (new best)' if improved else ''}"
            )

            if iteration == max_iterations - 1:
                break

            feedback = build_feedback(eval_leads, evaluation.our_ranks, evaluation.gold_ranks)
            proposal = await self._propose(current, evaluation.score, history, feedback, iteration, errors)
            current = proposal if self._is_acceptable(proposal, current) else best_prompt

        self._logger.info(f"Optimization finished: best={best_score:.3f} after {len(history)} evaluations")
        if errors.errors:
            summary = errors.summary()
            self._logger.warning(
                f"Recovered from {summary['total']} error(s), by severity: "
                + ", ".join(f"{k}={v}" for k, v in summary["by_severity"].items() if v)
            )
        return OptimizationResult(
            best_prompt=best_prompt,
            best_score=best_score,
            history=tuple(history),
            iterations=len(history),
            errors=errors.to_dicts(),
        )
