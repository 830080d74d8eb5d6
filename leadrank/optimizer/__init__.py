"""
Persona optimization: rank agreement, ranking feedback and the LLM-driven
refinement loop.
"""

from leadrank.optimizer.agreement import (
    mean_reciprocal_rank_at_k,
    recall_at_k,
    spearman_correlation,
)
from leadrank.optimizer.evaluation import MIN_EVAL_LEADS, PersonaEvaluator
from leadrank.optimizer.feedback import build_feedback
from leadrank.optimizer.loop import DEFAULT_MAX_ITERATIONS, PromptOptimizer
from leadrank.optimizer.proposer import (
    LangChainTextGenerator,
    PersonaProposer,
    TextGenerator,
    create_optimizer_llm,
    extract_persona_text,
)

__all__ = [
    "DEFAULT_MAX_ITERATIONS",
    "LangChainTextGenerator",
    "MIN_EVAL_LEADS",
    "PersonaEvaluator",
    "PersonaProposer",
    "PromptOptimizer",
    "TextGenerator",
    "build_feedback",
    "create_optimizer_llm",
    "extract_persona_text",
    "mean_reciprocal_rank_at_k",
    "recall_at_k",
    "spearman_correlation",
]
