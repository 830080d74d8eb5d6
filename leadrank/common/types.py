"""
Canonical types for lead ranking and persona optimization.

Leads are plain string mappings (schema-free, see field_aliases). Everything
the engine returns is a dataclass; the results callers serialize have to_dict().
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

Lead = Dict[str, str]
EmbeddingVector = List[float]


@dataclass(frozen=True)
class Persona:
    """
    Parsed Target / Avoid / Prefer description of an ideal lead.

    avoid and prefer are None when the persona sets no constraint for that
    slot. target may be "" straight out of the parser; scoring rejects it.
    """

    target: str
    avoid: Optional[str] = None
    prefer: Optional[str] = None

    @property
    def has_modifiers(self) -> bool:
        """True when Avoid or Prefer takes part in scoring."""
        return self.avoid is not None or self.prefer is not None

    def slots(self) -> Dict[str, str]:
        """Present slots in embedding order: target, avoid, prefer."""
        present = {"target": self.target}
        if self.avoid is not None:
            present["avoid"] = self.avoid
        if self.prefer is not None:
            present["prefer"] = self.prefer
        return present


@dataclass
class RankedResult:
    """One lead with its normalized score, raw target similarity and rank."""

    lead: Lead
    score: float                       # Normalized to [0, 1]
    similarity: float                  # Cosine similarity to Target, [-1, 1]
    rank: int                          # 1-based, by descending score

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "lead": dict(self.lead),
            "score": round(self.score, 6),
            "similarity": round(self.similarity, 6),
            "rank": self.rank,
        }


@dataclass
class RankingResult:
    """Outcome of one rank_leads call."""

    ranked_leads: List[RankedResult]
    total_processed: int               # Leads scored (after max_leads cap)
    total_matched: int                 # Leads that survived top-N and the score floor

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ranked_leads": [r.to_dict() for r in self.ranked_leads],
            "total_processed": self.total_processed,
            "total_matched": self.total_matched,
        }


@dataclass(frozen=True)
class EvalLead:
    """A lead from the evaluation set with its immutable gold rank (1..N)."""

    lead: Lead
    gold_rank: int

    def __post_init__(self):
        if self.gold_rank < 1:
            raise ValueError(f"gold_rank must be >= 1, got {self.gold_rank}")


@dataclass(frozen=True)
class HistoryEntry:
    """One evaluated persona text in an optimization run."""

    prompt: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {"prompt": self.prompt, "score": round(self.score, 6)}


@dataclass
class Evaluation:
    """Agreement of one persona against the gold ranking."""

    score: float                       # Spearman correlation, [-1, 1]
    our_ranks: List[int]
    gold_ranks: List[int]
    recall_at_k: float = 0.0
    mrr_at_k: float = 0.0


@dataclass
class OptimizationResult:
    """
    Outcome of one optimization run.

    history is the audit trail in iteration order; errors lists proposal
    and evaluation failures the run recovered from.
    """

    best_prompt: str
    best_score: float
    history: Sequence[HistoryEntry]
    iterations: int
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "best_prompt": self.best_prompt,
            "best_score": round(self.best_score, 6),
            "history": [entry.to_dict() for entry in self.history],
            "iterations": self.iterations,
            "errors": list(self.errors),
        }
