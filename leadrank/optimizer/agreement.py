"""
Agreement Metric.

Compares a produced ranking with the gold ranking. Both are rank arrays
aligned by evaluation-set position: ranks[i] is the 1-based rank of lead i.

- spearman_correlation: 1 - 6 * sum(d^2) / (n * (n^2 - 1)), in [-1, 1]
- recall_at_k: share of the gold top-K that also sits in the produced top-K
- mean_reciprocal_rank_at_k: mean of 1 / produced rank over the gold top-K
"""

from typing import List, Sequence


def spearman_correlation(our_ranks: Sequence[int], gold_ranks: Sequence[int]) -> float:
    """
    Spearman rank correlation between two rank arrays.

    Returns 0.0 (neutral) when the arrays differ in length or n < 2.
    """
    n = len(our_ranks)
    if n != len(gold_ranks) or n < 2:
        return 0.0
    sum_d_sq = sum((ours - gold) ** 2 for ours, gold in zip(our_ranks, gold_ranks))
    return 1 - (6 * sum_d_sq) / (n * (n * n - 1))


def top_k_indices(ranks: Sequence[int], k: int) -> List[int]:
    """Positions holding the k best (lowest) ranks, best first."""
    return sorted(range(len(ranks)), key=lambda i: ranks[i])[:k]


def _valid_k(our_ranks: Sequence[int], gold_ranks: Sequence[int], k: int) -> bool:
    return len(our_ranks) == len(gold_ranks) and 1 <= k <= len(gold_ranks)


def recall_at_k(our_ranks: Sequence[int], gold_ranks: Sequence[int], k: int) -> float:
    """Fraction of gold top-k positions also in the produced top-k (0.0 if k > n)."""
    if not _valid_k(our_ranks, gold_ranks, k):
        return 0.0
    gold_top = set(top_k_indices(gold_ranks, k))
    ours_top = set(top_k_indices(our_ranks, k))
    return len(gold_top & ours_top) / len(gold_top)


def mean_reciprocal_rank_at_k(our_ranks: Sequence[int], gold_ranks: Sequence[int], k: int) -> float:
    """Mean of 1 / produced rank over the gold top-k positions (0.0 if k > n)."""
    if not _valid_k(our_ranks, gold_ranks, k):
        return 0.0
    gold_top = top_k_indices(gold_ranks, k)
    return sum(1.0 / our_ranks[i] for i in gold_top) / len(gold_top)
