"""
Feedback Builder.

Turns two rank arrays into a short diagnostic for the persona proposer:
which gold top-K leads the current persona ranks too low, and which leads
it pulls into its own top-K that the gold ranking does not.
"""

from typing import List, Sequence

from leadrank.common.field_aliases import lead_label
from leadrank.common.types import EvalLead
from leadrank.optimizer.agreement import top_k_indices

FEEDBACK_TOP_K = 5
MAX_EXAMPLES = 3


def _describe(eval_leads: Sequence[EvalLead], index: int) -> str:
    return lead_label(eval_leads[index].lead) or f"lead #{index + 1}"


def build_feedback(
    eval_leads: Sequence[EvalLead],
    our_ranks: Sequence[int],
    gold_ranks: Sequence[int],
    k: int = FEEDBACK_TOP_K,
    max_examples: int = MAX_EXAMPLES,
) -> str:
    """
    Describe where the produced ranking disagrees with the gold top-k.

    Args:
        eval_leads: Evaluation leads, aligned with both rank arrays
        our_ranks: Produced ranks (1-based)
        gold_ranks: Gold ranks (1-based)
        k: Top-k cut, capped at the set size
        max_examples: Examples listed per category

    Returns:
        Feedback text, or "" when the top-k sets agree
    """
    n = len(eval_leads)
    if n == 0 or len(our_ranks) != n or len(gold_ranks) != n:
        return ""
    k = min(k, n)

    gold_top = top_k_indices(gold_ranks, k)
    ours_top = top_k_indices(our_ranks, k)
    gold_set, ours_set = set(gold_top), set(ours_top)

    too_low = [i for i in gold_top if i not in ours_set][:max_examples]
    too_high = [i for i in ours_top if i not in gold_set][:max_examples]

    lines: List[str] = []
    if too_low:
        examples = ", ".join(
            f"{_describe(eval_leads, i)} (gold #{gold_ranks[i]}, ours #{our_ranks[i]})" for i in too_low
        )
        lines.append(f"Ranked too low (in the gold top {k}, outside ours): {examples}.")
    if too_high:
        examples = ", ".join(
            f"{_describe(eval_leads, i)} (ours #{our_ranks[i]}, gold #{gold_ranks[i]})" for i in too_high
        )
        lines.append(f"Ranked too high (in our top {k}, outside the gold top {k}): {examples}.")
    return "\n".join(lines)
