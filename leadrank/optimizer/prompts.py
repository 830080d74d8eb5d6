"""
Prompt templates for persona refinement.

The system prompt pins the output to three plain-text sections so the reply
can go straight back through the persona parser.
"""

from typing import Sequence

from leadrank.common.types import HistoryEntry

HISTORY_PROMPT_CHARS = 500

OPTIMIZER_SYSTEM = """You help users define and refine their ideal lead profile for ranking. The profile describes their company type and who they want to reach.

The user may give you free-form text: a few words, a paragraph, or already structured with Target/Avoid/Prefer. Your job is to identify what they are looking for (Target), what they want to avoid (Avoid), and what they prefer (Prefer), then output a refined profile with those three sections clearly filled. If the user did not mention avoid or prefer, infer from context when possible or leave those sections concise; Target is required and must capture who they want to reach.

Do not replace their criteria with a different business or generic template. Improve by:
1. Keeping their meaning: same type of company, same kind of targets/avoid/prefer they described or implied.
2. Being more explicit: list concrete job titles and company sizes (e.g. "2-10 employees", "51-200") where it fits their intent.
3. Always output exactly three sections: Target:, Avoid:, Prefer:. Add missing roles or criteria they implied; if they said nothing about avoid or prefer, write a short line (e.g. "None specified.") or infer from context.
4. Using wording that matches how leads are usually described (job title, company, size) so the ranking model can match better.
5. Using the ranking feedback, when given, to decide which roles or company traits to emphasize or exclude.

The evaluation score (Spearman, -1 to 1) measures how well the prompt aligns with a gold ranking; higher is better. Your refined prompt should preserve the user's definition of target/avoid/prefer and make it more explicit so it can score higher.

OUTPUT FORMAT (strict, you must follow this exactly):
- Output ONLY the refined profile. No preamble, no "Here is...", no explanation.
- Use plain text only. Do NOT use markdown: no asterisks (**bold**), no bullet dashes (-), no hash headers (#).
- Use exactly these three section labels at the start of a line: "Target:", "Avoid:", "Prefer:"
- After each label, write the content in plain prose. Use commas, "and", "or" for lists. Each section may be multiple lines.
- Example format:

Target: Vice Presidents of Operations, Technical Directors, and similar senior leadership roles responsible for infrastructure or technical leadership in companies in solar or wind energy, with 11-500 employees.
Avoid: Companies in the traditional fossil-fuel sector such as oil and gas, coal mining, consulting firms advising energy companies, and very early-stage startups under 10 employees. Also exclude energy trading and renewable investment firms that do not operate infrastructure.
Prefer: Companies with 51-200 employees, actively running commercial-scale renewable infrastructure such as solar farms or wind turbines, with a focus on operational deployment and grid stability rather than research and development."""

REQUIRE_DIFFERENT_HINT = (
    "\n\n[IMPORTANT: Output MUST be different. Refine or expand at least one of "
    "Target, Avoid, or Prefer while keeping the user's intent.]"
)

_INSTRUCTION = (
    "\n\nIdentify the key parts (who they want: Target, who to exclude: Avoid, "
    "what to prefer: Prefer) and output a refined profile with exactly \"Target:\", "
    "\"Avoid:\", \"Prefer:\" as section labels. Use plain text only (no markdown, "
    "no ** or - bullets)."
)


def format_history(history: Sequence[HistoryEntry], max_chars: int = HISTORY_PROMPT_CHARS) -> str:
    """Render recent attempts as 'Score x.xxx:' blocks, each prompt truncated."""
    if not history:
        return ""
    blocks = [f"Score {entry.score:.3f}:\n{entry.prompt[:max_chars]}..." for entry in history]
    return "\nPrevious attempts (prompt -> score):\n" + "\n---\n".join(blocks)


def build_user_content(
    current_prompt: str,
    current_score: float,
    history: Sequence[HistoryEntry] = (),
    feedback: str = "",
    require_different: bool = False,
) -> str:
    """
    Assemble the refinement request for one proposal.

    Args:
        current_prompt: Persona text just evaluated
        current_score: Its Spearman score
        history: Recent attempts (already windowed by the caller)
        feedback: Ranking diagnostic from build_feedback ("" to omit)
        require_different: Append the must-differ instruction
    """
    content = f"Current profile (score: {current_score:.3f}):\n{current_prompt}"
    content += format_history(history)
    if feedback:
        content += f"\n\nRanking feedback on the evaluation set:\n{feedback}"
    content += _INSTRUCTION
    if require_different:
        content += REQUIRE_DIFFERENT_HINT
    return content
