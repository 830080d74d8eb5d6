"""
Persona Parser.

Splits an ideal-lead profile into Target / Avoid / Prefer slots:

    Target: VP Sales at B2B SaaS
    Avoid: HR, recruiting
    Prefer: companies with 50-500 employees

Labels are case-insensitive and each section runs until the next label or
the end of the text. Text without any label is taken whole as the Target.
Section bodies are stripped of markdown before use.

The parser never raises for an empty Target; scoring does.
"""

import re
from typing import Optional

from leadrank.common.markdown_sanitizer import strip_persona_markdown
from leadrank.common.types import Persona

TARGET_PREFIX = "Target profile: "
AVOID_PREFIX = "Profiles to avoid: "
PREFER_PREFIX = "Profiles we prefer: "

_LABEL_PATTERNS = {
    label: re.compile(rf"\b{label}\s*:", re.IGNORECASE)
    for label in ("Target", "Avoid", "Prefer")
}


def _section_pattern(label: str) -> "re.Pattern[str]":
    return re.compile(
        rf"\b{label}\s*:\s*([\s\S]*?)(?=\b(?:Target|Avoid|Prefer)\s*:|$)",
        re.IGNORECASE,
    )


_SECTION_PATTERNS = {label: _section_pattern(label) for label in _LABEL_PATTERNS}


def has_section_labels(text: str) -> bool:
    """True when text carries at least one Target/Avoid/Prefer label."""
    return any(pattern.search(text) for pattern in _LABEL_PATTERNS.values())


def extract_section(text: str, label: str) -> str:
    """Cleaned body of the first section with this label ('' if absent or empty)."""
    match = _SECTION_PATTERNS[label].search(text)
    if not match or not match.group(1):
        return ""
    return strip_persona_markdown(match.group(1).strip())


def _optional_section(text: str, label: str, prefix: str) -> Optional[str]:
    if not _LABEL_PATTERNS[label].search(text):
        return None
    body = extract_section(text, label)
    return f"{prefix}{body}" if body else None


def parse_persona(raw_text: str) -> Persona:
    """
    Parse profile text into a Persona.

    Free-form text (no labels) becomes the Target verbatim after markdown
    cleanup. In structured mode each present, non-empty section is
    prefixed with a short descriptive tag; an empty Avoid or Prefer counts
    as absent.

    Args:
        raw_text: Profile as typed by the user or proposed by the optimizer

    Returns:
        Persona (target may be "")
    """
    trimmed = (raw_text or "").strip()
    if not trimmed:
        return Persona(target="")

    if not has_section_labels(trimmed):
        return Persona(target=f"{TARGET_PREFIX}{strip_persona_markdown(trimmed)}")

    target = extract_section(trimmed, "Target")
    return Persona(
        target=f"{TARGET_PREFIX}{target}" if target else "",
        avoid=_optional_section(trimmed, "Avoid", AVOID_PREFIX),
        prefer=_optional_section(trimmed, "Prefer", PREFER_PREFIX),
    )
