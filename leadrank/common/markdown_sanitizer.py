"""
Markdown Sanitizer for persona text.

Embedding quality drops when the profile text carries formatting noise, and
LLM-refined personas routinely come back with **bold** labels, bullet dashes
and heading hashes even when told not to. These helpers reduce such text to
plain prose before it is embedded.

Usage:
    from leadrank.common.markdown_sanitizer import strip_persona_markdown

    strip_persona_markdown("- **VP Sales** at *SaaS* companies")
    # Returns: "VP Sales at SaaS companies"
"""

import re


def sanitize_markdown(text: str) -> str:
    """
    Remove inline markdown formatting from text.

    Handles:
    - Bold: **text** or __text__
    - Italic: *text* or _text_
    - Code: `text` or ```text```
    - Links: [text](url) -> text
    - Headers: # Header -> Header

    Args:
        text: Text potentially containing markdown

    Returns:
        Text with markdown formatting removed
    """
    if not text:
        return text

    # Code fences first so their markers don't read as emphasis
    text = re.sub(r'```[a-zA-Z]*\n?([\s\S]*?)```', r'\1', text)
    text = re.sub(r'`([^`]+)`', r'\1', text)

    text = re.sub(r'\[([^\]]+)\]\([^)]+\)', r'\1', text)

    text = re.sub(r'\*{2,3}([^*]+)\*{2,3}', r'\1', text)
    text = re.sub(r'_{2}([^_]+)_{2}', r'\1', text)

    # Underscores inside words (snake_case, employee_range) stay
    text = re.sub(r'(?<!\w)\*([^*\n]+)\*(?!\w)', r'\1', text)
    text = re.sub(r'(?<!\w)_([^_\n]+)_(?!\w)', r'\1', text)

    text = re.sub(r'^\s*#{1,6}\s*', '', text, flags=re.MULTILINE)

    return text


def strip_bullets(text: str) -> str:
    """Remove leading list markers (-, *, +, •, 1.) from every line."""
    if not text:
        return text
    text = re.sub(r'^[ \t]*[-*+•][ \t]+', '', text, flags=re.MULTILINE)
    return re.sub(r'^[ \t]*\d+[.)][ \t]+', '', text, flags=re.MULTILINE)


def strip_persona_markdown(text: str) -> str:
    """
    Reduce a persona section body to plain text.

    Applies inline sanitization, drops list markers and collapses runs of
    blank lines to a single newline.

    Args:
        text: Section body extracted from a persona

    Returns:
        Clean, trimmed text
    """
    if not text:
        return ""
    clean = sanitize_markdown(text)
    clean = strip_bullets(clean)
    clean = re.sub(r'\n\s*\n+', '\n', clean)
    return clean.strip()
