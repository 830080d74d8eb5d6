"""
Lead Persona Ranker

Ranks schema-free lead records against a Target / Avoid / Prefer persona
using embedding similarity, and refines persona text with an LLM-driven
search scored against a gold-ranked evaluation set.
"""

from leadrank.version import __version__

__all__ = ["__version__"]
