"""
Persona Proposer.

Asks a chat model for a refined persona. The model sits behind a tiny
TextGenerator capability so the optimization loop can run against any
provider (or a stub in tests):

    generator = LangChainTextGenerator(create_optimizer_llm())
    proposer = PersonaProposer(generator)
    text = await proposer.propose(current, score, history, feedback)

Provider priority when none is forced: Gemini > Groq > Anthropic > OpenAI.
Gemini and Groq are reached through their OpenAI-compatible endpoints.
"""

import re
from typing import Any, Optional, Protocol, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from leadrank.common.config import Config
from leadrank.common.exceptions import OptimizerUnavailable
from leadrank.common.logger import get_logger
from leadrank.common.types import HistoryEntry
from leadrank.optimizer.prompts import OPTIMIZER_SYSTEM, build_user_content

logger = get_logger(__name__, layer="optimizer")

OPENAI_COMPATIBLE_BASE_URLS = {
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai/",
    "groq": "https://api.groq.com/openai/v1",
}

_TARGET_LABEL = re.compile(r"\bTarget\s*:", re.IGNORECASE)


class TextGenerator(Protocol):
    """Capability: given instructions and content, return proposed text."""

    async def propose(self, system_instruction: str, user_content: str) -> str:
        ...


def _message_text(content: Any) -> str:
    """Flatten a chat message's content (str or content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


class LangChainTextGenerator:
    """TextGenerator over any LangChain chat model."""

    def __init__(self, llm: BaseChatModel):
        self.llm = llm

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def propose(self, system_instruction: str, user_content: str) -> str:
        messages = [
            SystemMessage(content=system_instruction),
            HumanMessage(content=user_content),
        ]
        response = await self.llm.ainvoke(messages)
        return _message_text(response.content).strip()


def create_optimizer_llm(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> BaseChatModel:
    """
    Build the chat model used to propose refined personas.

    Args:
        provider: "gemini", "groq", "anthropic" or "openai" (default: first configured)
        model: Model override (default: Config.get_optimizer_model)
        temperature: Sampling temperature (default: Config.OPTIMIZER_TEMPERATURE)
        max_tokens: Reply budget (default: Config.OPTIMIZER_MAX_TOKENS)

    Raises:
        OptimizerUnavailable: No provider has credentials
    """
    provider = provider or Config.get_optimizer_provider()
    if provider is None:
        raise OptimizerUnavailable()

    model = model or Config.get_optimizer_model(provider)
    temperature = temperature if temperature is not None else Config.OPTIMIZER_TEMPERATURE
    max_tokens = max_tokens or Config.OPTIMIZER_MAX_TOKENS

    if provider == "anthropic":
        if not Config.ANTHROPIC_API_KEY:
            raise OptimizerUnavailable("ANTHROPIC_API_KEY is not configured.")
        from langchain_anthropic import ChatAnthropic

        llm = ChatAnthropic(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=Config.ANTHROPIC_API_KEY,
        )
        logger.debug(f"Created Anthropic optimizer LLM: model={model}")
        return llm

    keys = {
        "gemini": Config.GEMINI_API_KEY,
        "groq": Config.GROQ_API_KEY,
        "openai": Config.OPENAI_API_KEY,
    }
    if provider not in keys:
        raise OptimizerUnavailable(f"Unknown optimizer provider '{provider}'.")
    if not keys[provider]:
        raise OptimizerUnavailable(f"{provider.upper()}_API_KEY is not configured.")

    llm = ChatOpenAI(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        api_key=keys[provider],
        base_url=OPENAI_COMPATIBLE_BASE_URLS.get(provider),
    )
    logger.debug(f"Created {provider} optimizer LLM: model={model}")
    return llm


def extract_persona_text(text: str) -> str:
    """
    Best-effort cleanup of a model reply.

    Drops any preamble before the first "Target:" label. Replies without a
    label come back whole (trimmed) and are parsed as free-form Target.
    """
    trimmed = (text or "").strip()
    match = _TARGET_LABEL.search(trimmed)
    if match:
        return trimmed[match.start():].strip()
    return trimmed


class PersonaProposer:
    """Builds the refinement request and cleans the reply."""

    def __init__(self, generator: TextGenerator, system_instruction: str = OPTIMIZER_SYSTEM):
        self.generator = generator
        self.system_instruction = system_instruction

    async def propose(
        self,
        current_prompt: str,
        current_score: float,
        history: Sequence[HistoryEntry] = (),
        feedback: str = "",
        require_different: bool = False,
    ) -> str:
        user_content = build_user_content(
            current_prompt,
            current_score,
            history=history,
            feedback=feedback,
            require_different=require_different,
        )
        reply = await self.generator.propose(self.system_instruction, user_content)
        return extract_persona_text(reply)
