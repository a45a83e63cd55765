"""LLM adapters for natural-language query translation."""

from querybridge.adapters.llm.prompt_manager import PromptManager
from querybridge.adapters.llm.translator import AnthropicTranslator, StubTranslator

__all__ = ["AnthropicTranslator", "PromptManager", "StubTranslator"]
