"""Anthropic Claude implementation of QueryTranslator."""

from __future__ import annotations

import json
import re
from typing import Any, cast

import anthropic
import structlog
from anthropic.types import MessageParam
from pydantic import ValidationError

from querybridge.core.exceptions import TranslationFailedError
from querybridge.core.query.types import SchemaSnapshot, Translation

from .prompt_manager import PromptManager

logger = structlog.get_logger()

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicTranslator:
    """Translates natural-language questions into engine-specific queries.

    The SDK's own retries are disabled: a failed call surfaces at once as a
    retryable ``TranslationFailedError`` and the caller decides whether to
    try again.

    Attributes:
        model: The Claude model to use.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        prompt_manager: PromptManager | None = None,
        max_tokens: int = 2048,
    ) -> None:
        """Initialize the translator.

        Args:
            api_key: Anthropic API key.
            model: Model to use.
            prompt_manager: Optional custom prompt manager.
            max_tokens: Completion budget per call.
        """
        self.client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)
        self.model = model
        self.prompt_manager = prompt_manager or PromptManager()
        self.max_tokens = max_tokens

    async def translate(
        self,
        question: str,
        schema: SchemaSnapshot,
        database_type: str,
        context: dict[str, Any] | None = None,
    ) -> Translation:
        """Translate a question into a query for the given engine.

        Raises:
            TranslationFailedError: The API call failed or the reply was unusable.
        """
        messages, system = self.prompt_manager.render_messages(
            "translate",
            question=question,
            schema=schema.to_prompt_string(),
            database_type=database_type,
            context=context or {},
        )
        response = await self._call(messages, system)
        translation = parse_translation(response)
        logger.info(
            "query_translated",
            model=self.model,
            database_type=database_type,
            confidence=translation.confidence,
        )
        return translation

    async def _call(self, messages: list[dict[str, str]], system: str) -> str:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=cast(list[MessageParam], messages),
            )
        except anthropic.APIError as e:
            raise TranslationFailedError(f"API error: {e}") from e

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise TranslationFailedError("Empty response from model")
        return "".join(text_blocks)


class StubTranslator:
    """Stand-in used when no API key is configured.

    Always returns an empty query, which ``ask`` rejects, so ``translate``
    still answers with a clear warning.
    """

    model = "stub"

    async def translate(
        self,
        question: str,
        schema: SchemaSnapshot,
        database_type: str,
        context: dict[str, Any] | None = None,
    ) -> Translation:
        """Return an empty translation with a warning."""
        return Translation(
            query="",
            description="Query translation is unavailable",
            confidence=0.0,
            warnings=["ANTHROPIC_API_KEY is not configured"],
        )


def parse_translation(response: str) -> Translation:
    """Parse the model's JSON reply into a Translation.

    Accepts a fenced ```json block or a bare JSON object.

    Raises:
        TranslationFailedError: No valid object found. Not retryable.
    """
    json_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", response, re.DOTALL)
    if json_match is None:
        json_match = re.search(r"\{.*\}", response, re.DOTALL)
    if json_match is None:
        raise TranslationFailedError("Model reply contained no JSON object", retryable=False)

    raw = json_match.group(1) if json_match.groups() else json_match.group(0)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise TranslationFailedError(
            f"Failed to parse translation JSON: {e}", retryable=False
        ) from e
    if not isinstance(data, dict):
        raise TranslationFailedError("Translation JSON is not an object", retryable=False)

    # Some replies send a Mongo command document as an object
    if isinstance(data.get("query"), dict):
        data["query"] = json.dumps(data["query"])
    if isinstance(data.get("parameters"), dict):
        data["parameters"] = list(data["parameters"].values())
    if isinstance(data.get("confidence"), int | float):
        data["confidence"] = min(max(float(data["confidence"]), 0.0), 1.0)

    try:
        return Translation.model_validate(data)
    except ValidationError as e:
        raise TranslationFailedError(f"Invalid translation: {e}", retryable=False) from e
