"""Tests for the natural-language translator."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from querybridge.adapters.llm import AnthropicTranslator, PromptManager, StubTranslator
from querybridge.adapters.llm.translator import parse_translation
from querybridge.core.exceptions import TranslationFailedError
from querybridge.core.query.types import ColumnInfo, SchemaSnapshot, TableInfo

SCHEMA = SchemaSnapshot(
    tables=(
        TableInfo(
            name="orders",
            schema="public",
            columns=(ColumnInfo("id", "integer", False), ColumnInfo("status", "text")),
        ),
    )
)


class TestParseTranslation:
    """Tests for parse_translation."""

    def test_fenced_json(self) -> None:
        """A fenced json block is parsed."""
        reply = (
            "Here you go:\n```json\n"
            '{"query": "SELECT count(*) FROM orders WHERE status = $1",'
            ' "parameters": ["open"], "confidence": 0.8}\n```'
        )

        translation = parse_translation(reply)

        assert translation.query.startswith("SELECT count(*)")
        assert translation.parameters == ["open"]
        assert translation.confidence == 0.8

    def test_bare_object_with_mongo_command(self) -> None:
        """A command document given as an object becomes JSON text."""
        translation = parse_translation('{"query": {"find": "orders"}, "confidence": 3}')

        assert translation.query == '{"find": "orders"}'
        assert translation.confidence == 1.0

    @pytest.mark.parametrize("reply", ["no json here", "{not json}", '{"description": "x"}'])
    def test_unusable_reply(self, reply: str) -> None:
        """Unusable replies are non-retryable failures."""
        with pytest.raises(TranslationFailedError) as exc_info:
            parse_translation(reply)

        assert exc_info.value.retryable is False


class TestPromptManager:
    """Tests for the packaged translate prompt."""

    def test_renders_schema_and_placeholder_style(self) -> None:
        """The prompt carries the schema and the engine's placeholder style."""
        messages, system = PromptManager().render_messages(
            "translate",
            question="How many open orders?",
            schema=SCHEMA.to_prompt_string(),
            database_type="postgresql",
            context={"team": "sales"},
        )

        assert "postgresql database" in system
        assert "($1, $2, ...)" in system
        assert messages[0]["role"] == "user"
        assert "Table: public.orders" in messages[0]["content"]
        assert "- team: sales" in messages[0]["content"]

    def test_lists_templates(self) -> None:
        """The translate template ships with the package."""
        assert "translate" in PromptManager().list_templates()


class TestAnthropicTranslator:
    """Tests for AnthropicTranslator."""

    async def test_translate_parses_reply(self) -> None:
        """Text blocks are joined and parsed."""
        translator = AnthropicTranslator(api_key="test-key")  # pragma: allowlist secret
        block = SimpleNamespace(type="text", text='{"query": "SELECT 1", "confidence": 0.5}')
        translator.client = MagicMock()
        translator.client.messages.create = AsyncMock(
            return_value=SimpleNamespace(content=[block])
        )

        translation = await translator.translate("one?", SCHEMA, "postgresql")

        assert translation.query == "SELECT 1"
        kwargs = translator.client.messages.create.call_args.kwargs
        assert kwargs["model"] == translator.model
        assert "orders" in kwargs["messages"][0]["content"]

    async def test_empty_reply_is_retryable(self) -> None:
        """A reply without text blocks can be retried."""
        translator = AnthropicTranslator(api_key="test-key")  # pragma: allowlist secret
        translator.client = MagicMock()
        translator.client.messages.create = AsyncMock(return_value=SimpleNamespace(content=[]))

        with pytest.raises(TranslationFailedError) as exc_info:
            await translator.translate("one?", SCHEMA, "postgresql")

        assert exc_info.value.retryable is True


class TestStubTranslator:
    """Tests for StubTranslator."""

    async def test_returns_empty_query_with_warning(self) -> None:
        """The stub never proposes a query."""
        translation = await StubTranslator().translate("one?", SCHEMA, "sqlite")

        assert translation.query == ""
        assert translation.warnings
