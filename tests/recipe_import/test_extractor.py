"""
Tests for the AI extraction client.

The LLM call itself is mocked: these tests cover request construction,
configuration checks and response conformance handling.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from instructor.exceptions import InstructorRetryException
from pydantic import ValidationError

from recipe_migrator.recipe_import.errors import ExtractionError
from recipe_migrator.recipe_import.extractor import (
    DOCUMENT_END,
    DOCUMENT_START,
    EXTRACTION_PROMPT,
    build_messages,
    extract_recipe,
)
from recipe_migrator.recipe_import.models import Recipe, RecipeExtraction


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio needed)."""
    return asyncio.run(coro)


CONFIGURED = SimpleNamespace(openai_api_key="sk-test")
UNCONFIGURED = SimpleNamespace(openai_api_key=None)


def _extraction(**overrides) -> RecipeExtraction:
    data = {
        "name": "Pancakes",
        "ingredients": [
            {"amount": "2", "unit": "cups", "name": "flour"},
            {"amount": "1", "unit": "", "name": "egg"},
        ],
        "steps": [{"instruction": "Mix"}, {"instruction": "Bake"}],
    }
    data.update(overrides)
    return RecipeExtraction.model_validate(data)


class TestBuildMessages:
    """Request shape per content type."""

    def test_text_is_wrapped_in_document_markers(self):
        messages = build_messages("2 cups flour", "text/plain")
        parts = messages[0]["content"]
        assert parts[0] == {
            "type": "text",
            "text": f"{DOCUMENT_START}\n2 cups flour\n{DOCUMENT_END}",
        }
        assert parts[1] == {"type": "text", "text": EXTRACTION_PROMPT}

    def test_image_is_inline_data_uri(self):
        messages = build_messages("QUJD", "image/png")
        part = messages[0]["content"][0]
        assert part["type"] == "image_url"
        assert part["image_url"]["url"] == "data:image/png;base64,QUJD"

    def test_pdf_is_inline_file(self):
        messages = build_messages("QUJD", "application/pdf", "book.pdf")
        part = messages[0]["content"][0]
        assert part["type"] == "file"
        assert part["file"]["filename"] == "book.pdf"
        assert part["file"]["file_data"] == "data:application/pdf;base64,QUJD"

    def test_prompt_follows_attachment(self):
        messages = build_messages("QUJD", "image/jpeg")
        assert len(messages) == 1
        assert messages[0]["role"] == "user"
        assert messages[0]["content"][-1]["text"] == EXTRACTION_PROMPT

    def test_prompt_forbids_translation(self):
        assert "Do NOT translate" in EXTRACTION_PROMPT
        assert "keep the order" in EXTRACTION_PROMPT


class TestExtractRecipe:
    def test_returns_recipe(self):
        with patch("recipe_migrator.recipe_import.extractor.settings", CONFIGURED), \
             patch("recipe_migrator.recipe_import.extractor.call_llm", new_callable=AsyncMock) as mock_llm:
            mock_llm.return_value = _extraction()
            recipe = _run(extract_recipe("2 cups flour, 1 egg", "text/plain"))

        assert isinstance(recipe, Recipe)
        assert recipe.name == "Pancakes"
        assert [i.name for i in recipe.ingredients] == ["flour", "egg"]
        assert [s.instruction for s in recipe.steps] == ["Mix", "Bake"]
        assert recipe.original_file_name is None

    def test_requests_schema_model_once(self):
        with patch("recipe_migrator.recipe_import.extractor.settings", CONFIGURED), \
             patch("recipe_migrator.recipe_import.extractor.call_llm", new_callable=AsyncMock) as mock_llm:
            mock_llm.return_value = _extraction()
            _run(extract_recipe("QUJD", "image/png"))

        mock_llm.assert_awaited_once()
        kwargs = mock_llm.call_args.kwargs
        assert kwargs["response_model"] is RecipeExtraction
        assert kwargs["messages"][0]["content"][0]["type"] == "image_url"

    def test_missing_api_key(self):
        with patch("recipe_migrator.recipe_import.extractor.settings", UNCONFIGURED), \
             patch("recipe_migrator.recipe_import.extractor.call_llm", new_callable=AsyncMock) as mock_llm:
            with pytest.raises(ExtractionError, match="API key"):
                _run(extract_recipe("text", "text/plain"))

        mock_llm.assert_not_awaited()

    def test_empty_response(self):
        with patch("recipe_migrator.recipe_import.extractor.settings", CONFIGURED), \
             patch("recipe_migrator.recipe_import.extractor.call_llm", new_callable=AsyncMock) as mock_llm:
            mock_llm.return_value = None
            with pytest.raises(ExtractionError, match="No JSON response"):
                _run(extract_recipe("text", "text/plain"))

    def test_schema_violation_after_single_attempt(self):
        retry_error = InstructorRetryException(
            "1 validation error for RecipeExtraction\nsteps\n  Field required",
            n_attempts=1,
            total_usage=0,
        )

        with patch("recipe_migrator.recipe_import.extractor.settings", CONFIGURED), \
             patch("recipe_migrator.recipe_import.extractor.call_llm", new_callable=AsyncMock) as mock_llm:
            mock_llm.side_effect = retry_error
            with pytest.raises(ExtractionError, match="did not match the recipe schema") as exc_info:
                _run(extract_recipe("text", "text/plain"))

        assert exc_info.value.__cause__ is retry_error
        assert mock_llm.await_count == 1

    def test_bare_validation_error(self):
        try:
            RecipeExtraction.model_validate({"name": "x"})
        except ValidationError as e:
            validation_error = e

        with patch("recipe_migrator.recipe_import.extractor.settings", CONFIGURED), \
             patch("recipe_migrator.recipe_import.extractor.call_llm", new_callable=AsyncMock) as mock_llm:
            mock_llm.side_effect = validation_error
            with pytest.raises(ExtractionError, match="schema"):
                _run(extract_recipe("text", "text/plain"))

    def test_blank_ingredient_name_rejected(self):
        with patch("recipe_migrator.recipe_import.extractor.settings", CONFIGURED), \
             patch("recipe_migrator.recipe_import.extractor.call_llm", new_callable=AsyncMock) as mock_llm:
            mock_llm.return_value = _extraction(ingredients=[{"amount": "1", "name": "  "}])
            with pytest.raises(ExtractionError, match="ingredient 1"):
                _run(extract_recipe("text", "text/plain"))

    def test_service_failure_is_wrapped(self):
        with patch("recipe_migrator.recipe_import.extractor.settings", CONFIGURED), \
             patch("recipe_migrator.recipe_import.extractor.call_llm", new_callable=AsyncMock) as mock_llm:
            mock_llm.side_effect = RuntimeError("rate limited")
            with pytest.raises(ExtractionError, match="rate limited"):
                _run(extract_recipe("text", "text/plain"))

        assert mock_llm.await_count == 1


class TestCallLlm:
    """Tests for the Instructor-backed client wrapper."""

    def test_single_attempt_with_configured_model(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_extraction())
        fake_settings = SimpleNamespace(extraction_model="gpt-test", extraction_temperature=0.1)

        with patch("recipe_migrator.llm.client.get_client", return_value=mock_client), \
             patch("recipe_migrator.llm.client.settings", fake_settings), \
             patch("recipe_migrator.llm.client.log_prompt") as mock_log:
            from recipe_migrator.llm.client import call_llm

            result = _run(call_llm(
                response_model=RecipeExtraction,
                messages=[{"role": "user", "content": "hi"}],
            ))

        assert result.name == "Pancakes"
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["response_model"] is RecipeExtraction
        assert kwargs["max_retries"] == 1
        assert kwargs["temperature"] == 0.1
        mock_log.assert_called_once()

    def test_logs_on_error(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=RuntimeError("boom"))
        fake_settings = SimpleNamespace(extraction_model="gpt-test", extraction_temperature=0.1)

        with patch("recipe_migrator.llm.client.get_client", return_value=mock_client), \
             patch("recipe_migrator.llm.client.settings", fake_settings), \
             patch("recipe_migrator.llm.client.log_prompt") as mock_log:
            from recipe_migrator.llm.client import call_llm

            with pytest.raises(RuntimeError):
                _run(call_llm(
                    response_model=RecipeExtraction,
                    messages=[{"role": "user", "content": "hi"}],
                ))

        assert mock_log.call_args.kwargs["error"] == "boom"
