"""AI extraction of a structured recipe from file content."""

import logging
from typing import Any

from instructor.exceptions import InstructorRetryException
from pydantic import ValidationError

from recipe_migrator.config import settings
from recipe_migrator.llm import call_llm

from .errors import ExtractionError
from .models import Recipe, RecipeExtraction
from .reader import TEXT_MIME_TYPE

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """
Extract the recipe details from the provided content.

CRITICAL INSTRUCTIONS:
1. Keep the output in the ORIGINAL LANGUAGE of the source document. Do NOT translate.
2. If ingredients are listed, separate amount, unit, and name clearly.
3. If steps are numbered, keep the order.
4. If inputs are messy (e.g. OCR text), correct typos but maintain the original language terms.
"""

DOCUMENT_START = "[START OF RECIPE DOCUMENT]"
DOCUMENT_END = "[END OF RECIPE DOCUMENT]"


def build_messages(data: str, mime_type: str, file_name: str | None = None) -> list[dict[str, Any]]:
    """
    Build the chat request for one file.

    Text content is embedded between document markers; images and other
    binaries are attached inline as base64 data URIs. The instruction prompt
    always follows the content.
    """
    if mime_type == TEXT_MIME_TYPE:
        content_part = {"type": "text", "text": f"{DOCUMENT_START}\n{data}\n{DOCUMENT_END}"}
    elif mime_type.startswith("image/"):
        content_part = {
            "type": "image_url",
            "image_url": {"url": f"data:{mime_type};base64,{data}"},
        }
    else:
        content_part = {
            "type": "file",
            "file": {
                "filename": file_name or "recipe.pdf",
                "file_data": f"data:{mime_type};base64,{data}",
            },
        }

    return [
        {
            "role": "user",
            "content": [content_part, {"type": "text", "text": EXTRACTION_PROMPT}],
        }
    ]


async def extract_recipe(data: str, mime_type: str, file_name: str | None = None) -> Recipe:
    """
    Extract a recipe with one schema-constrained LLM call.

    Args:
        data: Base64 string for images/PDF, or raw text when mime_type is text/plain
        mime_type: Mime type of the content
        file_name: Original file name, used to label inline file attachments

    Raises:
        ExtractionError: missing API key, empty or non-conforming response,
            or a failed call. Nothing is retried.
    """
    if not settings.openai_api_key:
        raise ExtractionError("OpenAI API key is missing. Set OPENAI_API_KEY.")

    messages = build_messages(data, mime_type, file_name)

    try:
        extraction = await call_llm(response_model=RecipeExtraction, messages=messages)
    except (ValidationError, InstructorRetryException) as e:
        # Instructor wraps validation failures in its retry exception
        raise ExtractionError(f"AI response did not match the recipe schema: {e}") from e
    except Exception as e:
        logger.error(f"Extraction call failed: {e}")
        raise ExtractionError(f"Extraction failed: {e}") from e

    if extraction is None:
        raise ExtractionError("No JSON response generated.")

    _check_conformance(extraction)

    return Recipe.model_validate(extraction.model_dump())


def _check_conformance(extraction: RecipeExtraction) -> None:
    """Ingredient names are required and must not be blank."""
    for index, ingredient in enumerate(extraction.ingredients):
        if not ingredient.name.strip():
            raise ExtractionError(f"AI response ingredient {index + 1} has no name")
