"""
Recipe Migrator - LLM Client.

Wraps the async OpenAI client with Instructor so every response is parsed
into a pydantic model. All extraction calls go through here for consistency
and prompt logging.
"""

from typing import Any, TypeVar

import instructor
from openai import AsyncOpenAI
from pydantic import BaseModel

from recipe_migrator.config import settings
from recipe_migrator.llm.prompt_logger import log_prompt

T = TypeVar("T", bound=BaseModel)

# Singleton client instance
_client: instructor.AsyncInstructor | None = None


def get_client() -> instructor.AsyncInstructor:
    """
    Get the Instructor-wrapped async OpenAI client.

    Uses singleton pattern to reuse connection.
    """
    global _client

    if _client is None:
        openai_client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.extraction_timeout_seconds,
            max_retries=0,
        )
        _client = instructor.from_openai(openai_client)

    return _client


def reset_client() -> None:
    """Drop the cached client (after a settings change, or in tests)."""
    global _client
    _client = None


async def call_llm(
    *,
    response_model: type[T],
    messages: list[dict[str, Any]],
    node: str = "extract",
    model: str | None = None,
    temperature: float | None = None,
) -> T:
    """
    Make one structured LLM call.

    Exactly one attempt is made: schema validation failures are raised to the
    caller instead of being re-asked.

    Args:
        response_model: Pydantic model class for the response
        messages: Chat messages (content may be a list of multimodal parts)
        node: Label used for prompt logging
        model: Override for the configured extraction model
        temperature: Override for the configured temperature

    Returns:
        Instance of response_model with validated data
    """
    client = get_client()
    model = model or settings.extraction_model
    temperature = settings.extraction_temperature if temperature is None else temperature

    try:
        response = await client.chat.completions.create(
            model=model,
            messages=messages,
            response_model=response_model,
            max_retries=1,  # single attempt
            temperature=temperature,
        )

        log_prompt(
            node=node,
            model=model,
            messages=messages,
            response_model=response_model.__name__,
            response=response,
        )

        return response

    except Exception as e:
        log_prompt(
            node=node,
            model=model,
            messages=messages,
            response_model=response_model.__name__,
            error=str(e),
        )
        raise
