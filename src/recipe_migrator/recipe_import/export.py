"""
Export of confirmed recipes.

Two paths with deliberately different shapes:
- Tandoor upload sends the mapped API payload (to_export_payload)
- JSON download writes the internal Recipe shape unchanged
"""

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from recipe_migrator.config import settings

from .errors import ExportError
from .models import Ingredient, Recipe

logger = logging.getLogger(__name__)

TANDOOR_RECIPE_PATH = "/api/recipe/"
BATCH_FILE_NAME = "tandoor_import_batch.json"
FALLBACK_FILE_NAME = "recipe"


@dataclass
class UploadResult:
    """Successful upload response from Tandoor."""

    status_code: int
    data: Any


# =============================================================================
# Payload mapping
# =============================================================================


def parse_amount(amount: str | None) -> float:
    """
    Parse an ingredient amount as a plain decimal number.

    Fractions ("1/2") and free text are not understood and become 0.
    """
    try:
        value = float((amount or "").strip())
    except ValueError:
        return 0
    if math.isnan(value) or math.isinf(value):
        return 0
    return value


def map_ingredient(ingredient: Ingredient) -> dict[str, Any]:
    return {
        "amount": parse_amount(ingredient.amount),
        "unit": {"name": ingredient.unit},
        "food": {"name": ingredient.name},
        "note": ingredient.note or "",
    }


def to_export_payload(recipe: Recipe) -> dict[str, Any]:
    """
    Map a recipe onto Tandoor's recipe create payload.

    Tandoor has no recipe-level ingredient list: the full list is attached to
    the first step and every other step gets none. A recipe without steps
    therefore exports without ingredients.

    Unknown servings and times are left out so Tandoor applies its own
    defaults; it rejects explicit nulls for them.
    """
    ingredients = [map_ingredient(ing) for ing in recipe.ingredients or []]

    steps = [
        {
            "instruction": step.instruction,
            "ingredients": ingredients if index == 0 else [],
        }
        for index, step in enumerate(recipe.steps or [])
    ]

    optional = {
        "description": recipe.description,
        "servings": recipe.servings,
        "working_time": recipe.prep_time_minutes,
        "waiting_time": recipe.cook_time_minutes,
    }

    payload: dict[str, Any] = {"name": recipe.name, "steps": steps}
    payload.update({key: value for key, value in optional.items() if value is not None})
    payload["keywords"] = [{"name": keyword} for keyword in recipe.keywords or []]
    return payload


# =============================================================================
# Tandoor upload
# =============================================================================


async def upload_to_tandoor(
    payload: dict[str, Any],
    *,
    client: httpx.AsyncClient | None = None,
) -> UploadResult:
    """
    POST a mapped recipe to Tandoor.

    Raises:
        ExportError: missing token, transport failure, or any non-2xx response.
            The raw status code and body are attached, uninterpreted.
    """
    api_key = settings.tandoor_api_key
    if not api_key:
        raise ExportError("Tandoor API key not configured. Set TANDOOR_API_KEY.")

    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
    }

    logger.info(f"Uploading recipe '{payload.get('name')}' to {TANDOOR_RECIPE_PATH}")

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            base_url=settings.tandoor_url,
            timeout=settings.tandoor_timeout_seconds,
        )

    try:
        response = await client.post(TANDOOR_RECIPE_PATH, json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"Network error connecting to Tandoor: {e}")
        raise ExportError(f"Network error connecting to Tandoor: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    logger.info(f"Tandoor response status: {response.status_code}")

    if not response.is_success:
        logger.error(f"Tandoor upload failed. Status: {response.status_code}")
        logger.error(f"Error details: {response.text}")
        raise ExportError(
            f"Failed to upload (Status {response.status_code}): {response.text}",
            status_code=response.status_code,
            body=response.text,
        )

    try:
        data = response.json()
    except ValueError:
        data = response.text

    return UploadResult(status_code=response.status_code, data=data)


async def export_to_tandoor(
    recipe: Recipe, *, client: httpx.AsyncClient | None = None
) -> UploadResult:
    """Map and upload a recipe."""
    return await upload_to_tandoor(to_export_payload(recipe), client=client)


SAMPLE_RECIPE = Recipe(
    name="Test Recipe - Chocolate Chip Cookies",
    description="A simple test recipe to verify Tandoor integration is working correctly.",
    servings=24,
    prep_time_minutes=15,
    cook_time_minutes=12,
    ingredients=[
        Ingredient(amount="2.25", unit="cups", name="all-purpose flour", note=""),
        Ingredient(amount="1", unit="tsp", name="baking soda", note=""),
        Ingredient(amount="1", unit="cup", name="butter", note="softened"),
        Ingredient(amount="0.75", unit="cup", name="sugar", note=""),
        Ingredient(amount="2", unit="cups", name="chocolate chips", note=""),
    ],
    steps=[
        {"instruction": "Preheat oven to 375°F (190°C)."},
        {"instruction": "Mix flour and baking soda in a bowl."},
        {"instruction": "Cream butter and sugar until fluffy."},
        {"instruction": "Combine wet and dry ingredients, then fold in chocolate chips."},
        {"instruction": "Drop spoonfuls onto baking sheet and bake for 10-12 minutes."},
    ],
    keywords=["test", "cookies", "dessert"],
)


async def check_tandoor_connection(*, client: httpx.AsyncClient | None = None) -> UploadResult:
    """Upload the built-in sample recipe to check credentials and routing."""
    return await export_to_tandoor(SAMPLE_RECIPE, client=client)


# =============================================================================
# JSON download
# =============================================================================


def _recipe_dict(recipe: Recipe) -> dict[str, Any]:
    return recipe.model_dump(exclude_none=True)


def download_json(recipe: Recipe) -> tuple[str, str]:
    """Serialize one recipe in its internal shape. Returns (filename, text)."""
    filename = f"{recipe.name or FALLBACK_FILE_NAME}.json"
    return filename, json.dumps(_recipe_dict(recipe), indent=2, ensure_ascii=False)


def download_all_json(recipes: list[Recipe]) -> tuple[str, str] | None:
    """Serialize all completed recipes as one array, or None if there are none."""
    if not recipes:
        return None
    text = json.dumps([_recipe_dict(r) for r in recipes], indent=2, ensure_ascii=False)
    return BATCH_FILE_NAME, text


def write_json_file(
    directory: str | Path,
    download: tuple[str, str],
    *,
    taken: set[str] | None = None,
) -> Path:
    """
    Write a (filename, text) download into a directory.

    When a set of names already written in this run is passed, a colliding
    name gets a " (2)", " (3)", ... suffix instead of overwriting, and the
    chosen name is added to the set.
    """
    filename, text = download
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    filename = _safe_file_name(filename)
    if taken is not None:
        filename = unique_file_name(filename, taken)
        taken.add(filename.lower())
    path = directory / filename
    path.write_text(text, encoding="utf-8")
    logger.info(f"Wrote {path}")
    return path


def unique_file_name(filename: str, taken: set[str]) -> str:
    """Return filename, or the first "name (n).ext" not in taken (case-insensitive)."""
    if filename.lower() not in taken:
        return filename
    stem, suffix = Path(filename).stem, Path(filename).suffix
    counter = 2
    while f"{stem} ({counter}){suffix}".lower() in taken:
        counter += 1
    return f"{stem} ({counter}){suffix}"


def _safe_file_name(filename: str) -> str:
    # Recipe names can contain path separators
    return filename.replace("/", "-").replace("\\", "-")
