"""Editable working copy of the recipe under review."""

import logging
import re
from typing import Any

from .errors import InvalidTransitionError
from .models import Ingredient, QueueItem, Recipe, Step
from .queue import RecipeQueue

logger = logging.getLogger(__name__)

INTEGER_FIELDS = {"servings", "prep_time_minutes", "cook_time_minutes"}
TEXT_FIELDS = {"name", "description"}
LIST_FIELDS = {"ingredients", "steps", "keywords"}
INGREDIENT_FIELDS = {"amount", "unit", "name", "note"}

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: Any) -> int:
    """Parse a number input the way a form does: leading integer, else 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value or ""))
    return int(match.group(1)) if match else 0


class ReviewForm:
    """
    Working copy of the queue's active recipe.

    Edits stay local until confirm(). Switching to another item re-seeds the
    form and drops unsaved edits; confirmation, not navigation, persists.
    """

    def __init__(self, queue: RecipeQueue) -> None:
        self._queue = queue
        self._item_id: str | None = None
        self._seed: Recipe | None = None
        self._data: Recipe | None = None
        self.sync()

    @property
    def item_id(self) -> str | None:
        return self._item_id

    @property
    def recipe(self) -> Recipe | None:
        """Copy of the current working data."""
        return self._data.model_copy(deep=True) if self._data else None

    @property
    def is_dirty(self) -> bool:
        return self._data != self._seed

    def sync(self) -> Recipe | None:
        """Re-seed from the queue's active item when it (or its record) changed."""
        active = self._queue.active_item()
        if active is None or active.recipe is None:
            self._clear()
            return None

        if active.id != self._item_id or active.recipe != self._seed:
            self._load(active)
        return self.recipe

    # -------------------------------------------------------------------------
    # Field edits
    # -------------------------------------------------------------------------

    def set_field(self, field: str, value: Any) -> None:
        data = self._require()
        if field in INTEGER_FIELDS:
            value = parse_int(value)
        elif field in TEXT_FIELDS:
            value = value or ""
        elif field in LIST_FIELDS:
            value = getattr(Recipe.model_validate({**data.model_dump(), field: value}), field)
        elif field == "original_file_name":
            pass
        else:
            raise ValueError(f"Unknown recipe field: {field}")
        self._data = data.model_copy(update={field: value})

    def replace(self, recipe: Recipe) -> None:
        """Replace the whole working copy (e.g. a full form submit)."""
        self._require()
        self._data = recipe.model_copy(deep=True)

    def add_ingredient(self) -> int:
        data = self._require()
        ingredients = [*data.ingredients, Ingredient(amount="", unit="", name="")]
        self._data = data.model_copy(update={"ingredients": ingredients})
        return len(ingredients) - 1

    def update_ingredient(self, index: int, field: str, value: str | None) -> None:
        if field not in INGREDIENT_FIELDS:
            raise ValueError(f"Unknown ingredient field: {field}")
        data = self._require()
        ingredients = list(data.ingredients)
        ingredients[index] = ingredients[index].model_copy(
            update={field: value if field == "note" else (value or "")}
        )
        self._data = data.model_copy(update={"ingredients": ingredients})

    def add_step(self) -> int:
        data = self._require()
        steps = [*data.steps, Step(instruction="")]
        self._data = data.model_copy(update={"steps": steps})
        return len(steps) - 1

    def update_step(self, index: int, instruction: str) -> None:
        data = self._require()
        steps = list(data.steps)
        steps[index] = steps[index].model_copy(update={"instruction": instruction})
        self._data = data.model_copy(update={"steps": steps})

    def add_keyword(self) -> int:
        data = self._require()
        keywords = [*data.keywords, ""]
        self._data = data.model_copy(update={"keywords": keywords})
        return len(keywords) - 1

    def update_keyword(self, index: int, value: str) -> None:
        data = self._require()
        keywords = list(data.keywords)
        keywords[index] = value
        self._data = data.model_copy(update={"keywords": keywords})

    def remove_keyword(self, index: int) -> None:
        data = self._require()
        keywords = list(data.keywords)
        del keywords[index]
        self._data = data.model_copy(update={"keywords": keywords})

    # -------------------------------------------------------------------------
    # Confirm / cancel
    # -------------------------------------------------------------------------

    def confirm(self) -> QueueItem:
        """Write the working copy back to its item and mark it COMPLETED."""
        data = self._require()
        item = self._queue.confirm(self._item_id, data)
        logger.info(f"Confirmed '{data.name}' ({item.id})")
        self._clear()
        return item

    def cancel(self) -> None:
        """Drop the working copy and clear the review selection."""
        self._queue.cancel()
        self._clear()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _load(self, item: QueueItem) -> None:
        self._item_id = item.id
        self._seed = item.recipe.model_copy(deep=True)
        self._data = item.recipe.model_copy(deep=True)

    def _clear(self) -> None:
        self._item_id = None
        self._seed = None
        self._data = None

    def _require(self) -> Recipe:
        if self._data is None:
            raise InvalidTransitionError("No recipe is selected for review")
        return self._data
