"""Data models for recipe import."""

import base64
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from .errors import ReaderError


class ProcessStatus(str, Enum):
    """Lifecycle of a queue item."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class ErrorKind(str, Enum):
    """Which stage of processing failed."""

    READER = "reader"
    EXTRACTION = "extraction"


# =============================================================================
# Recipe record
# =============================================================================


class Ingredient(BaseModel):
    """One ingredient line, split into amount / unit / name."""

    amount: str = Field(default="", description="Numeric amount (e.g. '1.5', '1/2')")
    unit: str = Field(default="", description="Unit of measure (e.g. 'cup', 'tbsp', 'g')")
    name: str = Field(description="Name of the ingredient")
    note: str | None = Field(
        default=None, description="Any processing notes (e.g., 'chopped', 'to taste')"
    )

    @field_validator("amount", "unit", mode="before")
    @classmethod
    def _text_or_empty(cls, value):
        # Models sometimes answer with a bare number or null
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return f"{value:g}"
        return value


class Step(BaseModel):
    """One instruction step. List position is the only ordering signal."""

    instruction: str = Field(default="", description="The text instruction for this step")


class RecipeExtraction(BaseModel):
    """Structured output contract for the AI extraction call."""

    name: str = Field(description="The name of the recipe")
    description: str = Field(default="", description="A brief description or summary")
    servings: int | None = Field(default=None, description="Number of servings")
    prep_time_minutes: int | None = Field(
        default=None, description="Preparation time in minutes (estimate if missing)"
    )
    cook_time_minutes: int | None = Field(
        default=None, description="Cooking time in minutes (estimate if missing)"
    )
    ingredients: list[Ingredient] = Field(description="List of ingredients")
    steps: list[Step] = Field(description="List of cooking steps")
    keywords: list[str] = Field(
        default_factory=list,
        description="Tags or categories (e.g. 'Dinner', 'Vegan', 'Italian')",
    )

    @field_validator("description", mode="before")
    @classmethod
    def _description_or_empty(cls, value):
        return "" if value is None else value

    @field_validator("servings", "prep_time_minutes", "cook_time_minutes", mode="before")
    @classmethod
    def _round_number(cls, value):
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("ingredients", "steps", "keywords", mode="before")
    @classmethod
    def _list_or_empty(cls, value):
        return [] if value is None else value


class Recipe(RecipeExtraction):
    """Extracted recipe plus the file it came from."""

    original_file_name: str | None = None


# =============================================================================
# Queue
# =============================================================================


@dataclass(frozen=True)
class SourceFile:
    """An uploaded file held in memory."""

    name: str
    content_type: str
    data: bytes

    @classmethod
    def from_path(cls, path: str | Path) -> "SourceFile":
        """Load a file from disk, guessing its content type from the extension."""
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ReaderError(f"Could not read {path.name}: {e}") from e
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "application/octet-stream",
            data=data,
        )

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @property
    def has_preview(self) -> bool:
        """Images and PDFs can be shown next to the review form."""
        return self.content_type.startswith("image/") or self.content_type == "application/pdf"

    def to_data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


@dataclass(frozen=True)
class ItemError:
    """Failure recorded on a queue item."""

    kind: ErrorKind
    message: str


@dataclass
class QueueItem:
    """One uploaded file plus its processing state and resulting record."""

    id: str
    source: SourceFile
    status: ProcessStatus = ProcessStatus.PENDING
    preview: str | None = None
    recipe: Recipe | None = None
    error: ItemError | None = None

    @property
    def file_name(self) -> str:
        return self.source.name


@dataclass
class BatchSummary:
    """What a single start_processing() run did."""

    item_ids: list[str] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
