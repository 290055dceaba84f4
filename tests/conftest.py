"""
Pytest configuration and fixtures for Recipe Migrator tests.
"""

import os

import pytest

# Set test environment before importing recipe_migrator modules
os.environ["MIGRATOR_ENV"] = "development"
os.environ["EXTRACTION_CONCURRENCY"] = "1"
os.environ.pop("MIGRATOR_LOG_PROMPTS", None)

from recipe_migrator.recipe_import import Ingredient, Recipe, SourceFile, Step  # noqa: E402


@pytest.fixture
def sample_recipe() -> Recipe:
    """A confirmed-looking recipe with two ingredients and three steps."""
    return Recipe(
        name="Pancakes",
        description="Fluffy buttermilk pancakes",
        servings=4,
        prep_time_minutes=10,
        cook_time_minutes=15,
        ingredients=[
            Ingredient(amount="2", unit="cups", name="flour"),
            Ingredient(amount="1/2", unit="tsp", name="salt", note="fine"),
        ],
        steps=[
            Step(instruction="Mix dry ingredients"),
            Step(instruction="Whisk in buttermilk"),
            Step(instruction="Cook on griddle"),
        ],
        keywords=["breakfast", "quick"],
    )


@pytest.fixture
def text_file() -> SourceFile:
    return SourceFile(
        name="pancakes.txt",
        content_type="text/plain",
        data=b"2 cups flour, 1 egg. Step 1: Mix. Step 2: Bake.",
    )


@pytest.fixture
def image_file() -> SourceFile:
    return SourceFile(name="card.jpg", content_type="image/jpeg", data=b"\xff\xd8\xff\xe0fake")


@pytest.fixture
def pdf_file() -> SourceFile:
    return SourceFile(name="book.pdf", content_type="application/pdf", data=b"%PDF-1.4 fake")
