"""Exceptions raised by the recipe import pipeline."""


class RecipeImportError(Exception):
    """Base class for recipe import failures."""


class ReaderError(RecipeImportError):
    """A source file could not be read or converted to text."""


class ExtractionError(RecipeImportError):
    """The AI service call failed or returned a non-conforming recipe."""


class ExportError(RecipeImportError):
    """
    Upload to the recipe manager failed.

    status_code is None for transport failures (DNS, refused connection, ...).
    body carries the raw response text, uninterpreted.
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class QueueBusyError(RecipeImportError):
    """A batch run is already in progress."""


class InvalidTransitionError(RecipeImportError):
    """An item is not in a status that allows the requested transition."""


class UnknownItemError(RecipeImportError, KeyError):
    """No queue item exists with the given id."""

    def __str__(self) -> str:
        return Exception.__str__(self)
