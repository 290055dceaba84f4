"""Recipe import: read files, extract recipes, review, and export them."""

from .errors import (
    ExportError,
    ExtractionError,
    InvalidTransitionError,
    QueueBusyError,
    ReaderError,
    RecipeImportError,
    UnknownItemError,
)
from .export import (
    BATCH_FILE_NAME,
    SAMPLE_RECIPE,
    UploadResult,
    check_tandoor_connection,
    download_all_json,
    download_json,
    export_to_tandoor,
    parse_amount,
    to_export_payload,
    unique_file_name,
    upload_to_tandoor,
    write_json_file,
)
from .extractor import extract_recipe
from .models import (
    BatchSummary,
    ErrorKind,
    Ingredient,
    ItemError,
    ProcessStatus,
    QueueItem,
    Recipe,
    RecipeExtraction,
    SourceFile,
    Step,
)
from .queue import RecipeQueue
from .reader import ContentPayload, read_content
from .review import ReviewForm

__all__ = [
    "BATCH_FILE_NAME",
    "BatchSummary",
    "ContentPayload",
    "ErrorKind",
    "ExportError",
    "ExtractionError",
    "Ingredient",
    "InvalidTransitionError",
    "ItemError",
    "ProcessStatus",
    "QueueBusyError",
    "QueueItem",
    "ReaderError",
    "Recipe",
    "RecipeExtraction",
    "RecipeImportError",
    "RecipeQueue",
    "ReviewForm",
    "SAMPLE_RECIPE",
    "SourceFile",
    "Step",
    "UnknownItemError",
    "UploadResult",
    "check_tandoor_connection",
    "download_all_json",
    "download_json",
    "export_to_tandoor",
    "extract_recipe",
    "parse_amount",
    "read_content",
    "to_export_payload",
    "unique_file_name",
    "upload_to_tandoor",
    "write_json_file",
]
