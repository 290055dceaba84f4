"""API endpoints for the upload queue, review and export."""

import logging
from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from recipe_migrator.recipe_import import (
    ExportError,
    InvalidTransitionError,
    ProcessStatus,
    QueueBusyError,
    QueueItem,
    Recipe,
    RecipeQueue,
    ReviewForm,
    SourceFile,
    UnknownItemError,
    check_tandoor_connection,
    download_all_json,
    download_json,
    export_to_tandoor,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recipe-import"])


# =============================================================================
# Request/Response Models
# =============================================================================


class ItemErrorResponse(BaseModel):
    kind: str
    message: str


class QueueItemResponse(BaseModel):
    """One queue entry as shown in the sidebar."""

    id: str
    file_name: str
    content_type: str
    status: ProcessStatus
    has_preview: bool
    recipe: Recipe | None = None
    error: ItemErrorResponse | None = None


class QueueResponse(BaseModel):
    processing: bool
    active_item_id: str | None = None
    items: list[QueueItemResponse] = []


class ProcessResponse(BaseModel):
    item_ids: list[str] = []


class PreviewResponse(BaseModel):
    preview: str | None = None


class ReviewResponse(BaseModel):
    item_id: str | None = None
    recipe: Recipe | None = None
    dirty: bool = False


class UploadResponse(BaseModel):
    success: bool
    status_code: int
    data: Any = None


# =============================================================================
# Dependencies
# =============================================================================


def get_queue(request: Request) -> RecipeQueue:
    return request.app.state.queue


def get_review_form(request: Request) -> ReviewForm:
    form: ReviewForm = request.app.state.review_form
    form.sync()
    return form


def _item_response(item: QueueItem) -> QueueItemResponse:
    return QueueItemResponse(
        id=item.id,
        file_name=item.file_name,
        content_type=item.source.content_type,
        status=item.status,
        has_preview=item.source.has_preview,
        recipe=item.recipe,
        error=(
            ItemErrorResponse(kind=item.error.kind.value, message=item.error.message)
            if item.error
            else None
        ),
    )


def _get_item(queue: RecipeQueue, item_id: str) -> QueueItem:
    try:
        return queue.get(item_id)
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _json_download(download: tuple[str, str]) -> Response:
    filename, text = download
    encoded_name = quote(filename, safe="")
    return Response(
        content=text.encode("utf-8"),
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{encoded_name}"},
    )


def _export_failed(e: ExportError) -> HTTPException:
    # Raw status and body are passed through for the user to read
    return HTTPException(
        status_code=502,
        detail={"message": str(e), "status_code": e.status_code, "body": e.body},
    )


# =============================================================================
# Queue
# =============================================================================


@router.get("/queue", response_model=QueueResponse)
async def list_queue(queue: RecipeQueue = Depends(get_queue)) -> QueueResponse:
    return QueueResponse(
        processing=queue.is_processing,
        active_item_id=queue.active_item_id,
        items=[_item_response(item) for item in queue.snapshot()],
    )


@router.post("/queue/files", response_model=list[QueueItemResponse])
async def add_files(
    files: list[UploadFile] = File(...),
    queue: RecipeQueue = Depends(get_queue),
) -> list[QueueItemResponse]:
    """Add uploaded files to the queue as PENDING items. Does not start processing."""
    sources = []
    for upload in files:
        data = await upload.read()
        sources.append(
            SourceFile(
                name=upload.filename or "upload",
                content_type=upload.content_type or "application/octet-stream",
                data=data,
            )
        )
    logger.info(f"Received {len(sources)} file(s)")
    return [_item_response(item) for item in queue.add(sources)]


@router.post("/queue/process", response_model=ProcessResponse, status_code=202)
async def process_queue(queue: RecipeQueue = Depends(get_queue)) -> ProcessResponse:
    """Start a batch run over the currently PENDING items."""
    item_ids = [item.id for item in queue.pending()]
    try:
        queue.start_processing_in_background()
    except QueueBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ProcessResponse(item_ids=item_ids)


@router.get("/queue/download")
async def download_all(queue: RecipeQueue = Depends(get_queue)) -> Response:
    download = download_all_json(queue.completed_recipes())
    if download is None:
        raise HTTPException(status_code=404, detail="No completed recipes")
    return _json_download(download)


@router.get("/queue/{item_id}/preview", response_model=PreviewResponse)
async def item_preview(item_id: str, queue: RecipeQueue = Depends(get_queue)) -> PreviewResponse:
    try:
        return PreviewResponse(preview=queue.preview(item_id))
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/queue/{item_id}/select", response_model=QueueItemResponse)
async def select_item(item_id: str, queue: RecipeQueue = Depends(get_queue)) -> QueueItemResponse:
    try:
        return _item_response(queue.select_for_review(item_id))
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/queue/{item_id}/download")
async def download_item(item_id: str, queue: RecipeQueue = Depends(get_queue)) -> Response:
    item = _get_item(queue, item_id)
    if item.recipe is None:
        raise HTTPException(status_code=404, detail="Item has no recipe yet")
    return _json_download(download_json(item.recipe))


@router.post("/queue/{item_id}/tandoor", response_model=UploadResponse)
async def upload_item(item_id: str, queue: RecipeQueue = Depends(get_queue)) -> UploadResponse:
    """Upload a confirmed recipe to Tandoor. The item itself is never modified."""
    item = _get_item(queue, item_id)
    if item.status is not ProcessStatus.COMPLETED or item.recipe is None:
        raise HTTPException(status_code=409, detail="Only confirmed recipes can be uploaded")
    try:
        result = await export_to_tandoor(item.recipe)
    except ExportError as e:
        raise _export_failed(e)
    return UploadResponse(success=True, status_code=result.status_code, data=result.data)


@router.post("/tandoor/test", response_model=UploadResponse)
async def tandoor_connection_check() -> UploadResponse:
    """Upload the built-in sample recipe."""
    try:
        result = await check_tandoor_connection()
    except ExportError as e:
        raise _export_failed(e)
    return UploadResponse(success=True, status_code=result.status_code, data=result.data)


# =============================================================================
# Review
# =============================================================================


@router.get("/review", response_model=ReviewResponse)
async def get_review(form: ReviewForm = Depends(get_review_form)) -> ReviewResponse:
    return ReviewResponse(item_id=form.item_id, recipe=form.recipe, dirty=form.is_dirty)


@router.put("/review", response_model=ReviewResponse)
async def update_review(
    recipe: Recipe, form: ReviewForm = Depends(get_review_form)
) -> ReviewResponse:
    """Replace the working copy with the submitted form data."""
    try:
        form.replace(recipe)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ReviewResponse(item_id=form.item_id, recipe=form.recipe, dirty=form.is_dirty)


@router.post("/review/confirm", response_model=QueueItemResponse)
async def confirm_review(form: ReviewForm = Depends(get_review_form)) -> QueueItemResponse:
    try:
        return _item_response(form.confirm())
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/review/cancel", response_model=ReviewResponse)
async def cancel_review(form: ReviewForm = Depends(get_review_form)) -> ReviewResponse:
    form.cancel()
    return ReviewResponse()
