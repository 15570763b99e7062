"""Receipt scanning API endpoints."""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status

from kasifesyen.api.dependencies import (
    get_current_user,
    get_receipt_preview_workflow,
    get_receipt_repository,
    get_receipt_workflow,
    get_storage_service,
)
from kasifesyen.config import Settings, get_settings
from kasifesyen.models.user import User
from kasifesyen.schemas.receipt import ReceiptImage, ReceiptRecord
from kasifesyen.services.cancellation import CancellationToken
from kasifesyen.services.imaging import optimize_image
from kasifesyen.services.receipt_repository import ReceiptRepository
from kasifesyen.services.receipt_service import ReceiptWorkflow
from kasifesyen.services.storage import StorageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/receipts", tags=["receipts"])

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
DISCONNECT_POLL_SECONDS = 0.5


async def read_receipt_image(file: UploadFile, settings: Settings) -> bytes:
    """Read an uploaded receipt photo, rejecting unsupported or oversized files."""
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type. Allowed types: {', '.join(sorted(ALLOWED_IMAGE_TYPES))}",
        )

    image_data = await file.read()
    if not image_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")

    if len(image_data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)}MB.",
        )
    return image_data


async def watch_disconnect(request: Request, token: CancellationToken) -> None:
    """Cancel the token once the client goes away."""
    while not token.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling receipt processing")
            token.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.post("/scan", response_model=ReceiptRecord, status_code=status.HTTP_201_CREATED)
async def scan_receipt(
    request: Request,
    file: Annotated[UploadFile, File(description="Receipt image (JPEG, PNG, GIF, or WebP)")],
    current_user: Annotated[User, Depends(get_current_user)],
    workflow: Annotated[ReceiptWorkflow, Depends(get_receipt_workflow)],
    settings: Annotated[Settings, Depends(get_settings)],
    image_url: Annotated[str, Form()] = "",
):
    """Scan a receipt photo and store it.

    The receipt is converted to the settlement currency and classified for
    tax relief before it is saved. Processing stops if the client disconnects.
    """
    image_data = await read_receipt_image(file, settings)

    token = CancellationToken()
    watcher = asyncio.create_task(watch_disconnect(request, token))
    try:
        receipt = await workflow.process(
            current_user.id,
            image_data,
            media_type=file.content_type,
            image_url=image_url,
            cancel_token=token,
        )
    finally:
        watcher.cancel()

    return ReceiptRecord.model_validate(receipt)


@router.post("/preview", response_model=ReceiptRecord)
async def preview_receipt(
    file: Annotated[UploadFile, File(description="Receipt image (JPEG, PNG, GIF, or WebP)")],
    current_user: Annotated[User, Depends(get_current_user)],
    workflow: Annotated[ReceiptWorkflow, Depends(get_receipt_preview_workflow)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Extract a receipt without storing it. Amounts stay in the printed currency."""
    image_data = await read_receipt_image(file, settings)
    return await workflow.extract(current_user.id, image_data, media_type=file.content_type)


@router.post("/images", response_model=ReceiptImage, status_code=status.HTTP_201_CREATED)
async def upload_receipt_image(
    file: Annotated[UploadFile, File(description="Receipt image (JPEG, PNG, GIF, or WebP)")],
    current_user: Annotated[User, Depends(get_current_user)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Store a receipt photo permanently; pass its url to /scan as image_url."""
    image_data = await read_receipt_image(file, settings)
    image_data, media_type = await asyncio.to_thread(
        optimize_image,
        image_data,
        file.content_type,
        settings.image_max_dimension,
        settings.image_jpeg_quality,
    )
    stored = await storage.upload_permanent(current_user.id, image_data, media_type)
    return ReceiptImage(path=stored.path, url=stored.url)


@router.get("", response_model=list[ReceiptRecord])
def list_receipts(
    current_user: Annotated[User, Depends(get_current_user)],
    repository: Annotated[ReceiptRepository, Depends(get_receipt_repository)],
):
    """List the user's receipts, newest first."""
    return [ReceiptRecord.model_validate(r) for r in repository.list_for_user(current_user.id)]


@router.get("/{receipt_id}", response_model=ReceiptRecord)
def get_receipt(
    receipt_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    repository: Annotated[ReceiptRepository, Depends(get_receipt_repository)],
):
    """Get one of the user's receipts."""
    receipt = repository.get_for_user(current_user.id, receipt_id)
    if receipt is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Receipt not found",
        )
    return ReceiptRecord.model_validate(receipt)
