"""Outfit recommendation endpoint."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from kasifesyen.api.dependencies import get_fashion_workflow
from kasifesyen.errors import KasiFesyenError
from kasifesyen.schemas.fashion import ErrorResponse, FashionResult, Gender
from kasifesyen.services.fashion_service import FashionRequest, FashionWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["fashion"])


def parse_gender(value: str) -> Gender:
    """Map the form value to a Gender; unknown values get the women's guidelines."""
    try:
        return Gender(value.strip().lower())
    except ValueError:
        logger.info(f"Unknown gender {value!r}, using {Gender.FEMALE.value}")
        return Gender.FEMALE


@router.post(
    "/fashion",
    response_model=FashionResult,
    response_model_by_alias=True,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def recommend_outfits(
    workflow: Annotated[FashionWorkflow, Depends(get_fashion_workflow)],
    image: Annotated[UploadFile | None, File()] = None,
    prompt: Annotated[str | None, Form()] = None,
    gender: Annotated[str, Form()] = Gender.FEMALE.value,
    halal_mode: Annotated[str | None, Form(alias="halalMode")] = None,
    style_preference: Annotated[str | None, Form(alias="stylePreference")] = None,
    season: Annotated[str | None, Form()] = None,
    occasion: Annotated[str | None, Form()] = None,
):
    """Recommend outfits for a clothing item from a photo, a description, or both."""
    image_data = await image.read() if image is not None else b""

    request = FashionRequest(
        image=image_data or None,
        image_mime_type=(image.content_type if image is not None else None) or "image/jpeg",
        prompt=prompt,
        gender=parse_gender(gender),
        halal_mode=halal_mode == "true",
        style_preference=style_preference or None,
        season=season or None,
        occasion=occasion or None,
    )

    try:
        return await workflow.recommend(request)
    except KasiFesyenError:
        raise
    except Exception as e:
        logger.exception(f"Error processing fashion request: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process the request", "status": 500},
        )
