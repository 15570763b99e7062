"""FastAPI dependencies for authentication, database and pipeline services."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from kasifesyen.config import Settings, get_settings
from kasifesyen.database import get_db
from kasifesyen.errors import ServiceUnavailable
from kasifesyen.models.user import User
from kasifesyen.services.auth import decode_access_token
from kasifesyen.services.currency import CurrencyConverter
from kasifesyen.services.fashion_service import FashionWorkflow
from kasifesyen.services.llm import GeminiService
from kasifesyen.services.receipt_repository import ReceiptRepository
from kasifesyen.services.receipt_service import ReceiptWorkflow
from kasifesyen.services.storage import StorageService
from kasifesyen.services.tax_classifier import TaxReliefClassifier

security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    payload = decode_access_token(credentials.credentials)
    if payload is None or payload.get("sub") is None:
        raise _unauthorized("Invalid authentication credentials")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise _unauthorized("Invalid authentication credentials") from None

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise _unauthorized("User not found")

    return user


def get_gemini_service(request: Request) -> GeminiService:
    """Get the shared Gemini client built at startup."""
    gemini: GeminiService | None = getattr(request.app.state, "gemini", None)
    if gemini is None or not gemini.is_configured:
        raise ServiceUnavailable("Gemini API not configured")
    return gemini


def get_storage_service(request: Request) -> StorageService:
    """Get the receipt image storage built at startup."""
    storage: StorageService | None = getattr(request.app.state, "storage", None)
    if storage is None:
        raise ServiceUnavailable("Receipt storage not configured")
    return storage


def get_currency_converter(request: Request) -> CurrencyConverter:
    converter: CurrencyConverter | None = getattr(request.app.state, "converter", None)
    return converter or CurrencyConverter()


def get_receipt_repository(db: Annotated[Session, Depends(get_db)]) -> ReceiptRepository:
    return ReceiptRepository(db)


def get_receipt_workflow(
    gemini: Annotated[GeminiService, Depends(get_gemini_service)],
    storage: Annotated[StorageService, Depends(get_storage_service)],
    converter: Annotated[CurrencyConverter, Depends(get_currency_converter)],
    repository: Annotated[ReceiptRepository, Depends(get_receipt_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ReceiptWorkflow:
    """Get a receipt workflow for one scan request."""
    return ReceiptWorkflow(
        gemini,
        storage,
        converter,
        repository,
        tax_classifier=TaxReliefClassifier(gemini, settings),
        settings=settings,
    )


def get_receipt_preview_workflow(
    gemini: Annotated[GeminiService, Depends(get_gemini_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ReceiptWorkflow:
    """Get a receipt workflow that neither stores nor converts."""
    return ReceiptWorkflow(gemini, None, None, None, settings=settings)


def get_fashion_workflow(
    gemini: Annotated[GeminiService, Depends(get_gemini_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> FashionWorkflow:
    return FashionWorkflow(gemini, settings)
