"""Receipt scanning workflow.

A scan moves through a fixed sequence of stages::

    uploading -> model_analyzing -> sanitizing -> validating
        -> normalizing -> converting -> tax_classifying -> persisting -> done

Normalizing and converting only run for receipts the model reports in a
foreign currency. The cancellation token is checked on entry to every stage,
so a cancelled request ends in ``aborted`` without starting further work.
Any failure or abort deletes the image this request uploaded; nothing is
written to the database unless every stage before persisting succeeded.
"""

import asyncio
import logging
import uuid
from datetime import UTC, datetime
from enum import StrEnum

from kasifesyen.config import Settings, get_settings
from kasifesyen.errors import Aborted, NotAReceipt, Unauthenticated
from kasifesyen.models.receipt import Receipt
from kasifesyen.schemas.receipt import ReceiptMetadata, ReceiptRecord
from kasifesyen.services.cancellation import CancellationToken
from kasifesyen.services.currency import CurrencyContext, CurrencyConverter, normalize_currency
from kasifesyen.services.imaging import optimize_image
from kasifesyen.services.llm import GeminiService
from kasifesyen.services.llm_prompts import get_receipt_extraction_prompt
from kasifesyen.services.receipt_parser import (
    NonReceipt,
    ValidatedReceipt,
    classify_receipt_response,
    validate_receipt,
)
from kasifesyen.services.receipt_repository import ReceiptRepository
from kasifesyen.services.sanitizer import parse_model_json
from kasifesyen.services.storage import StorageService, StoredImage
from kasifesyen.services.tax_classifier import TaxReliefClassifier

logger = logging.getLogger(__name__)

UNKNOWN_STORE = "Unknown Store"


class ReceiptStage(StrEnum):
    """Where a receipt scan currently is."""

    IDLE = "idle"
    UPLOADING = "uploading"
    MODEL_ANALYZING = "model_analyzing"
    SANITIZING = "sanitizing"
    VALIDATING = "validating"
    NORMALIZING = "normalizing"
    CONVERTING = "converting"
    TAX_CLASSIFYING = "tax_classifying"
    PERSISTING = "persisting"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


class ReceiptWorkflow:
    """Turns a receipt photo into a stored ReceiptRecord.

    One instance serves one request; ``stage`` reports its progress.
    """

    def __init__(
        self,
        gemini: GeminiService,
        storage: StorageService | None,
        converter: CurrencyConverter | None,
        repository: ReceiptRepository | None,
        tax_classifier: TaxReliefClassifier | None = None,
        settings: Settings | None = None,
    ):
        self.gemini = gemini
        self.storage = storage
        self.converter = converter
        self.repository = repository
        self.tax_classifier = tax_classifier
        self.settings = settings or get_settings()
        self.settlement_currency = self.settings.settlement_currency.upper()
        self.stage = ReceiptStage.IDLE

    def _advance(self, stage: ReceiptStage, token: CancellationToken) -> None:
        token.raise_if_cancelled(stage)
        self.stage = stage
        logger.info(f"Receipt stage: {stage}")

    async def process(
        self,
        user_id: int | None,
        image: bytes,
        media_type: str = "image/jpeg",
        image_url: str = "",
        cancel_token: CancellationToken | None = None,
    ) -> Receipt:
        """Scan, convert, classify and store a receipt.

        Args:
            user_id: Owner of the receipt
            image: Raw image bytes
            media_type: MIME type of image
            image_url: URL of an image the client already stored; skips the upload
            cancel_token: Token polled at every stage boundary

        Returns:
            The persisted receipt row

        Raises:
            Unauthenticated: no user
            Aborted: the token was cancelled
            KasiFesyenError: any stage failed (see kasifesyen.errors)
        """
        if user_id is None:
            raise Unauthenticated("User not authenticated")

        token = cancel_token or CancellationToken()
        uploaded: StoredImage | None = None
        self.stage = ReceiptStage.IDLE

        try:
            token.raise_if_cancelled(ReceiptStage.UPLOADING)
            image, media_type = await asyncio.to_thread(
                optimize_image,
                image,
                media_type,
                self.settings.image_max_dimension,
                self.settings.image_jpeg_quality,
            )

            if not image_url and self.storage is not None:
                self._advance(ReceiptStage.UPLOADING, token)
                uploaded = await self.storage.upload_temporary(user_id, image, media_type)
                image_url = uploaded.url

            receipt = await self._analyze(image, media_type, token)

            currency = None
            if receipt.currency_converted:
                self._advance(ReceiptStage.NORMALIZING, token)
                currency = self._resolve_currency(receipt)

            if currency is not None:
                self._advance(ReceiptStage.CONVERTING, token)
                receipt = await self.converter.convert_receipt(receipt, currency)

            self._advance(ReceiptStage.TAX_CLASSIFYING, token)
            if self.tax_classifier is not None:
                tax_category = await self.tax_classifier.classify(receipt.items)
            else:
                tax_category = receipt.tax_category_hint

            record = self._build_record(
                user_id,
                receipt,
                image_url=image_url,
                original_currency=currency,
                tax_category=tax_category,
            )

            self._advance(ReceiptStage.PERSISTING, token)
            if uploaded is not None:
                uploaded = await self.storage.promote(uploaded, user_id)
                record = record.model_copy(update={"image_url": uploaded.url})
            saved = self.repository.add(record)
        except (Exception, asyncio.CancelledError) as e:
            if isinstance(e, Aborted | asyncio.CancelledError):
                self.stage = ReceiptStage.ABORTED
                logger.info(f"Receipt processing aborted for user {user_id}")
            else:
                self.stage = ReceiptStage.FAILED
                logger.error(f"Receipt processing failed for user {user_id}: {e}")
            await self._discard_upload(uploaded)
            raise

        self.stage = ReceiptStage.DONE
        logger.info(f"Receipt {saved.id} processed for user {user_id}")
        return saved

    async def extract(
        self,
        user_id: int | None,
        image: bytes,
        media_type: str = "image/jpeg",
        cancel_token: CancellationToken | None = None,
    ) -> ReceiptRecord:
        """Extract a receipt without uploading, converting or storing it.

        Amounts stay in the printed currency, reported as
        ``metadata.original_currency``; the tax category is the model's own hint.
        """
        if user_id is None:
            raise Unauthenticated("User not authenticated")

        token = cancel_token or CancellationToken()
        self.stage = ReceiptStage.IDLE
        try:
            image, media_type = await asyncio.to_thread(
                optimize_image,
                image,
                media_type,
                self.settings.image_max_dimension,
                self.settings.image_jpeg_quality,
            )
            receipt = await self._analyze(image, media_type, token)
            currency = self._resolve_currency(receipt) if receipt.currency_converted else None
        except (Exception, asyncio.CancelledError) as e:
            is_abort = isinstance(e, Aborted | asyncio.CancelledError)
            self.stage = ReceiptStage.ABORTED if is_abort else ReceiptStage.FAILED
            raise

        self.stage = ReceiptStage.DONE
        record = self._build_record(
            user_id, receipt, image_url="", original_currency=None, tax_category=receipt.tax_category_hint
        )
        return record.model_copy(
            update={"metadata": record.metadata.model_copy(update={"original_currency": currency})}
        )

    async def _analyze(
        self, image: bytes, media_type: str, token: CancellationToken
    ) -> ValidatedReceipt:
        self._advance(ReceiptStage.MODEL_ANALYZING, token)
        raw = await self.gemini.generate_text(
            get_receipt_extraction_prompt(self.settlement_currency),
            image=image,
            mime_type=media_type,
        )

        self._advance(ReceiptStage.SANITIZING, token)
        payload = parse_model_json(raw)

        self._advance(ReceiptStage.VALIDATING, token)
        result = classify_receipt_response(payload)
        if isinstance(result, NonReceipt):
            logger.info(f"Image rejected as a receipt: {result.reason}")
            raise NotAReceipt(result.reason)
        return validate_receipt(result)

    def _resolve_currency(self, receipt: ValidatedReceipt) -> str | None:
        """ISO code to convert from, or None when no conversion applies."""
        currency = normalize_currency(
            receipt.original_currency,
            CurrencyContext(location=receipt.store_location, language=receipt.receipt_language),
        )
        if currency is None:
            logger.warning(
                f"Could not determine currency from {receipt.original_currency!r}; "
                "amounts are kept as extracted"
            )
            return None
        if currency == self.settlement_currency:
            return None
        return currency

    def _build_record(
        self,
        user_id: int,
        receipt: ValidatedReceipt,
        image_url: str,
        original_currency: str | None,
        tax_category: str | None,
    ) -> ReceiptRecord:
        now = datetime.now(UTC)
        return ReceiptRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            store_name=receipt.store_name or UNKNOWN_STORE,
            # the printed date is not trusted; receipts are dated when processed
            date=now.date(),
            items=receipt.items,
            subtotal=receipt.subtotal,
            tax=receipt.tax,
            discounts=receipt.discounts,
            total=receipt.total,
            image_url=image_url,
            category=receipt.category,
            tax_category=tax_category,
            metadata=ReceiptMetadata(
                currency_converted=original_currency is not None,
                original_currency=original_currency,
                type="scanned",
                confidence=receipt.confidence,
            ),
            created_at=now,
            updated_at=now,
        )

    async def _discard_upload(self, uploaded: StoredImage | None) -> None:
        """Delete this request's upload. Failures are logged, never raised."""
        if uploaded is None or self.storage is None:
            return
        try:
            await self.storage.delete(uploaded.path)
        except Exception as e:
            logger.error(f"Failed to clean up receipt image {uploaded.path}: {e}")
