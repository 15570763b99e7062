"""Domain errors raised by the fashion and receipt pipelines.

Every error carries the HTTP status it is rendered with; the handler in
``kasifesyen.main`` turns them into ``{"error": ..., "status": ...}`` bodies.
"""


class KasiFesyenError(Exception):
    """Base class for all pipeline errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(KasiFesyenError):
    """Neither an image nor a text prompt was supplied."""

    status_code = 400


class ExtractionFailure(KasiFesyenError):
    """Model output could not be recovered as a JSON object of the expected shape."""

    status_code = 500

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class NotAReceipt(KasiFesyenError):
    """The model stated that the image is not a receipt."""

    status_code = 422

    def __init__(self, reason: str) -> None:
        super().__init__(f"This is not a valid receipt: {reason}")
        self.reason = reason


class IncompleteReceipt(KasiFesyenError):
    """A required receipt field is missing from the extraction."""

    status_code = 422

    def __init__(self, missing_fields: list[str]) -> None:
        super().__init__(f"Missing required fields in receipt data: {', '.join(missing_fields)}")
        self.missing_fields = missing_fields


class ConversionUnavailable(KasiFesyenError):
    """No exchange rate could be obtained for a currency."""

    status_code = 502

    def __init__(self, currency: str, detail: str = "rate unavailable") -> None:
        super().__init__(f"Failed to convert currency from {currency}: {detail}")
        self.currency = currency


class PersistenceFailure(KasiFesyenError):
    """The datastore rejected the receipt write."""

    status_code = 500


class Aborted(KasiFesyenError):
    """Processing was cancelled by the caller."""

    status_code = 499

    def __init__(self, stage: str) -> None:
        super().__init__(f"Receipt processing aborted before {stage}")
        self.stage = stage


class Unauthenticated(KasiFesyenError):
    """No active user session."""

    status_code = 401


class ServiceUnavailable(KasiFesyenError):
    """A backing service (model API, image storage) is not configured."""

    status_code = 503


class InvalidCredentials(Unauthenticated):
    """Sign-in with an unknown email or a wrong password."""


class EmailAlreadyRegistered(KasiFesyenError):
    """Sign-up with an email that already has an account."""

    status_code = 400

    def __init__(self, email: str) -> None:
        super().__init__("Email already registered")
        self.email = email
