"""
Checkout error taxonomy.

Every error raised by the checkout core carries the HTTP status it maps to
and the message that is safe to show a customer. Exception detail is kept
separately so the API layer can drop it in production.
"""
from typing import Any, Dict, Optional


class UpstreamUnavailable(Exception):
    """An identity/phone/email check could not produce a verdict.

    Never reaches the caller; risk scoring downgrades to the next strategy.
    """


class CheckoutError(Exception):
    status_code = 500
    error_type = "checkout_error"

    def __init__(self, message: str, detail: Optional[str] = None, **extra: Any):
        super().__init__(message)
        self.public_message = message
        self.detail = detail
        self.extra = extra

    def to_dict(self, include_detail: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "error": self.public_message,
            "type": self.error_type,
        }
        body.update(self.extra)
        if include_detail and self.detail:
            body["details"] = self.detail
        return body


class ValidationError(CheckoutError):
    """Missing or malformed field in the caller's request."""
    status_code = 400
    error_type = "validation_error"


class ConflictError(CheckoutError):
    """Customer already holds an active or pending subscription."""
    status_code = 409
    error_type = "subscription_conflict"


class VerificationRequiredError(CheckoutError):
    """Identity risk is too high to continue without an SMS code."""
    status_code = 403
    error_type = "verification_required"


class ServiceNotConfiguredError(CheckoutError):
    status_code = 503
    error_type = "service_not_configured"


class ProviderError(CheckoutError):
    """The payment/identity provider rejected or failed the request.

    ``client_error`` distinguishes bad input (4xx, message is passed through)
    from processing failures (5xx, generic message).
    """
    error_type = "provider_error"

    def __init__(self, message: str, client_error: bool = False, provider_type: Optional[str] = None,
                 detail: Optional[str] = None, status_code: Optional[int] = None, **extra: Any):
        super().__init__(message, detail=detail, **extra)
        self.client_error = client_error
        if provider_type:
            self.error_type = provider_type
        if status_code is not None:
            self.status_code = status_code
        else:
            self.status_code = 400 if client_error else 500
