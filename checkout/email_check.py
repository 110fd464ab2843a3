"""Deliverability check for checkout email addresses.

Fail-open like phone scoring: when Mailgun is unavailable the address is
accepted with risk "unknown" and the result is not cacheable.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from checkout.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


def basic_email_result(api_error: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": True,
        "isValid": True,
        "validationMethod": "basic_fallback",
        "risk": "unknown",
    }
    if api_error:
        body["apiError"] = api_error
    return body


def check_email(client, email: str, cache_seconds: int = 300) -> Tuple[Dict[str, Any], Optional[int]]:
    """Return the response body and how long it may be cached (None for never)."""
    if not client.configured:
        logger.warning("MAILGUN_API_KEY not configured, using basic validation")
        return basic_email_result(), None

    try:
        data = client.validate(email)
    except UpstreamUnavailable as e:
        domain = email.rpartition("@")[2]
        logger.warning("Mailgun unavailable for domain %s: %s", domain, e)
        return basic_email_result(api_error=str(e)), None

    return {
        "success": True,
        "isValid": data.get("result") == "deliverable",
        "result": data.get("result"),
        "risk": data.get("risk") or "unknown",
        "isDisposable": bool(data.get("is_disposable_address")),
        "isRoleAddress": bool(data.get("is_role_address")),
        "reason": data.get("reason") or None,
        "didYouMean": data.get("did_you_mean") or None,
        "validationMethod": "mailgun_api",
    }, cache_seconds
