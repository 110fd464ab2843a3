"""Twilio-backed phone services.

- IdentityMatchClient: name vs. phone match through the identity Lambda
- PhoneLookupClient: Lookup v2 line-type / validity check
- VerifyClient: SMS one-time-code send and check

The first two raise UpstreamUnavailable for any failure so the risk pipeline
can move on to its next strategy. VerifyClient failures are real errors.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from checkout.errors import ProviderError, ServiceNotConfiguredError, UpstreamUnavailable
from checkout.models import IdentityMatchResult

logger = logging.getLogger(__name__)


class IdentityMatchClient:
    def __init__(self, url: str, timeout: int = 10):
        self.url = url
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def match_identity(self, phone: str, first_name: str, last_name: str) -> IdentityMatchResult:
        try:
            r = requests.post(
                self.url,
                json={
                    "identity_phone_number": phone,
                    "first_name": first_name,
                    "last_name": last_name,
                },
                timeout=self.timeout,
            )
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            raise UpstreamUnavailable(f"identity match request failed: {e}") from e

        if not isinstance(data, dict) or not data.get("success"):
            raise UpstreamUnavailable("identity match returned an unsuccessful payload")

        try:
            score = int(data.get("summary_score") or 0)
        except (TypeError, ValueError) as e:
            raise UpstreamUnavailable(f"identity match score is malformed: {data.get('summary_score')!r}") from e

        return IdentityMatchResult(
            first_name_match=data.get("first_name_match"),
            last_name_match=data.get("last_name_match"),
            summary_score=score,
        )


class PhoneLookupClient:
    def __init__(self, account_sid: str, auth_token: str, base_url: str, timeout: int = 10):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token)

    def lookup_phone(self, phone: str) -> Dict[str, Any]:
        try:
            r = requests.get(
                f"{self.base_url}/{quote(phone, safe='')}",
                params={"Fields": "line_type_intelligence"},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"lookup request failed: {e}") from e

        if not r.ok:
            raise UpstreamUnavailable(f"Twilio API returned {r.status_code}")

        try:
            data = r.json()
        except ValueError as e:
            raise UpstreamUnavailable("lookup returned invalid JSON") from e
        if not isinstance(data, dict):
            raise UpstreamUnavailable("lookup returned a malformed payload")
        return data


class VerifyClient:
    def __init__(self, account_sid: str, auth_token: str, service_sid: str, base_url: str, timeout: int = 10):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.service_sid = service_sid
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.service_sid)

    def _post(self, path: str, form: Dict[str, str], failure_message: str) -> Dict[str, Any]:
        if not self.configured:
            raise ServiceNotConfiguredError("Twilio service not configured")
        try:
            r = requests.post(
                f"{self.base_url}/{self.service_sid}/{path}",
                data=form,
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.exception("Twilio Verify %s request failed", path)
            raise ProviderError("Twilio service error", detail=str(e)) from e

        if not r.ok:
            logger.error("Twilio Verify %s error: %s %s", path, r.status_code, r.text)
            raise ProviderError(
                failure_message,
                status_code=502,
                provider_type="twilio_verify_error",
                detail=r.text,
                upstreamStatus=r.status_code,
            )
        return r.json()

    def send_code(self, phone: str, channel: str = "sms") -> Dict[str, Any]:
        return self._post("Verifications", {"To": phone, "Channel": channel}, "Failed to send verification code")

    def check_code(self, phone: str, code: str) -> Dict[str, Any]:
        return self._post("VerificationCheck", {"To": phone, "Code": code}, "Failed to verify code")

    def is_approved(self, phone: str, code: Optional[str]) -> bool:
        """True when Twilio approves ``code`` for ``phone``; False on any failure."""
        if not code or not self.configured:
            return False
        try:
            data = self.check_code(phone, code)
        except ProviderError:
            return False
        return data.get("status") == "approved"
