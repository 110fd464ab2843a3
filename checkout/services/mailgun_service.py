"""Mailgun address validation."""
from __future__ import annotations

from typing import Any, Dict

import requests

from checkout.errors import UpstreamUnavailable


class EmailValidationClient:
    def __init__(self, api_key: str, base_url: str = "https://api.mailgun.net/v4", timeout: int = 10):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def validate(self, email: str) -> Dict[str, Any]:
        try:
            r = requests.get(
                f"{self.base_url}/address/validate",
                params={"address": email, "provider_lookup": "true"},
                auth=("api", self.api_key),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamUnavailable(str(e)) from e

        if not r.ok:
            raise UpstreamUnavailable(f"Mailgun API returned {r.status_code}")
        try:
            return r.json()
        except ValueError as e:
            raise UpstreamUnavailable("Mailgun returned invalid JSON") from e
