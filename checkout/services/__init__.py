"""Provider clients used by the checkout core."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from checkout.services.mailgun_service import EmailValidationClient
from checkout.services.stripe_service import StripeBillingClient
from checkout.services.twilio_service import IdentityMatchClient, PhoneLookupClient, VerifyClient


@dataclass
class Providers:
    billing: Any
    identity: Any
    lookup: Any
    verify: Any
    email: Any


def build_providers(config: Mapping[str, Any]) -> Providers:
    """Create the real provider clients from Flask config."""
    timeout = config["OUTBOUND_TIMEOUT"]
    return Providers(
        billing=StripeBillingClient(config["STRIPE_SECRET_KEY"]),
        identity=IdentityMatchClient(config["IDENTITY_MATCH_URL"], timeout=timeout),
        lookup=PhoneLookupClient(
            config["TWILIO_ACCOUNT_SID"],
            config["TWILIO_AUTH_TOKEN"],
            config["TWILIO_LOOKUP_URL"],
            timeout=timeout,
        ),
        verify=VerifyClient(
            config["TWILIO_ACCOUNT_SID"],
            config["TWILIO_AUTH_TOKEN"],
            config["TWILIO_VERIFY_SERVICE_SID"],
            config["TWILIO_VERIFY_URL"],
            timeout=timeout,
        ),
        email=EmailValidationClient(config["MAILGUN_API_KEY"], config["MAILGUN_BASE_URL"], timeout=timeout),
    )
