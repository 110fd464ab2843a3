"""
Checkout domain models

Key types:
- CustomerRecord: billing customer as held by Stripe
- SubscriptionState: derived per request, never cached
- PaymentIntentSpec: what we ask Stripe to create
- IdentityMatchResult / RiskAssessment: phone + name risk scoring
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


def field_value(obj: Any, key: str, default: Any = None) -> Any:
    """Read a key from a Stripe object or plain dict; None counts as missing."""
    try:
        value = obj[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


class RiskTier(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class ValidationMethod(enum.Enum):
    IDENTITY_MATCH = "twilio_identity_match_lambda"
    LOOKUP = "twilio_lookup_api"
    BASIC_FALLBACK = "basic_fallback"
    BASIC = "basic"


class SubscriptionState(enum.Enum):
    NONE = "none"
    PENDING = "incomplete"
    ACTIVE = "active"


class CaptureMode(enum.Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class PlanType(enum.Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"

    @property
    def is_trial(self) -> bool:
        return self is PlanType.MONTHLY


@dataclass
class CustomerRecord:
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    postal_code: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, obj: Any) -> "CustomerRecord":
        address = field_value(obj, "address", {})
        return cls(
            id=obj["id"],
            email=field_value(obj, "email"),
            name=field_value(obj, "name"),
            phone=field_value(obj, "phone"),
            postal_code=field_value(address, "postal_code"),
            metadata=dict(field_value(obj, "metadata", {})),
        )


@dataclass
class PaymentIntentSpec:
    customer_id: str
    amount: int
    currency: str
    capture_mode: CaptureMode
    confirm_now: bool
    metadata: Dict[str, Optional[str]]

    def to_stripe_params(self) -> Dict[str, Any]:
        return {
            "customer": self.customer_id,
            "amount": self.amount,
            "currency": self.currency,
            "capture_method": self.capture_mode.value,
            "confirm": self.confirm_now,
            "payment_method_types": ["card"],
            "payment_method_options": {"card": {"request_three_d_secure": "automatic"}},
            "metadata": self.metadata,
        }


@dataclass
class IdentityMatchResult:
    first_name_match: Any
    last_name_match: Any
    summary_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first_name_match": self.first_name_match,
            "last_name_match": self.last_name_match,
            "summary_score": self.summary_score,
        }


@dataclass
class RiskAssessment:
    is_valid: bool
    risk_tier: RiskTier
    validation_method: ValidationMethod
    reason: Optional[str] = None
    requires_verification: bool = False
    phone_number: Optional[str] = None
    country_code: Optional[str] = "US"
    identity_match: Optional[IdentityMatchResult] = None
    # Lookup-only details
    line_type: Optional[str] = None
    carrier: Optional[str] = None
    national_format: Optional[str] = None
    api_error: Optional[str] = None
    # Seconds the caller may reuse this result; None means do not cache
    cache_max_age: Optional[int] = None

    @property
    def blocks_checkout(self) -> bool:
        return self.requires_verification or not self.is_valid

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": True,
            "isValid": self.is_valid,
            "phoneNumber": self.phone_number,
            "countryCode": self.country_code,
            "risk": self.risk_tier.value,
            "reason": self.reason,
            "requiresVerification": self.requires_verification,
            "validationMethod": self.validation_method.value,
        }
        if self.identity_match is not None:
            body["identityMatch"] = self.identity_match.to_dict()
        if self.validation_method is ValidationMethod.LOOKUP:
            body["lineType"] = self.line_type or "unknown"
            body["carrier"] = self.carrier
            body["nationalFormat"] = self.national_format
        if self.api_error:
            body["apiError"] = self.api_error
        return body


@dataclass
class IntentResult:
    """Client secret plus what the browser needs to finish the authorization."""
    client_secret: str
    customer_id: str
    intent_id: Optional[str] = None
    is_setup_intent: bool = False
    is_preauth: bool = False
    preauth_amount: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": True,
            "client_secret": self.client_secret,
            "customer_id": self.customer_id,
        }
        if self.is_setup_intent:
            body["is_setup_intent"] = True
        if self.is_preauth:
            body["is_preauth"] = True
            body["preauth_amount"] = self.preauth_amount
        return body
