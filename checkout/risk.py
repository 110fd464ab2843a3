"""
Identity risk scoring for checkout phone numbers.

Strategies are tried in order; each returns a RiskAssessment or None to hand
over to the next one. Upstream failures are logged and skipped, never raised:
checkout stays available when Twilio or the identity Lambda is down.

    identity match (needs first + last name)
      -> line-type lookup (needs Twilio credentials)
      -> basic pass-through, risk "unknown"
"""
import logging
import re
from typing import Iterable, List, Optional, Tuple

from checkout.errors import UpstreamUnavailable
from checkout.models import IdentityMatchResult, RiskAssessment, RiskTier, ValidationMethod

logger = logging.getLogger(__name__)

MIN_PHONE_DIGITS = 10

# Lowest summary score for each tier; anything at or below VERIFY_MAX_SCORE
# must be confirmed by SMS code.
STRONG_MATCH_MIN_SCORE = 80
PARTIAL_MATCH_MIN_SCORE = 40
VERIFY_MAX_SCORE = 20


def phone_digits(phone) -> str:
    if phone is None or isinstance(phone, bool):
        return ""
    return re.sub(r"\D", "", str(phone))


def normalize_phone(phone: str) -> Optional[str]:
    """E.164 form of ``phone``, or None when it has fewer than 10 digits."""
    digits = phone_digits(phone)
    if len(digits) < MIN_PHONE_DIGITS:
        return None
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


def split_name(name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """First word and the rest; last name is None for single-word names."""
    parts = (name or "").split()
    if not parts:
        return None, None
    if len(parts) == 1:
        return parts[0], None
    return parts[0], " ".join(parts[1:])


def classify_score(match: IdentityMatchResult, phone: str) -> RiskAssessment:
    score = match.summary_score
    if score >= STRONG_MATCH_MIN_SCORE:
        tier, valid, reason = RiskTier.LOW, True, "strong match"
    elif score >= PARTIAL_MATCH_MIN_SCORE:
        tier, valid, reason = RiskTier.MEDIUM, True, "partial match"
    elif score > VERIFY_MAX_SCORE:
        tier, valid, reason = RiskTier.HIGH, True, "weak match"
    else:
        tier, valid, reason = RiskTier.HIGH, False, "name does not match phone number"

    return RiskAssessment(
        is_valid=valid,
        risk_tier=tier,
        validation_method=ValidationMethod.IDENTITY_MATCH,
        reason=reason,
        requires_verification=score <= VERIFY_MAX_SCORE,
        phone_number=phone,
        identity_match=match,
    )


def _mapping(value) -> dict:
    return value if isinstance(value, dict) else {}


class IdentityMatchStrategy:
    name = "identity_match"
    report_errors = False

    def __init__(self, client):
        self.client = client

    def assess(self, phone: str, first_name: Optional[str], last_name: Optional[str]) -> Optional[RiskAssessment]:
        if not (first_name and last_name) or not self.client.configured:
            return None
        match = self.client.match_identity(phone, first_name, last_name)
        return classify_score(match, phone)


class LineLookupStrategy:
    name = "line_lookup"
    report_errors = True

    def __init__(self, client, cache_seconds: Optional[int] = 300):
        self.client = client
        self.cache_seconds = cache_seconds

    def assess(self, phone: str, first_name: Optional[str], last_name: Optional[str]) -> Optional[RiskAssessment]:
        if not self.client.configured:
            return None
        data = self.client.lookup_phone(phone)
        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"lookup returned a malformed payload: {type(data).__name__}")

        line = _mapping(data.get("line_type_intelligence"))
        line_type = line.get("type")
        if not isinstance(line_type, str):
            line_type = ""
        kind = line_type.lower()
        carrier = _mapping(data.get("carrier")).get("name") or line.get("carrier_name")

        is_valid = data.get("valid") is True
        tier, reason = RiskTier.LOW, None
        if not is_valid:
            tier, reason = RiskTier.HIGH, "invalid number"
        elif "voip" in kind:
            tier, reason = RiskTier.MEDIUM, "VOIP detected"
        elif kind == "premium":
            tier, reason = RiskTier.HIGH, "premium rate number"

        return RiskAssessment(
            is_valid=is_valid,
            risk_tier=tier,
            validation_method=ValidationMethod.LOOKUP,
            reason=reason,
            phone_number=data.get("phone_number") or phone,
            country_code=data.get("country_code"),
            national_format=data.get("national_format"),
            line_type=line_type or None,
            carrier=carrier,
            cache_max_age=self.cache_seconds,
        )


def basic_pass(phone: str, api_error: Optional[str] = None) -> RiskAssessment:
    """Fail-open verdict used when no strategy could decide."""
    return RiskAssessment(
        is_valid=True,
        risk_tier=RiskTier.UNKNOWN,
        validation_method=ValidationMethod.BASIC_FALLBACK,
        reason="basic validation only",
        phone_number=phone,
        api_error=api_error,
    )


class PhoneRiskPipeline:
    def __init__(self, strategies: Iterable):
        self.strategies: List = list(strategies)

    @classmethod
    def from_providers(cls, providers, cache_seconds: Optional[int] = 300) -> "PhoneRiskPipeline":
        return cls([
            IdentityMatchStrategy(providers.identity),
            LineLookupStrategy(providers.lookup, cache_seconds=cache_seconds),
        ])

    def assess(self, phone: str, first_name: Optional[str] = None,
               last_name: Optional[str] = None) -> RiskAssessment:
        normalized = normalize_phone(phone)
        if normalized is None:
            return RiskAssessment(
                is_valid=False,
                risk_tier=RiskTier.HIGH,
                validation_method=ValidationMethod.BASIC,
                reason="phone number too short",
                country_code=None,
            )

        api_error = None
        for strategy in self.strategies:
            try:
                result = strategy.assess(normalized, first_name, last_name)
            except UpstreamUnavailable as e:
                logger.warning("%s unavailable for %s, trying next: %s", strategy.name, normalized, e)
                if strategy.report_errors:
                    api_error = str(e)
                continue
            if result is not None:
                return result

        return basic_pass(normalized, api_error=api_error)
