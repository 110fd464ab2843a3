"""
Checkout orchestration.

    risk screen -> resolve customer -> conflict check -> payment strategy

Each request runs start to finish against the providers; nothing is kept
between requests. The customer step and the conflict step each read then
write, so two concurrent checkouts for one email can race (see customers.py).
"""
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from checkout.customers import CustomerResolver
from checkout.errors import ValidationError, VerificationRequiredError
from checkout.models import IntentResult, RiskAssessment
from checkout.payments import PaymentStrategySelector, parse_amount, parse_currency, parse_plan_type
from checkout.risk import PhoneRiskPipeline, normalize_phone, split_name
from checkout.subscriptions import SubscriptionConflictChecker, TrialStarter

logger = logging.getLogger(__name__)


class CheckoutService:
    def __init__(self, providers, settings: Mapping[str, Any]):
        self.providers = providers
        self.plans = settings["PLANS"]
        self.risk = PhoneRiskPipeline.from_providers(providers, cache_seconds=settings["LOOKUP_CACHE_SECONDS"])
        self.customers = CustomerResolver(
            providers.billing,
            default_affiliate_id=settings["DEFAULT_AFFILIATE_ID"],
            default_country=settings["DEFAULT_COUNTRY"],
        )
        self.conflicts = SubscriptionConflictChecker(providers.billing)
        self.payments = PaymentStrategySelector(
            providers.billing,
            preauth_amount=settings["PREAUTH_AMOUNT"],
            preauth_currency=settings["PREAUTH_CURRENCY"],
        )
        self.trials = TrialStarter(providers.billing, self.conflicts, trial_days=settings["TRIAL_PERIOD_DAYS"])

    # ---- risk ----

    def assess_phone(self, phone: str, first_name: Optional[str] = None,
                     last_name: Optional[str] = None) -> RiskAssessment:
        return self.risk.assess(phone, first_name, last_name)

    def screen_phone(self, phone: str, first_name: Optional[str], last_name: Optional[str],
                     verification_code: Optional[str] = None) -> RiskAssessment:
        """Score ``phone`` and raise if the verdict blocks checkout."""
        assessment = self.assess_phone(phone, first_name, last_name)
        if not assessment.blocks_checkout:
            return assessment
        if assessment.requires_verification:
            normalized = normalize_phone(phone)
            if self.providers.verify.is_approved(normalized, verification_code):
                logger.info("SMS verification approved for %s", normalized)
                return assessment
            raise VerificationRequiredError(
                "Name does not match phone number. Please verify your identity.",
                requiresVerification=True,
                assessment=assessment.to_dict(),
            )
        raise ValidationError(
            f"Invalid phone number: {assessment.reason}",
            assessment=assessment.to_dict(),
        )

    # ---- subscription intents ----

    def create_subscription_intent(self, data: Mapping[str, Any]) -> IntentResult:
        """Intent for ``POST /create-payment-intent``; resolves the customer by email when no id is given."""
        plan_type = parse_plan_type(data.get("subscription_type"))
        amount = parse_amount(data.get("amount"))
        currency = parse_currency(plan_type, amount, data.get("currency"))
        price_id = data.get("price_id")

        customer_id = data.get("customer_id")
        if not customer_id:
            customer = self.customers.resolve(
                data.get("email"),
                data.get("name"),
                phone=data.get("phone"),
                metadata={"subscription_type": plan_type.value, "price_id": price_id},
            )
            customer_id = customer.id

        self.conflicts.ensure_clear(customer_id)
        return self.payments.create_intent(
            customer_id, plan_type, price_id, amount, currency, data.get("subscription_id")
        )

    def checkout(self, data: Mapping[str, Any]) -> Tuple[IntentResult, Optional[RiskAssessment]]:
        """Run the full checkout for one request body."""
        plan_type = parse_plan_type(data.get("subscription_type"))
        plan = self.plans.get(plan_type.value, {})
        price_id = data.get("price_id") or plan.get("price_id")
        raw_amount = data.get("amount")
        amount = parse_amount(plan.get("amount", 0) if raw_amount is None else raw_amount)
        currency = parse_currency(plan_type, amount, data.get("currency") or plan.get("currency"))

        email, name = data.get("email"), data.get("name")
        if not email or not name:
            raise ValidationError("Missing required customer information")

        supplied = data.get("metadata") or {}
        if not isinstance(supplied, dict):
            raise ValidationError("metadata must be an object")

        assessment = None
        phone = data.get("phone")
        if phone:
            first_name, last_name = self._names(data)
            assessment = self.screen_phone(phone, first_name, last_name, data.get("verification_code"))

        metadata: Dict[str, Any] = dict(supplied)
        metadata.update({"subscription_type": plan_type.value, "price_id": price_id})
        customer = self.customers.resolve(
            email,
            name,
            phone=normalize_phone(phone) if phone else None,
            zip_code=data.get("zipCode"),
            metadata=metadata,
            affiliate_id=data.get("affiliateId"),
        )

        self.conflicts.ensure_clear(customer.id)
        intent = self.payments.create_intent(
            customer.id, plan_type, price_id, amount, currency, data.get("subscription_id")
        )
        return intent, assessment

    def start_trial(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return self.trials.start(
            data.get("customerId"),
            data.get("paymentMethodId"),
            data.get("priceId"),
            data.get("userInfo"),
        )

    def create_customer_setup_intent(self, customer_id: Optional[str], created_at: str) -> Dict[str, Any]:
        if not customer_id:
            raise ValidationError("Customer ID is required")
        setup_intent = self.providers.billing.create_setup_intent({
            "customer": customer_id,
            "automatic_payment_methods": {"enabled": True},
            "usage": "off_session",
            "metadata": {"type": "trial_signup", "created_at": created_at},
        })
        return {"clientSecret": setup_intent["client_secret"], "setupIntentId": setup_intent["id"]}

    @staticmethod
    def _names(data: Mapping[str, Any]) -> Tuple[Optional[str], Optional[str]]:
        if data.get("firstName") or data.get("lastName"):
            return data.get("firstName"), data.get("lastName")
        return split_name(data.get("name"))
