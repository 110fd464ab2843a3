"""
Payment strategy selection.

- amount 0: setup intent, card is saved and nothing is charged
- monthly (trial) plan: fixed pre-authorization, captured manually later
- annual plan: full amount, captured immediately

``subscription_id`` is always present in intent metadata, None when unknown.
"""
import logging
from typing import Any, Dict, Optional

from checkout.errors import ValidationError
from checkout.models import CaptureMode, IntentResult, PaymentIntentSpec, PlanType, field_value

logger = logging.getLogger(__name__)


def parse_plan_type(value: Any) -> PlanType:
    try:
        return PlanType((value or "").strip().lower())
    except (ValueError, AttributeError):
        raise ValidationError(
            "subscription_type must be one of: " + ", ".join(p.value for p in PlanType)
        ) from None


def parse_amount(value: Any) -> int:
    """Amount in minor currency units; bools and fractions are rejected."""
    if isinstance(value, bool):
        raise ValidationError("amount must be a whole number of cents")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value < 0:
        raise ValidationError("amount must be a whole number of cents")
    return value


def parse_currency(plan_type: PlanType, amount: int, currency: Any) -> Optional[str]:
    """Lower-cased currency for a full charge; trials and setup intents ignore it."""
    if plan_type.is_trial or amount == 0:
        return currency.lower() if isinstance(currency, str) and currency else None
    if not isinstance(currency, str) or not currency.strip():
        raise ValidationError("currency is required")
    return currency.strip().lower()


def intent_metadata(plan_type: PlanType, price_id: Optional[str],
                    subscription_id: Optional[str]) -> Dict[str, Optional[str]]:
    return {
        "subscription_type": plan_type.value,
        "price_id": price_id,
        "subscription_id": subscription_id or None,
    }


class PaymentStrategySelector:
    def __init__(self, billing, preauth_amount: int = 14700, preauth_currency: str = "usd"):
        self.billing = billing
        self.preauth_amount = preauth_amount
        self.preauth_currency = preauth_currency

    def build_payment_spec(self, customer_id: str, plan_type: PlanType, price_id: Optional[str],
                           requested_amount: int, currency: Optional[str],
                           subscription_id: Optional[str] = None) -> PaymentIntentSpec:
        metadata = intent_metadata(plan_type, price_id, subscription_id)

        if plan_type.is_trial:
            metadata["is_preauth"] = "true"
            metadata["trial_subscription"] = "true"
            return PaymentIntentSpec(
                customer_id=customer_id,
                amount=self.preauth_amount,
                currency=self.preauth_currency,
                capture_mode=CaptureMode.MANUAL,
                confirm_now=False,
                metadata=metadata,
            )

        if not currency:
            raise ValidationError("currency is required")
        return PaymentIntentSpec(
            customer_id=customer_id,
            amount=requested_amount,
            currency=currency.lower(),
            capture_mode=CaptureMode.AUTOMATIC,
            confirm_now=False,
            metadata=metadata,
        )

    def create_intent(self, customer_id: str, plan_type: PlanType, price_id: Optional[str],
                      requested_amount: int, currency: Optional[str],
                      subscription_id: Optional[str] = None) -> IntentResult:
        if requested_amount == 0:
            setup_intent = self.billing.create_setup_intent({
                "customer": customer_id,
                "automatic_payment_methods": {"enabled": True},
                "metadata": intent_metadata(plan_type, price_id, subscription_id),
            })
            logger.info("Created setup intent %s for %s", field_value(setup_intent, "id"), customer_id)
            return IntentResult(
                client_secret=setup_intent["client_secret"],
                customer_id=customer_id,
                intent_id=field_value(setup_intent, "id"),
                is_setup_intent=True,
            )

        spec = self.build_payment_spec(
            customer_id, plan_type, price_id, requested_amount, currency, subscription_id
        )
        intent = self.billing.create_payment_intent(spec.to_stripe_params())
        is_preauth = spec.capture_mode is CaptureMode.MANUAL
        logger.info(
            "Created payment intent %s for %s (%s capture, %s %s)",
            field_value(intent, "id"), customer_id, spec.capture_mode.value, spec.amount, spec.currency,
        )
        return IntentResult(
            client_secret=intent["client_secret"],
            customer_id=customer_id,
            intent_id=field_value(intent, "id"),
            is_preauth=is_preauth,
            preauth_amount=spec.amount if is_preauth else None,
        )
