"""
Subscription state checks and trial creation.

Only ``active`` and ``incomplete`` subscriptions block a new checkout.
Whether ``past_due``/``trialing`` should block as well is still an open
product question.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from checkout.errors import ConflictError, ValidationError
from checkout.models import SubscriptionState, field_value

logger = logging.getLogger(__name__)


def _iso_from_timestamp(ts: Optional[int]) -> Optional[str]:
    if not ts:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class SubscriptionConflictChecker:
    def __init__(self, billing):
        self.billing = billing

    def state_for(self, customer_id: str):
        """Current SubscriptionState and the id of the subscription in that state."""
        active = self.billing.list_subscriptions(customer_id, SubscriptionState.ACTIVE.value, limit=1)
        if active:
            return SubscriptionState.ACTIVE, active[0]["id"]

        pending = self.billing.list_subscriptions(customer_id, SubscriptionState.PENDING.value, limit=1)
        if pending:
            return SubscriptionState.PENDING, pending[0]["id"]

        return SubscriptionState.NONE, None

    def ensure_clear(self, customer_id: str) -> None:
        """Raise ConflictError if the customer already has a live subscription."""
        state, subscription_id = self.state_for(customer_id)
        if state is SubscriptionState.ACTIVE:
            logger.info("Customer %s already subscribed (%s)", customer_id, subscription_id)
            raise ConflictError(
                "Customer already has an active subscription",
                existingSubscriptionId=subscription_id,
            )
        if state is SubscriptionState.PENDING:
            logger.info("Customer %s has pending subscription %s", customer_id, subscription_id)
            raise ConflictError(
                "Customer has a pending subscription that needs to be completed first",
                pendingSubscriptionId=subscription_id,
            )


class TrialStarter:
    """Turn a saved payment method into a subscription with a free trial."""

    def __init__(self, billing, conflicts: SubscriptionConflictChecker, trial_days: int = 30):
        self.billing = billing
        self.conflicts = conflicts
        self.trial_days = trial_days

    def start(self, customer_id: str, payment_method_id: str, price_id: str,
              user_info: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not customer_id or not payment_method_id or not price_id:
            raise ValidationError("Missing required parameters for trial creation")

        payment_method = self.billing.retrieve_payment_method(payment_method_id)
        if field_value(payment_method, "customer") != customer_id:
            raise ValidationError("Payment method does not belong to customer")

        self.conflicts.ensure_clear(customer_id)

        self.billing.update_customer(customer_id, {
            "invoice_settings": {"default_payment_method": payment_method_id},
        })

        subscription = self.billing.create_subscription({
            "customer": customer_id,
            "items": [{"price": price_id}],
            "trial_period_days": self.trial_days,
            "default_payment_method": payment_method_id,
            "collection_method": "charge_automatically",
            "expand": ["latest_invoice"],
            "metadata": {
                "signup_source": "course_creator_360_trial",
                "user_info": json.dumps(user_info or {}),
                "trial_started": datetime.now(timezone.utc).isoformat(),
            },
        })
        logger.info("Started trial %s for customer %s", subscription["id"], customer_id)

        trial_end = _iso_from_timestamp(field_value(subscription, "trial_end"))
        price = subscription["items"]["data"][0]["price"]
        return {
            "subscriptionId": subscription["id"],
            "status": subscription["status"],
            "trialEnd": trial_end,
            "nextBillingDate": trial_end,
            "amount": price["unit_amount"],
            "currency": price["currency"],
        }
