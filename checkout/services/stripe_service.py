"""Stripe helper functions.

Thin wrapper over the Stripe SDK exposing only the calls the checkout core
needs. The secret key is held by the instance and passed on every request,
so nothing here touches the module-level ``stripe.api_key``.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import stripe

from checkout.errors import ProviderError
from checkout.models import CustomerRecord

logger = logging.getLogger(__name__)


@contextmanager
def stripe_errors(operation: str) -> Iterator[None]:
    """Translate Stripe SDK errors into ProviderError by Stripe's own category."""
    try:
        yield
    except stripe.CardError as e:
        logger.warning("Stripe card error during %s: %s", operation, e.user_message)
        raise ProviderError(
            e.user_message or "Your card was declined",
            client_error=True,
            provider_type="StripeCardError",
            detail=str(e),
        ) from e
    except stripe.InvalidRequestError as e:
        logger.warning("Stripe rejected %s: %s", operation, e.user_message)
        raise ProviderError(
            e.user_message or "Invalid request parameters",
            client_error=True,
            provider_type="StripeInvalidRequestError",
            detail=str(e),
        ) from e
    except stripe.StripeError as e:
        logger.exception("Stripe %s failed", operation)
        raise ProviderError(
            "An error occurred processing your request",
            provider_type=type(e).__name__,
            detail=str(e),
        ) from e


class StripeBillingClient:
    """Customer, subscription and intent operations against one Stripe account."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def find_customer_by_email(self, email: str) -> Optional[CustomerRecord]:
        with stripe_errors("customer lookup"):
            result = stripe.Customer.list(email=email, limit=1, api_key=self.api_key)
        if not result.data:
            return None
        return CustomerRecord.from_stripe(result.data[0])

    def create_customer(self, params: Dict[str, Any]) -> CustomerRecord:
        with stripe_errors("customer create"):
            customer = stripe.Customer.create(api_key=self.api_key, **params)
        return CustomerRecord.from_stripe(customer)

    def update_customer(self, customer_id: str, params: Dict[str, Any]) -> CustomerRecord:
        with stripe_errors("customer update"):
            customer = stripe.Customer.modify(customer_id, api_key=self.api_key, **params)
        return CustomerRecord.from_stripe(customer)

    def list_subscriptions(self, customer_id: str, status: str, limit: int = 1) -> List[Any]:
        with stripe_errors("subscription list"):
            result = stripe.Subscription.list(
                customer=customer_id, status=status, limit=limit, api_key=self.api_key
            )
        return list(result.data)

    def create_subscription(self, params: Dict[str, Any]) -> Any:
        with stripe_errors("subscription create"):
            return stripe.Subscription.create(api_key=self.api_key, **params)

    def create_setup_intent(self, params: Dict[str, Any]) -> Any:
        with stripe_errors("setup intent create"):
            return stripe.SetupIntent.create(api_key=self.api_key, **params)

    def create_payment_intent(self, params: Dict[str, Any]) -> Any:
        with stripe_errors("payment intent create"):
            return stripe.PaymentIntent.create(api_key=self.api_key, **params)

    def retrieve_payment_method(self, payment_method_id: str) -> Any:
        with stripe_errors("payment method retrieve"):
            return stripe.PaymentMethod.retrieve(payment_method_id, api_key=self.api_key)
