"""
Find-or-create billing customers by email.

Stripe is the only store: the lookup and the following create/update are two
separate API calls with nothing locking the email in between, so two
simultaneous checkouts for one address can both create a customer. Stripe
offers no compare-and-swap here; this is accepted, not handled.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from checkout.errors import ValidationError
from checkout.models import CustomerRecord

logger = logging.getLogger(__name__)


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def final_affiliate_id(affiliate_id: Optional[str], default: str = "none") -> str:
    value = str(affiliate_id).strip() if affiliate_id is not None else ""
    return value or default


class CustomerResolver:
    def __init__(self, billing, default_affiliate_id: str = "none", default_country: str = "US"):
        self.billing = billing
        self.default_affiliate_id = default_affiliate_id
        self.default_country = default_country

    def resolve(self, email: Optional[str], name: Optional[str], phone: Optional[str] = None,
                zip_code: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None,
                affiliate_id: Optional[str] = None) -> CustomerRecord:
        """Return the existing customer for ``email`` (updated) or a new one."""
        if not email or not name:
            raise ValidationError("Missing required customer information")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("metadata must be an object")

        supplied = dict(metadata or {})
        affiliate = final_affiliate_id(affiliate_id, self.default_affiliate_id)

        existing = self.billing.find_customer_by_email(email)
        if existing is not None:
            params: Dict[str, Any] = {
                "name": name,
                "metadata": {
                    **existing.metadata,
                    **supplied,
                    "affiliateId": affiliate,
                    "updatedAt": now_utc_iso(),
                },
            }
            self._attach_contact(params, phone, zip_code)
            customer = self.billing.update_customer(existing.id, params)
            logger.info("Updated customer %s for %s", customer.id, email)
            return customer

        params = {
            "email": email,
            "name": name,
            "metadata": {
                **supplied,
                "affiliateId": affiliate,
                "createdAt": now_utc_iso(),
            },
        }
        self._attach_contact(params, phone, zip_code)
        customer = self.billing.create_customer(params)
        logger.info("Created customer %s for %s", customer.id, email)
        return customer

    def _attach_contact(self, params: Dict[str, Any], phone: Optional[str], zip_code: Optional[str]) -> None:
        if phone:
            params["phone"] = phone
        if zip_code:
            params["address"] = {"postal_code": zip_code, "country": self.default_country}
