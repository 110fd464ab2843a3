"""
Test Configuration and Fixtures
"""
import itertools

import pytest

from checkout import create_app
from checkout.errors import ProviderError, UpstreamUnavailable
from checkout.models import CustomerRecord, IdentityMatchResult
from checkout.services import Providers


class FakeBilling:
    """In-memory stand-in for StripeBillingClient."""

    configured = True

    def __init__(self):
        self._ids = itertools.count(1)
        self.customers = {}
        self.subscriptions = []
        self.payment_methods = {}
        self.payment_intents = []
        self.setup_intents = []
        self.created_subscriptions = []
        self.calls = []
        self.fail_with = None

    def _next(self, prefix):
        return f"{prefix}_{next(self._ids)}"

    def _check_failure(self):
        if self.fail_with is not None:
            raise self.fail_with

    def add_customer(self, email, name="Existing Person", metadata=None):
        record = CustomerRecord(id=self._next("cus"), email=email, name=name, metadata=dict(metadata or {}))
        self.customers[record.id] = record
        return record

    def add_subscription(self, customer_id, status):
        sub = {"id": self._next("sub"), "customer": customer_id, "status": status}
        self.subscriptions.append(sub)
        return sub

    def find_customer_by_email(self, email):
        self.calls.append(("find_customer_by_email", email))
        self._check_failure()
        for record in self.customers.values():
            if record.email == email:
                return record
        return None

    def create_customer(self, params):
        self.calls.append(("create_customer", params))
        self._check_failure()
        address = params.get("address") or {}
        record = CustomerRecord(
            id=self._next("cus"),
            email=params.get("email"),
            name=params.get("name"),
            phone=params.get("phone"),
            postal_code=address.get("postal_code"),
            metadata=dict(params.get("metadata") or {}),
        )
        self.customers[record.id] = record
        return record

    def update_customer(self, customer_id, params):
        self.calls.append(("update_customer", customer_id, params))
        self._check_failure()
        record = self.customers[customer_id]
        if "name" in params:
            record.name = params["name"]
        if "phone" in params:
            record.phone = params["phone"]
        if "metadata" in params:
            record.metadata = dict(params["metadata"])
        if "address" in params:
            record.postal_code = params["address"]["postal_code"]
        return record

    def list_subscriptions(self, customer_id, status, limit=1):
        self.calls.append(("list_subscriptions", customer_id, status))
        matches = [s for s in self.subscriptions if s["customer"] == customer_id and s["status"] == status]
        return matches[:limit]

    def create_subscription(self, params):
        self.calls.append(("create_subscription", params))
        sub = {
            "id": self._next("sub"),
            "status": "trialing",
            "trial_end": 1767225600,
            "items": {"data": [{"price": {"unit_amount": 14700, "currency": "usd"}}]},
            "params": params,
        }
        self.created_subscriptions.append(sub)
        return sub

    def create_setup_intent(self, params):
        self.calls.append(("create_setup_intent", params))
        self._check_failure()
        intent_id = self._next("seti")
        intent = {"id": intent_id, "client_secret": f"{intent_id}_secret", "params": params}
        self.setup_intents.append(intent)
        return intent

    def create_payment_intent(self, params):
        self.calls.append(("create_payment_intent", params))
        self._check_failure()
        intent_id = self._next("pi")
        intent = {"id": intent_id, "client_secret": f"{intent_id}_secret", "params": params}
        self.payment_intents.append(intent)
        return intent

    def retrieve_payment_method(self, payment_method_id):
        self.calls.append(("retrieve_payment_method", payment_method_id))
        if payment_method_id not in self.payment_methods:
            raise ProviderError("No such payment method", client_error=True)
        return self.payment_methods[payment_method_id]


class FakeIdentity:
    configured = True

    def __init__(self, score=None, error=None):
        self.score = score
        self.error = error
        self.calls = []

    def match_identity(self, phone, first_name, last_name):
        self.calls.append((phone, first_name, last_name))
        if self.error is not None:
            raise self.error
        if self.score is None:
            raise UpstreamUnavailable("no identity data")
        return IdentityMatchResult(first_name_match="no_match", last_name_match="no_match", summary_score=self.score)


class FakeLookup:
    def __init__(self, data=None, error=None, configured=False):
        self.data = data
        self.error = error
        self.configured = configured
        self.calls = []

    def lookup_phone(self, phone):
        self.calls.append(phone)
        if self.error is not None:
            raise self.error
        return self.data


class FakeVerify:
    def __init__(self, configured=True, approved_code="123456"):
        self.configured = configured
        self.approved_code = approved_code
        self.sent = []
        self.checked = []

    def send_code(self, phone, channel="sms"):
        self.sent.append(phone)
        return {"status": "pending", "to": phone, "service_sid": "VA123", "sid": "VE123"}

    def check_code(self, phone, code):
        self.checked.append((phone, code))
        return {"status": "approved" if code == self.approved_code else "pending"}

    def is_approved(self, phone, code):
        if not code or not self.configured:
            return False
        return self.check_code(phone, code)["status"] == "approved"


class FakeEmail:
    def __init__(self, data=None, error=None, configured=False):
        self.data = data
        self.error = error
        self.configured = configured

    def validate(self, email):
        if self.error is not None:
            raise self.error
        return self.data


@pytest.fixture
def billing():
    return FakeBilling()


@pytest.fixture
def providers(billing):
    return Providers(
        billing=billing,
        identity=FakeIdentity(),
        lookup=FakeLookup(),
        verify=FakeVerify(),
        email=FakeEmail(),
    )


@pytest.fixture
def app(providers):
    """Create application for testing"""
    app = create_app('testing', providers=providers)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Create test client"""
    return app.test_client()
