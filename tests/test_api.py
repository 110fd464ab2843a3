"""
API Endpoint Tests
"""
import json

import pytest

from checkout import create_app
from checkout.errors import ProviderError, UpstreamUnavailable
from conftest import FakeEmail, FakeIdentity, FakeLookup


def post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type='application/json')


class TestHealthEndpoints:
    """Test health check endpoints"""

    def test_healthz(self, client):
        """Health check should return ok"""
        response = client.get('/healthz')
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data['status'] == 'ok'
        assert 'version' in data
        assert 'timestamp' in data

    def test_version(self, client):
        """Version endpoint should return build info"""
        response = client.get('/version')
        assert response.status_code == 200

        data = json.loads(response.data)
        assert 'version' in data
        assert 'features' in data

    def test_api_health(self, client):
        response = client.get('/api/health')
        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['stripe_connected'] is True

    def test_wrong_method(self, client):
        response = client.get('/api/create-customer')
        assert response.status_code == 405
        assert json.loads(response.data)['error'] == 'Method not allowed'

    def test_cors_headers(self, client):
        response = client.options('/api/create-customer', headers={
            'Origin': 'https://checkout.example.com',
            'Access-Control-Request-Method': 'POST',
        })
        assert response.headers.get('Access-Control-Allow-Origin')


class TestCreateCustomer:
    """Customer upsert endpoint"""

    def test_creates_customer(self, client, billing):
        response = post(client, '/api/create-customer', {
            'email': ' New@X.com ', 'name': 'a b', 'zipCode': '84101',
        })
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data['email'] == 'new@x.com'
        customer = billing.customers[data['customerId']]
        assert customer.name == 'A B'
        assert customer.metadata['affiliateId'] == 'none'

    def test_accented_name_kept(self, client, billing):
        response = post(client, '/api/create-customer', {'email': 'jose@x.com', 'name': 'José Núñez'})
        assert response.status_code == 200

        params = [c[1] for c in billing.calls if c[0] == 'create_customer'][0]
        assert params['name'] == 'José Núñez'

    def test_missing_fields(self, client, billing):
        response = post(client, '/api/create-customer', {'email': 'new@x.com'})
        assert response.status_code == 400
        assert json.loads(response.data)['success'] is False
        assert billing.calls == []

    def test_provider_validation_passed_through(self, client, billing):
        billing.fail_with = ProviderError("Invalid email address: nope@", client_error=True,
                                          provider_type="StripeInvalidRequestError")
        response = post(client, '/api/create-customer', {'email': 'nope@x.com', 'name': 'A B'})

        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['error'] == 'Invalid email address: nope@'
        assert data['type'] == 'StripeInvalidRequestError'

    def test_processing_error_is_server_error(self, client, billing):
        billing.fail_with = ProviderError("An error occurred processing your request", detail="api down")
        response = post(client, '/api/create-customer', {'email': 'a@x.com', 'name': 'A B'})

        assert response.status_code == 500
        assert json.loads(response.data)['details'] == 'api down'

    def test_production_hides_details(self, providers, billing):
        app = create_app('testing', providers=providers)
        app.config['SHOW_ERROR_DETAILS'] = False
        billing.fail_with = ProviderError("An error occurred processing your request", detail="sk_live leak")

        response = post(app.test_client(), '/api/create-customer', {'email': 'a@x.com', 'name': 'A B'})
        data = json.loads(response.data)
        assert response.status_code == 500
        assert 'details' not in data
        assert 'sk_live' not in response.get_data(as_text=True)

    def test_non_object_body(self, client):
        response = post(client, '/api/create-customer', ['a@x.com'])
        assert response.status_code == 400


class TestVerifyPhone:
    """Phone risk endpoint"""

    def test_requires_phone(self, client):
        response = post(client, '/api/verify-phone', {})
        assert response.status_code == 400

    def test_short_phone(self, client):
        response = post(client, '/api/verify-phone', {'phone': '555-1234'})
        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['isValid'] is False
        assert data['risk'] == 'high'
        assert data['validationMethod'] == 'basic'

    def test_identity_mismatch(self, client, providers):
        providers.identity = FakeIdentity(score=0)
        response = post(client, '/api/verify-phone', {
            'phone': '8016237654', 'firstName': 'Colby', 'lastName': 'Smith',
        })
        data = json.loads(response.data)
        assert data['isValid'] is False
        assert data['risk'] == 'high'
        assert data['requiresVerification'] is True
        assert data['validationMethod'] == 'twilio_identity_match_lambda'
        assert data['identityMatch']['summary_score'] == 0
        assert 'Cache-Control' not in response.headers

    def test_lookup_result_is_cacheable(self, client, providers):
        providers.lookup = FakeLookup(data={'valid': True, 'phone_number': '+18016237654'}, configured=True)
        response = post(client, '/api/verify-phone', {'phone': '8016237654'})

        assert json.loads(response.data)['validationMethod'] == 'twilio_lookup_api'
        assert response.headers['Cache-Control'] == 's-maxage=300, stale-while-revalidate'

    def test_malformed_lookup_falls_back(self, client, providers):
        providers.lookup = FakeLookup(data=None, configured=True)
        response = post(client, '/api/verify-phone', {'phone': '8016237654'})
        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['validationMethod'] == 'basic_fallback'
        assert data['risk'] == 'unknown'

    def test_numeric_phone(self, client):
        response = post(client, '/api/verify-phone', {'phone': 8016237654})
        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['phoneNumber'] == '+18016237654'

    def test_fallback_is_not_cached(self, client):
        response = post(client, '/api/verify-phone', {'phone': '8016237654'})
        data = json.loads(response.data)
        assert data['validationMethod'] == 'basic_fallback'
        assert data['risk'] == 'unknown'
        assert 'Cache-Control' not in response.headers


class TestVerifyIdentity:
    """SMS code send and check"""

    def test_send(self, client, providers):
        response = post(client, '/api/verify-identity', {'phone': '8016237654', 'action': 'send'})
        assert response.status_code == 200
        assert providers.verify.sent == ['+18016237654']
        assert json.loads(response.data)['status'] == 'pending'

    def test_check(self, client):
        response = post(client, '/api/verify-identity', {
            'phone': '8016237654', 'action': 'check', 'code': '123456',
        })
        data = json.loads(response.data)
        assert data['valid'] is True
        assert data['message'] == 'Identity verified successfully'

    def test_wrong_code(self, client):
        response = post(client, '/api/verify-identity', {
            'phone': '8016237654', 'action': 'check', 'code': '000000',
        })
        assert json.loads(response.data)['valid'] is False

    @pytest.mark.parametrize("body", [
        {'action': 'send'},
        {'phone': '8016237654', 'action': 'call'},
        {'phone': '8016237654', 'action': 'check'},
    ])
    def test_bad_requests(self, client, body):
        assert post(client, '/api/verify-identity', body).status_code == 400

    def test_not_configured(self, client, providers):
        providers.verify.configured = False
        response = post(client, '/api/verify-identity', {'phone': '8016237654', 'action': 'send'})
        assert response.status_code == 503


class TestValidateEmail:
    """Email deliverability endpoint"""

    def test_requires_email(self, client):
        assert post(client, '/api/validate-email', {}).status_code == 400

    def test_basic_fallback(self, client):
        response = post(client, '/api/validate-email', {'email': 'a@x.com'})
        data = json.loads(response.data)
        assert data['isValid'] is True
        assert data['validationMethod'] == 'basic_fallback'
        assert 'Cache-Control' not in response.headers

    def test_mailgun_result(self, client, providers):
        providers.email = FakeEmail(data={
            'result': 'undeliverable', 'risk': 'high', 'is_disposable_address': True,
            'did_you_mean': 'a@gmail.com',
        }, configured=True)
        response = post(client, '/api/validate-email', {'email': 'a@gmial.com'})
        data = json.loads(response.data)
        assert data['isValid'] is False
        assert data['isDisposable'] is True
        assert data['didYouMean'] == 'a@gmail.com'
        assert data['validationMethod'] == 'mailgun_api'
        assert 'Cache-Control' in response.headers

    def test_mailgun_outage(self, client, providers):
        providers.email = FakeEmail(error=UpstreamUnavailable("Mailgun API returned 500"), configured=True)
        response = post(client, '/api/validate-email', {'email': 'a@x.com'})
        data = json.loads(response.data)
        assert data['risk'] == 'unknown'
        assert data['apiError'] == 'Mailgun API returned 500'


class TestCreatePaymentIntent:
    """Subscription intent endpoint"""

    def test_existing_customer_id(self, client, billing):
        customer = billing.add_customer('a@x.com')
        response = post(client, '/api/create-payment-intent', {
            'amount': 147000, 'currency': 'usd', 'subscription_type': 'annual',
            'price_id': 'price_a', 'customer_id': customer.id,
        })
        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['customer_id'] == customer.id
        assert billing.payment_intents[0]['params']['capture_method'] == 'automatic'

    def test_active_subscription_conflict(self, client, billing):
        customer = billing.add_customer('a@x.com')
        sub = billing.add_subscription(customer.id, 'active')

        response = post(client, '/api/create-payment-intent', {
            'amount': 14700, 'currency': 'usd', 'subscription_type': 'monthly',
            'price_id': 'price_m', 'customer_id': customer.id,
        })
        data = json.loads(response.data)
        assert response.status_code == 409
        assert data['existingSubscriptionId'] == sub['id']
        assert billing.payment_intents == []
        assert billing.setup_intents == []

    def test_resolves_customer_by_email(self, client, billing):
        existing = billing.add_customer('a@x.com')
        pending = billing.add_subscription(existing.id, 'incomplete')

        response = post(client, '/api/create-payment-intent', {
            'amount': 14700, 'currency': 'usd', 'subscription_type': 'monthly',
            'price_id': 'price_m', 'email': 'a@x.com', 'name': 'A B',
        })
        data = json.loads(response.data)
        assert response.status_code == 409
        assert data['pendingSubscriptionId'] == pending['id']

    def test_new_customer_still_checked(self, client, billing):
        response = post(client, '/api/create-payment-intent', {
            'amount': 14700, 'currency': 'usd', 'subscription_type': 'monthly',
            'price_id': 'price_m', 'email': 'new@x.com', 'name': 'A B',
        })
        assert response.status_code == 200
        listed = [c for c in billing.calls if c[0] == 'list_subscriptions']
        assert [c[2] for c in listed] == ['active', 'incomplete']

    def test_missing_amount(self, client, billing):
        response = post(client, '/api/create-payment-intent', {
            'subscription_type': 'annual', 'customer_id': 'cus_1',
        })
        assert response.status_code == 400
        assert billing.calls == []

    def test_annual_without_currency_makes_no_calls(self, client, billing):
        response = post(client, '/api/create-payment-intent', {
            'amount': 147000, 'subscription_type': 'annual', 'price_id': 'price_a',
            'email': 'new@x.com', 'name': 'A B',
        })
        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'currency is required'
        assert billing.calls == []
        assert billing.customers == {}


class TestCheckout:
    """Full checkout flow"""

    def test_new_monthly_trial(self, client, billing):
        """new@x.com, monthly trial -> new customer and a 147.00 pre-auth"""
        response = post(client, '/api/checkout', {
            'email': 'new@x.com', 'name': 'A B', 'subscription_type': 'monthly',
        })
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data['is_preauth'] is True
        assert data['preauth_amount'] == 14700
        assert data['customer_id'] in billing.customers
        assert 'risk' not in data

        params = billing.payment_intents[0]['params']
        assert params['capture_method'] == 'manual'
        assert params['amount'] == 14700
        customer = billing.customers[data['customer_id']]
        assert customer.metadata['affiliateId'] == 'none'
        assert customer.metadata['subscription_type'] == 'monthly'

    def test_annual_defaults_from_catalog(self, client, billing, app):
        response = post(client, '/api/checkout', {
            'email': 'new@x.com', 'name': 'A B', 'subscription_type': 'annual', 'affiliateId': 'aff42',
        })
        assert response.status_code == 200
        params = billing.payment_intents[0]['params']
        assert params['amount'] == 147000
        assert params['capture_method'] == 'automatic'
        assert params['metadata']['price_id'] == app.config['PLANS']['annual']['price_id']

    def test_zero_amount_trial(self, client, billing):
        response = post(client, '/api/checkout', {
            'email': 'new@x.com', 'name': 'A B', 'subscription_type': 'monthly', 'amount': 0,
        })
        data = json.loads(response.data)
        assert data['is_setup_intent'] is True
        assert billing.payment_intents == []

    def test_identity_mismatch_blocks(self, client, billing, providers):
        providers.identity = FakeIdentity(score=0)
        response = post(client, '/api/checkout', {
            'email': 'new@x.com', 'name': 'Colby Smith', 'phone': '8016237654',
            'subscription_type': 'monthly',
        })
        data = json.loads(response.data)
        assert response.status_code == 403
        assert data['requiresVerification'] is True
        assert data['assessment']['risk'] == 'high'
        assert billing.calls == []

    def test_verified_code_unblocks(self, client, billing, providers):
        providers.identity = FakeIdentity(score=0)
        response = post(client, '/api/checkout', {
            'email': 'new@x.com', 'name': 'Colby Smith', 'phone': '8016237654',
            'subscription_type': 'monthly', 'verification_code': '123456',
        })
        assert response.status_code == 200
        assert providers.verify.checked == [('+18016237654', '123456')]
        assert len(billing.payment_intents) == 1

    def test_identity_outage_fails_open(self, client, billing, providers):
        providers.identity = FakeIdentity(error=UpstreamUnavailable("connection refused"))
        response = post(client, '/api/checkout', {
            'email': 'new@x.com', 'name': 'Colby Smith', 'phone': '8016237654',
            'subscription_type': 'monthly',
        })
        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['risk']['risk'] == 'unknown'
        customer = billing.customers[data['customer_id']]
        assert customer.phone == '+18016237654'

    def test_bad_metadata_rejected_before_screening(self, client, billing, providers):
        providers.identity = FakeIdentity(score=90)
        response = post(client, '/api/checkout', {
            'email': 'new@x.com', 'name': 'Colby Smith', 'phone': '8016237654',
            'subscription_type': 'monthly', 'metadata': ['source'],
        })
        assert response.status_code == 400
        assert providers.identity.calls == []
        assert billing.calls == []

    def test_short_phone_rejected(self, client, billing):
        response = post(client, '/api/checkout', {
            'email': 'new@x.com', 'name': 'A B', 'phone': '12345', 'subscription_type': 'monthly',
        })
        assert response.status_code == 400
        assert billing.calls == []

    def test_existing_active_subscription(self, client, billing):
        customer = billing.add_customer('old@x.com')
        billing.add_subscription(customer.id, 'active')

        response = post(client, '/api/checkout', {
            'email': 'old@x.com', 'name': 'A B', 'subscription_type': 'annual',
        })
        assert response.status_code == 409
        assert billing.payment_intents == []


class TestTrialEndpoints:
    """Setup intent and trial start endpoints"""

    def test_setup_intent(self, client, billing):
        response = post(client, '/api/create-setup-intent', {'customerId': 'cus_1'})
        data = json.loads(response.data)
        assert data['clientSecret'] == billing.setup_intents[0]['client_secret']
        params = billing.setup_intents[0]['params']
        assert params['usage'] == 'off_session'
        assert params['metadata']['type'] == 'trial_signup'

    def test_setup_intent_requires_customer(self, client):
        assert post(client, '/api/create-setup-intent', {}).status_code == 400

    def test_start_trial(self, client, billing):
        customer = billing.add_customer('a@x.com')
        billing.payment_methods['pm_1'] = {'id': 'pm_1', 'customer': customer.id}

        response = post(client, '/api/start-trial', {
            'customerId': customer.id, 'paymentMethodId': 'pm_1', 'priceId': 'price_m',
        })
        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['subscriptionId'] == billing.created_subscriptions[0]['id']

    def test_start_trial_missing_price(self, client):
        response = post(client, '/api/start-trial', {'customerId': 'cus_1', 'paymentMethodId': 'pm_1'})
        assert response.status_code == 400
