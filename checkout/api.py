"""
API Blueprint - checkout endpoints called by the payment page

- /create-customer: find-or-create the Stripe customer by email
- /verify-phone: identity risk score for a phone (+ name)
- /create-payment-intent: subscription intent for an existing or new customer
- /checkout: full flow, risk screen through payment intent
- /create-setup-intent, /start-trial: save a card, then start the trial
- /verify-identity: SMS code send/check
- /validate-email: Mailgun deliverability check
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from checkout import PROVIDERS_KEY
from checkout.customers import now_utc_iso
from checkout.email_check import check_email
from checkout.errors import CheckoutError, ServiceNotConfiguredError, ValidationError
from checkout.orchestrator import CheckoutService
from checkout.risk import normalize_phone
from checkout.sanitizer import sanitize_payload

api_bp = Blueprint('api', __name__)


# ============ Helper Functions ============

def providers():
    return current_app.extensions[PROVIDERS_KEY]


def checkout_service() -> CheckoutService:
    return CheckoutService(providers(), current_app.config)


def request_payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return sanitize_payload(data)


def cached(response, max_age: Optional[int]):
    if max_age:
        response.headers["Cache-Control"] = f"s-maxage={max_age}, stale-while-revalidate"
    return response


@api_bp.errorhandler(CheckoutError)
def handle_checkout_error(e: CheckoutError):
    if e.status_code >= 500:
        current_app.logger.error("%s %s failed: %s (%s)", request.method, request.path, e.public_message, e.detail)
    else:
        current_app.logger.info("%s %s rejected: %s", request.method, request.path, e.public_message)
    body = e.to_dict(include_detail=current_app.config["SHOW_ERROR_DETAILS"])
    return jsonify(body), e.status_code


@api_bp.errorhandler(Exception)
def handle_unexpected_error(e: Exception):
    if isinstance(e, HTTPException):
        return e
    current_app.logger.exception("%s %s crashed", request.method, request.path)
    body: Dict[str, Any] = {"success": False, "error": "An error occurred processing your request"}
    if current_app.config["SHOW_ERROR_DETAILS"]:
        body["details"] = f"{type(e).__name__}: {e}"
    return jsonify(body), 500


# ============ Customers ============

@api_bp.route("/create-customer", methods=["POST"])
def create_customer():
    data = request_payload()
    service = checkout_service()
    customer = service.customers.resolve(
        data.get("email"),
        data.get("name"),
        phone=data.get("phone"),
        zip_code=data.get("zipCode"),
        metadata=data.get("metadata"),
        affiliate_id=data.get("affiliateId"),
    )
    return jsonify({"customerId": customer.id, "email": customer.email}), 200


# ============ Risk ============

@api_bp.route("/verify-phone", methods=["POST"])
def verify_phone():
    data = request_payload()
    phone = data.get("phone")
    if not phone:
        raise ValidationError("Phone number is required")

    assessment = checkout_service().assess_phone(phone, data.get("firstName"), data.get("lastName"))
    current_app.logger.info(
        "Phone check %s: %s/%s via %s",
        assessment.phone_number, assessment.risk_tier.value,
        assessment.is_valid, assessment.validation_method.value,
    )
    return cached(jsonify(assessment.to_dict()), assessment.cache_max_age), 200


@api_bp.route("/verify-identity", methods=["POST"])
def verify_identity():
    data = request_payload()
    phone = data.get("phone")
    if not phone:
        raise ValidationError("Phone number is required")

    verify = providers().verify
    if not verify.configured:
        current_app.logger.warning("Twilio Verify credentials not configured")
        raise ServiceNotConfiguredError("Twilio service not configured")

    formatted = normalize_phone(phone)
    if formatted is None:
        raise ValidationError("Phone number too short")

    action = data.get("action")
    if action == "send":
        result = verify.send_code(formatted)
        return jsonify({
            "success": True,
            "message": "Verification code sent",
            "status": result.get("status"),
            "to": result.get("to"),
            "serviceSid": result.get("service_sid"),
            "sid": result.get("sid"),
        }), 200

    if action == "check":
        code = data.get("code")
        if not code:
            raise ValidationError("Verification code is required")
        result = verify.check_code(formatted, str(code))
        approved = result.get("status") == "approved"
        return jsonify({
            "success": True,
            "valid": approved,
            "status": result.get("status"),
            "message": "Identity verified successfully" if approved else "Invalid verification code",
        }), 200

    raise ValidationError('Invalid action. Use "send" or "check"')


@api_bp.route("/validate-email", methods=["POST"])
def validate_email():
    data = request_payload()
    email = data.get("email")
    if not email:
        raise ValidationError("Email is required")

    body, max_age = check_email(providers().email, email, current_app.config["LOOKUP_CACHE_SECONDS"])
    return cached(jsonify(body), max_age), 200


# ============ Payments ============

@api_bp.route("/create-payment-intent", methods=["POST"])
def create_payment_intent():
    data = request_payload()
    intent = checkout_service().create_subscription_intent(data)
    return jsonify(intent.to_dict()), 200


@api_bp.route("/checkout", methods=["POST"])
def checkout():
    data = request_payload()
    intent, assessment = checkout_service().checkout(data)
    body = intent.to_dict()
    if assessment is not None:
        body["risk"] = assessment.to_dict()
    return jsonify(body), 200


@api_bp.route("/create-setup-intent", methods=["POST"])
def create_setup_intent():
    data = request_payload()
    body = checkout_service().create_customer_setup_intent(data.get("customerId"), now_utc_iso())
    return jsonify(body), 200


@api_bp.route("/start-trial", methods=["POST"])
def start_trial():
    data = request_payload()
    return jsonify(checkout_service().start_trial(data)), 200


@api_bp.route("/health", methods=["GET"])
def health():
    return jsonify({
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": current_app.config["SERVICE_NAME"],
        "stripe_connected": bool(current_app.config["STRIPE_SECRET_KEY"]),
    }), 200
