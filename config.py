"""
Checkout API Configuration
Supports AWS Parameter Store for production secrets
"""
import logging
import os

import boto3

logger = logging.getLogger(__name__)


def get_parameter(name: str, default: str = "") -> str:
    """Get parameter from AWS Parameter Store or environment"""
    # Environment variable takes precedence
    env_key = name.upper().replace("-", "_").replace("/", "_")
    if env_key in os.environ:
        return os.environ[env_key]

    if os.environ.get("USE_PARAMETER_STORE"):
        try:
            ssm = boto3.client("ssm", region_name=os.environ.get("AWS_REGION", "us-west-2"))
            path = os.environ.get("PARAMETER_STORE_PATH", "/checkout/prod/")
            response = ssm.get_parameter(Name=f"{path}{name}", WithDecryption=True)
            return response["Parameter"]["Value"]
        except Exception as e:
            logger.warning("Parameter Store lookup failed for %s: %s", name, e)

    return default


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else default


class Config:
    """Base configuration"""
    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Error bodies include exception detail outside production
    SHOW_ERROR_DETAILS = True

    # CORS (checkout page is served from another origin)
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Stripe
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")

    # Twilio
    TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN", "")
    TWILIO_VERIFY_SERVICE_SID = os.environ.get("TWILIO_VERIFY_SERVICE_SID", "")
    TWILIO_LOOKUP_URL = "https://lookups.twilio.com/v2/PhoneNumbers"
    TWILIO_VERIFY_URL = "https://verify.twilio.com/v2/Services"

    # Name/phone identity match (Lambda in front of Twilio Identity Match)
    IDENTITY_MATCH_URL = os.environ.get(
        "IDENTITY_MATCH_URL",
        "https://6md7xnb5zegjqwkos5lpihtkoy0xpnki.lambda-url.us-west-2.on.aws/",
    )

    # Mailgun
    MAILGUN_API_KEY = os.environ.get("MAILGUN_API_KEY", "")
    MAILGUN_BASE_URL = "https://api.mailgun.net/v4"

    # Seconds before an outbound call is abandoned
    OUTBOUND_TIMEOUT = _int_env("OUTBOUND_TIMEOUT", 10)

    # Successful lookups may be reused by the caller for this long
    LOOKUP_CACHE_SECONDS = 300

    # Billing rules
    PREAUTH_AMOUNT = _int_env("PREAUTH_AMOUNT", 14700)  # $147.00 in cents
    PREAUTH_CURRENCY = "usd"
    TRIAL_PERIOD_DAYS = 30
    DEFAULT_AFFILIATE_ID = "none"
    DEFAULT_COUNTRY = "US"

    PLANS = {
        "monthly": {
            "price_id": os.environ.get("STRIPE_MONTHLY_PRICE_ID", "price_1QPF6eBnnqL8bKFQGvC5BUlm"),
            "amount": 14700,
            "currency": "usd",
            "interval": "month",
            "has_trial": True,
        },
        "annual": {
            "price_id": os.environ.get("STRIPE_ANNUAL_PRICE_ID", "price_1QPF6eBnnqL8bKFQNV3JFSVh"),
            "amount": 147000,
            "currency": "usd",
            "interval": "year",
            "has_trial": False,
        },
    }

    # App Version
    APP_VERSION = os.environ.get("APP_VERSION", "2026.10")
    BUILD_TIME = os.environ.get("BUILD_TIME", "")
    GIT_COMMIT = os.environ.get("GIT_COMMIT", "")
    SERVICE_NAME = "Course Creator 360 Billing API"


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False
    SHOW_ERROR_DETAILS = False

    # Override with Parameter Store in production
    SECRET_KEY = get_parameter("secret-key", Config.SECRET_KEY)
    STRIPE_SECRET_KEY = get_parameter("stripe-secret-key", Config.STRIPE_SECRET_KEY)
    TWILIO_ACCOUNT_SID = get_parameter("twilio-account-sid", Config.TWILIO_ACCOUNT_SID)
    TWILIO_AUTH_TOKEN = get_parameter("twilio-auth-token", Config.TWILIO_AUTH_TOKEN)
    TWILIO_VERIFY_SERVICE_SID = get_parameter("twilio-verify-service-sid", Config.TWILIO_VERIFY_SERVICE_SID)
    MAILGUN_API_KEY = get_parameter("mailgun-api-key", Config.MAILGUN_API_KEY)


class TestingConfig(Config):
    """Testing configuration"""
    DEBUG = True
    TESTING = True
    STRIPE_SECRET_KEY = "sk_test_dummy"
    TWILIO_ACCOUNT_SID = ""
    TWILIO_AUTH_TOKEN = ""
    MAILGUN_API_KEY = ""


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}

