"""
Checkout API Application Factory
"""
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify
from flask_cors import CORS

from config import config

# Key under app.extensions holding the Providers bundle
PROVIDERS_KEY = "checkout_providers"


def create_app(config_name='default', providers=None):
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    CORS(
        app,
        resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
        supports_credentials=True,
    )

    # Provider clients are injected so tests (and other deployments) can swap them
    if providers is None:
        from checkout.services import build_providers
        providers = build_providers(app.config)
    app.extensions[PROVIDERS_KEY] = providers

    from checkout.api import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"success": False, "error": "Method not allowed"}), 405

    # Health check endpoint
    @app.route('/healthz')
    def healthz():
        """Health check for load balancers and monitoring"""
        return jsonify({
            "status": "ok",
            "version": app.config["APP_VERSION"],
            "stripe_configured": bool(app.config["STRIPE_SECRET_KEY"]),
            "timestamp": datetime.now(timezone.utc).isoformat()
        })

    # Version endpoint
    @app.route('/version')
    def version():
        """Version and build info"""
        return jsonify({
            "version": app.config["APP_VERSION"],
            "build_time": app.config["BUILD_TIME"],
            "git_commit": app.config["GIT_COMMIT"],
            "features": {
                "identity_match": bool(app.config["IDENTITY_MATCH_URL"]),
                "phone_lookup": bool(app.config["TWILIO_ACCOUNT_SID"] and app.config["TWILIO_AUTH_TOKEN"]),
                "sms_verification": bool(app.config["TWILIO_VERIFY_SERVICE_SID"]),
                "email_validation": bool(app.config["MAILGUN_API_KEY"]),
            }
        })

    app.logger.info("Checkout API started (%s)", config_name)
    return app
