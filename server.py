#! /usr/bin/env python3

import time
from functools import wraps
from flask import Flask, jsonify, request, g
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
import stripe
import structlog
from core.config import Config
from core.logging import configure_logging, bind_request_context
from core.rate_limit import init_limiter
from core.auth import auth_required
from core.config_audit import audit_config
from core.errors import ServiceError
from core.http import ok, error, redirect_to
from core.schemas import parse_and_validate, OnboardingStartSchema, OAuthCallbackSchema, ReportRequestSchema
from core.db import init_db, AuthorizationStore
from core.secret_cache import SecretCache
from core.stripe_service import PaymentsClient
from core.state_codec import StateCodec
from core.onboarding import OnboardingInitiator, OnboardingCallbackHandler
from services.relay import RelayNotifier
from services.reports import ReportAggregator

app = Flask(__name__)
CORS(app, resources={
    r"/api/v1/stripe/onboarding": {
        "origins": Config.ONBOARDING_ALLOWED_ORIGINS,
        "methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": ["Content-Type"],
    },
    r"/api/v1/stripe/oauth/*": {
        "origins": "*",
        "methods": ["GET", "OPTIONS"],
        "allow_headers": ["Content-Type"],
    },
    r"/api/v1/stripe/reports": {
        "origins": Config.REPORTS_ALLOWED_ORIGINS,
        "methods": ["POST", "OPTIONS"],
        "allow_headers": ["Content-Type", "Authorization"],
        "max_age": 3600,
    },
})
configure_logging()
bind_request_context(app)
limiter = init_limiter(app)
init_db()
app.start_time = time.time()

secret_cache = SecretCache()
payments = PaymentsClient(secret_cache)
state_codec = StateCodec()
initiator = OnboardingInitiator(state_codec)
relay = RelayNotifier()
callback_handler = OnboardingCallbackHandler(state_codec, payments, relay)
authorizations = AuthorizationStore()
report_aggregator = ReportAggregator(payments, authorizations)

@app.before_request
def _log_incoming():
    if request.method == "OPTIONS":
        return
    structlog.get_logger().info("incoming_request", remote_addr=request.remote_addr)

@app.errorhandler(ServiceError)
def _service_error(e):
    logger = structlog.get_logger()
    if e.status_code >= 500:
        logger.error("request_failed", error_code=e.code, error=e.message)
    else:
        logger.info("request_rejected", error_code=e.code, error=e.message)
    return jsonify(e.to_dict()), e.status_code

@app.errorhandler(Exception)
def _unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    structlog.get_logger().exception("unhandled_error")
    return error('internal_error', 500, 'An unexpected error occurred.')

def local_only(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        ip = request.remote_addr or ''
        if ip not in ('127.0.0.1', '::1'):
            return jsonify({'error': 'forbidden'}), 403
        return fn(*args, **kwargs)
    return wrapper

# Helper method to parse request body (JSON, form data or query string)
def parse_request_body():
    data = {}

    json_data = request.get_json(silent=True)
    if json_data and isinstance(json_data, dict):
        data.update(json_data)

    if request.form:
        data.update(request.form.to_dict())

    if request.args:
        data.update(request.args.to_dict())

    return data

@app.route('/api/v1/stripe/onboarding', methods=['GET', 'POST'])
@limiter.limit(Config.RATE_LIMIT_ONBOARDING)
def stripe_connect_onboarding():
    payload = parse_and_validate(OnboardingStartSchema, parse_request_body())
    onboarding_url = initiator.build_authorization_url(
        payload.userId,
        payload.successUrl or Config.FALLBACK_SUCCESS_URL,
        payload.failureUrl or Config.FALLBACK_FAILURE_URL,
        Config.STRIPE_CLIENT_ID,
        Config.STRIPE_REDIRECT_URI,
    )
    structlog.get_logger().info("onboarding_url_built", identity=payload.userId)
    return ok({'onboardingUrl': onboarding_url})

@app.route('/api/v1/stripe/oauth/callback', methods=['GET'])
@limiter.limit(Config.RATE_LIMIT_ONBOARDING)
def stripe_oauth_callback():
    params = OAuthCallbackSchema(**request.args.to_dict())
    outcome = callback_handler.handle(
        code=params.code,
        state=params.state,
        error=params.error,
        error_description=params.error_description,
    )
    return redirect_to(outcome)

@app.route('/api/v1/stripe/reports', methods=['POST'])
@auth_required
@limiter.limit(Config.RATE_LIMIT_REPORTS)
def stripe_reports():
    payload = parse_and_validate(ReportRequestSchema, parse_request_body())
    try:
        report = report_aggregator.generate(g.identity, payload.stripeAccountId)
    except stripe.InvalidRequestError as e:
        structlog.get_logger().warning("report_stripe_rejected", account_id=payload.stripeAccountId, error=str(e))
        return error('stripe_invalid_request', 400, e.user_message or 'Stripe rejected the request.')
    except stripe.StripeError as e:
        structlog.get_logger().error("report_stripe_failed", account_id=payload.stripeAccountId, error=str(e))
        return error('stripe_unavailable', 502, 'Failed to fetch Stripe reports.')
    return ok(report)

@app.route('/internal/secret-check', methods=['GET'])
@local_only
def secret_check():
    try:
        prefix = secret_cache.prefix()
    except ServiceError as e:
        return error(e.code, 500, e.message)
    return ok({'status': 'ok', 'keyPrefix': prefix})

@app.route('/config/audit', methods=['GET'])
@local_only
def config_audit_json():
    return jsonify(audit_config())

@app.route('/health', methods=['GET'])
@limiter.exempt
def health():
    return jsonify({'status': 'online', 'version': Config.API_VERSION})

@app.route('/status', methods=['GET'])
@limiter.exempt
def status():
    uptime = int(time.time() - app.start_time)
    return jsonify({
        'status': 'online',
        'version': Config.API_VERSION,
        'domain': Config.DOMAIN,
        'uptime_seconds': uptime,
        'secret_loaded': secret_cache.is_loaded(),
        'rate_limits': {
            'default': Config.RATE_LIMIT_DEFAULT,
            'onboarding': Config.RATE_LIMIT_ONBOARDING,
            'reports': Config.RATE_LIMIT_REPORTS,
        }
    })

if __name__ == '__main__':
    app.run(port=8080, host="::1", debug=False)
