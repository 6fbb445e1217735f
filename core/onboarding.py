from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl
import stripe
import structlog
from core.config import Config
from core.errors import ConfigurationError, OAuthExchangeError, RelayError

MSG_MISSING_CODE = "Missing authorization code."
MSG_CONNECTION_FAILED = "Stripe connection failed."
MSG_UNEXPECTED = "An unexpected error occurred."

def append_query(url, params):
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    keys = set(params)
    query = [(k, v) for k, v in query if k not in keys] + list(params.items())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))

@dataclass
class RedirectOutcome:
    destination: str
    query_params: Dict[str, str] = field(default_factory=dict)
    succeeded: bool = False

    @property
    def url(self):
        return append_query(self.destination, self.query_params)

class OnboardingInitiator:
    def __init__(self, codec, authorize_url=None):
        self.codec = codec
        self.authorize_url = authorize_url or Config.STRIPE_AUTHORIZE_URL

    def build_authorization_url(self, identity, success_url, failure_url, client_id, redirect_uri):
        if not client_id or not redirect_uri:
            raise ConfigurationError("Missing Stripe client id or redirect URI")
        params = {
            "response_type": "code",
            "client_id": client_id,
            "scope": "read_write",
            "redirect_uri": redirect_uri,
            "state": self.codec.encode(identity, success_url, failure_url),
        }
        return f"{self.authorize_url}?{urlencode(params)}"

def relay_payload(identity, account):
    return {
        "adaloUserId": identity,
        "stripeUserId": account.account_id,
        "chargesEnabled": account.charges_enabled,
        "payoutsEnabled": account.payouts_enabled,
        "accountStatus": "active",
        "businessName": account.business_name,
        "businessAddress": account.business_address,
        "businessPhone": account.business_phone,
        "businessWebsite": account.business_website,
        "businessDescription": account.business_description,
        "legalEntityType": account.legal_entity_type,
        "accountEmail": account.email,
    }

class OnboardingCallbackHandler:
    """Finishes a Connect onboarding after Stripe redirects the user back.

    ``handle`` always returns a RedirectOutcome, whatever goes wrong, because
    the caller is a browser in the middle of a navigation.
    """

    def __init__(self, codec, payments, relay, fallback_failure_url=None):
        self.codec = codec
        self.payments = payments
        self.relay = relay
        self.fallback_failure_url = fallback_failure_url or Config.FALLBACK_FAILURE_URL

    def handle(self, code=None, state=None, error=None, error_description=None):
        logger = structlog.get_logger()
        failure_url = self.fallback_failure_url
        try:
            if error:
                decoded = self.codec.decode(state)
                logger.warning("oauth_denied", identity=decoded.identity, error=error)
                return RedirectOutcome(decoded.failure_url, {"error": error_description or error})
            if not code:
                logger.error("oauth_callback_missing_code")
                return RedirectOutcome(failure_url, {"error": MSG_MISSING_CODE})
            decoded = self.codec.decode(state)
            failure_url = decoded.failure_url
            try:
                account_id = self.payments.exchange_authorization_code(code)
            except OAuthExchangeError as e:
                logger.error("oauth_exchange_failed", identity=decoded.identity, error=str(e))
                return RedirectOutcome(failure_url, {"error": MSG_CONNECTION_FAILED})
            try:
                account = self.payments.retrieve_account(account_id)
            except stripe.StripeError as e:
                logger.error("stripe_account_retrieve_failed", identity=decoded.identity, account_id=account_id,
                             error=str(e))
                return RedirectOutcome(failure_url, {"error": MSG_CONNECTION_FAILED})
            logger.info("stripe_account_connected", identity=decoded.identity, account_id=account.account_id,
                        state_variant=decoded.variant)
            try:
                self.relay.notify(relay_payload(decoded.identity, account))
            except RelayError as e:
                logger.error("relay_notify_failed", identity=decoded.identity, account_id=account.account_id,
                             error=str(e), upstream_status=e.upstream_status)
            return RedirectOutcome(
                decoded.success_url,
                {"status": "connected", "stripeId": account.account_id},
                succeeded=True,
            )
        except Exception as e:
            logger.error("oauth_callback_failed", error=str(e))
            return RedirectOutcome(failure_url, {"error": MSG_UNEXPECTED})
