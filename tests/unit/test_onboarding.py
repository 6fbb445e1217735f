from urllib.parse import urlsplit, parse_qs
import pytest
import stripe
from core.errors import ConfigurationError, OAuthExchangeError, RelayError, SecretAccessError
from core.onboarding import (
    OnboardingInitiator, OnboardingCallbackHandler, RedirectOutcome, append_query,
    MSG_CONNECTION_FAILED, MSG_MISSING_CODE, MSG_UNEXPECTED,
)
from core.state_codec import StateCodec
from core.stripe_service import LinkedAccount

FALLBACK_OK = "https://admin.example.com/dash?status=connected"
FALLBACK_FAIL = "https://admin.example.com/dash?status=failed"
SUCCESS = "https://app.example.com/stripe/ok?tab=payments"
FAILURE = "https://app.example.com/stripe/failed"

class FakePayments:
    def __init__(self, exchange_exc=None, retrieve_exc=None):
        self.exchange_exc = exchange_exc
        self.retrieve_exc = retrieve_exc
        self.exchanged = []
        self.retrieved = []

    def exchange_authorization_code(self, code):
        self.exchanged.append(code)
        if self.exchange_exc:
            raise self.exchange_exc
        return "acct_linked_1"

    def retrieve_account(self, account_id):
        self.retrieved.append(account_id)
        if self.retrieve_exc:
            raise self.retrieve_exc
        return LinkedAccount(account_id=account_id, charges_enabled=True, payouts_enabled=True,
                             business_name="Iron Gym", email="owner@gym.example")

class FakeRelay:
    def __init__(self, exc=None):
        self.exc = exc
        self.payloads = []

    def notify(self, payload):
        self.payloads.append(payload)
        if self.exc:
            raise self.exc
        return True

def query(url):
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}

@pytest.fixture()
def codec():
    return StateCodec(FALLBACK_OK, FALLBACK_FAIL)

def make_handler(codec, payments=None, relay=None):
    return OnboardingCallbackHandler(codec, payments or FakePayments(), relay or FakeRelay(),
                                     fallback_failure_url=FALLBACK_FAIL)

@pytest.mark.unit
def test_authorization_url_carries_encoded_state(codec):
    url = OnboardingInitiator(codec, "https://connect.stripe.com/oauth/authorize").build_authorization_url(
        "user_1", SUCCESS, FAILURE, "ca_123", "https://api.example.com/callback")
    assert url.startswith("https://connect.stripe.com/oauth/authorize?")
    params = query(url)
    assert params["response_type"] == "code"
    assert params["client_id"] == "ca_123"
    assert params["scope"] == "read_write"
    assert params["redirect_uri"] == "https://api.example.com/callback"
    decoded = codec.decode(params["state"])
    assert (decoded.identity, decoded.success_url, decoded.failure_url) == ("user_1", SUCCESS, FAILURE)

@pytest.mark.unit
@pytest.mark.parametrize("client_id,redirect_uri", [("", "https://cb"), ("ca_1", ""), (None, None)])
def test_authorization_url_requires_configuration(codec, client_id, redirect_uri):
    with pytest.raises(ConfigurationError):
        OnboardingInitiator(codec).build_authorization_url("user_1", SUCCESS, FAILURE, client_id, redirect_uri)

@pytest.mark.unit
def test_successful_callback_notifies_relay_and_redirects(codec):
    payments, relay = FakePayments(), FakeRelay()
    state = codec.encode("user_1", SUCCESS, FAILURE)
    outcome = make_handler(codec, payments, relay).handle(code="ac_1", state=state)
    assert outcome.succeeded
    assert outcome.destination == SUCCESS
    params = query(outcome.url)
    assert params == {"tab": "payments", "status": "connected", "stripeId": "acct_linked_1"}
    assert payments.retrieved == ["acct_linked_1"]
    assert relay.payloads == [{
        "adaloUserId": "user_1",
        "stripeUserId": "acct_linked_1",
        "chargesEnabled": True,
        "payoutsEnabled": True,
        "accountStatus": "active",
        "businessName": "Iron Gym",
        "businessAddress": "",
        "businessPhone": "",
        "businessWebsite": "",
        "businessDescription": "",
        "legalEntityType": "",
        "accountEmail": "owner@gym.example",
    }]

@pytest.mark.unit
def test_exchange_failure_redirects_once_without_further_calls(codec):
    payments, relay = FakePayments(exchange_exc=OAuthExchangeError("invalid_grant")), FakeRelay()
    outcome = make_handler(codec, payments, relay).handle(code="ac_bad", state=codec.encode("user_1", SUCCESS, FAILURE))
    assert isinstance(outcome, RedirectOutcome)
    assert not outcome.succeeded
    assert outcome.destination == FAILURE
    assert outcome.query_params == {"error": MSG_CONNECTION_FAILED}
    assert payments.retrieved == []
    assert relay.payloads == []

@pytest.mark.unit
def test_relay_failure_does_not_block_success(codec):
    relay = FakeRelay(exc=RelayError("Relay answered with HTTP 500", upstream_status=500))
    outcome = make_handler(codec, relay=relay).handle(code="ac_1", state=codec.encode("user_1", SUCCESS, FAILURE))
    assert outcome.succeeded
    assert query(outcome.url)["stripeId"] == "acct_linked_1"
    assert len(relay.payloads) == 1

@pytest.mark.unit
def test_account_retrieve_failure_redirects_to_failure(codec):
    payments = FakePayments(retrieve_exc=stripe.APIConnectionError("timeout"))
    relay = FakeRelay()
    outcome = make_handler(codec, payments, relay).handle(code="ac_1", state=codec.encode("user_1", SUCCESS, FAILURE))
    assert outcome.destination == FAILURE
    assert outcome.query_params["error"] == MSG_CONNECTION_FAILED
    assert relay.payloads == []

@pytest.mark.unit
def test_missing_code_uses_global_fallback(codec):
    payments = FakePayments()
    outcome = make_handler(codec, payments).handle(code=None, state=codec.encode("user_1", SUCCESS, FAILURE))
    assert outcome.destination == FALLBACK_FAIL
    assert outcome.query_params == {"error": MSG_MISSING_CODE}
    assert payments.exchanged == []

@pytest.mark.unit
def test_user_declined_on_stripe(codec):
    payments = FakePayments()
    outcome = make_handler(codec, payments).handle(
        state=codec.encode("user_1", SUCCESS, FAILURE), error="access_denied",
        error_description="The user denied your request")
    assert outcome.destination == FAILURE
    assert outcome.query_params == {"error": "The user denied your request"}
    assert payments.exchanged == []

@pytest.mark.unit
def test_unexpected_fault_still_redirects(codec):
    payments = FakePayments(exchange_exc=SecretAccessError("secret store down"))
    outcome = make_handler(codec, payments).handle(code="ac_1", state=codec.encode("user_1", SUCCESS, FAILURE))
    assert outcome.destination == FAILURE
    assert outcome.query_params == {"error": MSG_UNEXPECTED}

@pytest.mark.unit
def test_malformed_state_falls_back_but_completes(codec):
    relay = FakeRelay()
    outcome = make_handler(codec, relay=relay).handle(code="ac_1", state="%7Bbroken")
    assert outcome.succeeded
    assert outcome.destination == FALLBACK_OK
    assert relay.payloads[0]["adaloUserId"] == "UNKNOWN_USER_PARSE_ERROR"

@pytest.mark.unit
def test_append_query_replaces_existing_keys():
    url = append_query("https://a.example.com/p?status=failed&x=1#top", {"status": "connected"})
    assert url == "https://a.example.com/p?x=1&status=connected#top"

@pytest.mark.unit
def test_relay_payload_keys_identity_as_adalo_user_id(codec):
    relay = FakeRelay()
    make_handler(codec, relay=relay).handle(code="ac_1", state=codec.encode("user_9", SUCCESS, FAILURE))
    assert relay.payloads[0]["adaloUserId"] == "user_9"
    assert "userId" not in relay.payloads[0]
