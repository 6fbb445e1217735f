"""Encoding of the OAuth ``state`` parameter.

Stripe hands the ``state`` value back untouched on the callback, so it carries
who started the onboarding and where to send them afterwards. Two shapes are
in circulation: the current percent-encoded JSON object and the older bare
user id. Decoding never raises; anything unreadable lands on the configured
fallback destinations with a sentinel identity.
"""

import json
from dataclasses import dataclass
from urllib.parse import quote, unquote
import structlog
from core.config import Config

NO_STATE_IDENTITY = "UNKNOWN_USER_NO_STATE"
PARSE_ERROR_IDENTITY = "UNKNOWN_USER_PARSE_ERROR"

STRUCTURED = "structured"
LEGACY = "legacy"
FALLBACK = "fallback"

_IDENTITY_KEYS = ("identity", "userId", "adaloUserId")

@dataclass(frozen=True)
class DecodedState:
    identity: str
    success_url: str
    failure_url: str
    variant: str

class StateCodec:
    def __init__(self, fallback_success_url=None, fallback_failure_url=None):
        self.fallback_success_url = fallback_success_url or Config.FALLBACK_SUCCESS_URL
        self.fallback_failure_url = fallback_failure_url or Config.FALLBACK_FAILURE_URL

    def encode(self, identity, success_url, failure_url):
        payload = {"identity": identity, "successUrl": success_url, "failureUrl": failure_url}
        return quote(json.dumps(payload, separators=(",", ":")), safe="")

    def _fallback(self, identity):
        return DecodedState(identity, self.fallback_success_url, self.fallback_failure_url, FALLBACK)

    def decode(self, raw_state):
        logger = structlog.get_logger()
        if not raw_state or not str(raw_state).strip():
            logger.warning("oauth_state_missing")
            return self._fallback(NO_STATE_IDENTITY)
        text = unquote(str(raw_state)).strip()
        if not text.startswith(("{", "[")):
            # Bare user id from links generated before the JSON state existed.
            return DecodedState(text, self.fallback_success_url, self.fallback_failure_url, LEGACY)
        try:
            data = json.loads(text)
        except ValueError as e:
            logger.warning("oauth_state_unparseable", error=str(e))
            return self._fallback(PARSE_ERROR_IDENTITY)
        identity = None
        if isinstance(data, dict):
            identity = next(filter(None, (_identity_value(data.get(k)) for k in _IDENTITY_KEYS)), None)
        if not identity:
            logger.warning("oauth_state_without_identity")
            return self._fallback(PARSE_ERROR_IDENTITY)
        return DecodedState(
            identity=identity,
            success_url=_url_value(data.get("successUrl")) or self.fallback_success_url,
            failure_url=_url_value(data.get("failureUrl")) or self.fallback_failure_url,
            variant=STRUCTURED,
        )


def _identity_value(value):
    # Older links carried numeric user ids.
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return None


def _url_value(value):
    if isinstance(value, str) and value.strip():
        return value
    return None
