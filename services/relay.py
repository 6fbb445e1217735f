import requests
import structlog
from core.config import Config
from core.errors import RelayError

class RelayNotifier:
    """Posts onboarding results to the automation relay (a catch-hook URL).

    One attempt per call; the relay reconciles on its side, so nothing here
    retries.
    """

    def __init__(self, webhook_url=None, timeout=None):
        self.webhook_url = Config.RELAY_WEBHOOK_URL if webhook_url is None else webhook_url
        self.timeout = timeout or Config.RELAY_TIMEOUT_SECONDS

    def notify(self, payload):
        logger = structlog.get_logger()
        if not self.webhook_url:
            logger.warning("relay_not_configured", account_id=payload.get("stripeUserId"))
            return False
        try:
            r = requests.post(self.webhook_url, json=payload, headers={"Content-Type": "application/json"},
                              timeout=self.timeout)
        except requests.RequestException as e:
            raise RelayError(f"Relay request failed: {e}") from e
        status = getattr(r, "status_code", 0)
        logger.info("relay_response", account_id=payload.get("stripeUserId"), status_code=status)
        if not 200 <= status < 300:
            raise RelayError(f"Relay answered with HTTP {status}", upstream_status=status)
        return True
