import structlog
from core.config import Config
from core.errors import ConfigurationError, SecretAccessError

def _default_client_factory():
    from google.cloud import secretmanager
    return secretmanager.SecretManagerServiceClient()

class SecretCache:
    """Process-lifetime cache for the Stripe API key held in Secret Manager.

    The first caller fetches the latest version of the secret and every later
    caller reads the in-memory copy. There is no lock: two callers racing on an
    empty cache may both fetch, which is harmless since the read is idempotent.
    Restarting the process is the only way to pick up a rotated key.
    """

    def __init__(self, project_id=None, secret_name=None, client_factory=None):
        self.project_id = Config.GCP_PROJECT if project_id is None else project_id
        self.secret_name = secret_name or Config.STRIPE_SECRET_NAME
        self._client_factory = client_factory or _default_client_factory
        self._client = None
        self._value = None

    def secret_path(self):
        if not self.project_id:
            raise ConfigurationError("GCP_PROJECT is not set; cannot locate the Stripe secret key")
        return f"projects/{self.project_id}/secrets/{self.secret_name}/versions/latest"

    def get_secret(self):
        if self._value is not None:
            return self._value
        path = self.secret_path()
        logger = structlog.get_logger()
        logger.info("secret_fetch", secret_path=path)
        try:
            if self._client is None:
                self._client = self._client_factory()
            response = self._client.access_secret_version(request={"name": path})
            value = response.payload.data.decode("utf-8")
        except Exception as e:
            logger.error("secret_fetch_failed", secret_path=path, error=str(e))
            raise SecretAccessError(f"Failed to retrieve Stripe secret key: {e}") from e
        self._value = value
        return value

    def prefix(self, n=5):
        return self.get_secret()[:n]

    def is_loaded(self):
        return self._value is not None
