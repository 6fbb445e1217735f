import sys
import importlib
import pytest
from pathlib import Path
from types import SimpleNamespace

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Modules that read Config at import time, in dependency order.
RELOAD_ORDER = (
    "core.config",
    "core.auth",
    "core.rate_limit",
    "core.config_audit",
    "core.db",
    "core.secret_cache",
    "core.state_codec",
    "core.onboarding",
    "services.relay",
    "services.reports",
    "server",
)

class FakeSecrets:
    def __init__(self, value="sk_test_123"):
        self.value = value
        self.calls = 0

    def get_secret(self):
        self.calls += 1
        return self.value

class FakeSecretManagerClient:
    def __init__(self, value="sk_test_123", exc=None):
        self.value = value
        self.exc = exc
        self.requests = []

    def access_secret_version(self, request):
        self.requests.append(request)
        if self.exc:
            raise self.exc
        return SimpleNamespace(payload=SimpleNamespace(data=self.value.encode("utf-8")))

@pytest.fixture()
def fake_secrets():
    return FakeSecrets()

@pytest.fixture(scope="function")
def app_module(tmp_path_factory, monkeypatch):
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    monkeypatch.setenv("GCP_PROJECT", "test-project")
    monkeypatch.setenv("JWT_SECRET", "testsecret")
    monkeypatch.setenv("DOMAIN", "http://localhost:8080")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("STRIPE_CLIENT_ID", "ca_test_123")
    monkeypatch.setenv("STRIPE_REDIRECT_URI", "http://localhost:8080/api/v1/stripe/oauth/callback")
    monkeypatch.setenv("FALLBACK_SUCCESS_URL", "https://admin.example.com/dashboard?status=connected")
    monkeypatch.setenv("FALLBACK_FAILURE_URL", "https://admin.example.com/dashboard?status=failed")
    monkeypatch.setenv("RELAY_WEBHOOK_URL", "https://hooks.example.com/catch/1/abc/")
    monkeypatch.setenv("REPORTS_ALLOWED_ORIGINS", "https://clienta.example.com")
    monkeypatch.setenv("RATE_LIMIT_DEFAULT", "1000/minute")
    for name in RELOAD_ORDER:
        module = importlib.import_module(name)
        importlib.reload(module)
    server = importlib.import_module("server")
    server.secret_cache._client_factory = lambda: FakeSecretManagerClient()
    return server

@pytest.fixture()
def app(app_module):
    return app_module.app

@pytest.fixture()
def client(app):
    return app.test_client()
