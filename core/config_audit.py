from urllib.parse import urlparse
from core.config import Config

def _is_url(v):
    p = urlparse(v or "")
    return p.scheme in ("http", "https") and bool(p.netloc)

def _rate_valid(v):
    return isinstance(v, str) and "/" in v

def _item(group, key, value, required=True, ok=None, message="", masked=False):
    if ok is None:
        ok = bool(value) or not required
    return {
        "group": group,
        "key": key,
        "value": ("***" if value else "") if masked else value,
        "masked": masked,
        "required": required,
        "ok": ok,
        "message": "" if ok else message,
    }

def audit_config():
    items = [
        _item("General", "DOMAIN", Config.DOMAIN, ok=_is_url(Config.DOMAIN), message="Invalid URL"),
        _item("General", "API_VERSION", Config.API_VERSION, message="Required"),
        _item("SecretStore", "GCP_PROJECT", Config.GCP_PROJECT, message="Required to read the Stripe key"),
        _item("SecretStore", "STRIPE_SECRET_NAME", Config.STRIPE_SECRET_NAME, message="Required"),
        _item("Onboarding", "STRIPE_CLIENT_ID", Config.STRIPE_CLIENT_ID, masked=True,
              message="Required to build the Connect authorization URL"),
        _item("Onboarding", "STRIPE_REDIRECT_URI", Config.STRIPE_REDIRECT_URI,
              ok=_is_url(Config.STRIPE_REDIRECT_URI), message="Must be the public callback URL"),
        _item("Onboarding", "FALLBACK_SUCCESS_URL", Config.FALLBACK_SUCCESS_URL,
              ok=_is_url(Config.FALLBACK_SUCCESS_URL), message="Invalid URL"),
        _item("Onboarding", "FALLBACK_FAILURE_URL", Config.FALLBACK_FAILURE_URL,
              ok=_is_url(Config.FALLBACK_FAILURE_URL), message="Invalid URL"),
        _item("Relay", "RELAY_WEBHOOK_URL", Config.RELAY_WEBHOOK_URL, required=False, masked=True,
              ok=bool(Config.RELAY_WEBHOOK_URL), message="Onboarding results will not reach the system of record"),
        _item("JWT", "JWT_SECRET", Config.JWT_SECRET, masked=True,
              ok=bool(Config.JWT_SECRET) and Config.JWT_SECRET != "change-me", message="Set a strong secret"),
        _item("RateLimit", "RATE_LIMIT_DEFAULT", Config.RATE_LIMIT_DEFAULT,
              ok=_rate_valid(Config.RATE_LIMIT_DEFAULT), message="Expected N/unit"),
        _item("RateLimit", "RATE_LIMIT_ONBOARDING", Config.RATE_LIMIT_ONBOARDING,
              ok=_rate_valid(Config.RATE_LIMIT_ONBOARDING), message="Expected N/unit"),
        _item("RateLimit", "RATE_LIMIT_REPORTS", Config.RATE_LIMIT_REPORTS,
              ok=_rate_valid(Config.RATE_LIMIT_REPORTS), message="Expected N/unit"),
        _item("Database", "DATABASE_URL", Config.DATABASE_URL, message="Not resolved"),
    ]
    return {"items": items, "ok": all(i["ok"] for i in items if i["required"])}
