import os
from dotenv import load_dotenv

load_dotenv()

def _origins(raw, default):
    values = [o.strip() for o in (raw or default).split(",") if o.strip()]
    if values == ["*"]:
        return "*"
    return values

class Config:
    GCP_PROJECT = os.getenv("GCP_PROJECT") or os.getenv("GOOGLE_CLOUD_PROJECT") or ""
    STRIPE_SECRET_NAME = os.getenv("STRIPE_SECRET_NAME") or "stripe-secret-key"
    STRIPE_CLIENT_ID = os.getenv("STRIPE_CLIENT_ID") or ""
    STRIPE_REDIRECT_URI = os.getenv("STRIPE_REDIRECT_URI") or ""
    STRIPE_AUTHORIZE_URL = os.getenv("STRIPE_AUTHORIZE_URL") or "https://connect.stripe.com/oauth/authorize"
    DOMAIN = os.getenv("DOMAIN") or "http://localhost:8080"
    API_VERSION = os.getenv("API_VERSION") or "v1.0.0"
    FALLBACK_SUCCESS_URL = os.getenv("FALLBACK_SUCCESS_URL") or f"{DOMAIN}/onboarding/complete?status=connected"
    FALLBACK_FAILURE_URL = os.getenv("FALLBACK_FAILURE_URL") or f"{DOMAIN}/onboarding/complete?status=failed"
    RELAY_WEBHOOK_URL = os.getenv("RELAY_WEBHOOK_URL") or ""
    RELAY_TIMEOUT_SECONDS = float(os.getenv("RELAY_TIMEOUT_SECONDS") or "10")
    JWT_SECRET = os.getenv("JWT_SECRET") or "change-me"
    JWT_ALG = "HS256"
    RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT") or "100/hour"
    RATE_LIMIT_ONBOARDING = os.getenv("RATE_LIMIT_ONBOARDING") or "30/minute"
    RATE_LIMIT_REPORTS = os.getenv("RATE_LIMIT_REPORTS") or "60/minute"
    ONBOARDING_ALLOWED_ORIGINS = _origins(os.getenv("ONBOARDING_ALLOWED_ORIGINS"), DOMAIN)
    REPORTS_ALLOWED_ORIGINS = _origins(os.getenv("REPORTS_ALLOWED_ORIGINS"), "*")
    REPORT_RECENT_CHARGES = int(os.getenv("REPORT_RECENT_CHARGES") or "10")
    REPORT_PAYOUT_LIMIT = int(os.getenv("REPORT_PAYOUT_LIMIT") or "10")
    DATABASE_URL = ""

    @staticmethod
    def compute_database_url():
        explicit = os.getenv("DATABASE_URL")
        if explicit:
            return explicit
        if (os.getenv("DB_DIALECT") or "").lower() == "mysql" or os.getenv("MYSQL_HOST"):
            host = os.getenv("MYSQL_HOST") or "localhost"
            port = os.getenv("MYSQL_PORT") or "3306"
            db = os.getenv("MYSQL_DB") or "app"
            user = os.getenv("MYSQL_USER") or "root"
            pwd = os.getenv("MYSQL_PASSWORD") or ""
            return f"mysql+pymysql://{user}:{pwd}@{host}:{port}/{db}"
        return "sqlite:///authorizations.db"

Config.DATABASE_URL = Config.compute_database_url()
