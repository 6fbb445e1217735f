from flask import request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import jwt
from core.auth import verify_identity_token
from core.config import Config

def rate_limit_key():
    # Limits run before auth_required, so the bearer token is checked here.
    parts = (request.headers.get("Authorization") or "").split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        try:
            return f"identity:{verify_identity_token(parts[1])}"
        except jwt.InvalidTokenError:
            return get_remote_address()
    return get_remote_address()

def init_limiter(app):
    return Limiter(
        rate_limit_key,
        app=app,
        default_limits=[Config.RATE_LIMIT_DEFAULT],
        storage_uri="memory://",
    )
