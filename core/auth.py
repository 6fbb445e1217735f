import time
from functools import wraps
from flask import request, jsonify, g
import jwt
from core.config import Config

def generate_access_token(sub, extra=None, ttl_seconds=900):
    payload = {"sub": sub, "exp": int(time.time()) + ttl_seconds}
    if extra:
        payload.update(extra)
    return jwt.encode(payload, Config.JWT_SECRET, algorithm=Config.JWT_ALG)

def verify_identity_token(token):
    """Returns the caller identity carried by a bearer token, or raises jwt.InvalidTokenError."""
    claims = jwt.decode(token, Config.JWT_SECRET, algorithms=[Config.JWT_ALG])
    identity = claims.get("sub")
    if not identity:
        raise jwt.InvalidTokenError("token has no subject")
    return str(identity)

def auth_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        auth = request.headers.get("Authorization") or ""
        parts = auth.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return jsonify({"error": "unauthorized", "message": "Authentication token required."}), 401
        try:
            g.identity = verify_identity_token(parts[1])
        except jwt.InvalidTokenError:
            return jsonify({"error": "unauthorized", "message": "Invalid authentication token."}), 401
        return fn(*args, **kwargs)
    return wrapper
