# Overview: Request decorators for the /api/db handlers.

import base64
import binascii
import hmac
from functools import wraps

from flask import current_app, jsonify, request

UNAUTHORIZED = {"error": "Unauthorized. Admin credentials required."}


def _basic_credentials(header: str | None) -> tuple[str, str] | None:
    if not header or not header.startswith("Basic "):
        return None
    try:
        decoded = base64.b64decode(header[6:], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def require_basic_auth(f):
    """
    Require the single static admin credential (HTTP Basic).

    Compared against ADMIN_USERNAME / ADMIN_PASSWORD from app config.
    Returns 401 with a JSON error otherwise.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        credentials = _basic_credentials(request.headers.get("Authorization"))
        if credentials is None:
            return jsonify(UNAUTHORIZED), 401

        username, password = credentials
        expected_user = current_app.config["ADMIN_USERNAME"]
        expected_password = current_app.config["ADMIN_PASSWORD"]
        if not (
            hmac.compare_digest(username, expected_user)
            and hmac.compare_digest(password, expected_password)
        ):
            return jsonify(UNAUTHORIZED), 401

        return f(*args, **kwargs)

    return decorated_function
