# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, current_app

from .services.auth_service import check_credentials


def auth_enabled() -> bool:
    return bool(
        current_app.config.get("BASIC_AUTH_USERNAME")
        and current_app.config.get("BASIC_AUTH_PASSWORD_HASH")
    )


def require_auth(f):
    """
    Require HTTP Basic credentials when back-office auth is configured.

    With BASIC_AUTH_USERNAME and BASIC_AUTH_PASSWORD_HASH both set, requests
    must carry matching Basic credentials. With either unset the API is open
    (single-operator deployments behind a private network).

    SECURITY: Returns 401 with a WWW-Authenticate challenge if:
    - No Authorization header, or not a Basic one
    - Username or password does not match
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not auth_enabled():
            return f(*args, **kwargs)

        auth = request.authorization
        if auth is None or auth.type != "basic" or auth.username is None:
            return _challenge("Authentication required")

        if not check_credentials(
            auth.username,
            auth.password or "",
            expected_username=current_app.config["BASIC_AUTH_USERNAME"],
            password_hash=current_app.config["BASIC_AUTH_PASSWORD_HASH"],
        ):
            current_app.logger.warning("Rejected credentials for user %r from %s", auth.username, request.remote_addr)
            return _challenge("Invalid credentials")

        return f(*args, **kwargs)

    return decorated_function


def _challenge(message: str):
    response = jsonify({"error": message})
    response.status_code = 401
    response.headers["WWW-Authenticate"] = 'Basic realm="rental-backoffice"'
    return response
