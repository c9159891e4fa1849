"""
Flask decorators for authentication and authorization.

Provides the bearer-token authorizer for the /users REST surface when it is
served by Flask. (Behind API Gateway the managed Cognito authorizer plays
this role and the Lambda entry point performs no validation.)

Security:
- RSA-SHA256 signature verification via the user pool JWKS
- Expiration, issuer, token_use and app client validation
- Admin group required in the cognito:groups claim
"""

import logging
from functools import wraps
from typing import Dict

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    InvalidTokenError,
    ExpiredSignatureError,
    InvalidIssuerError,
    InvalidSignatureError,
    DecodeError,
    PyJWKClientError,
)
from flask import request, jsonify, current_app, g

from usermanager.core.rbac import claim_groups
from usermanager.core.user_handler import cors_headers

logger = logging.getLogger(__name__)

ALLOWED_TOKEN_USES = {"id", "access"}


class TokenValidationError(Exception):
    """Exception raised when JWT token validation fails."""
    pass


def get_jwks_client() -> PyJWKClient:
    """
    Get the app's cached JWKS client.

    Keys are cached per process and refreshed hourly; the kid in the JWT
    header selects the key.
    """
    client = current_app.extensions.get("jwks_client")
    if client is None:
        cfg = current_app.config["APP_CONFIG"]
        logger.info("Initializing JWKS client for: %s", cfg.jwks_url)
        client = PyJWKClient(
            cfg.jwks_url,
            cache_keys=True,
            max_cached_keys=16,
            lifespan=3600,
            headers={"User-Agent": "UserManager-Flask/1.0"},
        )
        current_app.extensions["jwks_client"] = client
    return client


def validate_jwt_token(token: str) -> Dict[str, any]:
    """
    Validate a Cognito id or access token.

    Validations performed:
    1. Signature verification (RS256 via JWKS)
    2. Expiration and issued-at
    3. Issuer (the user pool)
    4. token_use is "id" or "access"
    5. App client: ``aud`` for id tokens, ``client_id`` for access tokens
       (only when COGNITO_CLIENT_ID is configured)

    Raises:
        TokenValidationError: If any validation fails
    """
    if current_app.config.get('TESTING') and current_app.config.get('SKIP_OAUTH_FOR_TESTS', False):
        cfg = current_app.config["APP_CONFIG"]
        logger.warning("JWT validation SKIPPED (TESTING + SKIP_OAUTH_FOR_TESTS)")
        return {
            'sub': 'test-user',
            'token_use': 'id',
            'cognito:username': 'test-admin',
            'cognito:groups': [cfg.admin_group],
        }

    cfg = current_app.config["APP_CONFIG"]
    if not cfg.issuer:
        raise TokenValidationError("User pool is not configured")

    try:
        signing_key = get_jwks_client().get_signing_key_from_jwt(token)
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=['RS256'],
            issuer=cfg.issuer,
            options={
                'verify_signature': True,
                'verify_exp': True,
                'verify_iss': True,
                'verify_aud': False,  # checked below, depends on token_use
                'require': ['exp', 'iat', 'iss', 'token_use'],
            },
            leeway=5,
        )
    except ExpiredSignatureError:
        raise TokenValidationError("Token expired (exp claim)")
    except InvalidIssuerError as e:
        raise TokenValidationError(f"Invalid issuer (token from another user pool): {e}")
    except InvalidSignatureError:
        raise TokenValidationError("Invalid signature (token tampered or wrong key)")
    except DecodeError as e:
        raise TokenValidationError(f"Token decode error (malformed JWT): {e}")
    except (InvalidTokenError, PyJWKClientError) as e:
        logger.error("JWT validation failed: %s", e)
        raise TokenValidationError(f"Token validation failed: {e}")

    token_use = claims.get("token_use")
    if token_use not in ALLOWED_TOKEN_USES:
        raise TokenValidationError(f"Unexpected token_use: {token_use}")

    if cfg.cognito_client_id:
        audience = claims.get("aud") if token_use == "id" else claims.get("client_id")
        if isinstance(audience, list):
            matches = cfg.cognito_client_id in audience
        else:
            matches = audience == cfg.cognito_client_id
        if not matches:
            raise TokenValidationError("Invalid audience (token not issued for this app client)")

    logger.debug("JWT validated for %s", claims.get("cognito:username") or claims.get("username") or claims.get("sub"))
    return claims


def _error(message: str, status: int):
    cfg = current_app.config["APP_CONFIG"]
    response = jsonify({"message": message})
    response.status_code = status
    response.headers.update(cors_headers(cfg.cors_allowed_origins, request.headers.get("Origin")))
    return response


def require_admin_token(fn):
    """
    Decorator requiring a valid bearer token that carries the admin group.

    Preflight OPTIONS requests pass through untouched.

    Returns:
        401 Unauthorized: Missing, malformed, invalid or expired token
        403 Forbidden: Admin group absent from cognito:groups
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if request.method == "OPTIONS":
            return fn(*args, **kwargs)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header:
            logger.warning("User API request missing Authorization header")
            return _error("Unauthorized", 401)

        if not auth_header.startswith("Bearer "):
            logger.warning("User API request with invalid Authorization format")
            return _error("Unauthorized", 401)

        token = auth_header[7:].strip()
        if not token:
            return _error("Unauthorized", 401)

        try:
            claims = validate_jwt_token(token)
        except TokenValidationError as e:
            logger.warning("User API JWT validation failed: %s", e)
            return _error("Unauthorized", 401)

        cfg = current_app.config["APP_CONFIG"]
        if cfg.admin_group not in claim_groups(claims):
            logger.warning(
                "User API request by %s lacks group %s",
                claims.get("cognito:username") or claims.get("sub"), cfg.admin_group,
            )
            return _error("Forbidden", 403)

        g.token_claims = claims
        return fn(*args, **kwargs)

    return wrapper
