"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_GROUP_CATALOG = ("Admin", "CreatingBotAllowed", "PublishAllowed")


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass
class AppConfig:
    """Application configuration container.

    Built once by load_settings() at process start and handed to the request
    handler and the Flask app explicitly.
    """
    # Mode
    demo_mode: bool = False

    # Flask
    secret_key: str = ""
    session_cookie_secure: bool = True
    log_level: str = "INFO"

    # Cognito user pool
    user_pool_id: str = ""
    aws_region: str = ""

    # Cognito app client / hosted UI (console login)
    cognito_client_id: str = ""
    cognito_client_secret: str = ""
    cognito_domain: str = ""
    oidc_redirect_uri: str = ""
    post_logout_redirect_uri: str = ""

    # Groups
    admin_group: str = "Admin"
    group_catalog: list[str] = field(default_factory=lambda: list(DEFAULT_GROUP_CATALOG))

    # Attribute mapping
    name_attribute: str = "custom:namex"
    department_attribute: str = "custom:department"

    # REST surface
    cors_allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    api_base_url: str = ""

    # Provider hardening
    provider_timeout: int = 5
    provider_max_attempts: int = 3
    group_lookup_workers: int = 8

    @property
    def is_configured(self) -> bool:
        """True when a user pool is set; the API refuses every request otherwise."""
        return bool(self.user_pool_id)

    @property
    def issuer(self) -> str:
        """OIDC issuer of the user pool (also the JWKS/discovery base)."""
        if not self.user_pool_id:
            return ""
        return f"https://cognito-idp.{self.aws_region}.amazonaws.com/{self.user_pool_id}"

    @property
    def jwks_url(self) -> str:
        return f"{self.issuer}/.well-known/jwks.json"

    @property
    def server_metadata_url(self) -> str:
        return f"{self.issuer}/.well-known/openid-configuration"


def _region_from_pool_id(user_pool_id: str) -> str:
    """Cognito pool ids are '<region>_<suffix>' (e.g. 'ap-northeast-1_AbCd1234')."""
    if "_" in user_pool_id:
        return user_pool_id.split("_", 1)[0]
    return ""


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _int_env(var_name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be an integer (got {raw!r}).")
    return max(value, minimum)


def _list_env(var_name: str, default: list[str] | tuple[str, ...]) -> list[str]:
    raw = os.environ.get(var_name)
    if raw is None:
        return list(default)
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return items or list(default)


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets.

    USER_POOL_ID is deliberately optional here: a missing pool is reported by
    the request handler as a 500 on every request rather than crashing the
    process at import time.
    """
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    # Flask secret key (only the web deployment needs it; create_app enforces it)
    secret_key = _load_secret_from_file("flask_secret_key", "FLASK_SECRET_KEY") or ""
    if not secret_key and demo_mode:
        secret_key = secrets.token_urlsafe(48)
        print("[demo-mode] Generated temporary FLASK_SECRET_KEY")

    session_secure_str = os.environ.get("FLASK_SESSION_COOKIE_SECURE")
    if session_secure_str is None and demo_mode:
        session_secure_str = "false"
    session_cookie_secure = (session_secure_str or "true").lower() == "true"

    # User pool
    user_pool_id = os.environ.get("USER_POOL_ID", "").strip()
    aws_region = (
        os.environ.get("AWS_REGION")
        or os.environ.get("AWS_DEFAULT_REGION")
        or _region_from_pool_id(user_pool_id)
    ).strip()

    # App client / hosted UI
    cognito_client_id = os.environ.get("COGNITO_CLIENT_ID", "").strip()
    cognito_client_secret = _load_secret_from_file("cognito_client_secret", "COGNITO_CLIENT_SECRET") or ""
    cognito_domain = os.environ.get("COGNITO_DOMAIN", "").strip().rstrip("/")
    if cognito_domain and not cognito_domain.startswith(("http://", "https://")):
        cognito_domain = f"https://{cognito_domain}"

    oidc_redirect_uri = _get_or_generate(
        "OIDC_REDIRECT_URI",
        demo_default="http://localhost:5000/callback",
        required=False,
        demo_mode=demo_mode,
    )
    post_logout_redirect_uri = _get_or_generate(
        "POST_LOGOUT_REDIRECT_URI",
        demo_default="http://localhost:5000/",
        required=False,
        demo_mode=demo_mode,
    )

    # Groups
    admin_group = os.environ.get("ADMIN_GROUP", "Admin").strip() or "Admin"
    group_catalog = _list_env("GROUP_CATALOG", DEFAULT_GROUP_CATALOG)
    if admin_group not in group_catalog:
        group_catalog.insert(0, admin_group)

    cfg = AppConfig(
        demo_mode=demo_mode,
        secret_key=secret_key,
        session_cookie_secure=session_cookie_secure,
        log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        user_pool_id=user_pool_id,
        aws_region=aws_region,
        cognito_client_id=cognito_client_id,
        cognito_client_secret=cognito_client_secret,
        cognito_domain=cognito_domain,
        oidc_redirect_uri=oidc_redirect_uri,
        post_logout_redirect_uri=post_logout_redirect_uri,
        admin_group=admin_group,
        group_catalog=group_catalog,
        name_attribute=os.environ.get("USER_NAME_ATTRIBUTE", "custom:namex").strip() or "custom:namex",
        department_attribute=os.environ.get("USER_DEPARTMENT_ATTRIBUTE", "custom:department").strip() or "custom:department",
        cors_allowed_origins=_list_env("CORS_ALLOWED_ORIGINS", ["*"]),
        api_base_url=os.environ.get("API_BASE_URL", "").strip().rstrip("/"),
        provider_timeout=_int_env("PROVIDER_TIMEOUT", 5),
        provider_max_attempts=_int_env("PROVIDER_MAX_ATTEMPTS", 3),
        group_lookup_workers=_int_env("GROUP_LOOKUP_WORKERS", 8),
    )

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; user_pool={user_pool_id or 'UNSET'}; region={aws_region or 'UNSET'}")
    if not user_pool_id:
        print("[settings] WARNING: USER_POOL_ID is not set; every API request will fail with 500")

    return cfg
