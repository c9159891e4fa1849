"""Gunicorn configuration for the user manager web deployment.

Secrets (FLASK_SECRET_KEY, COGNITO_CLIENT_SECRET) are read by settings.py
from /run/secrets first and from the environment second; the post_fork hook
only reports which source each worker will see.
"""
import os
from pathlib import Path

wsgi_app = "usermanager.flask_app:create_app()"
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "30"))
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()


def post_fork(server, worker):
    """Called just after a worker has been forked."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    if demo_mode and workers > 1:
        worker.log.warning("DEMO_MODE=true generates a secret key per worker; sessions will not be shared")

    secrets_dir = Path("/run/secrets")
    if secrets_dir.is_dir():
        secret_files = [path.name for path in secrets_dir.glob("*") if path.is_file()]
        if secret_files:
            worker.log.info(f"Found {len(secret_files)} secrets in /run/secrets: {', '.join(sorted(secret_files))}")
            return

    for env_name in ("FLASK_SECRET_KEY", "COGNITO_CLIENT_SECRET"):
        if not os.environ.get(env_name):
            worker.log.info(f"{env_name} not provided via /run/secrets or environment")

    if not os.environ.get("USER_POOL_ID"):
        worker.log.error("USER_POOL_ID is not set; /users requests will fail with 500")
