"""Documentation routes exposing the user API OpenAPI description and ReDoc UI."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from flask import Blueprint, Response, current_app, jsonify, url_for

bp = Blueprint("docs", __name__)

REDOC_CDN = "https://cdn.redoc.ly/redoc/latest/bundles/redoc.standalone.js"


def _spec_path() -> Path:
    """Resolve the OpenAPI document path."""
    override = current_app.config.get("OPENAPI_SPEC_PATH")
    if override:
        return Path(override)
    return Path(current_app.root_path) / "openapi" / "users_openapi.yaml"


def _load_spec() -> dict[str, Any]:
    """Load the OpenAPI document from disk (YAML)."""
    path = _spec_path()
    if not path.exists():
        raise FileNotFoundError(f"OpenAPI spec not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


@bp.route("/openapi.json", methods=["GET"])
def openapi_document() -> Response:
    """Serve the OpenAPI document as JSON."""
    return jsonify(_load_spec())


@bp.route("/docs", methods=["GET"])
def api_docs() -> Response:
    """Serve a ReDoc page for the user API."""
    spec_url = url_for("docs.openapi_document", _external=False)
    html = f"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8"/>
    <title>User Manager – API Reference</title>
    <meta name="robots" content="noindex,nofollow"/>
    <style>
      body {{
        margin: 0;
        font-family: "Segoe UI", Roboto, sans-serif;
      }}
      .banner {{
        background: #0f172a;
        color: #f8fafc;
        padding: 12px 24px;
        font-size: 14px;
      }}
    </style>
  </head>
  <body>
    <div class="banner">
      <strong>User Manager</strong> – /users API. Requests need an id token of an Admin group member.
      <a href="{spec_url}" style="color:#38bdf8;">OpenAPI JSON</a>
    </div>
    <redoc spec-url="{spec_url}"></redoc>
    <script src="{REDOC_CDN}"></script>
  </body>
</html>"""
    return Response(html, status=200, mimetype="text/html")
