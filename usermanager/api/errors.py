"""Error handlers for the application."""
import traceback

from flask import render_template, jsonify, redirect, request, url_for
from werkzeug.exceptions import HTTPException

from usermanager.core.user_handler import cors_headers


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    def _json_error(error_name: str, message: str, status: int):
        response = jsonify({"error": error_name, "message": message})
        response.status_code = status
        if _is_api_request():
            cfg = app.config["APP_CONFIG"]
            response.headers.update(cors_headers(cfg.cors_allowed_origins, request.headers.get("Origin")))
        return response

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        message = getattr(error, "description", None) or "Bad request"
        if _wants_json():
            return _json_error("Bad Request", message, 400)
        return render_template(
            "errors/403.html",
            title="Bad Request",
            required_role="a valid request",
            detail=message,
        ), 400

    @app.errorhandler(401)
    def unauthorized(error):
        """Handle 401 Unauthorized errors."""
        if _wants_json():
            return _json_error("Unauthorized", "Authentication required", 401)
        return redirect(url_for("auth.login"))

    @app.errorhandler(403)
    def forbidden(error):
        """Handle 403 Forbidden errors."""
        if _wants_json():
            return _json_error("Forbidden", "Insufficient permissions", 403)
        return render_template(
            "errors/403.html",
            title="Forbidden",
            required_role=app.config["APP_CONFIG"].admin_group,
        ), 403

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        if _wants_json():
            return _json_error("Not Found", "Resource not found", 404)
        return render_template(
            "errors/403.html",
            title="Not Found",
            required_role="a valid URL",
        ), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle 405 Method Not Allowed errors."""
        if _wants_json():
            return _json_error("Method Not Allowed", f"Unsupported method: {request.method}", 405)
        return render_template(
            "errors/403.html",
            title="Method Not Allowed",
            required_role="a supported method",
        ), 405

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error."""
        app.logger.error("Internal error: %s", error, exc_info=True)
        return _internal_error_response()

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        if isinstance(error, HTTPException):
            return error

        app.logger.error("Unhandled exception: %s", error, exc_info=True)
        return _internal_error_response()

    def _internal_error_response():
        if _wants_json():
            return _json_error("Internal Server Error", "An unexpected error occurred", 500)

        # Traceback only in debug/demo mode
        show_details = app.debug or app.config["APP_CONFIG"].demo_mode
        return render_template(
            "errors/500.html",
            title="Internal Server Error",
            error_message=traceback.format_exc() if show_details else None,
            show_debug=show_details,
        ), 500


def _is_api_request() -> bool:
    return request.path == "/users" or request.path.startswith("/users/")


def _wants_json():
    """Check if the client wants a JSON response."""
    if _is_api_request() or request.path == "/openapi.json":
        return True

    return request.accept_mimetypes.accept_json and \
        not request.accept_mimetypes.accept_html
