"""Self-service account routes for any signed-in user."""
from __future__ import annotations

from flask import Blueprint, render_template, request, redirect, url_for, flash, current_app

from usermanager.core.cognito import (
    CognitoError,
    InvalidPasswordError,
    NotAuthorizedError,
    TooManyRequestsError,
)
from usermanager.core.rbac import is_authenticated, current_access_token
from usermanager.core.validators import ValidationError, validate_password_fields

bp = Blueprint("account", __name__)

MIN_PASSWORD_LENGTH = 8


def _password_error_message(exc: CognitoError) -> str:
    """User-facing message for a failed ChangePassword call."""
    code = getattr(exc, "code", "")
    if isinstance(exc, TooManyRequestsError):
        return "Too many attempts. Please wait a while and try again."
    if isinstance(exc, InvalidPasswordError) or code == "InvalidParameterException":
        return "The new password does not meet the password policy."
    if isinstance(exc, NotAuthorizedError):
        return "The current password is incorrect."
    return getattr(exc, "message", None) or str(exc)


@bp.route("/account/password", methods=["GET", "POST"])
def change_password():
    """Change the signed-in user's password."""
    if not is_authenticated():
        return redirect(url_for("auth.login"))

    if request.method == "GET":
        return render_template("account/password.html", title="Change password")

    current_password = request.form.get("current_password", "")
    new_password = request.form.get("new_password", "")
    confirmation = request.form.get("confirm_password", "")

    try:
        if not current_password:
            raise ValidationError("Current password is required.")
        validate_password_fields(new_password, confirmation, MIN_PASSWORD_LENGTH)
    except ValidationError as exc:
        flash(str(exc), "error")
        return render_template("account/password.html", title="Change password"), 400

    users = current_app.extensions["user_handler"].users
    if users is None:
        flash("Password changes are unavailable: the user pool is not configured.", "error")
        return render_template("account/password.html", title="Change password"), 500

    try:
        users.change_password(current_access_token(), current_password, new_password)
    except CognitoError as exc:
        current_app.logger.warning("Password change failed: %r", exc)
        flash(_password_error_message(exc), "error")
        return render_template("account/password.html", title="Change password"), 400

    flash("Password changed successfully.", "success")
    return redirect(url_for("auth.index"))
