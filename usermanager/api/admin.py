"""Admin console routes: list, create, edit and delete users.

Every operation goes through the /users API with the signed-in user's token.
The admin-group check here only decides what is displayed.
"""
from __future__ import annotations
from functools import wraps

from flask import Blueprint, render_template, request, redirect, url_for, flash, current_app

from usermanager.api.helpers.console_client import ConsoleApiError, console_client
from usermanager.core.models import GROUP_FLAGS
from usermanager.core.rbac import is_authenticated, is_admin, current_claims, display_name
from usermanager.core.validators import ValidationError, validate_email, validate_name

bp = Blueprint("admin", __name__)

MIN_PASSWORD_LENGTH = 8


# ─────────────────────────────────────────────────────────────────────────────
# Decorators
# ─────────────────────────────────────────────────────────────────────────────
def require_admin_view(fn):
    """Redirect anonymous users to login; show 403 to signed-in non-admins."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not is_authenticated():
            return redirect(url_for("auth.login"), code=302)
        if not is_admin():
            cfg = current_app.config["APP_CONFIG"]
            return render_template(
                "errors/403.html",
                title="Forbidden",
                required_role=cfg.admin_group,
            ), 403
        return fn(*args, **kwargs)
    return wrapper


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────
def _creatable_groups(catalog: list[str]) -> list[str]:
    """Catalog groups that POST /users can assign (one body flag per group)."""
    flag_groups = set(GROUP_FLAGS.values())
    return [group for group in catalog if group in flag_groups]


def _create_payload(form: dict, catalog: list[str]) -> dict:
    selected = set(form.get("groups", []))
    payload = {
        "email": form["email"],
        "password": form["password"],
        "name": form["name"],
        "depart": form["depart"],
    }
    for flag, group in GROUP_FLAGS.items():
        if group in catalog:
            payload[flag] = group in selected
    return payload


def _find_user(username: str) -> dict | None:
    for user in console_client().list_users():
        if user.get("username") == username:
            return user
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────
@bp.route("/users")
def list_users():
    """User table for admins; a plain welcome for everyone else."""
    if not is_authenticated():
        return redirect(url_for("auth.login"))

    cfg = current_app.config["APP_CONFIG"]
    name = display_name(current_claims(), cfg.name_attribute)

    if not is_admin():
        return render_template("admin/users.html", title="Users", is_admin=False, display_name=name, users=[])

    users: list[dict] = []
    try:
        users = console_client().list_users()
    except ConsoleApiError as exc:
        current_app.logger.warning("Loading users failed (%s): %s", exc.status, exc.message)
        flash(f"Failed to load users: {exc.message}", "error")

    return render_template(
        "admin/users.html",
        title="Users",
        is_admin=True,
        display_name=name,
        users=users,
    )


@bp.route("/users/new", methods=["GET", "POST"])
@require_admin_view
def create_user():
    """Create a user with a temporary password and initial groups."""
    cfg = current_app.config["APP_CONFIG"]
    groups = _creatable_groups(cfg.group_catalog)

    if request.method == "GET":
        form = {"email": "", "name": "", "depart": "", "groups": [cfg.admin_group]}
        return render_template("admin/user_form.html", title="Create user", mode="create", form=form, groups=groups)

    form = {
        "email": request.form.get("email", "").strip(),
        "password": request.form.get("password", ""),
        "name": request.form.get("name", "").strip(),
        "depart": request.form.get("depart", "").strip(),
        "groups": request.form.getlist("groups"),
    }

    error = None
    if not all([form["email"], form["password"], form["name"]]):
        error = "Email, temporary password and display name are required."
    elif len(form["password"]) < MIN_PASSWORD_LENGTH:
        error = f"The temporary password must be at least {MIN_PASSWORD_LENGTH} characters."
    else:
        try:
            validate_email(form["email"])
            validate_name(form["name"], "Display name")
        except ValidationError as exc:
            error = str(exc)

    if error:
        flash(error, "error")
        return render_template(
            "admin/user_form.html", title="Create user", mode="create", form=form, groups=groups
        ), 400

    try:
        result = console_client().create_user(_create_payload(form, cfg.group_catalog))
    except ConsoleApiError as exc:
        flash(f"Failed to create user '{form['email']}': {exc.message}", "error")
        return render_template(
            "admin/user_form.html", title="Create user", mode="create", form=form, groups=groups
        ), 400

    flash(result.get("message") or f"User '{form['email']}' created.", "success")
    return redirect(url_for("admin.list_users"))


@bp.route("/users/<path:username>/edit", methods=["GET", "POST"])
@require_admin_view
def edit_user(username: str):
    """Edit attributes and set the exact group membership."""
    cfg = current_app.config["APP_CONFIG"]

    if request.method == "GET":
        try:
            user = _find_user(username)
        except ConsoleApiError as exc:
            flash(f"Failed to load user '{username}': {exc.message}", "error")
            return redirect(url_for("admin.list_users"))
        if user is None:
            flash(f"User '{username}' not found.", "error")
            return redirect(url_for("admin.list_users"))
        form = {
            "email": user.get("email", ""),
            "name": user.get("name", ""),
            "depart": user.get("depart", ""),
            "groups": user.get("groups", []),
        }
        return render_template(
            "admin/user_form.html",
            title=f"Edit {username}",
            mode="edit",
            username=username,
            form=form,
            groups=cfg.group_catalog,
        )

    form = {
        "email": request.form.get("email", "").strip(),
        "name": request.form.get("name", "").strip(),
        "depart": request.form.get("depart", "").strip(),
        "groups": request.form.getlist("groups"),
    }
    payload = {
        "email": form["email"],
        "name": form["name"],
        "depart": form["depart"],
        "groupsToSet": [group for group in cfg.group_catalog if group in form["groups"]],
    }

    try:
        result = console_client().update_user(username, payload)
    except ConsoleApiError as exc:
        detail = exc.message
        if exc.details.get("added") or exc.details.get("removed"):
            detail += f" (applied before the failure: added {exc.details.get('added', [])}, removed {exc.details.get('removed', [])})"
        flash(f"Failed to update user '{username}': {detail}", "error")
        return render_template(
            "admin/user_form.html",
            title=f"Edit {username}",
            mode="edit",
            username=username,
            form=form,
            groups=cfg.group_catalog,
        ), 400

    flash(result.get("message") or f"User '{username}' updated.", "success")
    return redirect(url_for("admin.list_users"))


@bp.route("/users/<path:username>/delete", methods=["GET", "POST"])
@require_admin_view
def delete_user(username: str):
    """Confirm, then delete a user."""
    if request.method == "GET":
        return render_template("admin/user_delete.html", title=f"Delete {username}", username=username)

    if request.form.get("confirm") != "yes":
        flash("Deletion not confirmed.", "error")
        return redirect(url_for("admin.list_users"))

    try:
        result = console_client().delete_user(username)
    except ConsoleApiError as exc:
        flash(f"Failed to delete user '{username}': {exc.message}", "error")
        return redirect(url_for("admin.list_users"))

    flash(result.get("message") or f"User '{username}' deleted.", "success")
    return redirect(url_for("admin.list_users"))
