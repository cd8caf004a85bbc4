from functools import wraps

from flask import abort
from flask_login import current_user

from handrest.policy import Actor, Role, parse_role
from handrest.services import PermissionService


def current_actor():
    return Actor(id=current_user.id, role=parse_role(current_user.role))


def role_required(*roles):
    allowed = {Role(role) for role in roles}

    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if parse_role(current_user.role) not in allowed:
                abort(403)
            return func(*args, **kwargs)

        return inner

    return wrapper


def tab_required(tab):
    """Admin routes: require the signed-in admin to hold ``tab``."""

    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            PermissionService.ensure_tab(current_actor(), tab)
            return func(*args, **kwargs)

        return inner

    return wrapper
