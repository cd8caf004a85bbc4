from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, login_user, logout_user

from handrest.extensions import limiter
from handrest.routes.api.v1.serializers import user_to_dict
from handrest.services import AuthService

api_auth_bp = Blueprint("api_auth", __name__)


@api_auth_bp.post("/register/customer")
@limiter.limit("20 per minute")
def register_customer():
    payload = request.get_json(silent=True) or {}
    user = AuthService.register_customer(
        full_name=payload.get("full_name", ""),
        mobile=payload.get("mobile", ""),
        password=payload.get("password", ""),
        panchayath_id=payload.get("panchayath_id"),
        ward_number=payload.get("ward_number"),
        email=payload.get("email"),
    )
    login_user(user)
    current_app.logger.info("Customer registered: %s", user.id)
    return jsonify(user_to_dict(user)), 201


@api_auth_bp.post("/register/staff")
@limiter.limit("20 per minute")
def register_staff():
    payload = request.get_json(silent=True) or {}
    user = AuthService.register_staff(
        full_name=payload.get("full_name", ""),
        mobile=payload.get("mobile", ""),
        password=payload.get("password", ""),
        panchayath_id=payload.get("panchayath_id"),
        ward_numbers=payload.get("ward_numbers") or [],
    )
    login_user(user)
    current_app.logger.info("Staff registered: %s", user.id)
    return jsonify(user_to_dict(user)), 201


@api_auth_bp.post("/login")
@limiter.limit("15 per minute")
def login():
    payload = request.get_json(silent=True) or {}
    user = AuthService.authenticate_user(
        payload.get("mobile") or payload.get("email", ""),
        payload.get("password", ""),
    )
    login_user(user, remember=bool(payload.get("remember")))
    return jsonify(user_to_dict(user))


@api_auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})
