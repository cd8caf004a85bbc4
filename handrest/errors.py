from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError


class AppError(Exception):
    status_code = 400
    code = "app_error"

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message, "code": self.code}


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class BelowMinimumOrder(AppError):
    status_code = 422
    code = "below_minimum_order"


class InvalidTransition(AppError):
    status_code = 409
    code = "invalid_transition"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"


class NotOpen(AppError):
    status_code = 409
    code = "not_open"


class CapacityExceeded(AppError):
    status_code = 409
    code = "capacity_exceeded"


class AlreadyActedOn(AppError):
    status_code = 409
    code = "already_acted_on"


class NotFound(AppError):
    status_code = 404
    code = "not_found"


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(_err):
        current_app.logger.warning("Database integrity error")
        return jsonify({"error": "Conflict. Resource already exists.", "code": "conflict"}), 409

    @app.errorhandler(400)
    def bad_request(_err):
        return jsonify({"error": "Bad request", "code": "bad_request"}), 400

    @app.errorhandler(401)
    def unauthorized(_err):
        return jsonify({"error": "Unauthorized", "code": "unauthorized"}), 401

    @app.errorhandler(403)
    def forbidden(_err):
        return jsonify({"error": "Forbidden", "code": "forbidden"}), 403

    @app.errorhandler(404)
    def not_found(_err):
        return jsonify({"error": "Not found", "code": "not_found"}), 404

    @app.errorhandler(429)
    def too_many_requests(_err):
        return jsonify({"error": "Too many requests", "code": "rate_limited"}), 429

    @app.errorhandler(500)
    def server_error(_err):
        app.logger.exception("Internal server error")
        return jsonify({"error": "Internal server error", "code": "server_error"}), 500
