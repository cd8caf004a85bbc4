from flask import Blueprint

from handrest.extensions import csrf
from handrest.routes.api.v1.admin import api_admin_bp
from handrest.routes.api.v1.auth import api_auth_bp
from handrest.routes.api.v1.bookings import api_booking_bp
from handrest.routes.api.v1.catalog import api_catalog_bp
from handrest.routes.api.v1.jobs import api_job_bp
from handrest.routes.api.v1.notifications import api_notification_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_auth_bp, url_prefix="/auth")
api_v1_bp.register_blueprint(api_catalog_bp, url_prefix="/catalog")
api_v1_bp.register_blueprint(api_booking_bp, url_prefix="/bookings")
api_v1_bp.register_blueprint(api_job_bp, url_prefix="/jobs")
api_v1_bp.register_blueprint(api_admin_bp, url_prefix="/admin")
api_v1_bp.register_blueprint(api_notification_bp, url_prefix="/notifications")

csrf.exempt(api_v1_bp)
