from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from handrest.decorators import current_actor, role_required
from handrest.policy import Role
from handrest.routes.api.v1.serializers import booking_to_dict
from handrest.services import BookingService

api_booking_bp = Blueprint("api_booking", __name__)

CUSTOMER_FIELDS = (
    "customer_name",
    "customer_phone",
    "customer_email",
    "address_line1",
    "address_line2",
    "city",
    "pincode",
    "landmark",
    "floor_number",
    "property_sqft",
    "panchayath_id",
    "ward_number",
)
SCHEDULE_FIELDS = ("scheduled_date", "scheduled_time", "special_instructions")
SELECTION_FIELDS = ("category_id", "package_id", "features", "addons", "total_price")


def _pick(payload, fields):
    return {field: payload.get(field) for field in fields}


@api_booking_bp.post("")
@login_required
def create_booking():
    payload = request.get_json(silent=True) or {}
    booking = BookingService.create_booking(
        current_actor(),
        customer_info=_pick(payload, CUSTOMER_FIELDS),
        schedule_info=_pick(payload, SCHEDULE_FIELDS),
        selection=_pick(payload, SELECTION_FIELDS),
    )
    return jsonify(booking_to_dict(booking, detail=True)), 201


@api_booking_bp.get("/me")
@role_required(Role.CUSTOMER)
def my_bookings():
    rows = BookingService.customer_bookings(current_user.id)
    return jsonify([booking_to_dict(b) for b in rows])


@api_booking_bp.get("/number/<booking_number>")
@login_required
def booking_by_number(booking_number):
    booking = BookingService.get_by_number(booking_number, current_actor())
    return jsonify(booking_to_dict(booking, detail=True))


@api_booking_bp.patch("/<int:booking_id>/status")
@login_required
def update_status(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.update_booking_status(booking_id, payload.get("status"), current_actor())
    return jsonify({"id": booking.id, "status": booking.status})


@api_booking_bp.post("/<int:booking_id>/rating")
@role_required(Role.CUSTOMER)
def rate_booking(booking_id):
    payload = request.get_json(silent=True) or {}
    rating = BookingService.rate_booking(booking_id, current_actor(), payload.get("rating"), payload.get("comment"))
    return jsonify({"booking_id": rating.booking_id, "rating": rating.rating, "comment": rating.comment}), 201
