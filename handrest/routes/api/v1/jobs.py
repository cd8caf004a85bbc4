from flask import Blueprint, jsonify

from handrest.decorators import current_actor, role_required
from handrest.policy import Role
from handrest.routes.api.v1.serializers import assignment_to_dict, booking_to_dict
from handrest.services import AssignmentService

api_job_bp = Blueprint("api_job", __name__)


@api_job_bp.get("/available")
@role_required(Role.STAFF)
def available_jobs():
    actor = current_actor()
    jobs = AssignmentService.list_available_jobs(actor.id)
    return jsonify([dict(booking_to_dict(b), open_slots=b.open_slots) for b in jobs])


@api_job_bp.get("/me")
@role_required(Role.STAFF)
def my_jobs():
    jobs = AssignmentService.staff_jobs(current_actor().id)
    return jsonify({key: [booking_to_dict(b, detail=True) for b in rows] for key, rows in jobs.items()})


@api_job_bp.post("/<int:booking_id>/accept")
@role_required(Role.STAFF)
def accept_job(booking_id):
    assignment = AssignmentService.accept_job(booking_id, current_actor())
    return jsonify(assignment_to_dict(assignment)), 201


@api_job_bp.post("/<int:booking_id>/decline")
@role_required(Role.STAFF)
def decline_job(booking_id):
    assignment = AssignmentService.decline_job(booking_id, current_actor())
    return jsonify(assignment_to_dict(assignment)), 201


@api_job_bp.post("/assignments/<int:assignment_id>/reject")
@role_required(Role.STAFF)
def reject_assignment(assignment_id):
    assignment = AssignmentService.reject_job(assignment_id, current_actor())
    return jsonify(assignment_to_dict(assignment))


@api_job_bp.post("/<int:booking_id>/start")
@role_required(Role.STAFF)
def start_job(booking_id):
    booking = AssignmentService.start_job(booking_id, current_actor())
    return jsonify({"id": booking.id, "status": booking.status})


@api_job_bp.post("/<int:booking_id>/complete")
@role_required(Role.STAFF)
def complete_job(booking_id):
    booking = AssignmentService.complete_job(booking_id, current_actor())
    return jsonify({"id": booking.id, "status": booking.status})
