"""Staff job board: open jobs, acceptance, rejection and job progress.

Capacity is enforced in the database. ``Booking.accepted_count`` is only
changed by conditional UPDATE statements that run in the same transaction as
the assignment insert, so two staff members racing for the last slot cannot
both win.
"""

from flask import current_app
from sqlalchemy import and_, update
from sqlalchemy.exc import IntegrityError

from handrest.errors import AlreadyActedOn, CapacityExceeded, Forbidden, InvalidTransition, NotFound, NotOpen
from handrest.extensions import db
from handrest.models import Booking, BookingAuditLog, StaffAssignment, StaffCoverage
from handrest.models.base import utcnow
from handrest.policy import AssignmentStatus, BookingStatus, Role, parse_role, parse_status
from handrest.services.booking_service import BookingService
from handrest.services.notification_service import NotificationService
from handrest.signals import booking_status_changed, job_accepted


class AssignmentService:
    @staticmethod
    def _ensure_staff(actor_or_role):
        if parse_role(actor_or_role) != Role.STAFF:
            raise Forbidden("Only staff members can act on jobs.")

    @staticmethod
    def coverage_for(staff_id):
        return StaffCoverage.query.filter_by(staff_user_id=staff_id).all()

    @staticmethod
    def covers_booking(staff_id, booking):
        return any(
            row.covers(booking.panchayath_id, booking.ward_number) for row in AssignmentService.coverage_for(staff_id)
        )

    @staticmethod
    def list_available_jobs(staff_id):
        """Confirmed, not yet full bookings in the staff member's coverage.

        Bookings the staff member already accepted or rejected are excluded for
        good. Ordered by scheduled date, then creation time.
        """
        coverage = AssignmentService.coverage_for(staff_id)
        if not coverage:
            return []

        acted_on = db.session.query(StaffAssignment.booking_id).filter(StaffAssignment.staff_user_id == staff_id)
        candidates = (
            Booking.query.filter(Booking.status == BookingStatus.CONFIRMED.value)
            .filter(Booking.panchayath_id.in_([row.panchayath_id for row in coverage]))
            .filter(Booking.accepted_count < Booking.required_staff_count)
            .filter(Booking.id.not_in(acted_on))
            .order_by(Booking.scheduled_date.asc(), Booking.created_at.asc(), Booking.id.asc())
            .all()
        )
        return [
            booking
            for booking in candidates
            if any(row.covers(booking.panchayath_id, booking.ward_number) for row in coverage)
        ]

    @staticmethod
    def _closed_reason(booking):
        status = parse_status(booking.status)
        if booking.accepted_count >= booking.required_staff_count and status in (
            BookingStatus.CONFIRMED,
            BookingStatus.ASSIGNED,
        ):
            return CapacityExceeded("All staff slots for this job are already filled.")
        if status != BookingStatus.CONFIRMED:
            return NotOpen("This job is no longer open.")
        return None

    @staticmethod
    def accept_job(booking_id, actor):
        """Claim one staff slot on a confirmed booking.

        The slot claim, the assignment insert and the promotion to ``assigned``
        commit together or not at all.
        """
        AssignmentService._ensure_staff(actor.role)
        staff_id = actor.id
        booking = BookingService.get_booking(booking_id)

        existing = StaffAssignment.query.filter_by(booking_id=booking.id, staff_user_id=staff_id).first()
        if existing:
            raise AlreadyActedOn("You have already responded to this job.")
        closed = AssignmentService._closed_reason(booking)
        if closed:
            raise closed
        if not AssignmentService.covers_booking(staff_id, booking):
            raise Forbidden("This job is outside your service area.")

        claimed = db.session.execute(
            update(Booking)
            .where(
                and_(
                    Booking.id == booking.id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.accepted_count < Booking.required_staff_count,
                )
            )
            .values(accepted_count=Booking.accepted_count + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            db.session.rollback()
            # Fail closed: if the slot vanished for any reason, report capacity.
            raise AssignmentService._closed_reason(BookingService.get_booking(booking_id)) or CapacityExceeded(
                "All staff slots for this job are already filled."
            )

        assignment = StaffAssignment(
            booking_id=booking.id,
            staff_user_id=staff_id,
            status=AssignmentStatus.ACCEPTED.value,
            assigned_at=utcnow(),
        )
        db.session.add(assignment)
        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            raise AlreadyActedOn("You have already responded to this job.") from exc

        promoted = db.session.execute(
            update(Booking)
            .where(
                and_(
                    Booking.id == booking.id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.accepted_count == Booking.required_staff_count,
                )
            )
            .values(status=BookingStatus.ASSIGNED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        is_full = promoted.rowcount == 1
        if is_full:
            db.session.add(
                BookingAuditLog(
                    booking_id=booking.id,
                    from_status=BookingStatus.CONFIRMED.value,
                    to_status=BookingStatus.ASSIGNED.value,
                    changed_by_id=staff_id,
                    reason="Required staff count reached",
                )
            )
            NotificationService.push(
                booking.customer_user_id,
                "Staff assigned",
                f"Your booking {booking.booking_number} has a full cleaning team.",
                booking_id=booking.id,
            )
        db.session.commit()
        db.session.refresh(booking)

        current_app.logger.info(
            "Staff %s accepted booking %s (%d/%d)",
            staff_id,
            booking.booking_number,
            booking.accepted_count,
            booking.required_staff_count,
        )
        job_accepted.send(booking, assignment=assignment, staff_id=staff_id)
        if is_full:
            booking_status_changed.send(
                booking, from_status=BookingStatus.CONFIRMED, to_status=BookingStatus.ASSIGNED, actor=actor
            )
        return assignment

    @staticmethod
    def decline_job(booking_id, actor):
        """Turn down an open job before accepting it. The job never reappears."""
        AssignmentService._ensure_staff(actor.role)
        booking = BookingService.get_booking(booking_id)
        if StaffAssignment.query.filter_by(booking_id=booking.id, staff_user_id=actor.id).first():
            raise AlreadyActedOn("You have already responded to this job.")

        assignment = StaffAssignment(
            booking_id=booking.id,
            staff_user_id=actor.id,
            status=AssignmentStatus.REJECTED.value,
            assigned_at=utcnow(),
        )
        db.session.add(assignment)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise AlreadyActedOn("You have already responded to this job.") from exc
        current_app.logger.info("Staff %s declined booking %s", actor.id, booking.booking_number)
        return assignment

    @staticmethod
    def reject_job(assignment_id, actor):
        """Mark an assignment rejected.

        Withdrawing from an accepted job frees its slot, and is only possible
        while the booking is still gathering staff.
        """
        AssignmentService._ensure_staff(actor.role)
        assignment = db.session.get(StaffAssignment, assignment_id)
        if not assignment or assignment.staff_user_id != actor.id:
            raise NotFound("Assignment not found.")
        if assignment.status == AssignmentStatus.REJECTED.value:
            raise AlreadyActedOn("This job has already been rejected.")

        released = db.session.execute(
            update(Booking)
            .where(
                and_(
                    Booking.id == assignment.booking_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.accepted_count > 0,
                )
            )
            .values(accepted_count=Booking.accepted_count - 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if released.rowcount != 1:
            db.session.rollback()
            raise InvalidTransition("You can no longer withdraw from this job.")

        withdrawn = db.session.execute(
            update(StaffAssignment)
            .where(
                and_(
                    StaffAssignment.id == assignment.id,
                    StaffAssignment.status == AssignmentStatus.ACCEPTED.value,
                )
            )
            .values(status=AssignmentStatus.REJECTED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if withdrawn.rowcount != 1:
            db.session.rollback()
            raise AlreadyActedOn("This job has already been rejected.")
        db.session.commit()
        db.session.refresh(assignment)
        current_app.logger.info("Staff %s withdrew from booking %s", actor.id, assignment.booking_id)
        return assignment

    @staticmethod
    def _ensure_assigned_staff(booking_id, actor):
        AssignmentService._ensure_staff(actor.role)
        booking = BookingService.get_booking(booking_id)
        if not BookingService.holds_accepted_assignment(booking.id, actor.id):
            raise Forbidden("You are not assigned to this job.")
        return booking

    @staticmethod
    def start_job(booking_id, actor):
        AssignmentService._ensure_assigned_staff(booking_id, actor)
        return BookingService.update_booking_status(booking_id, BookingStatus.IN_PROGRESS, actor)

    @staticmethod
    def complete_job(booking_id, actor):
        AssignmentService._ensure_assigned_staff(booking_id, actor)
        return BookingService.update_booking_status(booking_id, BookingStatus.COMPLETED, actor)

    @staticmethod
    def staff_jobs(staff_id):
        bookings = (
            Booking.query.join(StaffAssignment, StaffAssignment.booking_id == Booking.id)
            .filter(StaffAssignment.staff_user_id == staff_id)
            .filter(StaffAssignment.status == AssignmentStatus.ACCEPTED.value)
            .order_by(Booking.scheduled_date.asc(), Booking.created_at.asc())
            .all()
        )
        active_statuses = {BookingStatus.CONFIRMED, BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS}
        return {
            "active": [b for b in bookings if parse_status(b.status) in active_statuses],
            "completed": [b for b in bookings if parse_status(b.status) == BookingStatus.COMPLETED],
        }
