import secrets
import string
from datetime import date, datetime, time
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_, update

from handrest.errors import (
    AlreadyActedOn,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from handrest.extensions import db
from handrest.models import (
    Booking,
    BookingAuditLog,
    BookingLineItem,
    Package,
    Panchayath,
    Payment,
    Rating,
    StaffAssignment,
    StaffCoverage,
    StaffEarning,
)
from handrest.models.base import utcnow
from handrest.policy import (
    ADMIN_ROLES,
    STAFF_TRANSITIONS,
    TERMINAL_STATUSES,
    AssignmentStatus,
    BookingStatus,
    PaymentStatus,
    Role,
    can_mutate_booking_status,
    parse_role,
    parse_status,
)
from handrest.services.notification_service import NotificationService
from handrest.services.platform_service import PlatformService
from handrest.services.pricing_service import TWO_PLACES, PricingService
from handrest.signals import booking_status_changed, booking_status_overridden

BOOKING_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def _clean(value):
    return (str(value) if value is not None else "").strip()


def optional_int(value, label, minimum=None):
    if value in (None, ""):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a whole number.") from exc
    if minimum is not None and number < minimum:
        raise ValidationError(f"{label} must be at least {minimum}.")
    return number


def parse_schedule_date(value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    raw = _clean(value)
    if not raw:
        raise ValidationError("Scheduled date is required.")
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError("Scheduled date must be in YYYY-MM-DD format.") from exc


def parse_schedule_time(value):
    if isinstance(value, time):
        return value
    raw = _clean(value)
    if not raw:
        raise ValidationError("Scheduled time is required.")
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(raw, fmt).time()
        except ValueError:
            continue
    raise ValidationError("Scheduled time must be in HH:MM format.")


def normalize_phone(phone):
    digits = "".join(ch for ch in _clean(phone) if ch.isdigit())
    if len(digits) < 10:
        raise ValidationError("Phone number must have at least 10 digits.")
    return digits


class BookingService:
    @staticmethod
    def _status_label(status):
        return _clean(getattr(status, "value", status)).replace("_", " ").title()

    @staticmethod
    def _generate_booking_number():
        prefix = current_app.config.get("BOOKING_NUMBER_PREFIX", "HR")
        today = utcnow().strftime("%Y%m%d")
        while True:
            suffix = "".join(secrets.choice(BOOKING_NUMBER_ALPHABET) for _ in range(5))
            candidate = f"{prefix}-{today}-{suffix}"
            if not Booking.query.filter_by(booking_number=candidate).first():
                return candidate

    @staticmethod
    def get_booking(booking_id):
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise NotFound("Booking not found.")
        return booking

    @staticmethod
    def holds_accepted_assignment(booking_id, staff_id):
        return (
            StaffAssignment.query.filter_by(
                booking_id=booking_id,
                staff_user_id=staff_id,
                status=AssignmentStatus.ACCEPTED.value,
            ).first()
            is not None
        )

    @staticmethod
    def accepted_staff_ids(booking_id):
        rows = (
            StaffAssignment.query.with_entities(StaffAssignment.staff_user_id)
            .filter_by(booking_id=booking_id, status=AssignmentStatus.ACCEPTED.value)
            .order_by(StaffAssignment.assigned_at.asc(), StaffAssignment.id.asc())
            .all()
        )
        return [row.staff_user_id for row in rows]

    @staticmethod
    def covering_staff_ids(panchayath_id, ward_number):
        if panchayath_id is None:
            return []
        rows = StaffCoverage.query.filter_by(panchayath_id=panchayath_id).all()
        return [row.staff_user_id for row in rows if row.covers(panchayath_id, ward_number)]

    @staticmethod
    def can_view(actor, booking):
        role = parse_role(actor.role)
        if role in ADMIN_ROLES:
            return True
        if role == Role.CUSTOMER:
            return booking.customer_user_id == actor.id
        if role == Role.STAFF:
            return BookingService.holds_accepted_assignment(booking.id, actor.id)
        return False

    @staticmethod
    def get_by_number(booking_number, actor):
        booking = Booking.query.filter_by(booking_number=_clean(booking_number).upper()).first()
        if not booking or not BookingService.can_view(actor, booking):
            raise NotFound("Booking not found.")
        return booking

    @staticmethod
    def customer_bookings(customer_id):
        return (
            Booking.query.filter_by(customer_user_id=customer_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )

    @staticmethod
    def list_bookings(status=None, search=None):
        query = Booking.query
        if status:
            parsed = parse_status(status)
            if parsed is None:
                raise ValidationError("Unknown booking status.")
            query = query.filter(Booking.status == parsed.value)
        term = _clean(search)
        if term:
            like = f"%{term}%"
            query = query.filter(
                or_(
                    Booking.booking_number.ilike(like),
                    Booking.customer_name.ilike(like),
                    Booking.customer_phone.like(like),
                )
            )
        return query.order_by(Booking.scheduled_date.asc(), Booking.created_at.asc()).all()

    @staticmethod
    def create_booking(actor, customer_info, schedule_info, selection):
        """Price, validate and persist a new ``pending`` booking.

        Pricing is recomputed from the catalog; a client-side ``total_price``,
        when sent, must agree with it. Nothing is written when the order is
        below the minimum.
        """
        role = parse_role(actor.role)
        if role not in (Role.CUSTOMER, Role.ADMIN, Role.SUPER_ADMIN):
            raise Forbidden("Only customers and admins can create bookings.")

        customer_info = customer_info or {}
        schedule_info = schedule_info or {}
        selection = selection or {}

        customer_name = _clean(customer_info.get("customer_name"))
        if not customer_name:
            raise ValidationError("Customer name is required.")
        customer_phone = normalize_phone(customer_info.get("customer_phone"))
        scheduled_date = parse_schedule_date(schedule_info.get("scheduled_date"))
        scheduled_time = parse_schedule_time(schedule_info.get("scheduled_time"))
        if scheduled_date < utcnow().date():
            raise ValidationError("Scheduled date cannot be in the past.")

        category_id = optional_int(selection.get("category_id"), "Category")
        package_id = optional_int(selection.get("package_id"), "Package")
        order_total = PricingService.resolve_selection(
            category_id,
            selection.get("features"),
            selection.get("addons"),
            package_id=package_id,
        )
        PricingService.ensure_minimum(order_total)

        client_total = selection.get("total_price")
        if client_total not in (None, ""):
            try:
                client_total = Decimal(str(client_total)).quantize(TWO_PLACES)
            except ArithmeticError as exc:
                raise ValidationError("Total price must be a number.") from exc
            if client_total != order_total.grand_total:
                raise ValidationError("Prices have changed. Please review your order and try again.")

        panchayath_id = optional_int(customer_info.get("panchayath_id"), "Panchayath")
        ward_number = optional_int(customer_info.get("ward_number"), "Ward number", minimum=1)
        if panchayath_id is not None:
            panchayath = db.session.get(Panchayath, panchayath_id)
            if not panchayath or not panchayath.is_active:
                raise NotFound("Panchayath not found.")
            if ward_number is not None and ward_number > panchayath.ward_count:
                raise ValidationError(f"Ward number must be between 1 and {panchayath.ward_count}.")
        elif ward_number is not None:
            raise ValidationError("Ward number requires a panchayath.")

        required_staff = current_app.config.get("DEFAULT_REQUIRED_STAFF", 2)
        if package_id is not None:
            required_staff = db.session.get(Package, package_id).min_staff or required_staff

        booking = Booking(
            booking_number=BookingService._generate_booking_number(),
            package_id=package_id,
            customer_user_id=actor.id if role == Role.CUSTOMER else None,
            customer_name=customer_name,
            customer_email=_clean(customer_info.get("customer_email")).lower() or None,
            customer_phone=customer_phone,
            address_line1=_clean(customer_info.get("address_line1")),
            address_line2=_clean(customer_info.get("address_line2")) or None,
            city=_clean(customer_info.get("city")),
            pincode=_clean(customer_info.get("pincode")),
            landmark=_clean(customer_info.get("landmark")) or None,
            floor_number=optional_int(customer_info.get("floor_number"), "Floor number", minimum=0),
            property_sqft=optional_int(customer_info.get("property_sqft"), "Property size", minimum=0),
            panchayath_id=panchayath_id,
            ward_number=ward_number,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            special_instructions=_clean(schedule_info.get("special_instructions")) or None,
            base_price=order_total.feature_total,
            addon_price=order_total.addon_total,
            total_price=order_total.feature_total + order_total.addon_total,
            required_staff_count=int(required_staff),
            accepted_count=0,
            status=BookingStatus.PENDING.value,
        )
        db.session.add(booking)
        db.session.flush()

        for item in order_total.features + order_total.addons:
            db.session.add(
                BookingLineItem(
                    booking_id=booking.id,
                    kind=item.kind,
                    item_id=item.item_id,
                    name=item.name,
                    unit_price=item.price,
                    quantity=item.quantity,
                    line_total=PricingService.line_total(item),
                )
            )
        db.session.add(
            BookingAuditLog(
                booking_id=booking.id,
                from_status=None,
                to_status=BookingStatus.PENDING.value,
                changed_by_id=actor.id,
            )
        )
        NotificationService.push(
            booking.customer_user_id,
            "Booking received",
            f"Booking {booking.booking_number} is pending confirmation.",
            booking_id=booking.id,
        )
        db.session.commit()
        current_app.logger.info(
            "Booking %s created by %s %s, total %s", booking.booking_number, role.value, actor.id, booking.total_price
        )
        return booking

    @staticmethod
    def _apply_status(booking, to_status, actor, reason=None, is_override=False):
        """Write a status change as one conditional update on the current status.

        A concurrent writer that moved the booking first makes the update match
        no rows; the session is rolled back and ``InvalidTransition`` raised.
        """
        from_status = parse_status(booking.status)
        now = utcnow()
        values = {"status": to_status.value, "updated_at": now}
        if to_status == BookingStatus.COMPLETED:
            values["completed_at"] = now

        result = db.session.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == from_status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise InvalidTransition("Booking status changed by another request. Reload and try again.")

        db.session.add(
            BookingAuditLog(
                booking_id=booking.id,
                from_status=from_status.value,
                to_status=to_status.value,
                changed_by_id=actor.id,
                reason=reason,
                is_override=is_override,
            )
        )
        BookingService._notify_status(booking, from_status, to_status)
        db.session.commit()
        db.session.refresh(booking)

        booking_status_changed.send(booking, from_status=from_status, to_status=to_status, actor=actor)
        return from_status

    @staticmethod
    def _notify_status(booking, from_status, to_status):
        label = BookingService._status_label(to_status)
        NotificationService.push(
            booking.customer_user_id,
            f"Booking {label.lower()}",
            f"Booking {booking.booking_number} is now {label.lower()}.",
            booking_id=booking.id,
        )
        if to_status == BookingStatus.CONFIRMED:
            NotificationService.push_many(
                BookingService.covering_staff_ids(booking.panchayath_id, booking.ward_number),
                "New job available",
                f"Booking {booking.booking_number} on {booking.scheduled_date.isoformat()} needs staff.",
                booking_id=booking.id,
            )
        elif to_status == BookingStatus.CANCELLED:
            NotificationService.push_many(
                BookingService.accepted_staff_ids(booking.id),
                "Job cancelled",
                f"Booking {booking.booking_number} was cancelled.",
                booking_id=booking.id,
            )

    @staticmethod
    def update_booking_status(booking_id, new_status, actor):
        booking = BookingService.get_booking(booking_id)
        to_status = parse_status(new_status)
        if to_status is None:
            raise ValidationError("Unknown booking status.")
        from_status = parse_status(booking.status)
        role = parse_role(actor.role)

        holds_assignment = role == Role.STAFF and BookingService.holds_accepted_assignment(booking.id, actor.id)
        if not can_mutate_booking_status(role, from_status, to_status, holds_assignment=holds_assignment):
            if role in ADMIN_ROLES:
                raise InvalidTransition(
                    f"Cannot move booking from {from_status.value} to {to_status.value}."
                )
            staff_targets = {target for _, target in STAFF_TRANSITIONS}
            if holds_assignment and to_status in staff_targets:
                raise InvalidTransition(
                    f"Cannot move booking from {from_status.value} to {to_status.value}."
                )
            raise Forbidden("You are not allowed to change this booking's status.")

        BookingService._apply_status(booking, to_status, actor)
        current_app.logger.info(
            "Booking %s moved %s -> %s by %s %s",
            booking.booking_number,
            from_status.value,
            to_status.value,
            role.value,
            actor.id,
        )
        return booking

    @staticmethod
    def override_booking_status(booking_id, new_status, actor, reason=None):
        """Admin escape hatch: set any status on a booking that is not yet terminal.

        Every override is audited and announced on ``booking_status_overridden``.
        """
        if parse_role(actor.role) not in ADMIN_ROLES:
            raise Forbidden("Only admins can override booking status.")
        booking = BookingService.get_booking(booking_id)
        to_status = parse_status(new_status)
        if to_status is None:
            raise ValidationError("Unknown booking status.")
        from_status = parse_status(booking.status)
        if from_status in TERMINAL_STATUSES:
            raise InvalidTransition(f"Booking is already {from_status.value}.")
        if to_status == from_status:
            raise InvalidTransition(f"Booking is already {from_status.value}.")

        reason = _clean(reason) or None
        BookingService._apply_status(booking, to_status, actor, reason=reason, is_override=True)
        current_app.logger.warning(
            "Booking %s status overridden %s -> %s by %s (reason: %s)",
            booking.booking_number,
            from_status.value,
            to_status.value,
            actor.id,
            reason or "-",
        )
        booking_status_overridden.send(
            booking, from_status=from_status, to_status=to_status, actor=actor, reason=reason
        )
        return booking

    @staticmethod
    def finalize_payment(booking_id, actor, payment_method=None, transaction_id=None):
        """Record payment for a completed booking and credit staff earnings.

        The total less the platform commission is split evenly between the
        staff members who accepted the job. Calling it twice is a no-op.
        """
        if parse_role(actor.role) not in ADMIN_ROLES:
            raise Forbidden("Only admins can finalize payments.")
        booking = BookingService.get_booking(booking_id)
        if parse_status(booking.status) != BookingStatus.COMPLETED:
            raise InvalidTransition("Payment can only be finalized for completed bookings.")

        existing = booking.payments.filter_by(status=PaymentStatus.PAID.value).first()
        if existing:
            return existing

        now = utcnow()
        payment = Payment(
            booking_id=booking.id,
            amount=booking.total_price,
            status=PaymentStatus.PAID.value,
            payment_method=_clean(payment_method) or "cash",
            transaction_id=_clean(transaction_id) or None,
            paid_at=now,
        )
        db.session.add(payment)

        staff_ids = BookingService.accepted_staff_ids(booking.id)
        if staff_ids:
            total = Decimal(str(booking.total_price))
            commission_pct = PlatformService.commission_pct()
            share = (total / len(staff_ids)).quantize(TWO_PLACES)
            remainder = total - share * len(staff_ids)
            for index, staff_id in enumerate(staff_ids):
                gross = share + (remainder if index == 0 else Decimal("0.00"))
                fee = (gross * commission_pct / Decimal("100")).quantize(TWO_PLACES)
                db.session.add(
                    StaffEarning(
                        staff_user_id=staff_id,
                        booking_id=booking.id,
                        gross_amount=gross,
                        platform_fee=fee,
                        net_amount=gross - fee,
                    )
                )
                NotificationService.push(
                    staff_id,
                    "Earnings credited",
                    f"You earned {gross - fee} for booking {booking.booking_number}.",
                    booking_id=booking.id,
                )

        NotificationService.push(
            booking.customer_user_id,
            "Payment received",
            f"Payment of {booking.total_price} received for booking {booking.booking_number}.",
            booking_id=booking.id,
        )
        db.session.commit()
        current_app.logger.info(
            "Payment finalized for booking %s: %s across %d staff",
            booking.booking_number,
            booking.total_price,
            len(staff_ids),
        )
        return payment

    @staticmethod
    def rate_booking(booking_id, actor, rating, comment=None):
        booking = BookingService.get_booking(booking_id)
        if parse_role(actor.role) != Role.CUSTOMER or booking.customer_user_id != actor.id:
            raise Forbidden("Only the customer who booked can rate this job.")
        if parse_status(booking.status) != BookingStatus.COMPLETED:
            raise InvalidTransition("Ratings open once the job is completed.")
        try:
            rating_int = int(rating)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Rating must be an integer between 1 and 5.") from exc
        if rating_int < 1 or rating_int > 5:
            raise ValidationError("Rating must be an integer between 1 and 5.")
        if booking.rating is not None:
            raise AlreadyActedOn("This booking has already been rated.")

        row = Rating(booking_id=booking.id, rating=rating_int, comment=_clean(comment) or None)
        db.session.add(row)
        db.session.commit()
        return row
