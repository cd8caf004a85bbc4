"""
tests/test_bookings.py
Booking creation with server-side pricing, the lifecycle state machine,
admin overrides, payment finalization and ratings.
"""

import re
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update

from handrest.errors import (
    AlreadyActedOn,
    BelowMinimumOrder,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from handrest.extensions import db
from handrest.models import Booking, BookingAuditLog, Notification, StaffAssignment, StaffEarning
from handrest.policy import AssignmentStatus, BookingStatus, Role
from handrest.services import BookingService, PlatformService
from handrest.signals import booking_status_changed, booking_status_overridden
from tests.conftest import (
    actor_for,
    future_date,
    make_booking,
    make_catalog,
    make_panchayath,
    make_staff,
    make_user,
)


def order(catalog, panchayath, features=None, addons=None, **selection):
    customer_info = {
        "customer_name": "Anitha Varghese",
        "customer_phone": "+91 94470 12345",
        "address_line1": "Kuttikkattu House",
        "city": "Kottayam",
        "pincode": "686563",
        "panchayath_id": panchayath.id,
        "ward_number": 3,
    }
    schedule_info = {"scheduled_date": future_date().isoformat(), "scheduled_time": "09:30"}
    selection.setdefault("category_id", catalog["home"].id)
    selection["features"] = features if features is not None else {str(catalog["kitchen"].id): 2}
    selection["addons"] = addons if addons is not None else [catalog["sofa"].id]
    return customer_info, schedule_info, selection


@pytest.fixture
def world(ctx):
    panchayath = make_panchayath()
    return {
        "catalog": make_catalog(),
        "panchayath": panchayath,
        "customer": make_user(Role.CUSTOMER, "9447012345"),
        "admin": make_user(Role.SUPER_ADMIN, "9000000001"),
        "staff": make_staff("9800000001", panchayath, [1, 2, 3]),
    }


# ── Creation ───────────────────────────────────────────────────────────────────

def test_create_booking_prices_on_server(world):
    """Totals come from catalog rows and the booking starts pending."""
    customer = world["customer"]
    booking = BookingService.create_booking(actor_for(customer), *order(world["catalog"], world["panchayath"]))

    assert booking.status == BookingStatus.PENDING.value
    assert re.fullmatch(r"HR-\d{8}-[A-Z0-9]{5}", booking.booking_number)
    assert booking.customer_user_id == customer.id
    assert booking.customer_phone == "919447012345"
    assert booking.base_price == Decimal("300.00")
    assert booking.addon_price == Decimal("200.00")
    assert booking.total_price == booking.base_price + booking.addon_price
    assert booking.required_staff_count == 2
    assert booking.accepted_count == 0
    assert sorted((li.kind, li.quantity) for li in booking.line_items) == [("addon", 1), ("feature", 2)]
    assert BookingAuditLog.query.filter_by(booking_id=booking.id, to_status="pending").count() == 1
    assert Notification.query.filter_by(user_id=customer.id, booking_id=booking.id).count() == 1


def test_below_minimum_writes_nothing(world):
    customer_info, schedule_info, selection = order(world["catalog"], world["panchayath"], addons=[])
    with pytest.raises(BelowMinimumOrder):
        BookingService.create_booking(actor_for(world["customer"]), customer_info, schedule_info, selection)
    assert Booking.query.count() == 0


def test_client_total_must_match_server_total(world):
    customer_info, schedule_info, selection = order(world["catalog"], world["panchayath"], total_price="450")
    with pytest.raises(ValidationError):
        BookingService.create_booking(actor_for(world["customer"]), customer_info, schedule_info, selection)

    selection["total_price"] = "500.00"
    booking = BookingService.create_booking(actor_for(world["customer"]), customer_info, schedule_info, selection)
    assert booking.total_price == Decimal("500.00")


def test_package_sets_required_staff(world):
    catalog = world["catalog"]
    customer_info, schedule_info, selection = order(
        catalog, world["panchayath"], features={}, addons=[], package_id=catalog["package"].id
    )
    booking = BookingService.create_booking(actor_for(world["customer"]), customer_info, schedule_info, selection)
    assert booking.package_id == catalog["package"].id
    assert booking.required_staff_count == 3
    assert booking.base_price == Decimal("1500.00")


@pytest.mark.parametrize(
    "field,value",
    [
        ("customer_name", "  "),
        ("customer_phone", "12345"),
        ("ward_number", 99),
        ("scheduled_date", (date.today() - timedelta(days=2)).isoformat()),
        ("scheduled_time", "half past nine"),
    ],
)
def test_invalid_details_are_rejected(world, field, value):
    customer_info, schedule_info, selection = order(world["catalog"], world["panchayath"])
    if field.startswith("scheduled"):
        schedule_info[field] = value
    else:
        customer_info[field] = value
    with pytest.raises(ValidationError):
        BookingService.create_booking(actor_for(world["customer"]), customer_info, schedule_info, selection)
    assert Booking.query.count() == 0


def test_staff_cannot_create_bookings(world):
    with pytest.raises(Forbidden):
        BookingService.create_booking(actor_for(world["staff"]), *order(world["catalog"], world["panchayath"]))


def test_admin_booking_has_no_customer_account(world):
    booking = BookingService.create_booking(actor_for(world["admin"]), *order(world["catalog"], world["panchayath"]))
    assert booking.customer_user_id is None


# ── Lifecycle ──────────────────────────────────────────────────────────────────

def test_admin_walks_the_lifecycle(world):
    admin = actor_for(world["admin"])
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.PENDING)

    for target in (BookingStatus.CONFIRMED, BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS):
        BookingService.update_booking_status(booking.id, target, admin)
        assert booking.status == target.value
    assert booking.completed_at is None

    BookingService.update_booking_status(booking.id, "completed", admin)
    assert booking.status == "completed"
    assert booking.completed_at is not None

    trail = [row.to_status for row in booking.audit_logs.order_by(BookingAuditLog.id)]
    assert trail == ["confirmed", "assigned", "in_progress", "completed"]


def test_invalid_transition_leaves_booking_untouched(world):
    admin = actor_for(world["admin"])
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.PENDING)
    with pytest.raises(InvalidTransition):
        BookingService.update_booking_status(booking.id, BookingStatus.IN_PROGRESS, admin)
    assert db.session.get(Booking, booking.id).status == "pending"
    assert booking.audit_logs.count() == 0


def test_terminal_bookings_reject_every_transition(world):
    admin = actor_for(world["admin"])
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.CANCELLED)
    for target in BookingStatus:
        with pytest.raises(InvalidTransition):
            BookingService.update_booking_status(booking.id, target, admin)


def test_unknown_status_is_a_validation_error(world):
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.PENDING)
    with pytest.raises(ValidationError):
        BookingService.update_booking_status(booking.id, "archived", actor_for(world["admin"]))


@pytest.mark.parametrize("status", [5, None, ["confirmed"], {"status": "confirmed"}])
def test_non_text_status_is_a_validation_error(world, status):
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.PENDING)
    with pytest.raises(ValidationError):
        BookingService.update_booking_status(booking.id, status, actor_for(world["admin"]))
    with pytest.raises(ValidationError):
        BookingService.override_booking_status(booking.id, status, actor_for(world["admin"]))
    assert booking.status == "pending"


def test_customer_cannot_change_status(world):
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.PENDING)
    with pytest.raises(Forbidden):
        BookingService.update_booking_status(booking.id, BookingStatus.CANCELLED, actor_for(world["customer"]))


def test_staff_without_assignment_cannot_change_status(world):
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.ASSIGNED)
    with pytest.raises(Forbidden):
        BookingService.update_booking_status(booking.id, BookingStatus.IN_PROGRESS, actor_for(world["staff"]))


def test_assigned_staff_moves_job_forward_only(world):
    staff = world["staff"]
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.ASSIGNED)
    db.session.add(StaffAssignment(booking_id=booking.id, staff_user_id=staff.id))
    db.session.commit()

    with pytest.raises(InvalidTransition):
        BookingService.update_booking_status(booking.id, BookingStatus.COMPLETED, actor_for(staff))
    with pytest.raises(Forbidden):
        BookingService.update_booking_status(booking.id, BookingStatus.CANCELLED, actor_for(staff))

    BookingService.update_booking_status(booking.id, BookingStatus.IN_PROGRESS, actor_for(staff))
    BookingService.update_booking_status(booking.id, BookingStatus.COMPLETED, actor_for(staff))
    assert booking.status == "completed"


def test_concurrent_status_change_is_detected(world):
    """The write is conditional on the status the caller saw."""
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.PENDING)
    assert booking.status == "pending"
    db.session.execute(
        update(Booking)
        .where(Booking.id == booking.id)
        .values(status="cancelled")
        .execution_options(synchronize_session=False)
    )
    with pytest.raises(InvalidTransition):
        BookingService.update_booking_status(booking.id, BookingStatus.CONFIRMED, actor_for(world["admin"]))


def test_confirming_notifies_covering_staff(world):
    staff = world["staff"]
    outsider = make_staff("9800000002", world["panchayath"], [7])
    booking = make_booking(world["customer"], world["panchayath"], ward_number=3, status=BookingStatus.PENDING)

    BookingService.update_booking_status(booking.id, BookingStatus.CONFIRMED, actor_for(world["admin"]))

    assert Notification.query.filter_by(user_id=staff.id, booking_id=booking.id).count() == 1
    assert Notification.query.filter_by(user_id=outsider.id, booking_id=booking.id).count() == 0


def test_status_change_signal_fires(world):
    seen = []

    def receiver(sender, **kwargs):
        seen.append((sender.id, kwargs["from_status"], kwargs["to_status"]))

    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.PENDING)
    with booking_status_changed.connected_to(receiver):
        BookingService.update_booking_status(booking.id, BookingStatus.CONFIRMED, actor_for(world["admin"]))
    assert seen == [(booking.id, BookingStatus.PENDING, BookingStatus.CONFIRMED)]


# ── Overrides ──────────────────────────────────────────────────────────────────

def test_admin_override_is_audited_and_announced(world):
    seen = []

    def receiver(sender, **kwargs):
        seen.append(kwargs["reason"])

    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.ASSIGNED)
    with booking_status_overridden.connected_to(receiver):
        BookingService.override_booking_status(
            booking.id, BookingStatus.PENDING, actor_for(world["admin"]), reason="Customer asked to reschedule"
        )

    assert booking.status == "pending"
    log = booking.audit_logs.one()
    assert log.is_override is True
    assert (log.from_status, log.to_status) == ("assigned", "pending")
    assert seen == ["Customer asked to reschedule"]


def test_override_rules(world):
    admin = actor_for(world["admin"])
    done = make_booking(world["customer"], world["panchayath"], status=BookingStatus.COMPLETED, number="HR-1")
    live = make_booking(world["customer"], world["panchayath"], status=BookingStatus.CONFIRMED, number="HR-2")

    with pytest.raises(InvalidTransition):
        BookingService.override_booking_status(done.id, BookingStatus.PENDING, admin)
    with pytest.raises(InvalidTransition):
        BookingService.override_booking_status(live.id, BookingStatus.CONFIRMED, admin)
    with pytest.raises(Forbidden):
        BookingService.override_booking_status(live.id, BookingStatus.PENDING, actor_for(world["staff"]))


# ── Payment and rating ─────────────────────────────────────────────────────────

def test_finalize_payment_splits_earnings(world):
    admin = actor_for(world["admin"])
    second = make_staff("9800000002", world["panchayath"], [3])
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.COMPLETED)
    for staff in (world["staff"], second):
        db.session.add(StaffAssignment(booking_id=booking.id, staff_user_id=staff.id))
    db.session.commit()

    payment = BookingService.finalize_payment(booking.id, admin, payment_method="upi", transaction_id="UPI-1")
    assert payment.status == "paid"
    assert payment.amount == Decimal("900.00")

    earnings = StaffEarning.query.filter_by(booking_id=booking.id).order_by(StaffEarning.staff_user_id).all()
    assert [(e.gross_amount, e.platform_fee, e.net_amount) for e in earnings] == [
        (Decimal("450.00"), Decimal("45.00"), Decimal("405.00")),
        (Decimal("450.00"), Decimal("45.00"), Decimal("405.00")),
    ]

    again = BookingService.finalize_payment(booking.id, admin)
    assert again.id == payment.id
    assert StaffEarning.query.filter_by(booking_id=booking.id).count() == 2


def test_finalize_payment_uses_commission_setting(world):
    PlatformService.set_commission_pct("20")
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.COMPLETED)
    db.session.add(StaffAssignment(booking_id=booking.id, staff_user_id=world["staff"].id))
    db.session.commit()

    BookingService.finalize_payment(booking.id, actor_for(world["admin"]))
    earning = StaffEarning.query.filter_by(booking_id=booking.id).one()
    assert earning.platform_fee == Decimal("180.00")
    assert earning.net_amount == Decimal("720.00")


def test_rejected_staff_earn_nothing(world):
    quitter = make_staff("9800000002", world["panchayath"], [3])
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.COMPLETED)
    db.session.add(StaffAssignment(booking_id=booking.id, staff_user_id=world["staff"].id))
    db.session.add(
        StaffAssignment(booking_id=booking.id, staff_user_id=quitter.id, status=AssignmentStatus.REJECTED.value)
    )
    db.session.commit()

    BookingService.finalize_payment(booking.id, actor_for(world["admin"]))
    assert [e.staff_user_id for e in StaffEarning.query.all()] == [world["staff"].id]


def test_payment_requires_completed_booking(world):
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.IN_PROGRESS)
    with pytest.raises(InvalidTransition):
        BookingService.finalize_payment(booking.id, actor_for(world["admin"]))
    with pytest.raises(Forbidden):
        BookingService.finalize_payment(booking.id, actor_for(world["customer"]))


def test_customer_rates_completed_booking_once(world):
    customer = actor_for(world["customer"])
    booking = make_booking(world["customer"], world["panchayath"], status=BookingStatus.COMPLETED)

    with pytest.raises(ValidationError):
        BookingService.rate_booking(booking.id, customer, 6)
    rating = BookingService.rate_booking(booking.id, customer, "5", comment="Spotless")
    assert rating.rating == 5
    with pytest.raises(AlreadyActedOn):
        BookingService.rate_booking(booking.id, customer, 4)


def test_rating_rules(world):
    stranger = make_user(Role.CUSTOMER, "9447099999")
    pending = make_booking(world["customer"], world["panchayath"], status=BookingStatus.PENDING, number="HR-1")
    done = make_booking(world["customer"], world["panchayath"], status=BookingStatus.COMPLETED, number="HR-2")

    with pytest.raises(InvalidTransition):
        BookingService.rate_booking(pending.id, actor_for(world["customer"]), 5)
    with pytest.raises(Forbidden):
        BookingService.rate_booking(done.id, actor_for(stranger), 5)


# ── Queries ────────────────────────────────────────────────────────────────────

def test_lookup_by_number_is_scoped_to_the_owner(world):
    stranger = make_user(Role.CUSTOMER, "9447099999")
    booking = make_booking(world["customer"], world["panchayath"], number="HR-20300101-ABCDE")

    found = BookingService.get_by_number("hr-20300101-abcde", actor_for(world["customer"]))
    assert found.id == booking.id
    assert BookingService.get_by_number(booking.booking_number, actor_for(world["admin"])).id == booking.id
    with pytest.raises(NotFound):
        BookingService.get_by_number(booking.booking_number, actor_for(stranger))
    with pytest.raises(NotFound):
        BookingService.get_by_number(booking.booking_number, actor_for(world["staff"]))


def test_staff_lookup_needs_an_accepted_assignment(world):
    """Declining a job does not let the staff member look it up later."""
    booking = make_booking(world["customer"], world["panchayath"], number="HR-20300101-DECLN")
    db.session.add(
        StaffAssignment(
            booking_id=booking.id,
            staff_user_id=world["staff"].id,
            status=AssignmentStatus.REJECTED.value,
        )
    )
    db.session.commit()
    with pytest.raises(NotFound):
        BookingService.get_by_number(booking.booking_number, actor_for(world["staff"]))

    other = make_staff("9800000002", world["panchayath"], [3])
    db.session.add(
        StaffAssignment(booking_id=booking.id, staff_user_id=other.id, status=AssignmentStatus.ACCEPTED.value)
    )
    db.session.commit()
    assert BookingService.get_by_number(booking.booking_number, actor_for(other)).id == booking.id


def test_list_bookings_filters(world):
    make_booking(world["customer"], world["panchayath"], status=BookingStatus.PENDING, number="HR-1")
    make_booking(None, world["panchayath"], status=BookingStatus.CONFIRMED, number="HR-2")

    assert [b.booking_number for b in BookingService.list_bookings(status="confirmed")] == ["HR-2"]
    assert [b.booking_number for b in BookingService.list_bookings(search="walk-in")] == ["HR-2"]
    assert len(BookingService.list_bookings()) == 2
    with pytest.raises(ValidationError):
        BookingService.list_bookings(status="archived")
