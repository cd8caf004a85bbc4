"""Role, status and permission policy tables.

Everything in this module is pure: callers resolve the actor and the
permission mapping first and pass them in explicitly.
"""

from collections import namedtuple
from enum import Enum


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AssignmentStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class AdminTab(str, Enum):
    DASHBOARD = "dashboard"
    BOOKINGS = "bookings"
    STAFF = "staff"
    PACKAGES = "packages"
    ADDONS = "addons"
    CUSTOM_FEATURES = "custom_features"
    PANCHAYATHS = "panchayaths"
    REPORTS = "reports"
    SETTINGS = "settings"


Actor = namedtuple("Actor", ["id", "role"])

ADMIN_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.ASSIGNED, BookingStatus.CANCELLED}),
    BookingStatus.ASSIGNED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

# Staff may only drive the job forward once they hold an accepted assignment.
STAFF_TRANSITIONS = frozenset(
    {
        (BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS),
        (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED),
    }
)


def parse_role(value):
    try:
        return Role(value)
    except ValueError:
        return None


def parse_status(value):
    if isinstance(value, BookingStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return BookingStatus(value.strip().lower())
    except ValueError:
        return None


def is_valid_transition(from_status, to_status):
    return parse_status(to_status) in BOOKING_TRANSITIONS.get(parse_status(from_status), frozenset())


def can_view_tab(role, permissions, tab):
    """Decide whether ``role`` may open an admin dashboard ``tab``.

    ``permissions`` is the resolved ``{tab: bool}`` lookup for the actor.
    Staff and customers never see the admin surface.
    """
    role = parse_role(role)
    if role == Role.SUPER_ADMIN:
        return True
    if role != Role.ADMIN:
        return False
    try:
        tab = AdminTab(tab)
    except ValueError:
        return False
    permissions = permissions or {}
    return bool(permissions.get(tab, permissions.get(tab.value, False)))


def can_mutate_booking_status(role, from_status, to_status, holds_assignment=False):
    role = parse_role(role)
    from_status = parse_status(from_status)
    to_status = parse_status(to_status)
    if role is None or from_status is None or to_status is None:
        return False
    if role in ADMIN_ROLES:
        return is_valid_transition(from_status, to_status)
    if role == Role.STAFF:
        return holds_assignment and (from_status, to_status) in STAFF_TRANSITIONS
    return False
