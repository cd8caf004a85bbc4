from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class Booking(TimestampMixin, db.Model):
    __tablename__ = "bookings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    package_id = db.Column(PKType, db.ForeignKey("packages.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    customer_name = db.Column(db.String(120), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(15), nullable=False, index=True)
    address_line1 = db.Column(db.String(255), nullable=False, default="")
    address_line2 = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(120), nullable=False, default="")
    pincode = db.Column(db.String(10), nullable=False, default="")
    landmark = db.Column(db.String(255), nullable=True)
    floor_number = db.Column(db.Integer, nullable=True)
    property_sqft = db.Column(db.Integer, nullable=True)
    panchayath_id = db.Column(
        PKType, db.ForeignKey("panchayaths.id", ondelete="SET NULL"), nullable=True, index=True
    )
    ward_number = db.Column(db.Integer, nullable=True)

    scheduled_date = db.Column(db.Date, nullable=False, index=True)
    scheduled_time = db.Column(db.Time, nullable=False)
    special_instructions = db.Column(db.Text, nullable=True)

    base_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    addon_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    required_staff_count = db.Column(db.Integer, nullable=False, default=2)
    # Only ever changed through conditional UPDATE statements in AssignmentService.
    accepted_count = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(24), nullable=False, default="pending", index=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    package = db.relationship("Package")
    panchayath = db.relationship("Panchayath")
    customer = db.relationship("User", back_populates="bookings")
    line_items = db.relationship(
        "BookingLineItem", back_populates="booking", lazy="dynamic", cascade="all, delete-orphan"
    )
    assignments = db.relationship("StaffAssignment", back_populates="booking", lazy="dynamic")
    payments = db.relationship("Payment", back_populates="booking", lazy="dynamic")
    rating = db.relationship("Rating", back_populates="booking", uselist=False)
    audit_logs = db.relationship("BookingAuditLog", back_populates="booking", lazy="dynamic")

    __table_args__ = (
        db.Index("ix_bookings_status_schedule", "status", "scheduled_date"),
        db.Index("ix_bookings_panchayath_status", "panchayath_id", "status"),
        db.CheckConstraint("required_staff_count > 0", name="ck_booking_required_staff_positive"),
        db.CheckConstraint(
            "accepted_count >= 0 AND accepted_count <= required_staff_count",
            name="ck_booking_accepted_within_capacity",
        ),
        db.CheckConstraint(
            "base_price >= 0 AND addon_price >= 0 AND total_price >= 0",
            name="ck_booking_prices_non_negative",
        ),
    )

    @property
    def open_slots(self):
        return max((self.required_staff_count or 0) - (self.accepted_count or 0), 0)


class BookingLineItem(TimestampMixin, db.Model):
    __tablename__ = "booking_line_items"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False)
    item_id = db.Column(PKType, nullable=False)
    name = db.Column(db.String(140), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    booking = db.relationship("Booking", back_populates="line_items")

    __table_args__ = (db.CheckConstraint("quantity > 0", name="ck_line_item_quantity_positive"),)
