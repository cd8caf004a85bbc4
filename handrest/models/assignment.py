from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin, utcnow


class StaffAssignment(TimestampMixin, db.Model):
    __tablename__ = "booking_staff_assignments"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="accepted", index=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    booking = db.relationship("Booking", back_populates="assignments")
    staff = db.relationship("User", back_populates="assignments")

    __table_args__ = (
        db.UniqueConstraint("booking_id", "staff_user_id", name="uq_assignment_booking_staff"),
        db.Index("ix_assignments_booking_status", "booking_id", "status"),
    )
