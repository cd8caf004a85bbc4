from handrest.extensions import db
from handrest.models.base import PKType, utcnow


class BookingAuditLog(db.Model):
    """Append-only record of booking status changes."""

    __tablename__ = "booking_audit_logs"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = db.Column(db.String(24), nullable=True)
    to_status = db.Column(db.String(24), nullable=False)
    changed_by_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reason = db.Column(db.Text, nullable=True)
    is_override = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    booking = db.relationship("Booking", back_populates="audit_logs")
