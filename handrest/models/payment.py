from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class Payment(TimestampMixin, db.Model):
    __tablename__ = "payments"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(24), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(40), nullable=True)
    transaction_id = db.Column(db.String(120), nullable=True, unique=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    booking = db.relationship("Booking", back_populates="payments")
