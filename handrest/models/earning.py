from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class StaffEarning(TimestampMixin, db.Model):
    __tablename__ = "staff_earnings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    staff_user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    gross_amount = db.Column(db.Numeric(12, 2), nullable=False)
    platform_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_amount = db.Column(db.Numeric(12, 2), nullable=False)

    staff = db.relationship("User", back_populates="earnings")

    __table_args__ = (db.UniqueConstraint("booking_id", "staff_user_id", name="uq_earning_booking_staff"),)
