from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class Rating(TimestampMixin, db.Model):
    __tablename__ = "ratings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)
    rating = db.Column(db.SmallInteger, nullable=False)
    comment = db.Column(db.Text, nullable=True)

    booking = db.relationship("Booking", back_populates="rating")

    __table_args__ = (db.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_rating_range"),)
