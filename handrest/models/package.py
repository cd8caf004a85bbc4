from decimal import Decimal

from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class Package(TimestampMixin, db.Model):
    __tablename__ = "packages"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    category_id = db.Column(
        PKType, db.ForeignKey("service_categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(140), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    duration_hours = db.Column(db.Integer, nullable=False, default=2)
    min_staff = db.Column(db.Integer, nullable=False, default=2)
    max_sqft = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_featured = db.Column(db.Boolean, nullable=False, default=False, index=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    category = db.relationship("ServiceCategory", back_populates="packages")

    __table_args__ = (
        db.CheckConstraint("price >= 0", name="ck_package_price_non_negative"),
        db.CheckConstraint("discount_amount >= 0", name="ck_package_discount_non_negative"),
        db.CheckConstraint("min_staff > 0", name="ck_package_min_staff_positive"),
    )

    @property
    def effective_price(self):
        price = Decimal(str(self.price or 0)) - Decimal(str(self.discount_amount or 0))
        return max(price, Decimal("0.00"))
