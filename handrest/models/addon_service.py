from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class AddonService(TimestampMixin, db.Model):
    __tablename__ = "addon_services"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(140), nullable=False)
    description = db.Column(db.Text, nullable=True)
    icon = db.Column(db.String(64), nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (db.CheckConstraint("price >= 0", name="ck_addon_price_non_negative"),)
