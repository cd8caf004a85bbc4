from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class ServiceCategory(TimestampMixin, db.Model):
    __tablename__ = "service_categories"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    icon = db.Column(db.String(64), nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    packages = db.relationship("Package", back_populates="category", lazy="dynamic")
