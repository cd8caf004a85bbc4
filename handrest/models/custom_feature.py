from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class CustomFeature(TimestampMixin, db.Model):
    __tablename__ = "custom_features"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(140), nullable=False)
    description = db.Column(db.Text, nullable=True)
    icon = db.Column(db.String(64), nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    category_mappings = db.relationship(
        "CategoryFeatureMapping", back_populates="feature", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (db.CheckConstraint("price >= 0", name="ck_custom_feature_price_non_negative"),)


class CategoryFeatureMapping(TimestampMixin, db.Model):
    __tablename__ = "category_feature_mappings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    category_id = db.Column(
        PKType, db.ForeignKey("service_categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    custom_feature_id = db.Column(
        PKType, db.ForeignKey("custom_features.id", ondelete="CASCADE"), nullable=False, index=True
    )

    feature = db.relationship("CustomFeature", back_populates="category_mappings")

    __table_args__ = (
        db.UniqueConstraint("category_id", "custom_feature_id", name="uq_category_feature"),
    )
