from handrest.extensions import db
from handrest.models.base import TimestampMixin


class PlatformSetting(TimestampMixin, db.Model):
    """Runtime-tunable business settings such as ``commission_pct``."""

    __tablename__ = "platform_settings"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(255), nullable=True)
