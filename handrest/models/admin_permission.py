from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class AdminPermission(TimestampMixin, db.Model):
    __tablename__ = "admin_permissions"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    tab = db.Column(db.String(32), nullable=False)
    allowed = db.Column(db.Boolean, nullable=False, default=True)

    user = db.relationship("User", back_populates="permissions")

    __table_args__ = (db.UniqueConstraint("user_id", "tab", name="uq_admin_permission_tab"),)
