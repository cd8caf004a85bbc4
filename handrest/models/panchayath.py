from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class Panchayath(TimestampMixin, db.Model):
    __tablename__ = "panchayaths"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    ward_count = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    coverage = db.relationship("StaffCoverage", back_populates="panchayath", lazy="dynamic")

    __table_args__ = (db.CheckConstraint("ward_count > 0", name="ck_panchayath_ward_count_positive"),)


class StaffCoverage(TimestampMixin, db.Model):
    """Panchayath and wards a staff member is allowed to serve."""

    __tablename__ = "staff_coverage"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    staff_user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    panchayath_id = db.Column(
        PKType, db.ForeignKey("panchayaths.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ward_numbers = db.Column(db.JSON, nullable=False, default=list)

    staff = db.relationship("User", back_populates="coverage")
    panchayath = db.relationship("Panchayath", back_populates="coverage")

    __table_args__ = (
        db.UniqueConstraint("staff_user_id", "panchayath_id", name="uq_staff_coverage_panchayath"),
    )

    def covers(self, panchayath_id, ward_number):
        if self.panchayath_id != panchayath_id:
            return False
        if ward_number is None:
            return True
        return int(ward_number) in {int(w) for w in (self.ward_numbers or [])}
