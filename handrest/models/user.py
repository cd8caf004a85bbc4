from flask_login import UserMixin

from handrest.extensions import db
from handrest.models.base import PKType, TimestampMixin


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(15), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(24), nullable=False, index=True)
    is_active_user = db.Column(db.Boolean, nullable=False, default=True)
    last_login = db.Column(db.DateTime(timezone=True), nullable=True)

    staff_details = db.relationship("StaffDetails", back_populates="user", uselist=False, cascade="all, delete-orphan")
    coverage = db.relationship("StaffCoverage", back_populates="staff", lazy="dynamic", cascade="all, delete-orphan")
    assignments = db.relationship("StaffAssignment", back_populates="staff", lazy="dynamic")
    bookings = db.relationship("Booking", back_populates="customer", lazy="dynamic")
    notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")
    earnings = db.relationship("StaffEarning", back_populates="staff", lazy="dynamic")
    permissions = db.relationship("AdminPermission", back_populates="user", lazy="dynamic", cascade="all, delete-orphan")

    @property
    def is_active(self):
        return bool(self.is_active_user)

    def __repr__(self):
        return f"<User {self.phone} ({self.role})>"


class StaffDetails(TimestampMixin, db.Model):
    __tablename__ = "staff_details"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True, index=True)
    skills = db.Column(db.JSON, nullable=True)

    user = db.relationship("User", back_populates="staff_details")
