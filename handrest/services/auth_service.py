from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from handrest.errors import AppError, NotFound, ValidationError
from handrest.extensions import bcrypt, db
from handrest.models import Panchayath, StaffCoverage, StaffDetails, User
from handrest.policy import Role
from handrest.services.booking_service import normalize_phone

SYNTHETIC_EMAIL_DOMAIN = "handrest.local"


class AuthService:
    @staticmethod
    def _synthetic_email(phone, role):
        return f"{phone}@{role.value}.{SYNTHETIC_EMAIL_DOMAIN}"

    @staticmethod
    def _hash_password(password):
        if not password or len(password) < 6:
            raise ValidationError("Password must be at least 6 characters.")
        return bcrypt.generate_password_hash(password).decode("utf-8")

    @staticmethod
    def _active_panchayath(panchayath_id):
        panchayath = db.session.get(Panchayath, panchayath_id) if panchayath_id is not None else None
        if not panchayath or not panchayath.is_active:
            raise NotFound("Panchayath not found.")
        return panchayath

    @staticmethod
    def _ward_list(panchayath, ward_numbers):
        wards = set()
        for raw in ward_numbers or []:
            try:
                ward = int(raw)
            except (TypeError, ValueError) as exc:
                raise ValidationError("Ward numbers must be whole numbers.") from exc
            if ward < 1 or ward > panchayath.ward_count:
                raise ValidationError(f"Ward number must be between 1 and {panchayath.ward_count}.")
            wards.add(ward)
        if not wards:
            raise ValidationError("Select at least one ward.")
        return sorted(wards)

    @staticmethod
    def _create_user(full_name, phone, password, role, email=None):
        full_name = (full_name or "").strip()
        if not full_name:
            raise ValidationError("Full name is required.")
        phone = normalize_phone(phone)
        if User.query.filter_by(phone=phone).first():
            raise AppError("Mobile number already registered.", 409)

        email = (email or "").strip().lower() or AuthService._synthetic_email(phone, role)
        if User.query.filter_by(email=email).first():
            raise AppError("Email already registered.", 409)

        user = User(
            full_name=full_name,
            email=email,
            phone=phone,
            role=role.value,
            password_hash=AuthService._hash_password(password),
        )
        db.session.add(user)
        return user

    @staticmethod
    def _commit_new_user(user):
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise AppError("Account already exists for these details.", 409) from exc
        return user

    @staticmethod
    def register_customer(full_name, mobile, password, panchayath_id=None, ward_number=None, email=None):
        if panchayath_id is not None:
            panchayath = AuthService._active_panchayath(int(panchayath_id))
            if ward_number is not None:
                AuthService._ward_list(panchayath, [ward_number])
        user = AuthService._create_user(full_name, mobile, password, Role.CUSTOMER, email=email)
        return AuthService._commit_new_user(user)

    @staticmethod
    def register_staff(full_name, mobile, password, panchayath_id, ward_numbers):
        """Create a staff account with its service area.

        Staff only ever see jobs inside the panchayath wards recorded here.
        """
        try:
            panchayath = AuthService._active_panchayath(int(panchayath_id))
        except (TypeError, ValueError) as exc:
            raise ValidationError("Panchayath is required.") from exc
        wards = AuthService._ward_list(panchayath, ward_numbers)

        user = AuthService._create_user(full_name, mobile, password, Role.STAFF)
        db.session.flush()
        db.session.add(StaffDetails(user_id=user.id, is_available=True))
        db.session.add(StaffCoverage(staff_user_id=user.id, panchayath_id=panchayath.id, ward_numbers=wards))
        return AuthService._commit_new_user(user)

    @staticmethod
    def create_admin(full_name, mobile, password, email=None, super_admin=False):
        role = Role.SUPER_ADMIN if super_admin else Role.ADMIN
        user = AuthService._create_user(full_name, mobile, password, role, email=email)
        return AuthService._commit_new_user(user)

    @staticmethod
    def authenticate_user(identifier, password):
        """Log in with a mobile number or an email address."""
        identifier = (identifier or "").strip().lower()
        if not identifier:
            raise AppError("Invalid credentials.", 401)
        digits = "".join(ch for ch in identifier if ch.isdigit())
        user = User.query.filter(
            or_(User.email == identifier, User.phone == (digits if "@" not in identifier else None))
        ).first()
        if not user:
            raise AppError("Invalid credentials.", 401)

        try:
            is_valid = bcrypt.check_password_hash(user.password_hash, password or "")
        except ValueError:
            is_valid = False
        if not is_valid:
            raise AppError("Invalid credentials.", 401)
        if not user.is_active_user:
            raise AppError("User account is inactive.", 403)
        user.last_login = datetime.now(timezone.utc)
        db.session.commit()
        return user
