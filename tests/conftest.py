"""
tests/conftest.py
Shared fixtures and factories.

Service tests use the ``ctx`` fixture, which keeps an application context open
for the whole test. API tests only open short ``with app.app_context()``
blocks to seed rows, so each request through the test client gets its own
context and its own Flask-Login state.
"""

from datetime import date, time, timedelta
from decimal import Decimal

import pytest

from handrest import create_app
from handrest.extensions import bcrypt, db
from handrest.models import (
    AddonService,
    Booking,
    CategoryFeatureMapping,
    CustomFeature,
    Package,
    Panchayath,
    ServiceCategory,
    StaffCoverage,
    StaffDetails,
    User,
)
from handrest.policy import Actor, BookingStatus, Role

PASSWORD = "secret123"


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


# ── Factories (call inside an app context) ────────────────────────────────────


def future_date(days=3):
    return date.today() + timedelta(days=days)


def actor_for(user):
    return Actor(id=user.id, role=Role(user.role))


def make_user(role, phone, full_name=None, password=PASSWORD):
    role = Role(role)
    user = User(
        full_name=full_name or f"{role.value.title()} {phone[-4:]}",
        email=f"{phone}@{role.value}.handrest.local",
        phone=phone,
        role=role.value,
        password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
    )
    db.session.add(user)
    db.session.commit()
    return user


def make_panchayath(name="Kumarakom", ward_count=12):
    panchayath = Panchayath(name=name, ward_count=ward_count)
    db.session.add(panchayath)
    db.session.commit()
    return panchayath


def make_staff(phone, panchayath, wards):
    staff = make_user(Role.STAFF, phone)
    db.session.add(StaffDetails(user_id=staff.id))
    db.session.add(StaffCoverage(staff_user_id=staff.id, panchayath_id=panchayath.id, ward_numbers=list(wards)))
    db.session.commit()
    return staff


def make_catalog():
    """One category with a mapped feature, a global feature, an unrelated
    category's feature, two add-ons and a package."""
    home = ServiceCategory(name="Home Cleaning", display_order=1)
    office = ServiceCategory(name="Office Cleaning", display_order=2)
    db.session.add_all([home, office])
    db.session.flush()

    kitchen = CustomFeature(name="Kitchen Deep Clean", price=Decimal("150.00"), display_order=1)
    windows = CustomFeature(name="Window Wash", price=Decimal("100.00"), display_order=2)
    cubicles = CustomFeature(name="Cubicle Wipe", price=Decimal("80.00"), display_order=3)
    retired = CustomFeature(name="Carpet Shampoo", price=Decimal("400.00"), is_active=False)
    db.session.add_all([kitchen, windows, cubicles, retired])
    db.session.flush()
    db.session.add(CategoryFeatureMapping(category_id=home.id, custom_feature_id=kitchen.id))
    db.session.add(CategoryFeatureMapping(category_id=office.id, custom_feature_id=cubicles.id))

    sofa = AddonService(name="Sofa Cleaning", price=Decimal("200.00"), display_order=1)
    fridge = AddonService(name="Fridge Cleaning", price=Decimal("120.00"), display_order=2)
    db.session.add_all([sofa, fridge])

    package = Package(
        category_id=home.id,
        name="2BHK Full Home",
        price=Decimal("1800.00"),
        discount_amount=Decimal("300.00"),
        min_staff=3,
        is_featured=True,
    )
    db.session.add(package)
    db.session.commit()
    return {
        "home": home,
        "office": office,
        "kitchen": kitchen,
        "windows": windows,
        "cubicles": cubicles,
        "retired": retired,
        "sofa": sofa,
        "fridge": fridge,
        "package": package,
    }


def make_booking(
    customer=None,
    panchayath=None,
    ward_number=3,
    status=BookingStatus.CONFIRMED,
    required_staff=2,
    total=Decimal("900.00"),
    number="HR-20300101-TEST1",
):
    """Insert a booking row directly in a given state."""
    booking = Booking(
        booking_number=number,
        customer_user_id=customer.id if customer else None,
        customer_name=customer.full_name if customer else "Walk-in Customer",
        customer_phone=customer.phone if customer else "9000000000",
        address_line1="12 Lake Road",
        city="Kottayam",
        pincode="686563",
        panchayath_id=panchayath.id if panchayath else None,
        ward_number=ward_number,
        scheduled_date=future_date(),
        scheduled_time=time(10, 0),
        base_price=total,
        addon_price=Decimal("0.00"),
        total_price=total,
        required_staff_count=required_staff,
        accepted_count=0,
        status=BookingStatus(status).value,
    )
    db.session.add(booking)
    db.session.commit()
    return booking


def login(client, phone, password=PASSWORD):
    response = client.post("/api/v1/auth/login", json={"mobile": phone, "password": password})
    assert response.status_code == 200, response.get_json()
    return response
