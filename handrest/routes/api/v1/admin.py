from flask import Blueprint, jsonify, request

from handrest.decorators import current_actor, role_required, tab_required
from handrest.extensions import cache
from handrest.policy import AdminTab, Role
from handrest.routes.api.v1.serializers import booking_to_dict, catalog_item_to_dict, panchayath_to_dict
from handrest.services import BookingService, CatalogService, PermissionService, PlatformService

api_admin_bp = Blueprint("api_admin", __name__)


@api_admin_bp.get("/tabs")
@role_required(Role.ADMIN, Role.SUPER_ADMIN)
def visible_tabs():
    return jsonify([tab.value for tab in PermissionService.visible_tabs(current_actor())])


@api_admin_bp.get("/bookings")
@tab_required(AdminTab.BOOKINGS)
def list_bookings():
    rows = BookingService.list_bookings(status=request.args.get("status"), search=request.args.get("q"))
    return jsonify([booking_to_dict(b) for b in rows])


@api_admin_bp.put("/bookings/<int:booking_id>/status")
@tab_required(AdminTab.BOOKINGS)
def update_booking_status(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.update_booking_status(booking_id, payload.get("status"), current_actor())
    return jsonify({"id": booking.id, "status": booking.status})


@api_admin_bp.post("/bookings/<int:booking_id>/override")
@tab_required(AdminTab.BOOKINGS)
def override_booking_status(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.override_booking_status(
        booking_id, payload.get("status"), current_actor(), reason=payload.get("reason")
    )
    return jsonify({"id": booking.id, "status": booking.status})


@api_admin_bp.post("/bookings/<int:booking_id>/payment")
@tab_required(AdminTab.BOOKINGS)
def finalize_payment(booking_id):
    payload = request.get_json(silent=True) or {}
    payment = BookingService.finalize_payment(
        booking_id,
        current_actor(),
        payment_method=payload.get("payment_method"),
        transaction_id=payload.get("transaction_id"),
    )
    return jsonify(
        {
            "id": payment.id,
            "booking_id": payment.booking_id,
            "amount": str(payment.amount),
            "status": payment.status,
            "payment_method": payment.payment_method,
        }
    )


@api_admin_bp.put("/permissions/<int:user_id>")
@role_required(Role.SUPER_ADMIN)
def set_permissions(user_id):
    payload = request.get_json(silent=True) or {}
    granted = PermissionService.set_permissions(current_actor(), user_id, payload.get("tabs"))
    return jsonify(sorted(tab.value for tab, allowed in granted.items() if allowed))


@api_admin_bp.post("/panchayaths")
@tab_required(AdminTab.PANCHAYATHS)
def create_panchayath():
    payload = request.get_json(silent=True) or {}
    panchayath = CatalogService.create_panchayath(
        current_actor(), payload.get("name"), payload.get("ward_count"), payload.get("display_order")
    )
    return jsonify(panchayath_to_dict(panchayath)), 201


@api_admin_bp.patch("/panchayaths/<int:panchayath_id>")
@tab_required(AdminTab.PANCHAYATHS)
def update_panchayath(panchayath_id):
    payload = request.get_json(silent=True) or {}
    panchayath = CatalogService.update_panchayath(current_actor(), panchayath_id, payload)
    return jsonify(panchayath_to_dict(panchayath))


@api_admin_bp.post("/panchayaths/<int:panchayath_id>/deactivate")
@tab_required(AdminTab.PANCHAYATHS)
def deactivate_panchayath(panchayath_id):
    panchayath = CatalogService.deactivate_panchayath(current_actor(), panchayath_id)
    return jsonify(panchayath_to_dict(panchayath))


@api_admin_bp.delete("/panchayaths/<int:panchayath_id>")
@tab_required(AdminTab.PANCHAYATHS)
def delete_panchayath(panchayath_id):
    CatalogService.delete_panchayath(current_actor(), panchayath_id)
    return jsonify({"ok": True})


# Package listings are cached on the public catalog routes.

@api_admin_bp.post("/packages")
@tab_required(AdminTab.PACKAGES)
def create_package():
    package = CatalogService.create_package(current_actor(), request.get_json(silent=True) or {})
    cache.clear()
    return jsonify(catalog_item_to_dict(package)), 201


@api_admin_bp.patch("/packages/<int:package_id>")
@tab_required(AdminTab.PACKAGES)
def update_package(package_id):
    package = CatalogService.update_package(current_actor(), package_id, request.get_json(silent=True) or {})
    cache.clear()
    return jsonify(catalog_item_to_dict(package))


@api_admin_bp.post("/packages/<int:package_id>/deactivate")
@tab_required(AdminTab.PACKAGES)
def deactivate_package(package_id):
    package = CatalogService.deactivate_package(current_actor(), package_id)
    cache.clear()
    return jsonify(catalog_item_to_dict(package))


def _feature_to_dict(feature):
    data = catalog_item_to_dict(feature)
    data["category_ids"] = CatalogService.feature_category_ids(feature)
    return data


@api_admin_bp.post("/features")
@tab_required(AdminTab.CUSTOM_FEATURES)
def create_feature():
    feature = CatalogService.create_feature(current_actor(), request.get_json(silent=True) or {})
    return jsonify(_feature_to_dict(feature)), 201


@api_admin_bp.patch("/features/<int:feature_id>")
@tab_required(AdminTab.CUSTOM_FEATURES)
def update_feature(feature_id):
    feature = CatalogService.update_feature(current_actor(), feature_id, request.get_json(silent=True) or {})
    return jsonify(_feature_to_dict(feature))


@api_admin_bp.post("/features/<int:feature_id>/deactivate")
@tab_required(AdminTab.CUSTOM_FEATURES)
def deactivate_feature(feature_id):
    feature = CatalogService.deactivate_feature(current_actor(), feature_id)
    return jsonify(_feature_to_dict(feature))


@api_admin_bp.post("/addons")
@tab_required(AdminTab.ADDONS)
def create_addon():
    addon = CatalogService.create_addon(current_actor(), request.get_json(silent=True) or {})
    return jsonify(catalog_item_to_dict(addon)), 201


@api_admin_bp.patch("/addons/<int:addon_id>")
@tab_required(AdminTab.ADDONS)
def update_addon(addon_id):
    addon = CatalogService.update_addon(current_actor(), addon_id, request.get_json(silent=True) or {})
    return jsonify(catalog_item_to_dict(addon))


@api_admin_bp.post("/addons/<int:addon_id>/deactivate")
@tab_required(AdminTab.ADDONS)
def deactivate_addon(addon_id):
    addon = CatalogService.deactivate_addon(current_actor(), addon_id)
    return jsonify(catalog_item_to_dict(addon))


@api_admin_bp.put("/categories/<int:category_id>/features")
@tab_required(AdminTab.CUSTOM_FEATURES)
def set_category_features(category_id):
    payload = request.get_json(silent=True) or {}
    rows = CatalogService.set_category_features(current_actor(), category_id, payload.get("feature_ids"))
    return jsonify([catalog_item_to_dict(row) for row in rows])


@api_admin_bp.put("/settings/commission")
@tab_required(AdminTab.SETTINGS)
def set_commission():
    payload = request.get_json(silent=True) or {}
    setting = PlatformService.set_commission_pct(payload.get("commission_pct"))
    return jsonify({"key": setting.key, "value": setting.value})
