from flask import Blueprint, jsonify, request

from handrest.extensions import cache
from handrest.routes.api.v1.serializers import catalog_item_to_dict, order_total_to_dict, panchayath_to_dict
from handrest.services import CatalogService, PricingService
from handrest.services.booking_service import optional_int

api_catalog_bp = Blueprint("api_catalog", __name__)


@api_catalog_bp.get("/categories")
@cache.cached(timeout=120)
def categories():
    return jsonify([catalog_item_to_dict(row) for row in CatalogService.categories()])


@api_catalog_bp.get("/packages")
@cache.cached(timeout=120, query_string=True)
def packages():
    category_id = optional_int(request.args.get("category_id"), "Category")
    return jsonify([catalog_item_to_dict(row) for row in CatalogService.packages(category_id=category_id)])


@api_catalog_bp.get("/packages/featured")
@cache.cached(timeout=120)
def featured_packages():
    return jsonify([catalog_item_to_dict(row) for row in CatalogService.packages(featured_only=True)])


@api_catalog_bp.get("/categories/<int:category_id>/features")
def category_features(category_id):
    return jsonify([catalog_item_to_dict(row) for row in CatalogService.features_for_category(category_id)])


@api_catalog_bp.get("/addons")
def addons():
    return jsonify([catalog_item_to_dict(row) for row in CatalogService.addons()])


@api_catalog_bp.post("/quote")
def quote():
    payload = request.get_json(silent=True) or {}
    total = PricingService.resolve_selection(
        optional_int(payload.get("category_id"), "Category"),
        payload.get("features"),
        payload.get("addons"),
        package_id=optional_int(payload.get("package_id"), "Package"),
    )
    data = order_total_to_dict(total)
    data["minimum_order"] = str(PricingService.MINIMUM_ORDER)
    return jsonify(data)


@api_catalog_bp.get("/panchayaths")
def panchayaths():
    return jsonify([panchayath_to_dict(row) for row in CatalogService.panchayaths()])
