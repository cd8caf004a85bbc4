from flask import current_app
from sqlalchemy.exc import IntegrityError

from handrest.errors import AppError, NotFound, ValidationError
from handrest.extensions import db
from handrest.models import (
    AddonService,
    Booking,
    CategoryFeatureMapping,
    CustomFeature,
    Package,
    Panchayath,
    ServiceCategory,
    StaffCoverage,
)
from handrest.policy import AdminTab
from handrest.services.booking_service import optional_int
from handrest.services.permission_service import PermissionService
from handrest.services.pricing_service import PricingService, to_money


def _text(payload, key, label, required=False):
    value = (str(payload.get(key) or "")).strip()
    if required and not value:
        raise ValidationError(f"{label} is required.")
    return value or None


def _flag(value):
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _whole(payload, key, label, minimum, default=None):
    number = optional_int(payload.get(key), label, minimum=minimum)
    return default if number is None else number


class CatalogService:
    @staticmethod
    def categories():
        return (
            ServiceCategory.query.filter(ServiceCategory.is_active.is_(True))
            .order_by(ServiceCategory.display_order.asc(), ServiceCategory.id.asc())
            .all()
        )

    @staticmethod
    def get_category(category_id):
        category = db.session.get(ServiceCategory, category_id)
        if not category or not category.is_active:
            raise NotFound("Category not found.")
        return category

    @staticmethod
    def packages(category_id=None, featured_only=False):
        query = Package.query.filter(Package.is_active.is_(True))
        if category_id is not None:
            query = query.filter(Package.category_id == category_id)
        if featured_only:
            query = query.filter(Package.is_featured.is_(True))
        return query.order_by(Package.display_order.asc(), Package.id.asc()).all()

    @staticmethod
    def features_for_category(category_id):
        CatalogService.get_category(category_id)
        return PricingService.eligible_features(category_id)

    @staticmethod
    def addons():
        return PricingService.active_addons()

    # ── Admin: shared field handling ──────────────────────────────────────────

    @staticmethod
    def _get(model, row_id, label):
        row = db.session.get(model, row_id)
        if not row:
            raise NotFound(f"{label} not found.")
        return row

    @staticmethod
    def _apply_item_fields(row, payload, partial):
        """Copy the name, description, icon, price, order and active fields shared by catalog rows.

        On a partial update only the keys present in ``payload`` are touched.
        """
        if not partial or "name" in payload:
            row.name = _text(payload, "name", "Name", required=True)
        if "description" in payload:
            row.description = _text(payload, "description", "Description")
        if "icon" in payload and hasattr(row, "icon"):
            row.icon = _text(payload, "icon", "Icon")
        if not partial or "price" in payload:
            if payload.get("price") in (None, ""):
                raise ValidationError("Price is required.")
            row.price = to_money(payload.get("price"))
        if not partial or "display_order" in payload:
            row.display_order = _whole(payload, "display_order", "Display order", 0, default=0)
        if "is_active" in payload:
            row.is_active = _flag(payload.get("is_active"))
        elif not partial:
            row.is_active = True

    @staticmethod
    def _commit(row, verb, actor):
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise AppError(f"{type(row).__name__} could not be saved.", 409) from exc
        current_app.logger.info("%s %s %s by %s", type(row).__name__, row.id, verb, actor.id)
        return row

    # ── Admin: packages ───────────────────────────────────────────────────────

    @staticmethod
    def _apply_package_fields(package, payload, partial):
        CatalogService._apply_item_fields(package, payload, partial)
        if not partial or "category_id" in payload:
            category_id = optional_int(payload.get("category_id"), "Category")
            if category_id is None:
                raise ValidationError("Category is required.")
            package.category_id = CatalogService.get_category(category_id).id
        if not partial or "duration_hours" in payload:
            package.duration_hours = _whole(payload, "duration_hours", "Duration", 1, default=2)
        if not partial or "min_staff" in payload:
            package.min_staff = _whole(payload, "min_staff", "Minimum staff", 1, default=2)
        if not partial or "max_sqft" in payload:
            package.max_sqft = _whole(payload, "max_sqft", "Maximum area", 1)
        if not partial or "discount_amount" in payload:
            package.discount_amount = to_money(payload.get("discount_amount"))
        if not partial or "is_featured" in payload:
            package.is_featured = _flag(payload.get("is_featured"))
        if package.discount_amount > package.price:
            raise ValidationError("Discount cannot be more than the package price.")

    @staticmethod
    def create_package(actor, payload):
        PermissionService.ensure_tab(actor, AdminTab.PACKAGES)
        package = Package()
        CatalogService._apply_package_fields(package, payload or {}, partial=False)
        db.session.add(package)
        return CatalogService._commit(package, "created", actor)

    @staticmethod
    def update_package(actor, package_id, payload):
        PermissionService.ensure_tab(actor, AdminTab.PACKAGES)
        package = CatalogService._get(Package, package_id, "Package")
        try:
            CatalogService._apply_package_fields(package, payload or {}, partial=True)
        except AppError:
            db.session.rollback()
            raise
        return CatalogService._commit(package, "updated", actor)

    @staticmethod
    def deactivate_package(actor, package_id):
        """Hide a package from the catalog. Past bookings keep their priced line items."""
        PermissionService.ensure_tab(actor, AdminTab.PACKAGES)
        package = CatalogService._get(Package, package_id, "Package")
        package.is_active = False
        package.is_featured = False
        return CatalogService._commit(package, "deactivated", actor)

    # ── Admin: custom features ────────────────────────────────────────────────

    @staticmethod
    def _map_feature(feature, category_ids):
        try:
            wanted = {int(cid) for cid in (category_ids or [])}
        except (TypeError, ValueError) as exc:
            raise ValidationError("Category ids must be whole numbers.") from exc
        found = {row.id for row in ServiceCategory.query.filter(ServiceCategory.id.in_(wanted)).all()} if wanted else set()
        missing = wanted - found
        if missing:
            raise NotFound(f"Unknown categories: {', '.join(str(cid) for cid in sorted(missing))}.")
        CategoryFeatureMapping.query.filter_by(custom_feature_id=feature.id).delete()
        for category_id in sorted(wanted):
            db.session.add(CategoryFeatureMapping(category_id=category_id, custom_feature_id=feature.id))

    @staticmethod
    def feature_category_ids(feature):
        return sorted(mapping.category_id for mapping in feature.category_mappings)

    @staticmethod
    def create_feature(actor, payload):
        """Add a custom feature. Without ``category_ids`` it is offered in every category."""
        PermissionService.ensure_tab(actor, AdminTab.CUSTOM_FEATURES)
        payload = payload or {}
        feature = CustomFeature()
        CatalogService._apply_item_fields(feature, payload, partial=False)
        db.session.add(feature)
        db.session.flush()
        try:
            CatalogService._map_feature(feature, payload.get("category_ids"))
        except AppError:
            db.session.rollback()
            raise
        return CatalogService._commit(feature, "created", actor)

    @staticmethod
    def update_feature(actor, feature_id, payload):
        PermissionService.ensure_tab(actor, AdminTab.CUSTOM_FEATURES)
        payload = payload or {}
        feature = CatalogService._get(CustomFeature, feature_id, "Feature")
        try:
            CatalogService._apply_item_fields(feature, payload, partial=True)
            if "category_ids" in payload:
                CatalogService._map_feature(feature, payload.get("category_ids"))
        except AppError:
            db.session.rollback()
            raise
        return CatalogService._commit(feature, "updated", actor)

    @staticmethod
    def deactivate_feature(actor, feature_id):
        PermissionService.ensure_tab(actor, AdminTab.CUSTOM_FEATURES)
        feature = CatalogService._get(CustomFeature, feature_id, "Feature")
        feature.is_active = False
        return CatalogService._commit(feature, "deactivated", actor)

    @staticmethod
    def set_category_features(actor, category_id, feature_ids):
        """Replace the features mapped to a category.

        A feature with no mappings at all is offered in every category.
        """
        PermissionService.ensure_tab(actor, AdminTab.CUSTOM_FEATURES)
        category = CatalogService.get_category(category_id)
        try:
            wanted = {int(fid) for fid in (feature_ids or [])}
        except (TypeError, ValueError) as exc:
            raise ValidationError("Feature ids must be whole numbers.") from exc
        found = {row.id for row in CustomFeature.query.filter(CustomFeature.id.in_(wanted)).all()} if wanted else set()
        missing = wanted - found
        if missing:
            raise NotFound(f"Unknown features: {', '.join(str(fid) for fid in sorted(missing))}.")

        CategoryFeatureMapping.query.filter_by(category_id=category.id).delete()
        for feature_id in sorted(wanted):
            db.session.add(CategoryFeatureMapping(category_id=category.id, custom_feature_id=feature_id))
        db.session.commit()
        return PricingService.eligible_features(category.id)

    # ── Admin: add-ons ────────────────────────────────────────────────────────

    @staticmethod
    def create_addon(actor, payload):
        PermissionService.ensure_tab(actor, AdminTab.ADDONS)
        addon = AddonService()
        CatalogService._apply_item_fields(addon, payload or {}, partial=False)
        db.session.add(addon)
        return CatalogService._commit(addon, "created", actor)

    @staticmethod
    def update_addon(actor, addon_id, payload):
        PermissionService.ensure_tab(actor, AdminTab.ADDONS)
        addon = CatalogService._get(AddonService, addon_id, "Add-on")
        try:
            CatalogService._apply_item_fields(addon, payload or {}, partial=True)
        except AppError:
            db.session.rollback()
            raise
        return CatalogService._commit(addon, "updated", actor)

    @staticmethod
    def deactivate_addon(actor, addon_id):
        PermissionService.ensure_tab(actor, AdminTab.ADDONS)
        addon = CatalogService._get(AddonService, addon_id, "Add-on")
        addon.is_active = False
        return CatalogService._commit(addon, "deactivated", actor)

    # ── Panchayaths ───────────────────────────────────────────────────────────

    @staticmethod
    def panchayaths():
        return (
            Panchayath.query.filter(Panchayath.is_active.is_(True))
            .order_by(Panchayath.display_order.asc(), Panchayath.name.asc())
            .all()
        )

    @staticmethod
    def _panchayath_name_taken(name, exclude_id=None):
        query = Panchayath.query.filter(db.func.lower(Panchayath.name) == name.lower())
        if exclude_id is not None:
            query = query.filter(Panchayath.id != exclude_id)
        return query.first() is not None

    @staticmethod
    def create_panchayath(actor, name, ward_count, display_order=0):
        PermissionService.ensure_tab(actor, AdminTab.PANCHAYATHS)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Panchayath name is required.")
        try:
            ward_count = int(ward_count)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Ward count must be a whole number.") from exc
        if ward_count < 1:
            raise ValidationError("Ward count must be at least 1.")
        if CatalogService._panchayath_name_taken(name):
            raise AppError("Panchayath already exists.", 409)

        panchayath = Panchayath(name=name, ward_count=ward_count, display_order=int(display_order or 0))
        db.session.add(panchayath)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise AppError("Panchayath already exists.", 409) from exc
        current_app.logger.info("Panchayath %s created by %s", panchayath.name, actor.id)
        return panchayath

    @staticmethod
    def update_panchayath(actor, panchayath_id, payload):
        """Rename, resize or toggle a panchayath.

        The ward count cannot drop below a ward that a staff member still covers.
        """
        PermissionService.ensure_tab(actor, AdminTab.PANCHAYATHS)
        payload = payload or {}
        panchayath = CatalogService._get(Panchayath, panchayath_id, "Panchayath")
        try:
            CatalogService._apply_panchayath_fields(panchayath, payload)
        except AppError:
            db.session.rollback()
            raise
        return CatalogService._commit(panchayath, "updated", actor)

    @staticmethod
    def _apply_panchayath_fields(panchayath, payload):
        if "name" in payload:
            name = _text(payload, "name", "Panchayath name", required=True)
            if CatalogService._panchayath_name_taken(name, exclude_id=panchayath.id):
                raise AppError("Panchayath already exists.", 409)
            panchayath.name = name
        if "ward_count" in payload:
            ward_count = optional_int(payload.get("ward_count"), "Ward count", minimum=1)
            if ward_count is None:
                raise ValidationError("Ward count is required.")
            covered = [
                int(ward)
                for row in StaffCoverage.query.filter_by(panchayath_id=panchayath.id).all()
                for ward in (row.ward_numbers or [])
            ]
            if covered and max(covered) > ward_count:
                raise ValidationError(f"Staff still cover ward {max(covered)}.")
            panchayath.ward_count = ward_count
        if "display_order" in payload:
            panchayath.display_order = _whole(payload, "display_order", "Display order", 0, default=0)
        if "is_active" in payload:
            panchayath.is_active = _flag(payload.get("is_active"))

    @staticmethod
    def deactivate_panchayath(actor, panchayath_id):
        return CatalogService.update_panchayath(actor, panchayath_id, {"is_active": False})

    @staticmethod
    def delete_panchayath(actor, panchayath_id):
        """Remove a panchayath nobody refers to. Used ones can only be deactivated."""
        PermissionService.ensure_tab(actor, AdminTab.PANCHAYATHS)
        panchayath = CatalogService._get(Panchayath, panchayath_id, "Panchayath")
        in_use = (
            Booking.query.filter_by(panchayath_id=panchayath.id).first() is not None
            or StaffCoverage.query.filter_by(panchayath_id=panchayath.id).first() is not None
        )
        if in_use:
            raise AppError("Panchayath has bookings or staff coverage. Deactivate it instead.", 409)
        name = panchayath.name
        db.session.delete(panchayath)
        db.session.commit()
        current_app.logger.info("Panchayath %s deleted by %s", name, actor.id)
