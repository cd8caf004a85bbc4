"""Order pricing for the build-your-service flow.

Totals are computed from line items (unit price times quantity) for the
selected custom features and add-on services. A booking may only be submitted
once the grand total reaches ``MINIMUM_ORDER``.
"""

from collections import OrderedDict, namedtuple
from decimal import Decimal, InvalidOperation

from sqlalchemy import or_, select

from handrest.errors import BelowMinimumOrder, NotFound, ValidationError
from handrest.extensions import db
from handrest.models import AddonService, CategoryFeatureMapping, CustomFeature, Package

MINIMUM_ORDER = Decimal("500")
TWO_PLACES = Decimal("0.01")

LineItem = namedtuple("LineItem", ["item_id", "name", "price", "quantity", "kind"])
LineItem.__new__.__defaults__ = ("feature",)

OrderTotal = namedtuple(
    "OrderTotal",
    ["features", "addons", "feature_total", "addon_total", "grand_total", "meets_minimum"],
)


def to_money(value):
    try:
        amount = Decimal(str(value if value is not None else 0))
    except InvalidOperation as exc:
        raise ValidationError("Price must be a number.") from exc
    if amount < 0:
        raise ValidationError("Price cannot be negative.")
    return amount.quantize(TWO_PLACES)


def clamp_quantity(value):
    """Quantities are whole numbers floored at zero.

    Values that are not numbers count as zero. A fractional quantity is
    refused instead of being truncated.
    """
    if isinstance(value, bool):
        return int(value)
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, TypeError):
        return 0
    if not number.is_finite():
        return 0
    if number != number.to_integral_value():
        raise ValidationError("Quantity must be a whole number.")
    return max(int(number), 0)


def parse_quantities(raw):
    """Normalize ``{id: qty}`` or ``[id, ...]`` request payloads to ``{int: int}``.

    Unknown shapes, non-numeric ids and non-positive quantities are dropped.
    """
    if not raw:
        return {}
    if isinstance(raw, dict):
        pairs = raw.items()
    elif isinstance(raw, (list, tuple, set)):
        pairs = ((item_id, 1) for item_id in raw)
    else:
        raise ValidationError("Selection must be a list of ids or an id to quantity mapping.")

    quantities = OrderedDict()
    for raw_id, raw_qty in pairs:
        if not str(raw_id).isdigit():
            continue
        quantity = clamp_quantity(raw_qty)
        if quantity <= 0:
            continue
        item_id = int(raw_id)
        quantities[item_id] = quantities.get(item_id, 0) + quantity
    return quantities


class Selection:
    """Mutable cart of line items keyed by item id.

    Quantities never go below zero and an item whose quantity reaches zero is
    removed from the selection rather than kept with a count of 0.
    """

    def __init__(self, kind="feature"):
        self.kind = kind
        self._items = OrderedDict()

    def __contains__(self, item_id):
        return item_id in self._items

    def __len__(self):
        return len(self._items)

    def quantity(self, item_id):
        item = self._items.get(item_id)
        return item.quantity if item else 0

    def set_quantity(self, item_id, name, price, quantity):
        quantity = clamp_quantity(quantity)
        if quantity == 0:
            self._items.pop(item_id, None)
            return
        self._items[item_id] = LineItem(item_id, name, to_money(price), quantity, self.kind)

    def add(self, item_id, name, price, quantity=1):
        self.set_quantity(item_id, name, price, self.quantity(item_id) + clamp_quantity(quantity))

    def increment(self, item_id):
        item = self._items.get(item_id)
        if item is None:
            return
        self._items[item_id] = item._replace(quantity=item.quantity + 1)

    def decrement(self, item_id):
        item = self._items.get(item_id)
        if item is None:
            return
        if item.quantity <= 1:
            del self._items[item_id]
        else:
            self._items[item_id] = item._replace(quantity=item.quantity - 1)

    def remove(self, item_id):
        self._items.pop(item_id, None)

    def lines(self):
        return list(self._items.values())


class PricingService:
    MINIMUM_ORDER = MINIMUM_ORDER

    @staticmethod
    def line_total(item):
        return (to_money(item.price) * clamp_quantity(item.quantity)).quantize(TWO_PLACES)

    @staticmethod
    def meets_minimum(grand_total):
        return Decimal(str(grand_total)) >= MINIMUM_ORDER

    @staticmethod
    def compute_order_total(selected_features, selected_addons):
        features = [item for item in (selected_features or []) if clamp_quantity(item.quantity) > 0]
        addons = [item for item in (selected_addons or []) if clamp_quantity(item.quantity) > 0]
        feature_total = sum((PricingService.line_total(item) for item in features), Decimal("0.00"))
        addon_total = sum((PricingService.line_total(item) for item in addons), Decimal("0.00"))
        grand_total = (feature_total + addon_total).quantize(TWO_PLACES)
        return OrderTotal(
            features=features,
            addons=addons,
            feature_total=feature_total,
            addon_total=addon_total,
            grand_total=grand_total,
            meets_minimum=PricingService.meets_minimum(grand_total),
        )

    @staticmethod
    def ensure_minimum(order_total):
        if not order_total.meets_minimum:
            shortfall = (MINIMUM_ORDER - order_total.grand_total).quantize(TWO_PLACES)
            raise BelowMinimumOrder(
                f"Minimum order is {MINIMUM_ORDER}. Add {shortfall} more to continue."
            )
        return order_total

    @staticmethod
    def eligible_features_query(category_id=None):
        mapped_anywhere = select(CategoryFeatureMapping.custom_feature_id)
        query = CustomFeature.query.filter(CustomFeature.is_active.is_(True))
        if category_id is None:
            query = query.filter(CustomFeature.id.not_in(mapped_anywhere))
        else:
            mapped_here = select(CategoryFeatureMapping.custom_feature_id).where(
                CategoryFeatureMapping.category_id == category_id
            )
            query = query.filter(
                or_(CustomFeature.id.not_in(mapped_anywhere), CustomFeature.id.in_(mapped_here))
            )
        return query.order_by(CustomFeature.display_order.asc(), CustomFeature.id.asc())

    @staticmethod
    def eligible_features(category_id=None):
        return PricingService.eligible_features_query(category_id).all()

    @staticmethod
    def active_addons():
        return (
            AddonService.query.filter(AddonService.is_active.is_(True))
            .order_by(AddonService.display_order.asc(), AddonService.id.asc())
            .all()
        )

    @staticmethod
    def resolve_selection(category_id, feature_quantities, addon_quantities, package_id=None):
        """Price a customer selection from catalog rows.

        Ids that are unknown, inactive or not eligible for ``category_id`` are
        skipped and never priced.
        """
        features = Selection("feature")
        addons = Selection("addon")
        package_lines = []

        if package_id is not None:
            package = db.session.get(Package, package_id)
            if not package or not package.is_active:
                raise NotFound("Package not found.")
            if category_id is None:
                category_id = package.category_id
            elif package.category_id != category_id:
                raise ValidationError("Package does not belong to the selected category.")
            package_lines.append(LineItem(package.id, package.name, package.effective_price, 1, "package"))

        feature_quantities = parse_quantities(feature_quantities)
        if feature_quantities:
            rows = (
                PricingService.eligible_features_query(category_id)
                .filter(CustomFeature.id.in_(list(feature_quantities)))
                .all()
            )
            for row in rows:
                features.set_quantity(row.id, row.name, row.price, feature_quantities[row.id])

        addon_quantities = parse_quantities(addon_quantities)
        if addon_quantities:
            rows = (
                AddonService.query.filter(AddonService.is_active.is_(True))
                .filter(AddonService.id.in_(list(addon_quantities)))
                .order_by(AddonService.display_order.asc(), AddonService.id.asc())
                .all()
            )
            for row in rows:
                addons.set_quantity(row.id, row.name, row.price, addon_quantities[row.id])

        return PricingService.compute_order_total(package_lines + features.lines(), addons.lines())
