"""
tests/test_pricing.py
Order totals, the minimum order rule, the selection cart and catalog-driven
pricing with category feature eligibility.
"""

from decimal import Decimal

import pytest

from handrest.errors import BelowMinimumOrder, NotFound, ValidationError
from handrest.services.pricing_service import (
    MINIMUM_ORDER,
    LineItem,
    PricingService,
    Selection,
    parse_quantities,
    to_money,
)
from tests.conftest import make_catalog


# ── Totals ─────────────────────────────────────────────────────────────────────

def test_minimum_order_constant():
    assert MINIMUM_ORDER == Decimal("500")


def test_totals_sum_features_and_addons():
    """Line totals are price times quantity, summed per group."""
    total = PricingService.compute_order_total(
        [LineItem(1, "Kitchen", Decimal("150.00"), 2), LineItem(2, "Window", Decimal("75.50"), 1)],
        [LineItem(7, "Sofa", Decimal("200.00"), 1, "addon")],
    )
    assert total.feature_total == Decimal("375.50")
    assert total.addon_total == Decimal("200.00")
    assert total.grand_total == Decimal("575.50")
    assert total.meets_minimum is True


def test_exactly_minimum_is_allowed():
    total = PricingService.compute_order_total([LineItem(1, "Kitchen", Decimal("250.00"), 2)], [])
    assert total.grand_total == Decimal("500.00")
    assert total.meets_minimum is True
    assert PricingService.ensure_minimum(total) is total


def test_one_paisa_short_is_rejected():
    total = PricingService.compute_order_total([], [LineItem(1, "Sofa", Decimal("499.99"), 1, "addon")])
    assert total.meets_minimum is False
    with pytest.raises(BelowMinimumOrder) as exc:
        PricingService.ensure_minimum(total)
    assert "0.01" in exc.value.message
    assert exc.value.status_code == 422


def test_empty_order_totals_zero():
    total = PricingService.compute_order_total([], [])
    assert total.grand_total == Decimal("0.00")
    assert total.meets_minimum is False


def test_negative_and_zero_quantities_are_dropped():
    """A line whose quantity is clamped to zero contributes nothing."""
    total = PricingService.compute_order_total(
        [LineItem(1, "Kitchen", Decimal("150.00"), -3), LineItem(2, "Window", Decimal("100.00"), 0)],
        [LineItem(3, "Sofa", Decimal("600.00"), 1, "addon")],
    )
    assert total.features == []
    assert total.feature_total == Decimal("0.00")
    assert total.grand_total == Decimal("600.00")


def test_to_money_rejects_bad_values():
    assert to_money("12.5") == Decimal("12.50")
    assert to_money(None) == Decimal("0.00")
    with pytest.raises(ValidationError):
        to_money("-1")
    with pytest.raises(ValidationError):
        to_money("abc")


# ── Selection cart ─────────────────────────────────────────────────────────────

def test_selection_add_accumulates_quantity():
    cart = Selection()
    cart.add(1, "Kitchen", "150", 1)
    cart.add(1, "Kitchen", "150", 2)
    assert cart.quantity(1) == 3
    assert len(cart) == 1


def test_selection_decrement_to_zero_removes_item():
    cart = Selection()
    cart.add(1, "Kitchen", "150")
    cart.decrement(1)
    assert 1 not in cart
    assert cart.lines() == []


def test_selection_decrement_missing_item_is_noop():
    cart = Selection()
    cart.decrement(42)
    cart.increment(42)
    assert len(cart) == 0


def test_selection_negative_quantity_is_clamped():
    cart = Selection("addon")
    cart.set_quantity(5, "Sofa", "200", -4)
    assert 5 not in cart
    cart.set_quantity(5, "Sofa", "200", 2)
    cart.increment(5)
    (line,) = cart.lines()
    assert line.quantity == 3
    assert line.kind == "addon"
    assert PricingService.line_total(line) == Decimal("600.00")


def test_remove_then_readd_restores_the_total():
    cart = Selection()
    cart.add(1, "Kitchen", "150", 2)
    cart.add(2, "Window", "100", 1)
    before = PricingService.compute_order_total(cart.lines(), []).grand_total

    cart.remove(1)
    assert PricingService.compute_order_total(cart.lines(), []).grand_total == Decimal("100.00")

    cart.add(1, "Kitchen", "150", 2)
    after = PricingService.compute_order_total(cart.lines(), []).grand_total
    assert before == after == Decimal("400.00")


def test_fractional_quantities_are_refused():
    cart = Selection()
    with pytest.raises(ValidationError):
        cart.add(1, "Kitchen", "150", 1.7)
    with pytest.raises(ValidationError):
        parse_quantities({"3": "2.5"})
    assert len(cart) == 0
    assert parse_quantities({"3": 2.0, "4": "3"}) == {3: 2, 4: 3}


def test_parse_quantities_accepts_lists_and_mappings():
    assert parse_quantities([3, "4", 3]) == {3: 2, 4: 1}
    assert parse_quantities({"7": 2, "x": 1, "8": -1, "9": 0}) == {7: 2}
    assert parse_quantities(None) == {}
    with pytest.raises(ValidationError):
        parse_quantities("7")


# ── Catalog pricing ────────────────────────────────────────────────────────────

def test_eligible_features_for_category(ctx):
    """Mapped-here and unmapped features are offered, other categories' are not."""
    catalog = make_catalog()
    names = [f.name for f in PricingService.eligible_features(catalog["home"].id)]
    assert names == ["Kitchen Deep Clean", "Window Wash"]


def test_eligible_features_without_category_are_global_only(ctx):
    make_catalog()
    names = [f.name for f in PricingService.eligible_features(None)]
    assert names == ["Window Wash"]


def test_resolve_selection_ignores_ineligible_ids(ctx):
    """Features from another category, inactive features and unknown ids are never priced."""
    catalog = make_catalog()
    total = PricingService.resolve_selection(
        catalog["home"].id,
        {
            str(catalog["kitchen"].id): 2,
            str(catalog["cubicles"].id): 1,
            str(catalog["retired"].id): 1,
            "9999": 5,
        },
        [catalog["sofa"].id],
    )
    assert [(line.item_id, line.quantity) for line in total.features] == [(catalog["kitchen"].id, 2)]
    assert total.feature_total == Decimal("300.00")
    assert total.addon_total == Decimal("200.00")
    assert total.grand_total == Decimal("500.00")
    assert total.meets_minimum is True


def test_resolve_selection_prices_package_at_effective_price(ctx):
    catalog = make_catalog()
    total = PricingService.resolve_selection(None, None, None, package_id=catalog["package"].id)
    (line,) = total.features
    assert line.kind == "package"
    assert line.price == Decimal("1500.00")
    assert total.grand_total == Decimal("1500.00")


def test_resolve_selection_rejects_package_from_other_category(ctx):
    catalog = make_catalog()
    with pytest.raises(ValidationError):
        PricingService.resolve_selection(catalog["office"].id, None, None, package_id=catalog["package"].id)
    with pytest.raises(NotFound):
        PricingService.resolve_selection(None, None, None, package_id=9999)
