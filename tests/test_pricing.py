from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from pos_api.app.domain import ValidationError
from pos_api.app.pricing import (
    LineRequest,
    ProductKind,
    ProductSnapshot,
    compute_totals,
    parse_line,
    price_lines,
    subtotal_of,
    format_money,
    to_money,
)

ITEM = ProductKind.ITEM
DEAL = ProductKind.DEAL

SNAPSHOTS = {
    (ITEM, 1): ProductSnapshot(ITEM, 1, "Zinger Burger", Decimal("9.50")),
    (ITEM, 2): ProductSnapshot(ITEM, 2, "Fries", Decimal("3.00")),
    (ITEM, 3): ProductSnapshot(ITEM, 3, "Old Sandwich", Decimal("5.00"), is_active=False),
    (DEAL, 1): ProductSnapshot(DEAL, 1, "Burger Meal", Decimal("13.00")),
}


def test_dine_example_two_burgers():
    lines = price_lines([LineRequest(ITEM, 1, 2)], SNAPSHOTS)
    assert lines[0].name_at_sale == "Zinger Burger"
    assert lines[0].unit_price_at_sale == Decimal("9.50")
    assert lines[0].line_total == Decimal("19.00")
    totals = compute_totals(subtotal_of(line.line_total for line in lines))
    assert totals.subtotal == Decimal("19.00")
    assert totals.total == Decimal("19.00")


def test_deal_uses_its_own_price():
    (line,) = price_lines([LineRequest(DEAL, 1, 1)], SNAPSHOTS)
    assert line.unit_price_at_sale == Decimal("13.00")
    assert line.product_kind is DEAL


def test_same_id_differs_by_kind():
    item, deal = price_lines([LineRequest(ITEM, 1, 1), LineRequest(DEAL, 1, 1)], SNAPSHOTS)
    assert item.name_at_sale == "Zinger Burger"
    assert deal.name_at_sale == "Burger Meal"


def test_empty_lines_rejected():
    with pytest.raises(ValidationError) as excinfo:
        price_lines([], SNAPSHOTS)
    assert excinfo.value.code == "EMPTY_ORDER"


def test_unknown_product_rejected():
    with pytest.raises(ValidationError) as excinfo:
        price_lines([LineRequest(ITEM, 99, 1)], SNAPSHOTS)
    assert excinfo.value.code == "PRODUCT_NOT_FOUND"
    assert "99" in excinfo.value.message


def test_inactive_product_rejected():
    with pytest.raises(ValidationError) as excinfo:
        price_lines([LineRequest(ITEM, 3, 1)], SNAPSHOTS)
    assert excinfo.value.code == "PRODUCT_INACTIVE"


def test_zero_quantity_rejected():
    with pytest.raises(ValidationError):
        price_lines([LineRequest(ITEM, 1, 0)], SNAPSHOTS)


def test_discount_larger_than_payable_is_error():
    with pytest.raises(ValidationError) as excinfo:
        compute_totals(Decimal("10.00"), Decimal("2.00"), Decimal("12.01"))
    assert excinfo.value.code == "DISCOUNT_TOO_LARGE"


def test_discount_equal_to_payable_gives_zero_total():
    totals = compute_totals(Decimal("10.00"), Decimal("2.00"), Decimal("12.00"))
    assert totals.total == Decimal("0.00")


@pytest.mark.parametrize("field", ["delivery_charges", "discount"])
def test_negative_amounts_rejected(field):
    kwargs = {"delivery_charges": None, "discount": None, field: "-1"}
    with pytest.raises(ValidationError):
        compute_totals(Decimal("5.00"), **kwargs)


def test_to_money_rounds_half_up_and_avoids_float_drift():
    assert to_money(0.1 + 0.2) == Decimal("0.30")
    assert to_money("2.675") == Decimal("2.68")
    assert to_money(9.5) == Decimal("9.50")
    assert to_money(None) == Decimal("0.00")


@pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity", object()])
def test_to_money_rejects_non_numbers(bad):
    with pytest.raises(ValidationError):
        to_money(bad, "discount")


def test_format_money_renders_two_decimal_strings():
    assert format_money(Decimal("19")) == "19.00"
    assert format_money(0.1 + 0.2) == "0.30"
    assert format_money("2.675") == "2.68"
    assert format_money(None) is None


def test_parse_line_validates_shape():
    assert parse_line({"product_kind": "ITEM", "product_id": 1, "quantity": 2}) == LineRequest(
        ITEM, 1, 2
    )
    with pytest.raises(ValidationError):
        parse_line({"product_kind": "COMBO", "product_id": 1, "quantity": 1})
    with pytest.raises(ValidationError):
        parse_line({"product_kind": "ITEM", "product_id": 1, "quantity": 0})
    with pytest.raises(ValidationError):
        parse_line({"product_kind": "ITEM", "product_id": True, "quantity": 1})


line_strategy = st.lists(
    st.tuples(
        st.sampled_from([(ITEM, 1), (ITEM, 2), (DEAL, 1)]),
        st.integers(min_value=1, max_value=50),
    ),
    min_size=1,
    max_size=8,
)
cents = st.integers(min_value=0, max_value=50_000).map(lambda c: Decimal(c) / 100)


@given(line_strategy, cents, cents)
def test_totals_invariants(raw_lines, charges, discount):
    requests = [LineRequest(kind, pid, qty) for (kind, pid), qty in raw_lines]
    priced = price_lines(requests, SNAPSHOTS)
    subtotal = subtotal_of(line.line_total for line in priced)
    assert subtotal == sum(line.unit_price_at_sale * line.quantity for line in priced)
    if discount > subtotal + charges:
        with pytest.raises(ValidationError):
            compute_totals(subtotal, charges, discount)
        return
    totals = compute_totals(subtotal, charges, discount)
    assert totals.total == totals.subtotal + totals.delivery_charges - totals.discount
    assert totals.total >= 0
    assert totals.total.as_tuple().exponent == -2
