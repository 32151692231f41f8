import pytest

from pdv.errors import ValidationError
from pdv.services.cart_schema import parse_cart


def _payload(**overrides):
    payload = {
        "items": [{"itemType": "PRODUCT", "itemId": 1, "clientReference": "a", "quantity": 1}],
    }
    payload.update(overrides)
    return payload


class TestParseCart:
    def test_minimal_cart_defaults(self):
        cart = parse_cart(_payload())
        assert cart.order_type == "COUNTER"
        assert cart.discount.type == "NONE"
        assert cart.service_fee.value == 0
        assert cart.items[0].modifiers == ()

    def test_adjustments_are_stored_in_hundredths(self):
        cart = parse_cart(_payload(
            discountType="fixed", discountValue="5",
            serviceFeeType="PERCENT", serviceFeeValue="12.5",
        ))
        assert (cart.discount.type, cart.discount.value) == ("FIXED", 500)
        assert (cart.service_fee.type, cart.service_fee.value) == ("PERCENT", 1250)

    @pytest.mark.parametrize("body", [
        None,
        [],
        {"items": []},
        {"items": "nope"},
    ])
    def test_rejects_malformed_body(self, body):
        with pytest.raises(ValidationError):
            parse_cart(body)

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2.0", True, None])
    def test_rejects_bad_quantity(self, quantity):
        payload = _payload()
        payload["items"][0]["quantity"] = quantity
        with pytest.raises(ValidationError):
            parse_cart(payload)

    def test_rejects_quantity_above_limit(self):
        payload = _payload()
        payload["items"][0]["quantity"] = 1000
        with pytest.raises(ValidationError):
            parse_cart(payload, max_quantity=999)

    def test_rejects_unknown_item_type(self):
        payload = _payload()
        payload["items"][0]["itemType"] = "SERVICE"
        with pytest.raises(ValidationError):
            parse_cart(payload)

    def test_rejects_duplicate_client_reference(self):
        line = {"itemType": "PRODUCT", "itemId": 1, "clientReference": "dup", "quantity": 1}
        with pytest.raises(ValidationError, match="dup"):
            parse_cart({"items": [line, dict(line, itemId=2)]})

    def test_rejects_same_modifier_twice(self):
        payload = _payload()
        payload["items"][0]["modifiers"] = [{"modifierId": 5}, {"modifierId": 5}]
        with pytest.raises(ValidationError):
            parse_cart(payload)

    def test_modifier_quantity_defaults_to_one(self):
        payload = _payload()
        payload["items"][0]["modifiers"] = [{"modifierId": 5}]
        assert parse_cart(payload).items[0].modifiers[0].quantity == 1

    def test_rejects_negative_discount(self):
        with pytest.raises(ValidationError):
            parse_cart(_payload(discountType="FIXED", discountValue="-1.00"))

    def test_rejects_more_than_two_decimals(self):
        with pytest.raises(ValidationError):
            parse_cart(_payload(discountType="FIXED", discountValue="1.005"))

    def test_rejects_percent_above_one_hundred(self):
        with pytest.raises(ValidationError):
            parse_cart(_payload(discountType="PERCENT", discountValue="100.01"))

    def test_service_fee_percent_is_not_capped(self):
        cart = parse_cart(_payload(serviceFeeType="PERCENT", serviceFeeValue="150"))
        assert cart.service_fee.value == 15000

    def test_json_number_adjustments(self):
        cart = parse_cart(_payload(
            discountType="FIXED", discountValue=5.5,
            serviceFeeType="PERCENT", serviceFeeValue=12.5,
        ))
        assert cart.discount.value == 550
        assert cart.service_fee.value == 1250

    @pytest.mark.parametrize("value", [5.555, 1e300, float("nan")])
    def test_rejects_json_numbers_that_are_not_cents(self, value):
        with pytest.raises(ValidationError):
            parse_cart(_payload(discountType="FIXED", discountValue=value))

    @pytest.mark.parametrize("quantity", ["²", "١", "2²"])
    def test_rejects_non_ascii_digit_quantity(self, quantity):
        payload = _payload()
        payload["items"][0]["quantity"] = quantity
        with pytest.raises(ValidationError):
            parse_cart(payload)

    def test_table_order_requires_session(self):
        with pytest.raises(ValidationError):
            parse_cart(_payload(orderType="TABLE"))

    def test_table_session_ignored_for_counter_orders(self):
        cart = parse_cart(_payload(orderType="COUNTER", tableSessionId=3))
        assert cart.table_session_id is None
