"""Payload construction for PayPal create/execute calls."""

import pytest

from finebot.services.payments.builder import build_create_request, build_execute_request, format_amount
from finebot.services.payments.models import LineItem, PaymentIntent

RETURN_URL = "http://localhost:3978/approvalComplete?addressId=a1"
CANCEL_URL = "http://localhost"


def test_format_amount_uses_two_decimals():
    assert format_amount(100, "USD") == "1.00"
    assert format_amount(0, "USD") == "0.00"
    assert format_amount(12345, "USD") == "123.45"
    assert format_amount(5, "USD") == "0.05"


def test_format_amount_rejects_negative():
    with pytest.raises(ValueError):
        format_amount(-1, "USD")


def test_create_request_shape(intent):
    request = build_create_request(intent, RETURN_URL, CANCEL_URL)

    assert request["intent"] == "sale"
    assert request["payer"] == {"payment_method": "paypal"}
    assert request["redirect_urls"] == {"return_url": RETURN_URL, "cancel_url": CANCEL_URL}
    assert len(request["transactions"]) == 1
    transaction = request["transactions"][0]
    assert transaction["amount"] == {"currency": "USD", "total": "1.00"}
    assert transaction["description"] == "This is your fine. Please pay it :3"
    assert transaction["item_list"]["items"] == [
        {"name": "Fine", "sku": "ParkingFine", "price": "1.00", "currency": "USD", "quantity": 1}
    ]


def test_create_request_total_sums_items():
    intent = PaymentIntent(
        amount_minor_units=750,
        currency="usd",
        description="two fines",
        items=(
            LineItem(name="Parking", sku="ParkingFine", price_minor_units=250, quantity=2),
            LineItem(name="Late fee", sku="LateFee", price_minor_units=250),
        ),
    )
    transaction = build_create_request(intent, RETURN_URL, CANCEL_URL)["transactions"][0]

    assert transaction["amount"] == {"currency": "USD", "total": "7.50"}
    assert [item["price"] for item in transaction["item_list"]["items"]] == ["2.50", "2.50"]


def test_intent_rejects_mismatched_item_total():
    with pytest.raises(ValueError):
        PaymentIntent(
            amount_minor_units=200,
            currency="USD",
            items=(LineItem(name="Fine", price_minor_units=100),),
        )


@pytest.mark.parametrize("bad_url", ["/approvalComplete", "localhost:3978/x", "ftp://host/x", ""])
def test_create_request_requires_absolute_urls(intent, bad_url):
    with pytest.raises(ValueError):
        build_create_request(intent, bad_url, CANCEL_URL)
    with pytest.raises(ValueError):
        build_create_request(intent, RETURN_URL, bad_url)


def test_create_request_is_deterministic(intent):
    assert build_create_request(intent, RETURN_URL, CANCEL_URL) == build_create_request(
        intent, RETURN_URL, CANCEL_URL
    )


def test_execute_request_shape(intent):
    assert build_execute_request("PAYER-9", intent) == {
        "payer_id": "PAYER-9",
        "transactions": [{"amount": {"currency": "USD", "total": "1.00"}}],
    }


def test_execute_total_matches_create_total(intent):
    create_amount = build_create_request(intent, RETURN_URL, CANCEL_URL)["transactions"][0]["amount"]
    execute_amount = build_execute_request("PAYER-9", intent)["transactions"][0]["amount"]

    assert execute_amount == create_amount


def test_execute_request_with_empty_payer_is_still_well_formed(intent):
    request = build_execute_request("", intent)

    assert request["payer_id"] == ""
    assert request["transactions"][0]["amount"]["total"] == "1.00"
