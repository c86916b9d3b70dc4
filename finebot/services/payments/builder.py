"""Pure construction of the PayPal create/execute payment payloads.

See https://developer.paypal.com/docs/api/payments/v1/ for field descriptions.
"""

from decimal import Decimal

from finebot.services.payments.models import PaymentIntent, is_absolute_http_url

# Minor units per major unit; every supported currency uses cents.
MINOR_UNIT = 100


def format_amount(minor_units: int, currency: str) -> str:
    """Render an amount in minor units as a fixed-point string, e.g. 100 -> "1.00"."""

    del currency
    if minor_units < 0:
        raise ValueError(f"amount must be non-negative, got {minor_units}")
    return f"{Decimal(minor_units) / MINOR_UNIT:.2f}"


def _require_absolute_url(name: str, value: str) -> None:
    if not is_absolute_http_url(value):
        raise ValueError(f"{name} must be an absolute http(s) URL, got {value!r}")


def _total_minor_units(intent: PaymentIntent) -> int:
    if intent.items:
        return sum(item.subtotal_minor_units for item in intent.items)
    return intent.amount_minor_units


def build_create_request(intent: PaymentIntent, return_url: str, cancel_url: str) -> dict:
    """Payload for `POST /v1/payments/payment`; the user must approve it before execution."""

    _require_absolute_url("return_url", return_url)
    _require_absolute_url("cancel_url", cancel_url)
    items = [
        {
            "name": item.name,
            "sku": item.sku,
            "price": format_amount(item.price_minor_units, intent.currency),
            "currency": intent.currency,
            "quantity": item.quantity,
        }
        for item in intent.items
    ]
    return {
        "intent": "sale",
        "payer": {"payment_method": "paypal"},
        "redirect_urls": {"return_url": return_url, "cancel_url": cancel_url},
        "transactions": [
            {
                "item_list": {"items": items},
                "amount": {
                    "currency": intent.currency,
                    "total": format_amount(_total_minor_units(intent), intent.currency),
                },
                "description": intent.description,
            }
        ],
    }


def build_execute_request(payer_id: str, intent: PaymentIntent) -> dict:
    """Payload for `POST /v1/payments/payment/{id}/execute`.

    `payer_id` is passed through as given; callers check it is non-empty.
    """

    return {
        "payer_id": payer_id,
        "transactions": [
            {
                "amount": {
                    "currency": intent.currency,
                    "total": format_amount(_total_minor_units(intent), intent.currency),
                }
            }
        ],
    }
