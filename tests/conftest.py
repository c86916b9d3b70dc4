"""Shared fixtures: a sample fine, an address and in-memory collaborators."""

import pytest

from finebot.common.errors import MessagingError, ProviderError
from finebot.services.payments.models import ConversationAddress, LineItem, PaymentIntent


class FakeProvider:
    """Records calls and answers with canned PayPal payloads."""

    def __init__(self, create_response=None, execute_response=None, create_error=None, execute_error=None):
        self.create_response = create_response or {
            "id": "PAY-1",
            "state": "created",
            "links": [
                {"rel": "self", "href": "https://api.sandbox.paypal.com/v1/payments/payment/PAY-1"},
                {"rel": "approval_url", "href": "https://www.sandbox.paypal.com/checkoutnow?token=EC-1"},
                {"rel": "execute", "href": "https://api.sandbox.paypal.com/v1/payments/payment/PAY-1/execute"},
            ],
        }
        self.execute_response = execute_response or {"id": "PAY-1", "state": "approved"}
        self.create_error = create_error
        self.execute_error = execute_error
        self.created = []
        self.executed = []

    async def create_payment(self, request):
        self.created.append(request)
        if self.create_error:
            raise self.create_error
        return self.create_response

    async def execute_payment(self, payment_id, request):
        self.executed.append((payment_id, request))
        if self.execute_error:
            raise self.execute_error
        return self.execute_response


class FakeMessenger:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send(self, address, text, *, choices=None, reply_to_id=None):
        if self.fail:
            raise MessagingError("connector down", 503)
        self.sent.append((address, text, choices))
        return {"id": f"msg-{len(self.sent)}"}

    @property
    def texts(self):
        return [text for _, text, _ in self.sent]


@pytest.fixture
def intent():
    return PaymentIntent(
        amount_minor_units=100,
        currency="USD",
        description="This is your fine. Please pay it :3",
        items=(LineItem(name="Fine", sku="ParkingFine", price_minor_units=100, quantity=1),),
    )


@pytest.fixture
def address():
    return ConversationAddress(
        channel_id="test",
        user_id="u1",
        conversation_id="c1",
        service_url="http://svc/x?y=1",
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def provider_error():
    return ProviderError("paypal create failed: HTTP 400 VALIDATION_ERROR", status_code=400, debug_id="dbg-1")
