"""Value types for the fine payment flow.

Nothing here is persisted: addresses and intents are plain values, and a
`PaymentAttempt` lives only for the duration of one create or execute call.
"""

from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from finebot.common.config import Settings
from finebot.common.errors import FineBotError
from finebot.common.state_machine import FAILED, INITIATED, TERMINAL_STATES, validate_transition


class LineItem(BaseModel):
    """One priced entry of a payment's item list."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    sku: str = ""
    price_minor_units: int = Field(ge=0)
    quantity: int = Field(default=1, ge=1)

    @property
    def subtotal_minor_units(self) -> int:
        return self.price_minor_units * self.quantity


class PaymentIntent(BaseModel):
    """What the user is asked to pay."""

    model_config = ConfigDict(frozen=True)

    amount_minor_units: int = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)
    description: str = ""
    items: tuple[LineItem, ...] = ()

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _check_items_total(self) -> "PaymentIntent":
        if self.items:
            items_total = sum(item.subtotal_minor_units for item in self.items)
            if items_total != self.amount_minor_units:
                raise ValueError(
                    f"item total {items_total} does not match amount {self.amount_minor_units}"
                )
        return self


def is_absolute_http_url(value: str) -> bool:
    parts = urlsplit(value)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


class ConversationAddress(BaseModel):
    """One user in one conversation on one channel/service instance."""

    model_config = ConfigDict(frozen=True)

    channel_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    conversation_id: str = Field(min_length=1)
    service_url: str = Field(min_length=1)

    @field_validator("service_url")
    @classmethod
    def _absolute_service_url(cls, value: str) -> str:
        if not is_absolute_http_url(value):
            raise ValueError("service_url must be an absolute http(s) URL")
        return value


class CorrelationToken(BaseModel):
    """Conversation identity carried through the provider's approval redirect."""

    model_config = ConfigDict(frozen=True)

    address_id: str = ""
    address: ConversationAddress


class StateChange(BaseModel):
    from_state: str | None
    to_state: str
    reason: str


class PaymentAttempt(BaseModel):
    """Local, transient view of one provider-side payment."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: str = INITIATED
    provider_payment_id: str | None = None
    approval_url: str | None = None
    address: ConversationAddress | None = None
    address_id: str = ""
    error_code: str | None = None
    reason: str | None = None
    error: FineBotError | None = Field(default=None, exclude=True)
    confirmation_sent: bool = False
    timeline: list[StateChange] = Field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.state == FAILED

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, new_state: str, reason: str) -> None:
        """Apply one validated state transition and record it on the timeline."""

        validate_transition(self.state, new_state)
        self.timeline.append(StateChange(from_state=self.state, to_state=new_state, reason=reason))
        self.state = new_state

    def fail(self, error: FineBotError) -> None:
        self.transition(FAILED, reason=error.code)
        self.error = error
        self.error_code = error.code
        self.reason = str(error)


def fine_intent(app_settings: Settings) -> PaymentIntent:
    """Build the single configured fine as a payment intent."""

    item = LineItem(
        name=app_settings.fine_name,
        sku=app_settings.fine_sku,
        price_minor_units=app_settings.fine_amount_minor_units,
        quantity=1,
    )
    return PaymentIntent(
        amount_minor_units=app_settings.fine_amount_minor_units,
        currency=app_settings.fine_currency,
        description=app_settings.fine_description,
        items=(item,),
    )
