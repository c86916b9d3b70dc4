"""Two-step "list fines" dialog.

Step one announces the outstanding fine and asks what to do; step two acts on
the answer. The only state kept is whether a conversation is waiting for that
answer.
"""

import time
from collections import OrderedDict
from typing import Optional

from finebot.common.logging import conversation_id_ctx, logger
from finebot.services.bot.connector import Messenger
from finebot.services.bot.schemas import Activity
from finebot.services.payments.models import ConversationAddress, PaymentAttempt, PaymentIntent
from finebot.services.payments.service import PaymentOrchestrator

PAY_FINE = "Pay fine"
CANCEL = "Cancel"
CHOICES = (PAY_FINE, CANCEL)

AWAITING_CHOICE = "awaiting_choice"

FINES_HEADER = "You have 1 outstanding fine:"
FINE_TITLE = "Parking Fine Violation"
CHOICE_PROMPT = "What would you like to do?"
CREATE_FAILED_MESSAGE = "Sorry, we couldn't start your payment. Please try again later."


def render_prompt(prompt: str, choices: tuple[str, ...]) -> str:
    """Text fallback for channels without buttons, e.g. "Q? (1) A or (2) B"."""

    numbered = [f"({index}) {choice}" for index, choice in enumerate(choices, start=1)]
    if len(numbered) > 1:
        listed = ", ".join(numbered[:-1]) + f" or {numbered[-1]}"
    else:
        listed = "".join(numbered)
    return f"{prompt} {listed}"


def recognize_choice(text: Optional[str], choices: tuple[str, ...] = CHOICES) -> Optional[str]:
    """Match a reply against the choices by case-insensitive text or 1-based number."""

    value = (text or "").strip().casefold()
    if not value:
        return None
    for index, choice in enumerate(choices, start=1):
        if value == choice.casefold() or value == str(index):
            return choice
    return None


class DialogStateStore:
    """In-memory dialog step per conversation user.

    Entries expire after `ttl_seconds`; past `max_entries` the oldest entry is
    dropped, so users who never answer do not accumulate.
    """

    def __init__(self, ttl_seconds: float = 3600.0, max_entries: int = 10000, clock=time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._steps: OrderedDict[tuple[str, str, str], tuple[str, float]] = OrderedDict()

    @staticmethod
    def key(address: ConversationAddress) -> tuple[str, str, str]:
        return (address.channel_id, address.conversation_id, address.user_id)

    def __len__(self) -> int:
        return len(self._steps)

    def _evict_expired(self, now: float) -> None:
        while self._steps:
            oldest_key, (_, expires_at) = next(iter(self._steps.items()))
            if expires_at > now:
                break
            del self._steps[oldest_key]

    def get(self, address: ConversationAddress) -> Optional[str]:
        self._evict_expired(self._clock())
        entry = self._steps.get(self.key(address))
        return entry[0] if entry else None

    def set(self, address: ConversationAddress, step: str) -> None:
        now = self._clock()
        self._evict_expired(now)
        key = self.key(address)
        self._steps.pop(key, None)
        self._steps[key] = (step, now + self.ttl_seconds)
        while len(self._steps) > self.max_entries:
            self._steps.popitem(last=False)

    def clear(self, address: ConversationAddress) -> None:
        self._steps.pop(self.key(address), None)


class FineDialog:
    def __init__(
        self,
        orchestrator: PaymentOrchestrator,
        messenger: Messenger,
        intent: PaymentIntent,
        state: Optional[DialogStateStore] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.messenger = messenger
        self.intent = intent
        self.state = state or DialogStateStore()

    async def on_activity(self, activity: Activity) -> Optional[PaymentAttempt]:
        """Route one inbound activity to the right dialog step."""

        if activity.type != "message":
            logger.info("activity_ignored type=%s", activity.type)
            return None
        address = activity.address()
        conversation_id_ctx.set(address.conversation_id)
        if self.state.get(address) != AWAITING_CHOICE:
            await self.list_fines(address)
            return None
        self.state.clear(address)
        return await self.handle_choice(address, activity.id or "", activity.text)

    async def list_fines(self, address: ConversationAddress) -> None:
        await self.messenger.send(address, FINES_HEADER)
        await self.messenger.send(address, FINE_TITLE)
        await self.messenger.send(address, render_prompt(CHOICE_PROMPT, CHOICES), choices=CHOICES)
        self.state.set(address, AWAITING_CHOICE)

    async def handle_choice(
        self, address: ConversationAddress, address_id: str, text: Optional[str]
    ) -> Optional[PaymentAttempt]:
        choice = recognize_choice(text)
        if choice != PAY_FINE:
            logger.info("fine_dialog_ended choice=%s", choice)
            return None

        attempt = await self.orchestrator.create_and_send_payment(self.intent, address, address_id)
        if attempt.failed:
            await self.messenger.send(address, CREATE_FAILED_MESSAGE)
        return attempt
