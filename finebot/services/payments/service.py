"""Two-phase fine payment orchestration.

A payment is created at the provider and its approval link is sent into the
conversation. Later, when the provider redirects the approving user back to the
callback endpoint, the payment is executed and a confirmation goes to the
conversation recovered from the callback parameters. Nothing is stored between
the two phases; each call returns a `PaymentAttempt` describing its outcome.
"""

from collections.abc import Mapping

from finebot.common.errors import DecodeError, FineBotError, MissingFieldError, NoApprovalLinkError
from finebot.common.logging import conversation_id_ctx, logger, payment_id_ctx
from finebot.common.metrics import (
    correlation_decode_failures_total,
    payment_failure_total,
    payment_requests_total,
    payment_success_total,
)
from finebot.common.state_machine import APPROVED, CREATED, EXECUTED
from finebot.services.bot.connector import Messenger
from finebot.services.payments import correlation
from finebot.services.payments.builder import build_create_request, build_execute_request
from finebot.services.payments.models import ConversationAddress, PaymentAttempt, PaymentIntent
from finebot.services.payments.provider import PaymentProvider

APPROVAL_REL = "approval_url"
APPROVAL_MESSAGE = "Please pay your fine: {approval_url}"
CONFIRMATION_MESSAGE = "Thanks for your payment!"

PAYMENT_ID_PARAM = "paymentId"
PAYER_ID_PARAM = "PayerID"


def find_approval_url(payment: Mapping) -> str | None:
    """Return the href of the first `approval_url` link of a created payment."""

    for link in payment.get("links") or []:
        if link.get("rel") == APPROVAL_REL and link.get("href"):
            return link["href"]
    return None


class PaymentOrchestrator:
    """Drives create -> user approval -> execute for one fine payment at a time."""

    def __init__(
        self,
        provider: PaymentProvider,
        messenger: Messenger,
        *,
        return_host: str,
        return_port: int,
        return_path: str = "approvalComplete",
        return_scheme: str = "http",
        cancel_url: str = "http://localhost",
        service_name: str = "paybot",
    ) -> None:
        self.provider = provider
        self.messenger = messenger
        self.return_host = return_host
        self.return_port = return_port
        self.return_path = return_path
        self.return_scheme = return_scheme
        self.cancel_url = cancel_url
        self.service_name = service_name

    def _record_failure(self, attempt: PaymentAttempt, error: FineBotError) -> PaymentAttempt:
        attempt.fail(error)
        payment_failure_total.labels(service=self.service_name, reason=error.code).inc()
        logger.error(
            "payment_failed payment_id=%s error_code=%s reason=%s",
            attempt.provider_payment_id,
            error.code,
            error,
        )
        return attempt

    def return_url(self, address: ConversationAddress, address_id: str) -> str:
        return correlation.build_return_url(
            self.return_host,
            self.return_port,
            self.return_path,
            address,
            address_id,
            scheme=self.return_scheme,
        )

    async def create_and_send_payment(
        self, intent: PaymentIntent, address: ConversationAddress, address_id: str = ""
    ) -> PaymentAttempt:
        """Create a payment the user must approve and send them the approval link.

        On any failure nothing is sent; the returned attempt is `FAILED` and
        carries the error.
        """

        attempt = PaymentAttempt(address=address, address_id=address_id)
        conversation_id_ctx.set(address.conversation_id)
        payment_requests_total.labels(service=self.service_name).inc()
        logger.info("payment_create_requested channel=%s user_id=%s", address.channel_id, address.user_id)

        request = build_create_request(intent, self.return_url(address, address_id), self.cancel_url)
        try:
            payment = await self.provider.create_payment(request)
        except FineBotError as exc:
            return self._record_failure(attempt, exc)

        attempt.provider_payment_id = payment.get("id")
        payment_id_ctx.set(attempt.provider_payment_id or "")
        approval_url = find_approval_url(payment)
        if approval_url is None:
            return self._record_failure(
                attempt,
                NoApprovalLinkError(
                    f"payment {attempt.provider_payment_id} has no {APPROVAL_REL} link",
                    {"payment_id": attempt.provider_payment_id},
                ),
            )

        attempt.approval_url = approval_url
        attempt.transition(CREATED, reason="provider_created")
        logger.info("payment_created payment_id=%s", attempt.provider_payment_id)
        try:
            await self.messenger.send(address, APPROVAL_MESSAGE.format(approval_url=approval_url))
        except FineBotError as exc:
            return self._record_failure(attempt, exc)
        return attempt

    async def execute_payment(self, params: Mapping[str, str], intent: PaymentIntent) -> PaymentAttempt:
        """Execute an approved payment and confirm it to the originating conversation.

        `params` are the callback query parameters: the provider's `paymentId`
        and `PayerID` plus the correlation fields written by the return URL.
        Who gets the confirmation is decided by those fields alone.
        """

        payment_id = params.get(PAYMENT_ID_PARAM) or ""
        attempt = PaymentAttempt(state=CREATED, provider_payment_id=payment_id or None)
        payment_id_ctx.set(payment_id)
        logger.info("approval_callback_received payment_id=%s", payment_id)

        try:
            if not payment_id:
                raise MissingFieldError(PAYMENT_ID_PARAM)
            payer_id = params.get(PAYER_ID_PARAM) or ""
            if not payer_id:
                raise MissingFieldError(PAYER_ID_PARAM)
            token = correlation.decode(params)
        except DecodeError as exc:
            correlation_decode_failures_total.labels(service=self.service_name, error=exc.code).inc()
            return self._record_failure(attempt, exc)

        attempt.address = token.address
        attempt.address_id = token.address_id
        conversation_id_ctx.set(token.address.conversation_id)
        attempt.transition(APPROVED, reason="user_approved")

        try:
            await self.provider.execute_payment(payment_id, build_execute_request(payer_id, intent))
        except FineBotError as exc:
            return self._record_failure(attempt, exc)

        attempt.transition(EXECUTED, reason="provider_executed")
        payment_success_total.labels(service=self.service_name).inc()
        logger.info("payment_executed payment_id=%s", payment_id)

        try:
            await self.messenger.send(token.address, CONFIRMATION_MESSAGE)
            attempt.confirmation_sent = True
        except FineBotError as exc:
            # The payment is captured either way; only the receipt message is lost.
            logger.error("confirmation_send_failed payment_id=%s error=%s", payment_id, exc)
        return attempt
