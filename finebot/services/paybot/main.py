"""HTTP surface of the pay bot: channel messages in, PayPal approval callbacks in.

Run with `uvicorn finebot.services.paybot.main:app`.
"""

from contextlib import asynccontextmanager
from time import perf_counter
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from finebot.common.config import Settings, settings
from finebot.common.errors import DecodeError, FineBotError
from finebot.common.logging import configure_logging, logger, trace_id_ctx
from finebot.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from finebot.common.startup import log_startup_config
from finebot.common.state_machine import EXECUTED
from finebot.common.tracing import instrument_app, setup_tracing
from finebot.services.bot.connector import BotConnectorClient, Messenger
from finebot.services.bot.dialogs import DialogStateStore, FineDialog
from finebot.services.bot.schemas import Activity
from finebot.services.payments.models import PaymentAttempt, fine_intent
from finebot.services.payments.provider import PaymentProvider, PayPalClient
from finebot.services.payments.service import PaymentOrchestrator


def callback_status_code(attempt: PaymentAttempt) -> int:
    """HTTP status for the approval callback, following the execute outcome."""

    if attempt.state == EXECUTED:
        return 200
    if isinstance(attempt.error, DecodeError):
        return 400
    return 502


def create_app(
    app_settings: Settings = settings,
    provider: Optional[PaymentProvider] = None,
    messenger: Optional[Messenger] = None,
) -> FastAPI:
    """Build the app; collaborators not passed in are built from settings and closed on shutdown."""

    intent = fine_intent(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = []
        payment_provider = provider
        if payment_provider is None:
            payment_provider = PayPalClient.from_settings(app_settings)
            owned.append(payment_provider)
        bot_messenger = messenger
        if bot_messenger is None:
            bot_messenger = BotConnectorClient.from_settings(app_settings)
            owned.append(bot_messenger)

        orchestrator = PaymentOrchestrator(
            payment_provider,
            bot_messenger,
            return_host=app_settings.host,
            return_port=app_settings.port,
            return_path=app_settings.approval_path,
            return_scheme=app_settings.public_scheme,
            cancel_url=app_settings.cancel_url,
            service_name=app_settings.service_name,
        )
        app.state.orchestrator = orchestrator
        app.state.dialog = FineDialog(
            orchestrator,
            bot_messenger,
            intent,
            DialogStateStore(app_settings.dialog_state_ttl_seconds, app_settings.dialog_state_max_entries),
        )
        logger.info("paybot_listening host=%s port=%s", app_settings.host, app_settings.port)
        yield
        for client in owned:
            await client.close()

    app = FastAPI(title="FineBot Pay Bot", lifespan=lifespan)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency for every HTTP call."""

        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=app_settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=app_settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.get(f"/{app_settings.approval_path.strip('/')}")
    async def approval_complete(request: Request):
        """Callback PayPal redirects the approving user to."""

        attempt = await request.app.state.orchestrator.execute_payment(dict(request.query_params), intent)
        status_code = callback_status_code(attempt)
        body = {"status": attempt.state, "payment_id": attempt.provider_payment_id}
        if attempt.error_code:
            body["error_code"] = attempt.error_code
        return JSONResponse(status_code=status_code, content=body)

    @app.post("/api/messages")
    async def messages(request: Request):
        """Inbound channel activities from the Bot Connector."""

        try:
            activity = Activity.model_validate(await request.json())
        except (ValueError, ValidationError) as exc:
            logger.warning("invalid_activity error=%s", exc)
            return JSONResponse(status_code=400, content={"detail": "invalid activity"})
        try:
            await request.app.state.dialog.on_activity(activity)
        except FineBotError as exc:
            logger.error("activity_handling_failed error_code=%s error=%s", exc.code, exc)
            return JSONResponse(status_code=502, content={"detail": exc.code})
        return Response(status_code=202)

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    return app


configure_logging()
setup_tracing(settings.service_name)
log_startup_config(settings)
app = create_app()
instrument_app(app)
