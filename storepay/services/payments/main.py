"""HTTP surface for collection submission and gateway webhooks."""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from storepay.common.config import settings
from storepay.common.db import SessionLocal
from storepay.common.errors import (
    GatewayError,
    GatewayTimeout,
    MalformedGatewayResponse,
    MalformedWebhookPayload,
    PaymentValidationError,
    UnknownTransaction,
    UnrecognizedWebhookStatus,
)
from storepay.common.events import KafkaBus
from storepay.common.logging import configure_logging, logger, trace_id_ctx
from storepay.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from storepay.common.startup import log_startup_config
from storepay.common.tracing import instrument_app, setup_tracing
from storepay.services.payments.builder import CollectionRequestBuilder
from storepay.services.payments.client import CollectionClient
from storepay.services.payments.fulfillment import OrderFulfillmentPublisher
from storepay.services.payments.phone import PhoneNormalizer
from storepay.services.payments.reconciler import APPLIED, WebhookReconciler, parse_webhook
from storepay.services.payments.repository import SqlAlchemyPaymentStateRepository
from storepay.services.payments.schemas import (
    CollectionResult,
    CollectRequestBody,
    CollectResponse,
    GatewayService,
    PaymentStateResponse,
    WebhookAck,
)
from storepay.services.payments.service import CollectionService

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings,
    [
        "database_url",
        "gateway_base_url",
        "gateway_api_key",
        "gateway_api_secret",
        "gateway_timeout_seconds",
        "callback_url",
        "provider_prefixes",
        "kafka_bootstrap_servers",
    ],
)

normalizer = PhoneNormalizer(settings.provider_prefixes)
repository = SqlAlchemyPaymentStateRepository(SessionLocal)
kafka = KafkaBus(settings.kafka_bootstrap_servers) if settings.kafka_bootstrap_servers else None
collections = CollectionService(
    CollectionRequestBuilder(normalizer, settings.default_description, settings.callback_url),
    CollectionClient(
        settings.gateway_base_url,
        settings.gateway_api_key,
        settings.gateway_api_secret,
        normalizer,
        timeout_seconds=settings.gateway_timeout_seconds,
        service_name=settings.service_name,
    ),
    repository,
    service_name=settings.service_name,
)
reconciler = WebhookReconciler(
    repository,
    hooks=[OrderFulfillmentPublisher(kafka, settings.fulfillment_topic)] if kafka else [],
    service_name=settings.service_name,
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Close the Kafka producer with app lifecycle."""

    yield
    if kafka is not None:
        await kafka.close()


app = FastAPI(title="Storepay Payments", lifespan=lifespan)
instrument_app(app)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Record request count and latency for every HTTP call."""

    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
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
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


@app.post("/collections", response_model=CollectResponse)
async def create_collection(req: CollectRequestBody, x_trace_id: str | None = Header(default=None)):
    """Ask the gateway to pull `amount` from the customer's wallet.

    A success response means the gateway accepted the request; settlement is
    reported later through the webhook.
    """

    trace_id_ctx.set(x_trace_id or str(uuid4()))
    try:
        result = await collections.collect(
            req.amount,
            req.phone_number,
            description=req.description,
            reference=req.reference,
            order_id=req.order_id,
        )
    except PaymentValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GatewayTimeout as exc:
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except (GatewayError, MalformedGatewayResponse) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return CollectResponse(data=result)


@app.get("/collections/{transaction_id}", response_model=PaymentStateResponse)
def get_collection(transaction_id: str):
    """Fetch local settlement state for one collection."""

    record = collections.get_state(transaction_id)
    if record is None:
        raise HTTPException(status_code=404, detail="collection not found")
    return PaymentStateResponse.model_validate(record)


@app.get("/collections/{transaction_id}/gateway", response_model=CollectionResult)
async def get_gateway_collection(transaction_id: str):
    """Gateway-side details for one collection."""

    try:
        return await collections.gateway_view(transaction_id)
    except GatewayTimeout as exc:
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except GatewayError as exc:
        status_code = 404 if exc.http_status == 404 else 502
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    except MalformedGatewayResponse as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.get("/collection-services", response_model=list[GatewayService])
async def list_collection_services():
    """Collection services available to the merchant account."""

    try:
        return await collections.services()
    except GatewayTimeout as exc:
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except (GatewayError, MalformedGatewayResponse) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.post("/webhooks/collections", response_model=WebhookAck)
async def collection_webhook(request: Request):
    """Settlement callback from the gateway.

    Answers 200 once local state is durable, for duplicates, and for unknown
    transactions, so the gateway stops redelivering.
    """

    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"success": False, "message": "invalid JSON body"})
    logger.info("webhook_received body=%s", payload)

    try:
        event = parse_webhook(payload)
        outcome = await reconciler.handle(event, payload=payload)
    except MalformedWebhookPayload as exc:
        return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})
    except UnrecognizedWebhookStatus as exc:
        return JSONResponse(status_code=422, content={"success": False, "message": str(exc)})
    except UnknownTransaction as exc:
        return WebhookAck(
            success=False,
            message="transaction not found",
            detail={"transaction_id": exc.transaction_id, "reference": exc.reference},
        )

    message = "Webhook processed successfully" if outcome == APPLIED else "Webhook already processed"
    return WebhookAck(success=True, message=message, detail={"transaction_id": event.transaction_id, "outcome": outcome})


@app.get("/webhooks/collections")
def collection_webhook_info():
    return {"message": "MarzPay collection webhook endpoint"}


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
