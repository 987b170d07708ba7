"""Collection submission flow.

Builds the request, sends it to the gateway, and records the pending payment
state that webhook reconciliation later resolves.
"""

from storepay.common.errors import (
    DuplicateReference,
    GatewayError,
    GatewayTimeout,
    MalformedGatewayResponse,
    PaymentValidationError,
)
from storepay.common.logging import logger, reference_ctx, transaction_id_ctx
from storepay.common.metrics import collection_accepted_total, collection_failure_total, collection_requests_total
from storepay.common.state_machine import FAILED
from storepay.services.payments.builder import CollectionRequestBuilder
from storepay.services.payments.client import CollectionClient
from storepay.services.payments.models import OrderPaymentState
from storepay.services.payments.repository import PaymentStateRepository
from storepay.services.payments.schemas import CollectionResult, GatewayService


class CollectionService:
    """Owns the submit side of the payment flow. Never retries a collection."""

    def __init__(
        self,
        builder: CollectionRequestBuilder,
        client: CollectionClient,
        repository: PaymentStateRepository,
        service_name: str = "payments",
    ) -> None:
        self.builder = builder
        self.client = client
        self.repository = repository
        self.service_name = service_name

    def _record_failure(self, exc: Exception) -> None:
        collection_failure_total.labels(service=self.service_name, error_type=type(exc).__name__).inc()

    async def collect(
        self,
        amount,
        phone_number: str,
        description: str | None = None,
        reference: str | None = None,
        order_id: str | None = None,
    ) -> CollectionResult:
        """Submit one collection and persist it as pending.

        Validation errors, including a reference already on record, are raised
        before any network call. Gateway failures propagate unchanged and leave
        no local record; callers retry with a fresh reference.
        """

        collection_requests_total.labels(service=self.service_name).inc()
        try:
            request = self.builder.build(amount, phone_number, description=description, reference=reference)
            if self.repository.get_by_reference(request.reference) is not None:
                raise DuplicateReference(request.reference)
        except PaymentValidationError as exc:
            self._record_failure(exc)
            logger.warning("collection_rejected reason=%s", exc)
            raise
        reference_ctx.set(request.reference)

        try:
            result = await self.client.submit(request)
        except (GatewayError, GatewayTimeout, MalformedGatewayResponse) as exc:
            self._record_failure(exc)
            logger.error("collection_submit_failed reference=%s error=%s", request.reference, exc)
            raise
        transaction_id_ctx.set(result.transaction_id)

        record = self.repository.create_pending(request, result, order_id=order_id)
        if result.status == "failed":
            self.repository.transition(record, FAILED, reason="gateway_rejected")
            logger.warning("collection_declined transaction_id=%s", result.transaction_id)
        else:
            collection_accepted_total.labels(service=self.service_name, provider=result.provider).inc()
            logger.info(
                "collection_accepted transaction_id=%s provider=%s amount=%s",
                result.transaction_id,
                result.provider,
                result.raw_amount,
            )
        return result

    def get_state(self, transaction_id: str) -> OrderPaymentState | None:
        return self.repository.get(transaction_id)

    async def gateway_view(self, transaction_id: str) -> CollectionResult:
        return await self.client.fetch_collection(transaction_id)

    async def services(self) -> list[GatewayService]:
        return await self.client.list_services()
