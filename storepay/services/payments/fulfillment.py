"""Follow-on notification published when a payment completes."""

from storepay.common.events import EventEnvelope, KafkaBus
from storepay.common.logging import logger, trace_id_ctx
from storepay.services.payments.models import OrderPaymentState
from storepay.services.payments.schemas import WebhookEvent


class OrderFulfillmentPublisher:
    """Fulfillment hook that emits `orders.payment_completed` to Kafka."""

    def __init__(self, bus: KafkaBus, topic: str = "orders.payment_completed") -> None:
        self.bus = bus
        self.topic = topic

    async def __call__(self, record: OrderPaymentState, event: WebhookEvent) -> None:
        envelope = EventEnvelope(
            event_type="orders.payment_completed",
            aggregate_id=record.order_id or record.transaction_id,
            trace_id=trace_id_ctx.get() or record.reference,
            payload={
                "order_id": record.order_id,
                "transaction_id": record.transaction_id,
                "reference": record.reference,
                "amount": record.amount,
                "currency": record.currency,
                "phone_number": record.phone_number,
                "provider": record.provider,
            },
        )
        await self.bus.publish(self.topic, envelope)
        logger.info("fulfillment requested order_id=%s transaction_id=%s", record.order_id, record.transaction_id)
