"""Kafka fulfillment notification on completed payments."""

import asyncio

from storepay.services.payments.fulfillment import OrderFulfillmentPublisher
from storepay.services.payments.models import OrderPaymentState
from storepay.services.payments.schemas import WebhookEvent


class FakeBus:
    def __init__(self) -> None:
        self.published = []

    async def publish(self, topic, event) -> None:
        self.published.append((topic, event))


def test_publishes_order_payment_completed():
    bus = FakeBus()
    publisher = OrderFulfillmentPublisher(bus, topic="orders.payment_completed")
    record = OrderPaymentState(
        transaction_id="txn-1",
        reference="3f2b8c1e-9d4a-4b7e-8c2d-1a2b3c4d5e6f",
        order_id="order-42",
        amount=50000,
        currency="UGX",
        phone_number="+256780123456",
        provider="mtn",
        status="completed",
    )
    event = WebhookEvent(transaction_id="txn-1", status="completed", amount=50000)

    asyncio.run(publisher(record, event))

    topic, envelope = bus.published[0]
    assert topic == "orders.payment_completed"
    assert envelope.event_type == "orders.payment_completed"
    assert envelope.aggregate_id == "order-42"
    assert envelope.trace_id == record.reference
    assert envelope.payload["transaction_id"] == "txn-1"
    assert envelope.payload["amount"] == 50000
