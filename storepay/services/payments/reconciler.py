"""Webhook reconciliation for gateway settlement callbacks.

Deliveries are at-least-once. Each transaction moves `pending -> terminal`
exactly once; later deliveries for it are no-ops. Fulfillment hooks run after
the transition is committed and cannot undo it.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from storepay.common.errors import DuplicateWebhookEvent, MalformedWebhookPayload, UnknownTransaction
from storepay.common.logging import logger, reference_ctx, transaction_id_ctx
from storepay.common.metrics import (
    duplicate_webhooks_skipped_total,
    fulfillment_hook_failures_total,
    unknown_transactions_total,
    webhook_events_total,
)
from storepay.common.state_machine import COMPLETED, is_terminal, target_for_webhook_status
from storepay.services.payments.models import OrderPaymentState
from storepay.services.payments.repository import PaymentStateRepository
from storepay.services.payments.schemas import WebhookEvent

APPLIED = "applied"
DUPLICATE = "duplicate"

FulfillmentHook = Callable[[OrderPaymentState, WebhookEvent], Awaitable[None]]


def parse_webhook(payload: Any) -> WebhookEvent:
    """Build a `WebhookEvent` from the `{transaction, collection, status}` body."""

    if not isinstance(payload, dict):
        raise MalformedWebhookPayload("webhook body must be a JSON object")
    transaction = payload.get("transaction")
    collection = payload.get("collection") or {}
    if not isinstance(transaction, dict) or not transaction.get("uuid"):
        raise MalformedWebhookPayload("webhook lacks transaction.uuid")
    if not isinstance(collection, dict):
        raise MalformedWebhookPayload("webhook collection must be an object")

    amount = collection.get("amount")
    if isinstance(amount, dict):
        amount = amount.get("raw")
    try:
        amount = int(amount) if amount is not None else None
    except (TypeError, ValueError):
        raise MalformedWebhookPayload(f"invalid collection.amount {amount!r}") from None

    return WebhookEvent(
        transaction_id=str(transaction["uuid"]),
        reference=transaction.get("reference"),
        status=str(payload.get("status", "")).lower(),
        amount=amount,
        phone_number=collection.get("phone_number"),
        provider=collection.get("provider"),
    )


class WebhookReconciler:
    """Applies terminal transitions from webhook deliveries."""

    def __init__(
        self,
        repository: PaymentStateRepository,
        hooks: list[FulfillmentHook] | None = None,
        service_name: str = "payments",
    ) -> None:
        self.repository = repository
        self.hooks = list(hooks or [])
        self.service_name = service_name

    def _count(self, status: str, outcome: str) -> None:
        webhook_events_total.labels(service=self.service_name, status=status, outcome=outcome).inc()

    def _skip_duplicate(self, event: WebhookEvent, current_status: str) -> str:
        logger.info(
            "duplicate webhook skipped transaction_id=%s status=%s current=%s",
            event.transaction_id,
            event.status,
            current_status,
        )
        duplicate_webhooks_skipped_total.labels(service=self.service_name).inc()
        self._count(event.status, DUPLICATE)
        return DUPLICATE

    async def handle(self, event: WebhookEvent, payload: dict | None = None) -> str:
        """Reconcile one delivery; returns `applied` or `duplicate`.

        Raises `UnrecognizedWebhookStatus` before touching storage, and
        `UnknownTransaction` when no local record matches.
        """

        target, reason = target_for_webhook_status(event.status)
        transaction_id_ctx.set(event.transaction_id)
        if event.reference:
            reference_ctx.set(event.reference)

        record = self.repository.find_for_event(event.transaction_id, event.reference)
        if record is None:
            unknown_transactions_total.labels(service=self.service_name).inc()
            self._count(event.status, "unknown")
            logger.warning(
                "webhook for unknown transaction transaction_id=%s reference=%s",
                event.transaction_id,
                event.reference,
            )
            raise UnknownTransaction(event.transaction_id, event.reference)

        if is_terminal(record.status):
            return self._skip_duplicate(event, record.status)
        try:
            updated = self.repository.transition(record, target, reason=reason, payload=payload)
        except DuplicateWebhookEvent as exc:
            return self._skip_duplicate(event, exc.status)

        self._count(event.status, APPLIED)
        logger.info(
            "payment state updated transaction_id=%s order_id=%s %s->%s",
            updated.transaction_id,
            updated.order_id,
            record.status,
            updated.status,
        )
        if updated.status == COMPLETED:
            await self._run_hooks(updated, event)
        return APPLIED

    async def _run_hooks(self, record: OrderPaymentState, event: WebhookEvent) -> None:
        """Best-effort follow-on notifications; failures are logged only."""

        for hook in self.hooks:
            try:
                await hook(record, event)
            except Exception:
                fulfillment_hook_failures_total.labels(service=self.service_name).inc()
                logger.exception(
                    "fulfillment hook failed transaction_id=%s hook=%s",
                    record.transaction_id,
                    getattr(hook, "__name__", type(hook).__name__),
                )
