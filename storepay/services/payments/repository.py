"""Storage interface for order payment state and its SQLAlchemy implementation.

The payment core depends only on `PaymentStateRepository`; the SQLAlchemy
class is the default backing store.
"""

from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select, update

from storepay.common.errors import DuplicateWebhookEvent
from storepay.common.state_machine import PENDING, is_terminal, validate_transition
from storepay.services.payments.models import OrderPaymentState, PaymentStateTimeline
from storepay.services.payments.schemas import CollectionRequest, CollectionResult


class PaymentStateRepository(Protocol):
    def create_pending(
        self, request: CollectionRequest, result: CollectionResult, order_id: str | None = None
    ) -> OrderPaymentState: ...

    def get(self, transaction_id: str) -> OrderPaymentState | None: ...

    def get_by_reference(self, reference: str) -> OrderPaymentState | None: ...

    def find_for_event(self, transaction_id: str, reference: str | None) -> OrderPaymentState | None: ...

    def transition(
        self, record: OrderPaymentState, new_status: str, reason: str, payload: dict | None = None
    ) -> OrderPaymentState: ...

    def list_pending(self, created_before: datetime, limit: int = 100) -> list[OrderPaymentState]: ...

    def timeline(self, transaction_id: str) -> list[PaymentStateTimeline]: ...


class SqlAlchemyPaymentStateRepository:
    """`PaymentStateRepository` over a SQLAlchemy session factory."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def create_pending(
        self, request: CollectionRequest, result: CollectionResult, order_id: str | None = None
    ) -> OrderPaymentState:
        """Insert the pending record once per gateway transaction."""

        with self.session_factory() as db:
            existing = db.get(OrderPaymentState, result.transaction_id)
            if existing:
                return existing
            record = OrderPaymentState(
                transaction_id=result.transaction_id,
                reference=request.reference,
                order_id=order_id,
                amount=request.amount,
                currency=result.currency,
                phone_number=request.phone_number,
                provider=result.provider,
                status=PENDING,
                state_version=0,
                gateway_response=result.model_dump(),
            )
            db.add(record)
            db.flush()
            db.add(
                PaymentStateTimeline(
                    transaction_id=record.transaction_id,
                    from_state=None,
                    to_state=PENDING,
                    reason="collection_accepted",
                )
            )
            db.commit()
            db.refresh(record)
            return record

    def get(self, transaction_id: str) -> OrderPaymentState | None:
        with self.session_factory() as db:
            return db.get(OrderPaymentState, transaction_id)

    def get_by_reference(self, reference: str) -> OrderPaymentState | None:
        with self.session_factory() as db:
            return db.execute(
                select(OrderPaymentState).where(OrderPaymentState.reference == reference)
            ).scalar_one_or_none()

    def find_for_event(self, transaction_id: str, reference: str | None) -> OrderPaymentState | None:
        """Match by gateway transaction id, falling back to our reference."""

        record = self.get(transaction_id)
        if record is None and reference:
            record = self.get_by_reference(reference)
        return record

    def transition(
        self, record: OrderPaymentState, new_status: str, reason: str, payload: dict | None = None
    ) -> OrderPaymentState:
        """Apply one validated transition with optimistic concurrency.

        The write is guarded by `(transaction_id, status, state_version)`. When
        another writer got there first and the record is now terminal, raises
        `DuplicateWebhookEvent`.
        """

        validate_transition(record.status, new_status)
        from_status = record.status
        current_version = record.state_version
        now = datetime.now(timezone.utc)

        with self.session_factory() as db:
            values = {"status": new_status, "state_version": current_version + 1, "updated_at": now}
            if payload is not None:
                values["webhook_payload"] = payload
            result = db.execute(
                update(OrderPaymentState)
                .where(
                    OrderPaymentState.transaction_id == record.transaction_id,
                    OrderPaymentState.status == from_status,
                    OrderPaymentState.state_version == current_version,
                )
                .values(**values)
            )
            if result.rowcount != 1:
                db.rollback()
                latest = db.get(OrderPaymentState, record.transaction_id)
                if latest is not None and is_terminal(latest.status):
                    raise DuplicateWebhookEvent(record.transaction_id, latest.status)
                raise RuntimeError(
                    f"optimistic concurrency conflict for transaction {record.transaction_id} "
                    f"(expected version {current_version})"
                )
            db.add(
                PaymentStateTimeline(
                    transaction_id=record.transaction_id,
                    from_state=from_status,
                    to_state=new_status,
                    reason=reason,
                )
            )
            db.commit()
            return db.get(OrderPaymentState, record.transaction_id, populate_existing=True)

    def list_pending(self, created_before: datetime, limit: int = 100) -> list[OrderPaymentState]:
        with self.session_factory() as db:
            return list(
                db.execute(
                    select(OrderPaymentState)
                    .where(
                        OrderPaymentState.status == PENDING,
                        OrderPaymentState.created_at < created_before,
                    )
                    .order_by(OrderPaymentState.created_at)
                    .limit(limit)
                ).scalars()
            )

    def timeline(self, transaction_id: str) -> list[PaymentStateTimeline]:
        with self.session_factory() as db:
            return list(
                db.execute(
                    select(PaymentStateTimeline)
                    .where(PaymentStateTimeline.transaction_id == transaction_id)
                    .order_by(PaymentStateTimeline.created_at)
                ).scalars()
            )
