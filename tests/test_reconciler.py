"""Webhook reconciliation: terminal transitions, deduplication, hooks."""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from scripts.send_webhook import build_payload
from storepay.common.db import Base
from storepay.common.errors import (
    DuplicateWebhookEvent,
    MalformedWebhookPayload,
    UnknownTransaction,
    UnrecognizedWebhookStatus,
)
from storepay.services.payments.reconciler import APPLIED, DUPLICATE, WebhookReconciler, parse_webhook
from storepay.services.payments.repository import SqlAlchemyPaymentStateRepository
from storepay.services.payments.schemas import CollectionResult, WebhookEvent
from tests.conftest import webhook_body


class RecordingHook:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls = []
        self.error = error

    async def __call__(self, record, event) -> None:
        self.calls.append((record.transaction_id, record.status, event.status))
        if self.error is not None:
            raise self.error


@pytest.fixture
def pending(repository, builder):
    request = builder.build(50000, "0780123456")
    result = CollectionResult(status="success", transaction_id="txn-0001", raw_amount=50000, provider="mtn")
    return repository.create_pending(request, result, order_id="order-42")


def completed_event(transaction_id="txn-0001", reference=None, status="completed") -> WebhookEvent:
    return WebhookEvent(transaction_id=transaction_id, reference=reference, status=status, amount=50000)


def test_completed_event_transitions_and_fires_hook_once(repository, pending):
    hook = RecordingHook()
    reconciler = WebhookReconciler(repository, hooks=[hook])

    first = asyncio.run(reconciler.handle(completed_event()))
    second = asyncio.run(reconciler.handle(completed_event()))

    assert (first, second) == (APPLIED, DUPLICATE)
    assert hook.calls == [("txn-0001", "completed", "completed")]
    record = repository.get("txn-0001")
    assert record.status == "completed"
    assert record.state_version == 1
    assert [row.to_state for row in repository.timeline("txn-0001")].count("completed") == 1


@pytest.mark.parametrize("status", ["failed", "cancelled"])
def test_failure_statuses_are_terminal_without_hooks(repository, pending, status):
    hook = RecordingHook()
    reconciler = WebhookReconciler(repository, hooks=[hook])

    assert asyncio.run(reconciler.handle(completed_event(status=status))) == APPLIED
    assert asyncio.run(reconciler.handle(completed_event(status="completed"))) == DUPLICATE

    assert repository.get("txn-0001").status == status
    assert hook.calls == []


def test_falls_back_to_reference_lookup(repository, pending):
    reconciler = WebhookReconciler(repository)

    outcome = asyncio.run(reconciler.handle(completed_event(transaction_id="gw-other-id", reference=pending.reference)))

    assert outcome == APPLIED
    assert repository.get("txn-0001").status == "completed"


def test_unknown_transaction_raises(repository, pending):
    reconciler = WebhookReconciler(repository)

    with pytest.raises(UnknownTransaction) as excinfo:
        asyncio.run(reconciler.handle(completed_event(transaction_id="txn-missing", reference="nope")))

    assert excinfo.value.transaction_id == "txn-missing"
    assert repository.get("txn-0001").status == "pending"


@pytest.mark.parametrize("status", ["pending", "successful", ""])
def test_unrecognized_status_is_rejected_without_state_change(repository, pending, status):
    reconciler = WebhookReconciler(repository)

    with pytest.raises(UnrecognizedWebhookStatus):
        asyncio.run(reconciler.handle(completed_event(status=status)))

    assert repository.get("txn-0001").status == "pending"


def test_hook_failure_does_not_revert_transition(repository, pending):
    failing = RecordingHook(error=RuntimeError("kafka down"))
    after = RecordingHook()
    reconciler = WebhookReconciler(repository, hooks=[failing, after])

    assert asyncio.run(reconciler.handle(completed_event())) == APPLIED

    assert repository.get("txn-0001").status == "completed"
    assert len(failing.calls) == 1
    assert len(after.calls) == 1


def test_concurrent_deliveries_fire_hook_once(tmp_path, builder):
    """Two threads both read `pending` before either writes; one wins."""

    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    shared = SqlAlchemyPaymentStateRepository(sessionmaker(bind=engine, expire_on_commit=False))
    result = CollectionResult(status="success", transaction_id="txn-0001", raw_amount=50000, provider="mtn")
    shared.create_pending(builder.build(50000, "0780123456"), result)
    both_read = threading.Barrier(2, timeout=5)

    class ReadThenWaitRepository:
        def __init__(self, inner):
            self.inner = inner

        def find_for_event(self, transaction_id, reference):
            record = self.inner.find_for_event(transaction_id, reference)
            both_read.wait()
            return record

        def __getattr__(self, name):
            return getattr(self.inner, name)

    hook = RecordingHook()
    reconciler = WebhookReconciler(ReadThenWaitRepository(shared), hooks=[hook])

    try:
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(asyncio.run, reconciler.handle(completed_event())) for _ in range(2)]
            outcomes = [future.result(timeout=10) for future in futures]
    finally:
        engine.dispose()

    assert sorted(outcomes) == [APPLIED, DUPLICATE]
    assert hook.calls == [("txn-0001", "completed", "completed")]


def test_lost_race_on_stale_read_is_a_duplicate(repository, pending):
    """A handler that read the record before another committed must not re-fire hooks."""

    stale = repository.get("txn-0001")

    class StaleReadRepository:
        def __init__(self, inner):
            self.inner = inner

        def find_for_event(self, transaction_id, reference):
            return stale

        def __getattr__(self, name):
            return getattr(self.inner, name)

    asyncio.run(WebhookReconciler(repository).handle(completed_event(status="failed")))
    hook = RecordingHook()
    reconciler = WebhookReconciler(StaleReadRepository(repository), hooks=[hook])

    assert asyncio.run(reconciler.handle(completed_event())) == DUPLICATE
    assert hook.calls == []
    assert repository.get("txn-0001").status == "failed"


def test_repository_compare_and_swap_rejects_stale_version(repository, pending):
    repository.transition(pending, "completed", reason="gateway_completed")

    with pytest.raises(DuplicateWebhookEvent):
        repository.transition(pending, "cancelled", reason="gateway_cancelled")


def test_webhook_payload_is_stored(repository, pending):
    body = webhook_body("txn-0001")
    reconciler = WebhookReconciler(repository)

    asyncio.run(reconciler.handle(parse_webhook(body), payload=body))

    assert repository.get("txn-0001").webhook_payload == body


def test_parse_webhook_reads_nested_shape():
    event = parse_webhook(webhook_body("txn-7", status="Completed", reference="ref-7", amount=1200))

    assert event.transaction_id == "txn-7"
    assert event.reference == "ref-7"
    assert event.status == "completed"
    assert event.amount == 1200
    assert event.phone_number == "+256780123456"
    assert event.provider == "mtn"


def test_parse_webhook_accepts_bare_amount():
    body = webhook_body("txn-7")
    body["collection"]["amount"] = "3000"

    assert parse_webhook(body).amount == 3000


@pytest.mark.parametrize(
    "body",
    [
        [],
        {"status": "completed"},
        {"transaction": {"reference": "r"}, "status": "completed"},
        {"transaction": {"uuid": "t"}, "collection": "x", "status": "completed"},
        {"transaction": {"uuid": "t"}, "collection": {"amount": "lots"}, "status": "completed"},
    ],
)
def test_parse_webhook_rejects_other_shapes(body):
    with pytest.raises(MalformedWebhookPayload):
        parse_webhook(body)


def test_manual_webhook_script_payload_parses():
    event = parse_webhook(build_payload("txn-3", "ref-3", "cancelled", 2500, "+256700123456", "airtel"))

    assert (event.transaction_id, event.reference, event.status, event.amount) == ("txn-3", "ref-3", "cancelled", 2500)
