"""Shared fixtures: in-memory storage and a scripted fake gateway."""

import json
from urllib.parse import parse_qs

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storepay.common.db import Base
from storepay.services.payments import models  # noqa: F401
from storepay.services.payments.builder import CollectionRequestBuilder
from storepay.services.payments.client import CollectionClient
from storepay.services.payments.phone import PhoneNormalizer
from storepay.services.payments.repository import SqlAlchemyPaymentStateRepository

GATEWAY_BASE = "https://gateway.test/api/v1"
CALLBACK_URL = "https://shop.test/webhooks/collections"
PROVIDER_PREFIXES = {"mtn": ["76", "77", "78", "31", "39"], "airtel": ["70", "75"]}


def collect_ack(reference: str, transaction_id: str = "txn-0001", amount: int = 50000, provider: str = "mtn", status: str = "success") -> dict:
    """Gateway acknowledgement body for `POST /collect-money`."""

    return {
        "status": status,
        "message": "Collection initiated successfully",
        "data": {
            "transaction": {
                "uuid": transaction_id,
                "reference": reference,
                "status": "processing",
                "provider_reference": None,
            },
            "collection": {
                "amount": {"formatted": f"{amount:,}.00", "raw": amount, "currency": "UGX"},
                "provider": provider,
                "phone_number": "+256780123456",
                "mode": "live",
            },
            "timeline": {
                "initiated_at": "2026-10-19T10:00:00Z",
                "estimated_settlement": "2026-10-19T10:05:00Z",
            },
        },
    }


def webhook_body(transaction_id: str, status: str = "completed", reference: str | None = None, amount: int = 50000) -> dict:
    return {
        "transaction": {"uuid": transaction_id, "reference": reference, "status": status},
        "collection": {
            "amount": {"formatted": f"{amount:,}.00", "raw": amount, "currency": "UGX"},
            "phone_number": "+256780123456",
            "provider": "mtn",
        },
        "status": status,
    }


class FakeGateway:
    """Records requests and answers `collect-money` with a scripted response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: dict | None = None
        self.error: Exception | None = None
        self.transaction_id = "txn-0001"

    def form(self, index: int = -1) -> dict[str, str]:
        parsed = parse_qs(self.requests[index].content.decode("utf-8"))
        return {key: values[0] for key, values in parsed.items()}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        body = self.body
        if body is None and request.method == "POST":
            fields = {key: values[0] for key, values in parse_qs(request.content.decode("utf-8")).items()}
            body = collect_ack(fields["reference"], self.transaction_id, int(fields["amount"]))
        return httpx.Response(self.status_code, content=json.dumps(body).encode("utf-8"))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def repository(session_factory):
    return SqlAlchemyPaymentStateRepository(session_factory)


@pytest.fixture
def normalizer():
    return PhoneNormalizer(PROVIDER_PREFIXES)


@pytest.fixture
def builder(normalizer):
    return CollectionRequestBuilder(normalizer, "Payment for store products", CALLBACK_URL)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(gateway, normalizer):
    return CollectionClient(
        GATEWAY_BASE,
        "marz_key",
        "marz_secret",
        normalizer,
        timeout_seconds=5.0,
        transport=gateway.transport(),
    )
