"""Resolve stale pending collections against the gateway's transaction log.

Used when webhooks were lost or arrived before the local record existed.
Terminal gateway statuses are fed through the normal webhook reconciler.
"""

import argparse
import asyncio
import json
from datetime import datetime, timedelta, timezone

from storepay.common.config import settings
from storepay.common.db import SessionLocal
from storepay.common.errors import GatewayError, GatewayTimeout, MalformedGatewayResponse
from storepay.common.logging import configure_logging, logger
from storepay.common.state_machine import WEBHOOK_TRANSITIONS
from storepay.services.payments.client import CollectionClient
from storepay.services.payments.phone import PhoneNormalizer
from storepay.services.payments.reconciler import WebhookReconciler
from storepay.services.payments.repository import SqlAlchemyPaymentStateRepository
from storepay.services.payments.schemas import WebhookEvent


async def reconcile(client: CollectionClient, reconciler: WebhookReconciler, repository, older_than_minutes: int, limit: int) -> dict:
    """Query the gateway for each stale pending record and apply terminal outcomes."""

    cutoff = datetime.now(timezone.utc) - timedelta(minutes=older_than_minutes)
    summary = {"checked": 0, "applied": 0, "still_pending": 0, "errors": 0}
    for record in repository.list_pending(cutoff, limit=limit):
        summary["checked"] += 1
        try:
            result = await client.fetch_collection(record.transaction_id)
        except (GatewayError, GatewayTimeout, MalformedGatewayResponse) as exc:
            summary["errors"] += 1
            logger.error("reconcile lookup failed transaction_id=%s error=%s", record.transaction_id, exc)
            continue
        status = (result.transaction_status or "").lower()
        if status not in WEBHOOK_TRANSITIONS:
            summary["still_pending"] += 1
            continue
        event = WebhookEvent(
            transaction_id=record.transaction_id,
            reference=record.reference,
            status=status,
            amount=result.raw_amount,
            phone_number=record.phone_number,
            provider=result.provider,
        )
        outcome = await reconciler.handle(event, payload={"source": "reconcile_pending", "result": result.model_dump()})
        summary[outcome] = summary.get(outcome, 0) + 1
    return summary


def main() -> None:
    """CLI entrypoint for out-of-band reconciliation."""

    parser = argparse.ArgumentParser(description="Reconcile stale pending collections with the gateway.")
    parser.add_argument("--older-than-minutes", type=int, default=30)
    parser.add_argument("--limit", type=int, default=100)
    args = parser.parse_args()

    configure_logging()
    normalizer = PhoneNormalizer(settings.provider_prefixes)
    client = CollectionClient(
        settings.gateway_base_url,
        settings.gateway_api_key,
        settings.gateway_api_secret,
        normalizer,
        timeout_seconds=settings.gateway_timeout_seconds,
        service_name="reconcile-pending",
    )
    repository = SqlAlchemyPaymentStateRepository(SessionLocal)
    reconciler = WebhookReconciler(repository, service_name="reconcile-pending")
    summary = asyncio.run(reconcile(client, reconciler, repository, args.older_than_minutes, args.limit))
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
