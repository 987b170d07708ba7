"""HTTP client for the MarzPay collection gateway.

Every call is one round-trip with a bounded timeout. A successful `submit`
only means the gateway accepted the collection; settlement arrives later via
webhook.
"""

import base64
from typing import Any

import httpx

from storepay.common.errors import GatewayError, GatewayTimeout, MalformedGatewayResponse
from storepay.common.logging import logger
from storepay.common.metrics import gateway_latency_seconds
from storepay.services.payments.phone import PROVIDERS, PhoneNormalizer
from storepay.services.payments.schemas import CollectionRequest, CollectionResult, GatewayService

ACK_STATUSES = {"pending", "success", "failed"}


def basic_auth_header(api_key: str, api_secret: str) -> str:
    token = base64.b64encode(f"{api_key}:{api_secret}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class CollectionClient:
    """Submits collections and queries their gateway-side status."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_secret: str,
        normalizer: PhoneNormalizer,
        timeout_seconds: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
        service_name: str = "payments",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.normalizer = normalizer
        self.service_name = service_name
        self._headers = {"Authorization": basic_auth_header(api_key, api_secret), "Accept": "application/json"}
        self._transport = transport

    async def _request(self, operation: str, method: str, path: str, **kwargs) -> httpx.Response:
        """Run one request, log the body verbatim, and raise on non-2xx."""

        url = f"{self.base_url}{path}"
        with gateway_latency_seconds.labels(service=self.service_name, operation=operation).time():
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout_seconds,
                    headers=self._headers,
                    transport=self._transport,
                ) as client:
                    resp = await client.request(method, url, **kwargs)
            except httpx.TimeoutException as exc:
                logger.error("gateway_timeout operation=%s url=%s error=%s", operation, url, exc)
                raise GatewayTimeout(self.timeout_seconds) from exc
            except httpx.TransportError as exc:
                logger.error("gateway_unreachable operation=%s url=%s error=%s", operation, url, exc)
                raise GatewayError(None, str(exc)) from exc

        logger.info(
            "gateway_response operation=%s http_status=%s body=%s",
            operation,
            resp.status_code,
            resp.text,
        )
        if resp.status_code >= 400:
            raise GatewayError(resp.status_code, _gateway_message(resp))
        return resp

    async def submit(self, request: CollectionRequest) -> CollectionResult:
        """POST one collection to the gateway and parse its acknowledgement."""

        resp = await self._request("collect", "POST", "/collect-money", data=request.form_fields())
        return self._parse_collection(_json_body(resp), fallback_amount=request.amount, fallback_phone=request.phone_number)

    async def fetch_collection(self, transaction_id: str) -> CollectionResult:
        """Gateway-side view of a previously submitted collection."""

        resp = await self._request("fetch_collection", "GET", f"/collect-money/{transaction_id}")
        return self._parse_collection(_json_body(resp))

    async def list_services(self) -> list[GatewayService]:
        """Collection services the merchant account can use."""

        resp = await self._request("list_services", "GET", "/collect-money/services")
        body = _json_body(resp)
        items = body.get("data") if isinstance(body, dict) else body
        if isinstance(items, dict):
            items = items.get("services")
        if not isinstance(items, list):
            raise MalformedGatewayResponse("services response is not a list")
        try:
            return [GatewayService.model_validate(item) for item in items]
        except ValueError as exc:
            raise MalformedGatewayResponse(f"invalid service entry: {exc}") from exc

    def _parse_collection(
        self,
        body: Any,
        fallback_amount: int | None = None,
        fallback_phone: str | None = None,
    ) -> CollectionResult:
        data = body.get("data") if isinstance(body, dict) else None
        transaction = data.get("transaction") if isinstance(data, dict) else None
        collection = data.get("collection") if isinstance(data, dict) else None
        if not isinstance(transaction, dict) or not isinstance(collection, dict):
            raise MalformedGatewayResponse("response lacks data.transaction/data.collection")
        transaction_id = transaction.get("uuid")
        if not isinstance(transaction_id, str) or not transaction_id:
            raise MalformedGatewayResponse("transaction.uuid missing")
        status = str(body.get("status", "")).lower()
        if status not in ACK_STATUSES:
            raise MalformedGatewayResponse(f"unexpected acknowledgement status {body.get('status')!r}")

        raw_amount = _raw_amount(collection.get("amount"))
        if raw_amount is None:
            raw_amount = fallback_amount
        if raw_amount is None:
            raise MalformedGatewayResponse("collection.amount missing")

        provider = str(collection.get("provider") or "").lower()
        if provider not in PROVIDERS:
            phone = collection.get("phone_number") or fallback_phone or ""
            provider = self.normalizer.detect_provider(phone)

        return CollectionResult(
            status=status,
            transaction_id=transaction_id,
            reference=transaction.get("reference"),
            provider_reference=transaction.get("provider_reference"),
            raw_amount=raw_amount,
            provider=provider,
            transaction_status=transaction.get("status"),
        )


def _json_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise MalformedGatewayResponse("gateway body is not JSON") from exc


def _gateway_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.text


def _raw_amount(amount: Any) -> int | None:
    """`collection.amount` is either a bare number or `{formatted, raw, currency}`."""

    if isinstance(amount, dict):
        amount = amount.get("raw")
    if isinstance(amount, bool) or amount is None:
        return None
    try:
        return int(amount)
    except (TypeError, ValueError):
        return None
