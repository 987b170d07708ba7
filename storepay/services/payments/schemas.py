"""Request/response and domain value schemas for the payments service."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt

Provider = Literal["mtn", "airtel", "unknown"]
CollectionStatus = Literal["pending", "success", "failed"]
WebhookStatus = Literal["completed", "failed", "cancelled"]


class CollectionRequest(BaseModel):
    """Validated collection about to be sent to the gateway."""

    model_config = ConfigDict(frozen=True)

    amount: int
    phone_number: str
    raw_phone_number: str
    country: Literal["UG"] = "UG"
    reference: str
    description: str = Field(max_length=255)
    callback_url: str

    def form_fields(self) -> dict[str, str]:
        """Form-encoded body expected by `POST /collect-money`."""

        return {
            "phone_number": self.phone_number,
            "amount": str(self.amount),
            "country": self.country,
            "reference": self.reference,
            "description": self.description,
            "callback_url": self.callback_url,
        }


class CollectionResult(BaseModel):
    """Gateway acknowledgement of a collection. Not proof of payment."""

    model_config = ConfigDict(frozen=True)

    status: CollectionStatus
    transaction_id: str
    reference: str | None = None
    provider_reference: str | None = None
    raw_amount: int
    currency: Literal["UGX"] = "UGX"
    provider: Provider
    transaction_status: str | None = None


class GatewayService(BaseModel):
    """One collection service advertised by the gateway."""

    id: str
    name: str
    description: str = ""
    min_amount: int | None = None
    max_amount: int | None = None


class WebhookEvent(BaseModel):
    """Normalized settlement callback."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    reference: str | None = None
    status: str
    amount: int | None = None
    phone_number: str | None = None
    provider: str | None = None


class CollectRequestBody(BaseModel):
    """Payload accepted by `POST /collections`."""

    amount: StrictInt
    phone_number: str = Field(min_length=1)
    description: str | None = None
    reference: str | None = None
    order_id: str | None = None


class CollectResponse(BaseModel):
    success: bool = True
    data: CollectionResult


class PaymentStateResponse(BaseModel):
    """Local view of one collection's settlement state."""

    model_config = ConfigDict(from_attributes=True)

    transaction_id: str
    reference: str
    order_id: str | None
    amount: int
    currency: str
    phone_number: str
    provider: str
    status: str


class WebhookAck(BaseModel):
    success: bool
    message: str
    detail: dict[str, Any] | None = None
