"""Domain exceptions for collection submission and webhook reconciliation.

Validation errors subclass `ValueError` so callers that only care about bad
input can catch them generically.
"""


class PaymentError(Exception):
    """Base class for every payment-flow failure."""


class PaymentValidationError(PaymentError, ValueError):
    """Local input rejected before any network call."""


class InvalidAmount(PaymentValidationError):
    def __init__(self, amount) -> None:
        self.amount = amount
        super().__init__(f"amount must be a positive integer, got {amount!r}")


class InvalidPhoneFormat(PaymentValidationError):
    def __init__(self, raw: str, reason: str = "expected 256 followed by 9 digits") -> None:
        self.raw = raw
        super().__init__(f"invalid phone number {raw!r}: {reason}")


class InvalidReference(PaymentValidationError):
    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"reference must be a UUIDv4 string, got {reference!r}")


class DuplicateReference(PaymentValidationError):
    """Reference already used by an earlier collection attempt."""

    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"reference {reference!r} was already used for another collection")


class GatewayError(PaymentError):
    """The gateway answered with a non-success HTTP status, or not at all (`http_status` None)."""

    def __init__(self, http_status: int | None, gateway_message: str) -> None:
        self.http_status = http_status
        self.gateway_message = gateway_message
        super().__init__(f"gateway error {http_status}: {gateway_message}")


class GatewayTimeout(PaymentError):
    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"gateway did not answer within {timeout_seconds}s")


class MalformedGatewayResponse(PaymentError):
    """The gateway body lacks the transaction/collection structure."""


class UnknownTransaction(PaymentError):
    def __init__(self, transaction_id: str, reference: str | None = None) -> None:
        self.transaction_id = transaction_id
        self.reference = reference
        super().__init__(f"no local payment for transaction {transaction_id} (reference={reference})")


class DuplicateWebhookEvent(PaymentError):
    """Webhook for a payment that already reached a terminal state."""

    def __init__(self, transaction_id: str, status: str) -> None:
        self.transaction_id = transaction_id
        self.status = status
        super().__init__(f"transaction {transaction_id} already {status}")


class UnrecognizedWebhookStatus(PaymentError):
    def __init__(self, status) -> None:
        self.status = status
        super().__init__(f"unrecognized webhook status {status!r}")


class InvalidTransition(PaymentError):
    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state} -> {to_state}")


class MalformedWebhookPayload(PaymentError, ValueError):
    """Webhook body lacks the `{transaction, collection, status}` structure."""
