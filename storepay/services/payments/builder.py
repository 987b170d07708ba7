"""Pure construction of gateway collection requests."""

from uuid import UUID, uuid4

from storepay.common.errors import InvalidAmount, InvalidReference
from storepay.services.payments.phone import PhoneNormalizer
from storepay.services.payments.schemas import CollectionRequest

MAX_DESCRIPTION_LENGTH = 255


def new_reference() -> str:
    """Random RFC 4122 version-4 UUID string."""

    return str(uuid4())


def is_uuid4(value: str) -> bool:
    try:
        parsed = UUID(value)
    except (AttributeError, TypeError, ValueError):
        return False
    return parsed.version == 4 and str(parsed) == value.lower()


class CollectionRequestBuilder:
    """Validates caller input and fills defaults; performs no I/O."""

    def __init__(self, normalizer: PhoneNormalizer, default_description: str, callback_url: str) -> None:
        self.normalizer = normalizer
        self.default_description = default_description
        self.callback_url = callback_url

    def build(
        self,
        amount,
        raw_phone: str,
        description: str | None = None,
        reference: str | None = None,
    ) -> CollectionRequest:
        # bool is an int subclass but never a valid amount.
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(amount)
        phone_number = self.normalizer.normalize(raw_phone)
        if reference is None or reference == "":
            reference = new_reference()
        elif not is_uuid4(reference):
            raise InvalidReference(reference)
        description = (description or self.default_description)[:MAX_DESCRIPTION_LENGTH]
        return CollectionRequest(
            amount=amount,
            phone_number=phone_number,
            raw_phone_number=raw_phone,
            reference=reference,
            description=description,
            callback_url=self.callback_url,
        )
