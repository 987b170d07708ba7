"""Ugandan mobile-money phone number normalization and provider detection."""

import re

from storepay.common.errors import InvalidPhoneFormat

COUNTRY_CODE = "256"
PROVIDERS = ("mtn", "airtel")
# Country code + 9-digit subscriber number.
NORMALIZED_DIGITS = 12

_NON_DIGITS = re.compile(r"\D")


class PhoneNormalizer:
    """Canonicalizes numbers to `+256XXXXXXXXX` and classifies the provider.

    The prefix table maps a provider name to subscriber-number prefixes (the
    digits after the country code). It is a static snapshot of carrier ranges,
    so it is injected rather than baked in. Only `mtn` and `airtel` may appear
    as keys; numbers outside every range detect as `unknown`.
    """

    def __init__(self, provider_prefixes: dict[str, list[str]]) -> None:
        unsupported = sorted(set(provider_prefixes) - set(PROVIDERS))
        if unsupported:
            raise ValueError(f"unsupported providers in prefix table: {unsupported}; expected a subset of {PROVIDERS}")
        # Longest prefixes first so overlapping ranges resolve to the most specific match.
        self._prefixes: list[tuple[str, str]] = sorted(
            ((prefix, provider) for provider, prefixes in provider_prefixes.items() for prefix in prefixes),
            key=lambda item: len(item[0]),
            reverse=True,
        )

    def normalize(self, raw: str) -> str:
        digits = _NON_DIGITS.sub("", raw or "")
        if digits.startswith("0"):
            digits = COUNTRY_CODE + digits[1:]
        elif not digits.startswith(COUNTRY_CODE):
            digits = COUNTRY_CODE + digits
        if len(digits) != NORMALIZED_DIGITS:
            raise InvalidPhoneFormat(raw, f"expected {NORMALIZED_DIGITS} digits, got {len(digits)}")
        return f"+{digits}"

    def is_valid(self, raw: str) -> bool:
        try:
            self.normalize(raw)
        except InvalidPhoneFormat:
            return False
        return True

    def detect_provider(self, normalized: str) -> str:
        """Return `mtn`, `airtel` or `unknown` for a normalized number."""

        digits = _NON_DIGITS.sub("", normalized or "")
        subscriber = digits[len(COUNTRY_CODE):] if digits.startswith(COUNTRY_CODE) else digits
        for prefix, provider in self._prefixes:
            if subscriber.startswith(prefix):
                return provider
        return "unknown"
