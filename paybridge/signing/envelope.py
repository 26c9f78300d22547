import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Mapping

logger = logging.getLogger(__name__)

PARAM_PREFIX = "x_"
SIGNATURE_FIELD = "x_signature"
SEPARATOR = "+"


def _signed_fields(params: Mapping) -> dict[str, str]:
    """Prefixed, non-signature fields with every value coerced to str."""
    return {
        str(key): str(value)
        for key, value in params.items()
        if str(key).startswith(PARAM_PREFIX) and key != SIGNATURE_FIELD and value is not None
    }


def canonicalize(params: Mapping) -> str:
    """Build the string both parties sign.

    Keys are sorted by their UTF-8 bytes, and the same separator joins a key
    to its value and one pair to the next: ``k1+v1+k2+v2``.
    """
    fields = _signed_fields(params)
    ordered = sorted(fields, key=lambda k: k.encode("utf-8"))
    return SEPARATOR.join(f"{key}{SEPARATOR}{fields[key]}" for key in ordered)


def generate_signature(params: Mapping, secret: str) -> str:
    """HMAC-SHA256 of the canonical string, as lowercase hex."""
    message = canonicalize(params)
    logger.debug("Signing canonical string: %s", message)
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(params: Mapping, secret: str, signature: str | None) -> bool:
    if not signature:
        return False
    expected = generate_signature(params, secret)
    return hmac.compare_digest(expected.encode("utf-8"), str(signature).encode("utf-8"))


@dataclass(frozen=True)
class SignedParameterSet:
    """Flat ``x_``-prefixed string mapping plus a detachable signature."""

    params: dict[str, str] = field(default_factory=dict)
    signature: str | None = None

    @classmethod
    def from_mapping(cls, mapping: Mapping) -> "SignedParameterSet":
        signature = mapping.get(SIGNATURE_FIELD)
        return cls(params=_signed_fields(mapping), signature=signature or None)

    def canonical_string(self) -> str:
        return canonicalize(self.params)

    def sign(self, secret: str) -> "SignedParameterSet":
        return SignedParameterSet(dict(self.params), generate_signature(self.params, secret))

    def verify(self, secret: str) -> bool:
        return verify_signature(self.params, secret, self.signature)

    def to_form(self) -> dict[str, str]:
        """Wire form: every signed field plus ``x_signature`` when present."""
        form = dict(self.params)
        if self.signature is not None:
            form[SIGNATURE_FIELD] = self.signature
        return form

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.params.get(key, default)
