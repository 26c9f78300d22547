import logging
from typing import Mapping

from paybridge.errors import ConfigurationError
from paybridge.log import redact
from paybridge.signing.envelope import (
    SIGNATURE_FIELD,
    SignedParameterSet,
    generate_signature,
    verify_signature,
)

logger = logging.getLogger(__name__)


class ParameterSigner:
    """Signs and verifies merchant-platform parameter sets with one shared secret.

    One instance per direction: inbound requests and outbound callbacks may
    use different secrets.
    """

    def __init__(self, secret: str | None, direction: str = "outbound"):
        if not secret:
            raise ConfigurationError(f"{direction} signing secret is not configured")
        self.secret = secret
        self.direction = direction

    def sign(self, params: Mapping) -> str:
        return generate_signature(params, self.secret)

    def sign_envelope(self, params: Mapping) -> SignedParameterSet:
        return SignedParameterSet.from_mapping(params).sign(self.secret)

    def verify(self, params: Mapping, signature: str | None = None) -> bool:
        """Verify ``signature``, or the ``x_signature`` carried in ``params``."""
        if signature is None:
            signature = params.get(SIGNATURE_FIELD)
        if not signature:
            logger.warning("Missing %s on %s parameters: %s",
                           SIGNATURE_FIELD, self.direction, redact(params))
            return False
        ok = verify_signature(params, self.secret, signature)
        if not ok:
            logger.warning("Signature mismatch on %s parameters: %s",
                           self.direction, redact(params))
        return ok
