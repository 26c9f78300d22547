from .envelope import (
    PARAM_PREFIX,
    SIGNATURE_FIELD,
    SignedParameterSet,
    canonicalize,
    generate_signature,
    verify_signature,
)
from .signer import ParameterSigner

__all__ = [
    "PARAM_PREFIX", "SIGNATURE_FIELD",
    "SignedParameterSet", "ParameterSigner",
    "canonicalize", "generate_signature", "verify_signature",
]
