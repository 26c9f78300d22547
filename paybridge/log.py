import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_SENSITIVE_MARKERS = ("signature", "secret", "token", "password", "key")
_MASK = "***"


def configure_logging(level: str | int = "INFO") -> None:
    """Install a single stream handler on the paybridge logger."""
    root = logging.getLogger("paybridge")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    if not any(getattr(h, "_paybridge", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._paybridge = True  # type: ignore[attr-defined]
        root.addHandler(handler)


def redact(payload) -> dict:
    """Copy of a parameter mapping with signatures and credentials masked."""
    if not payload:
        return {}
    redacted = {}
    for key, value in dict(payload).items():
        lowered = str(key).lower()
        if any(marker in lowered for marker in _SENSITIVE_MARKERS):
            redacted[key] = _MASK
        else:
            redacted[key] = value
    return redacted
