from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERNS = [
    re.compile(r"(authorization\s*[:=]\s*bearer\s+)([^\s\"]+)", re.IGNORECASE),
    re.compile(r"(token\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    re.compile(r"(password\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
]

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class MaskingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return self._mask(super().format(record))

    def _mask(self, value: str) -> str:
        masked = value
        for pattern in _SENSITIVE_PATTERNS:
            masked = pattern.sub(r"\1***", masked)
        return masked


def configure_logging(level: str = "INFO") -> None:
    """Attach one stream handler to the root logger (idempotent across app instances)."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    if any(getattr(h, "_pdv_handler", False) for h in root_logger.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(MaskingFormatter(_FORMAT))
    handler._pdv_handler = True
    root_logger.addHandler(handler)
