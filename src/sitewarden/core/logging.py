# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Structured logging with sensitive data redaction.

Records may carry scan context through ``extra``: ``scan_step``, ``path``
and ``chunk``.  The JSON formatter emits them as top-level keys and the text
formatter prefixes the message with the step.
"""

import logging
import json
import re
import sys
from typing import Any

# Secrets that may reach a log line: Anthropic keys, bearer and pattern-service
# tokens, and stored WordPress password hashes read during the password audit.
REDACT_PATTERNS = [
    re.compile(r"(sk-ant-[a-zA-Z0-9\-]{10})[a-zA-Z0-9\-]*"),
    re.compile(r"(Bearer\s+[a-zA-Z0-9\-._~+/]{10})[a-zA-Z0-9\-._~+/]*"),
    re.compile(r"(X-Token['\"]?\s*[:=]\s*['\"]?[a-zA-Z0-9]{4})[a-zA-Z0-9\-._~+/]*", re.IGNORECASE),
    re.compile(r"(\$(?:P|H|wp\$2y|2y|2b)\$[./a-zA-Z0-9]{4})[./a-zA-Z0-9$]*"),
]

CONTEXT_FIELDS = ("scan_step", "path", "chunk")

# Third-party loggers that are chatty at INFO during pattern fetches and AI calls.
_QUIET_LOGGERS = ("httpx", "httpcore", "anthropic")


def redact_sensitive(text: str) -> str:
    for pattern in REDACT_PATTERNS:
        text = pattern.sub(r"\1[REDACTED]", text)
    return text


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_sensitive(record.getMessage()),
        }
        for key, value in _context(record).items():
            log_entry[key] = redact_sensitive(str(value))
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = redact_sensitive(str(record.exc_info[1]))
            log_entry["exception_type"] = type(record.exc_info[1]).__name__
        return json.dumps(log_entry, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        step = getattr(record, "scan_step", None)
        if step:
            msg = f"[{step}] {msg}"
        return redact_sensitive(msg)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Attach a single stderr handler to the ``sitewarden`` logger.

    Repeated calls replace the handler, so a CLI callback may call this on
    every invocation.
    """
    logger = logging.getLogger("sitewarden")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            TextFormatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
        )
    logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
