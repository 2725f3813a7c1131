"""Scrub AWS credential material out of text before it is displayed or logged."""

import logging
import re

REDACTED = "****"

ACCESS_KEY_PATTERN = re.compile(r"(?:AKIA|ASIA)[A-Z0-9]{16}")
SECRET_KEY_PATTERN = re.compile(r"[A-Za-z0-9/+=]{40}")

_formatter = logging.Formatter()


def mask_secrets(text) -> str:
    """Replace access key IDs and 40-character secret keys with a redaction marker.

    Upstream SDK errors can embed the credentials used for the failed request,
    so anything stringified from an exception goes through here first.
    """
    masked = ACCESS_KEY_PATTERN.sub(REDACTED, str(text))
    return SECRET_KEY_PATTERN.sub(REDACTED, masked)


class SecretMaskingFilter(logging.Filter):
    """Logging filter that masks credentials in the formatted message and any
    attached traceback or stack.

    The traceback is rendered into record.exc_text here; Formatter reuses a
    cached exc_text instead of formatting exc_info again.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = mask_secrets(record.getMessage())
        record.args = ()
        if record.exc_info and not record.exc_text:
            record.exc_text = _formatter.formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = mask_secrets(record.exc_text)
        if record.stack_info:
            record.stack_info = mask_secrets(record.stack_info)
        return True
