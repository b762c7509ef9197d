import logging
from typing import Any


class ContextLogger(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        kwargs.setdefault("extra", {})
        kwargs["extra"].setdefault("extra_data", {})
        # Adapter context first, call-site fields win on clashes
        merged = dict(self.extra)
        merged.update(kwargs["extra"]["extra_data"])
        kwargs["extra"]["extra_data"] = merged
        return msg, kwargs


def with_context(logger: logging.Logger, **ctx: Any) -> ContextLogger:
    """
    Return a LoggerAdapter that adds fixed context fields
    (e.g. table, run_id) to every log line.
    """
    return ContextLogger(logger, ctx or {})
