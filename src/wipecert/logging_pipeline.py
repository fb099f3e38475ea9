"""Structured JSON logging for the certificate service.

Records are rendered as one JSON object per line. The certificate fields the
service attaches through ``extra`` (``cert_id``, ``tx_hash``, ``backend``)
are promoted to top-level keys so log pipelines can index them; any other
extra fields land under ``context``.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from queue import Full, Queue
from typing import IO, Iterable, override
from uuid import uuid4

LOGGER = logging.getLogger(__name__)

_STANDARD_ATTRS: frozenset[str] = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

_PROMOTED_KEYS: tuple[str, ...] = ("cert_id", "tx_hash", "backend")


class JsonFormatter(logging.Formatter):
    """Render log records as JSON with certificate metadata promoted."""

    def __init__(self, *, default_trace_id: str | None = None) -> None:
        super().__init__()
        self._default_trace_id = default_trace_id

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "trace_id": getattr(record, "trace_id", None) or self._default_trace_id,
        }

        context: dict[str, object] = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key == "trace_id":
                continue
            if key in _PROMOTED_KEYS:
                payload[key] = value
            else:
                context[key] = value
        payload["context"] = context

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exception"] = record.exc_text

        return json.dumps(payload, default=str)


class BoundedQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that never blocks request threads on a full queue.

    Records that do not fit are dropped and counted in :attr:`dropped`.
    """

    def __init__(self, queue: Queue[logging.LogRecord]) -> None:
        super().__init__(queue)
        self.dropped = 0

    @override
    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except Full:
            self.dropped += 1


def configure_structured_logging(
    logger: logging.Logger,
    *,
    trace_id: str | None = None,
    level: int = logging.INFO,
    stream: IO[str] | None = None,
    queue_size: int = 1024,
) -> logging.handlers.QueueListener:
    """Attach a non-blocking JSON pipeline to ``logger``.

    Args:
        logger: Target logger, typically ``logging.getLogger("wipecert")``.
        trace_id: Identifier stamped on records that do not carry their own.
            A random one is generated when omitted.
        level: Logging verbosity level. Defaults to ``logging.INFO``.
        stream: Destination stream; ``sys.stderr`` when omitted.
        queue_size: Capacity of the in-memory record queue.

    Returns:
        The started queue listener; stop it with :func:`shutdown_listeners`.
    """
    logger.setLevel(level)

    record_queue: Queue[logging.LogRecord] = Queue(maxsize=queue_size)
    logger.addHandler(BoundedQueueHandler(record_queue))

    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.setFormatter(
        JsonFormatter(default_trace_id=trace_id or uuid4().hex)
    )

    listener = logging.handlers.QueueListener(record_queue, stream_handler)
    listener.start()
    return listener


def shutdown_listeners(listeners: Iterable[logging.handlers.QueueListener]) -> None:
    """Flush and stop queue listeners, logging but not raising on failure."""
    for listener in listeners:
        try:
            listener.stop()
        except Exception as exc:  # pragma: no cover - shutdown must not mask errors
            LOGGER.warning("Failed to stop logging listener", exc_info=exc)
