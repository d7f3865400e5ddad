"""
Logging setup for batch runs and the API process.

Records carry the batch run id, the orchestrator stage and the connector
in flight (from context variables) so a JSON log line can be traced back
to one source call inside one batch.
"""

import json
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone

run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)
stage_var: ContextVar[str | None] = ContextVar("stage", default=None)
connector_var: ContextVar[str | None] = ContextVar("connector", default=None)

_CONTEXT_VARS = (("run_id", run_id_var), ("stage", stage_var), ("connector", connector_var))

# Only these `extra=` keys are copied into JSON output
STRUCTURED_FIELDS = frozenset(
    {
        "event",
        "duration_ms",
        "items_processed",
        "items_failed",
        "connector",
        "operation",
        "entity",
        "records",
        "status_code",
        "media_id",
    }
)

NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy")


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({key: var.get() for key, var in _CONTEXT_VARS if var.get()})
        payload.update({key: value for key, value in record.__dict__.items() if key in STRUCTURED_FIELDS})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Replace root handlers with a single stderr handler."""
    numeric_level = logging.getLevelName(level.upper())
    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


@contextmanager
def log_stage(stage: str, run_id: str | None = None) -> Iterator[None]:
    """Log start, completion (with duration) or failure of one orchestrator stage."""
    logger = logging.getLogger("hotcontent.pipeline")
    if run_id:
        run_id_var.set(run_id)
    token = stage_var.set(stage)
    started = time.perf_counter()
    logger.info(f"{stage} started", extra={"event": "stage_start"})
    try:
        yield
    except Exception as e:
        logger.error(
            f"{stage} failed after {_elapsed_ms(started)}ms: {e}",
            extra={"event": "stage_failed", "duration_ms": _elapsed_ms(started)},
            exc_info=True,
        )
        raise
    else:
        logger.info(f"{stage} done", extra={"event": "stage_complete", "duration_ms": _elapsed_ms(started)})
    finally:
        stage_var.reset(token)


@contextmanager
def log_connector_call(connector: str, operation: str) -> Iterator[dict]:
    """
    Time one external call and log its record count.

    The caller fills in the yielded dict:

        with log_connector_call("wikidata", "sparql") as metrics:
            rows = await run_query()
            metrics["records"] = len(rows)
    """
    logger = logging.getLogger("hotcontent.connectors")
    metrics = {"records": 0}
    token = connector_var.set(connector)
    started = time.perf_counter()
    try:
        yield metrics
    except Exception as e:
        logger.warning(
            f"{connector}.{operation} failed: {e}",
            extra={"event": "connector_call_failed", "operation": operation, "duration_ms": _elapsed_ms(started)},
        )
        raise
    else:
        logger.info(
            f"{connector}.{operation}: {metrics['records']} records",
            extra={
                "event": "connector_call_complete",
                "operation": operation,
                "records": metrics["records"],
                "duration_ms": _elapsed_ms(started),
            },
        )
    finally:
        connector_var.reset(token)


class ProgressTracker:
    """Counts successes and failures of a throttled batch, logging every `log_every` items."""

    def __init__(self, total: int, stage: str, log_every: int = 10):
        self.total = total
        self.stage = stage
        self.log_every = max(1, log_every)
        self.processed = 0
        self.succeeded = 0
        self.failed = 0
        self._started = time.perf_counter()
        self._logger = logging.getLogger("hotcontent.progress")

    def increment(self, success: bool = True) -> None:
        self.processed += 1
        if success:
            self.succeeded += 1
        else:
            self.failed += 1
        if self.processed % self.log_every == 0 or self.processed == self.total:
            self._logger.info(
                f"{self.stage}: {self.processed}/{self.total} ({self.failed} without result)",
                extra={"event": "progress_update", "items_processed": self.processed, "items_failed": self.failed},
            )

    def finish(self) -> dict:
        elapsed = time.perf_counter() - self._started
        summary = {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duration_seconds": round(elapsed, 1),
        }
        self._logger.info(
            f"{self.stage} finished: {summary}",
            extra={
                "event": "progress_complete",
                "items_processed": self.processed,
                "items_failed": self.failed,
                "duration_ms": int(elapsed * 1000),
            },
        )
        return summary
