"""Centralized logging configuration with optional Supabase shipping.

This module provides:
- RedactingFilter so bearer tokens and OAuth secrets never reach a log sink
- JSONFormatter for structured logging
- SupabaseHandler for centralized log collection (batched)
- Fallback to stderr-only when Supabase is not configured

stderr is the only local sink, so stdio transport output stays clean.
"""

import atexit
import logging
import re
import sys
import threading
from queue import Queue, Empty
from typing import Optional

REDACTED = "[REDACTED]"

# Bearer <token>, and key=value / "key": "value" pairs for credential fields
_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)
_SECRET_FIELD_RE = re.compile(
    r"""(["']?\b(?:access_token|refresh_token|id_token|client_secret|code|code_verifier)["']?\s*[=:]\s*["']?)"""
    r"""[^"'&\s,}]+""",
    re.IGNORECASE,
)


def redact(message: str) -> str:
    """Mask credentials in a log message."""
    message = _BEARER_RE.sub(lambda m: m.group(1) + REDACTED, message)
    return _SECRET_FIELD_RE.sub(lambda m: m.group(1) + REDACTED, message)


class RedactingFilter(logging.Filter):
    """Rewrite records so credentials are masked before formatting."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, service_name: str = None):
        super().__init__()
        self.service_name = service_name or "unknown"

    def format(self, record: logging.LogRecord) -> dict:
        # Extract tag from message if present: [TAG] message
        tag = None
        message = record.getMessage()
        tag_match = re.match(r'\[([A-Z_]+)\]\s*(.*)', message)
        if tag_match:
            tag = tag_match.group(1)
            message = tag_match.group(2)

        log_entry = {
            "service": self.service_name,
            "level": record.levelname,
            "tag": tag,
            "message": message,
            "module": record.module,
            "extra": {
                "function": record.funcName,
                "line": record.lineno,
            }
        }

        if record.exc_info:
            log_entry["extra"]["exception"] = redact(self.formatException(record.exc_info))

        return log_entry


class PlainFormatter(logging.Formatter):
    """Plain text formatter for stderr output."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


class SupabaseHandler(logging.Handler):
    """Logging handler that batches logs and sends to Supabase.

    Logs are buffered and sent in batches to reduce database writes.
    Flush occurs every flush_interval seconds or when batch_size is reached.
    """

    def __init__(
        self,
        supabase_client,
        service_name: str,
        batch_size: int = 20,
        flush_interval: float = 10.0,
    ):
        super().__init__()
        self.supabase = supabase_client
        self.service_name = service_name
        self.batch_size = batch_size
        self.flush_interval = flush_interval

        self._queue: Queue = Queue()
        self._shutdown = threading.Event()
        self._wake = threading.Event()
        self._flush_thread = threading.Thread(target=self._flush_worker, daemon=True)
        self._flush_thread.start()

        atexit.register(self.close)

    def emit(self, record: logging.LogRecord):
        """Queue a log record for batched sending."""
        try:
            if isinstance(self.formatter, JSONFormatter):
                log_entry = self.formatter.format(record)
            else:
                log_entry = {
                    "service": self.service_name,
                    "level": record.levelname,
                    "tag": None,
                    "message": record.getMessage(),
                    "module": record.module,
                    "extra": {}
                }

            self._queue.put(log_entry)

            # Sending happens on the worker thread, never on the caller's
            if self._queue.qsize() >= self.batch_size:
                self._wake.set()

        except Exception:
            self.handleError(record)

    def _flush_worker(self):
        """Background thread that flushes logs periodically."""
        while not self._shutdown.is_set():
            self._wake.wait(self.flush_interval)
            self._wake.clear()
            if not self._queue.empty():
                self._flush()

    def _flush(self):
        """Send queued logs to Supabase."""
        logs = []
        while len(logs) < self.batch_size * 2:  # Don't flush too many at once
            try:
                logs.append(self._queue.get_nowait())
            except Empty:
                break

        if not logs or not self.supabase:
            return

        try:
            self.supabase.table("logs").insert(logs).execute()
        except Exception as e:
            # Log to stderr directly, logging here would recurse
            print(f"[WARNING] Failed to send logs to Supabase: {e}", file=sys.stderr)

    def close(self):
        """Flush remaining logs and stop the background thread."""
        self._shutdown.set()
        self._wake.set()
        if self._flush_thread is not threading.current_thread():
            self._flush_thread.join(timeout=self.flush_interval)
        while not self._queue.empty():
            self._flush()
        super().close()


# Global reference to Supabase handler for flushing
_supabase_handler: Optional[SupabaseHandler] = None


def setup_logging(
    service_name: str = "google-places-mcp",
    level: str = "INFO",
    supabase_client=None,
) -> logging.Logger:
    """Configure root logging.

    Args:
        service_name: Name attached to shipped log entries.
        level: Root log level name (DEBUG, INFO, ...).
        supabase_client: Supabase client instance for remote logging.

    Returns:
        Configured root logger.

    Behavior:
        - Always adds a stderr handler
        - Adds Supabase handler if client is provided
        - Every handler redacts credentials
    """
    global _supabase_handler

    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    redacting_filter = RedactingFilter()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(log_level)
    stderr_handler.setFormatter(PlainFormatter())
    stderr_handler.addFilter(redacting_filter)
    root_logger.addHandler(stderr_handler)

    supabase_enabled = False
    if supabase_client:
        try:
            _supabase_handler = SupabaseHandler(
                supabase_client=supabase_client,
                service_name=service_name,
                batch_size=20,
                flush_interval=10.0,
            )
            _supabase_handler.setLevel(log_level)
            _supabase_handler.setFormatter(JSONFormatter(service_name))
            _supabase_handler.addFilter(redacting_filter)
            root_logger.addHandler(_supabase_handler)
            supabase_enabled = True
        except Exception as e:
            print(f"[WARNING] Supabase logging setup failed: {e}", file=sys.stderr)

    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    if supabase_enabled:
        logger.info(f"[STARTUP] Supabase logging enabled for service: {service_name}")
    else:
        logger.info("[STARTUP] Supabase logging disabled (no client)")

    return root_logger


def flush_logs():
    """Manually flush any pending logs to Supabase."""
    if _supabase_handler:
        _supabase_handler._flush()
