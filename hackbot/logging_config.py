r"""
Logging configuration module for hackbot.

Sets up colored console output with colorlog and keeps a running tally of
failures per error category and per IRC target, so a bot that has been up for
days can still say which network keeps dropping it.
"""

import atexit
import logging
import os
import sys
import threading
import time
from collections import Counter, defaultdict, deque
from typing import Any

import colorlog

RECENT_WINDOW_SECONDS = 3600
MAX_ENTRIES_PER_CATEGORY = 500
# A target failing this often within the window is reported as flapping
FLAPPING_THRESHOLD = 20


class ErrorAggregator:
    """Per-category error history with a per-target breakdown.

    Entries older than the newest ``MAX_ENTRIES_PER_CATEGORY`` are dropped.
    """

    def __init__(self):
        self.errors: dict[str, deque[dict[str, Any]]] = defaultdict(
            lambda: deque(maxlen=MAX_ENTRIES_PER_CATEGORY)
        )
        self.lock = threading.Lock()
        self.start_time = time.time()
        self._flapping: set[str] = set()

    def record_error(
        self, error_type: str, message: str, context: dict[str, Any] | None = None
    ) -> None:
        context = dict(context or {})
        with self.lock:
            self.errors[error_type].append(
                {"timestamp": time.time(), "message": message, "context": context}
            )
        target = context.get("target")
        if target:
            self._check_flapping(str(target))

    def failures_for(self, target: str, window: float = RECENT_WINDOW_SECONDS) -> int:
        """Count errors attributed to ``target`` within the last ``window`` seconds."""
        cutoff = time.time() - window
        with self.lock:
            return sum(
                1
                for entries in self.errors.values()
                for e in entries
                if e["timestamp"] >= cutoff and e["context"].get("target") == target
            )

    def _check_flapping(self, target: str) -> None:
        count = self.failures_for(target)
        if count >= FLAPPING_THRESHOLD and target not in self._flapping:
            self._flapping.add(target)
            logging.warning(f"🔁 Target {target} is flapping ({count} failures in the last hour)")
        elif count < FLAPPING_THRESHOLD:
            self._flapping.discard(target)

    def get_error_summary(self) -> dict[str, Any]:
        """Totals, last-hour counts and worst targets for each category."""
        with self.lock:
            now = time.time()
            runtime_hours = (now - self.start_time) / 3600
            summary = {}
            for error_type, entries in self.errors.items():
                if not entries:
                    continue
                targets = Counter(
                    str(e["context"]["target"]) for e in entries if e["context"].get("target")
                )
                summary[error_type] = {
                    "total_count": len(entries),
                    "recent_count": sum(
                        1 for e in entries if now - e["timestamp"] < RECENT_WINDOW_SECONDS
                    ),
                    "rate_per_hour": len(entries) / max(runtime_hours, 1),
                    "top_targets": targets.most_common(3),
                    "last_occurrence": entries[-1],
                }
            return summary

    def log_summary_report(self) -> None:
        summary = self.get_error_summary()
        if not summary:
            logging.info("No errors recorded in current session")
            return

        logging.warning("🚨 ERROR SUMMARY REPORT")
        for error_type, stats in summary.items():
            targets = ", ".join(f"{name}={n}" for name, n in stats["top_targets"]) or "-"
            logging.warning(
                f"  {error_type}: {stats['total_count']} total, "
                f"{stats['recent_count']} in last hour, "
                f"{stats['rate_per_hour']:.1f}/hour, targets: {targets}"
            )
            logging.warning(f"    Last: {stats['last_occurrence']['message']}")


# Global error aggregator instance
error_aggregator = ErrorAggregator()


def log_structured_error(
    error_type: str,
    message: str,
    exception: BaseException | None = None,
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log an error as one ``[CATEGORY] message | Exception | Context`` line.

    Args:
        error_type: Category of the error (e.g., 'dial', 'network', 'protocol')
        message: Descriptive error message
        exception: The exception that occurred (optional)
        context: Additional context data; a ``target`` key feeds the per-target tally
        level: Logging level (default: ERROR)
    """
    parts = [f"[{error_type.upper()}] {message}"]
    if exception is not None:
        parts.append(f"Exception: {type(exception).__name__}: {exception}")
    if context:
        parts.append("Context: " + " ".join(f"{k}={v}" for k, v in context.items()))

    logging.log(level, " | ".join(parts))
    error_aggregator.record_error(error_type, message, context)


class LoggerConfigurator:
    """Installs the colored root handler and the error summary reporting.

    ``DEBUG=true`` (or ``1``/``yes``) in the environment selects DEBUG level.
    """

    def __init__(self, config=None):
        """
        Args:
            config: Optional dict; ``report_interval`` sets the periodic error
                summary interval in seconds (0 disables it).
        """
        self.config = config or {}
        self._stop_reporting = threading.Event()

    def configure(self):
        debug_env = os.environ.get("DEBUG", "").lower()
        log_level = logging.DEBUG if debug_env in ("true", "1", "yes") else logging.INFO

        formatter = colorlog.ColoredFormatter(
            "%(asctime)s %(log_color)s%(levelname)-8s%(reset)s %(message_log_color)s%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "magenta",
            },
            secondary_log_colors={"message": {"ERROR": "red", "CRITICAL": "magenta"}},
            reset=True,
        )
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)

        root_logger = logging.getLogger()
        root_logger.handlers = [handler]
        root_logger.setLevel(log_level)

        # library chatter is noise at DEBUG
        for name in ("aiohttp", "asyncio", "watchdog"):
            logging.getLogger(name).setLevel(logging.INFO)

        interval = float(self.config.get("report_interval", 6 * 3600))
        if interval > 0:
            self._setup_periodic_reporting(interval)

        atexit.register(self._log_final_error_summary)

    def stop(self) -> None:
        self._stop_reporting.set()

    def _setup_periodic_reporting(self, interval: float):
        def periodic_report():
            while not self._stop_reporting.wait(interval):
                error_aggregator.log_summary_report()

        threading.Thread(target=periodic_report, name="error-report", daemon=True).start()

    def _log_final_error_summary(self):
        self.stop()
        logging.info("📊 Final error summary before shutdown:")
        error_aggregator.log_summary_report()
