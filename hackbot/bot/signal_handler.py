"""SignalHandler - handles system signals and shutdown coordination."""

import logging
import signal


class SignalHandler:
    """Turns SIGINT/SIGTERM into a flag polled by the manager loop."""

    def __init__(self) -> None:
        self.shutdown_initiated = False

    def stop(self) -> None:
        """Initiate shutdown of all clients."""
        self.shutdown_initiated = True

    def setup_signal_handlers(self) -> None:  # pragma: no cover
        """Set up signal handlers for graceful shutdown on SIGINT/SIGTERM."""

        def handler(signum: int, _frame: object | None) -> None:
            if self.shutdown_initiated:
                return
            logging.warning(f"🛑 Signal received - initiating shutdown (signal={signum})")
            self.shutdown_initiated = True

        signal.signal(signal.SIGINT, handler)
        signal.signal(signal.SIGTERM, handler)
