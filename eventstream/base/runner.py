# ==============================================================================
# Base Runner
# ==============================================================================
"""
Process lifecycle shared by long-running commands.

A runner installs its signal handlers for the duration of run() and puts the
previous handlers back afterwards, so a runner driven from tests or an
embedding process leaves global signal state as it found it.

Shutdown is two-stage:
    first SIGTERM/SIGINT  -> cooperative stop via _on_shutdown_requested()
    second signal         -> KeyboardInterrupt, abandoning the current batch

_cleanup() runs in every case.
"""

import logging
import signal
from abc import ABC, abstractmethod
from typing import final

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class BaseRunner(ABC):
    """Signal-aware lifecycle around a runner-specific _run()."""

    # Third-party loggers held at WARNING regardless of the configured level
    quiet_loggers: tuple[str, ...] = ("urllib3",)

    def __init__(self, log_level: str = "INFO"):
        self._shutdown_requested = False
        self._log_level = log_level
        self._previous_handlers: dict[int, object] = {}

    @final
    def run(self) -> None:
        """Configure logging, install handlers, run, and always clean up."""
        self._configure_logging()
        self._install_signal_handlers()
        try:
            self._run()
        except KeyboardInterrupt:
            logger.warning("Runner interrupted before a clean stop")
        finally:
            try:
                self._cleanup()
            finally:
                self._restore_signal_handlers()

    @abstractmethod
    def _run(self) -> None:
        """Runner-specific work; should return once shutdown_requested is set."""
        ...

    def _configure_logging(self) -> None:
        logging.basicConfig(level=self._log_level.upper(), format=LOG_FORMAT)
        for name in self.quiet_loggers:
            logging.getLogger(name).setLevel(logging.WARNING)

    def _install_signal_handlers(self) -> None:
        for signum in SHUTDOWN_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        while self._previous_handlers:
            signum, handler = self._previous_handlers.popitem()
            signal.signal(signum, handler)

    def _handle_signal(self, signum, frame) -> None:
        if self._shutdown_requested:
            logger.warning("Received signal %d again, forcing exit", signum)
            raise KeyboardInterrupt
        logger.info("Received signal %d, finishing current batch before exit", signum)
        self._shutdown_requested = True
        self._on_shutdown_requested()

    def _on_shutdown_requested(self) -> None:
        """Hook: ask the running loop to stop. Called once, from the handler."""

    def _cleanup(self) -> None:
        """Hook: release resources after _run() returns or is interrupted."""

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested
