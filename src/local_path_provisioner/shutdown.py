# src/local_path_provisioner/shutdown.py
"""
One-shot shutdown signal driven by SIGINT/SIGTERM.
"""
import asyncio
import logging
import signal
from typing import Optional, Tuple

logger = logging.getLogger("local_path_provisioner")

SHUTDOWN_SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class ShutdownSignal:
    """
    Read-only view of the shutdown latch.

    Consumers can poll or await it; only the owning ShutdownCoordinator can fire it.
    """

    def __init__(self, event: asyncio.Event):
        self._event = event

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    async def wait_for(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds. Returns True once the signal has fired."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self._event.is_set()


class ShutdownCoordinator:
    """Installs the interrupt handlers and owns the single ShutdownSignal."""

    def __init__(self, signals: Tuple[signal.Signals, ...] = SHUTDOWN_SIGNALS):
        self._signals = signals
        self._event = asyncio.Event()
        self._signal = ShutdownSignal(self._event)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.received: Optional[signal.Signals] = None

    @property
    def shutdown_signal(self) -> ShutdownSignal:
        return self._signal

    @property
    def armed(self) -> bool:
        return self._loop is not None

    def arm(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> ShutdownSignal:
        """Register the handlers on the running loop. Must happen before any blocking work."""
        if self._loop is not None:
            return self._signal
        self._loop = loop or asyncio.get_running_loop()
        for sig in self._signals:
            self._loop.add_signal_handler(sig, lambda s=sig: self._handle(s))
        logger.debug(f"Shutdown handlers installed for {', '.join(s.name for s in self._signals)}")
        return self._signal

    def disarm(self) -> None:
        if self._loop is None:
            return
        for sig in self._signals:
            self._loop.remove_signal_handler(sig)
        self._loop = None

    def _handle(self, sig: signal.Signals) -> None:
        if self._event.is_set():
            logger.debug(f"Received {sig.name} after shutdown was already requested, ignoring")
            return
        self.received = sig
        logger.info(f"Receive {sig.name} to exit")
        self._event.set()
