# fitai_pipeline/background/signals.py
"""
SIGINT/SIGTERM handling for the server process.

The first signal runs the lifecycle shutdown; repeats while it is running
are logged and ignored.
"""

import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def setup_signal_handlers(shutdown: Callable[[], Awaitable[None]]) -> None:
    """
    Route SIGINT/SIGTERM to the lifecycle shutdown coroutine.

    Uses loop.add_signal_handler where supported; on Windows
    (ProactorEventLoop) it falls back to signal.signal() and hops back onto
    the loop thread.
    """
    loop = asyncio.get_running_loop()
    triggered = False

    async def _shutdown(sig_name: str) -> None:
        logger.info(f"Received {sig_name}, shutting down gracefully...")
        await shutdown()
        logger.info("Shutdown complete")

    def _on_signal(sig: signal.Signals) -> None:
        nonlocal triggered
        if triggered:
            logger.warning(f"Received {sig.name} again; shutdown already in progress")
            return
        triggered = True
        loop.create_task(_shutdown(sig.name))

    try:
        for sig in _SIGNALS:
            loop.add_signal_handler(sig, _on_signal, sig)
        logger.info("Signal handlers registered (loop-based)")

    except NotImplementedError:

        def _fallback(sig_num, frame) -> None:
            loop.call_soon_threadsafe(_on_signal, signal.Signals(sig_num))

        for sig in _SIGNALS:
            signal.signal(sig, _fallback)
        logger.info("Signal handlers registered (signal.signal fallback)")
