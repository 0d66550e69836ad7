"""Feeding foreground/background transitions into the controller"""
import asyncio
import logging
import sys
import threading
from typing import AsyncIterator, Optional

from focus_shield.models.events import VisibilitySignal

logger = logging.getLogger(__name__)

_ALIASES = {
    "h": VisibilitySignal.HIDDEN,
    "hide": VisibilitySignal.HIDDEN,
    "hidden": VisibilitySignal.HIDDEN,
    "v": VisibilitySignal.VISIBLE,
    "show": VisibilitySignal.VISIBLE,
    "visible": VisibilitySignal.VISIBLE,
}

def parse_signal(text: str) -> Optional[VisibilitySignal]:
    """Map a line of user input to a signal, None if it isn't one"""
    return _ALIASES.get(text.strip().lower())

async def stdin_lines() -> AsyncIterator[str]:
    """Yield lines from stdin without blocking the event loop.

    A daemon thread does the blocking reads so a pending readline never
    keeps the process alive after the session ends.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def reader():
        try:
            for line in sys.stdin:
                loop.call_soon_threadsafe(queue.put_nowait, line)
            loop.call_soon_threadsafe(queue.put_nowait, None)
        except RuntimeError:
            pass  # Loop already closed

    threading.Thread(target=reader, name="stdin-reader", daemon=True).start()
    while (line := await queue.get()) is not None:
        yield line

async def pump_visibility(signals: AsyncIterator[VisibilitySignal], controller) -> int:
    """Forward every signal from the stream while a session is active.

    Returns the number of signals delivered.
    """
    delivered = 0
    async for signal in signals:
        if not controller.is_active:
            logger.debug(f"Dropping visibility signal '{signal.value}', no active session")
            continue
        controller.handle_visibility(signal)
        delivered += 1
    return delivered
