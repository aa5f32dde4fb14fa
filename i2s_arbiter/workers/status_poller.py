"""
Status poller: background task that drives the arbiter's poll cycle.

Design
------
- Runs one ``Arbiter.poll_all_services()`` immediately, then one every
  ``poll_interval`` seconds (``poll_interval_ms`` in the configuration).
- A cycle holds the arbiter's exclusive lock, so it waits behind any
  in-flight activate/lock request and vice versa.
- Device failures are handled inside the cycle.  Anything unexpected that
  escapes it is logged and the loop backs off exponentially (2 s → 60 s).
- Started and cancelled by ``Arbiter.start_polling()`` / ``stop_polling()``.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from i2s_arbiter.arbiter import Arbiter

logger = logging.getLogger(__name__)

_BACKOFF_BASE: float = 2.0
_BACKOFF_MAX: float = 60.0


async def run_status_poller(arbiter: "Arbiter") -> None:
    """Long-running coroutine: poll every managed service until cancelled."""
    poll_interval = arbiter.poll_interval
    logger.info("Status poller starting (interval=%.1fs)", poll_interval)
    backoff: float = _BACKOFF_BASE

    while True:
        try:
            await arbiter.poll_all_services()
            backoff = _BACKOFF_BASE
            await asyncio.sleep(poll_interval)

        except asyncio.CancelledError:
            logger.info("Status poller cancelled, shutting down")
            break

        except Exception as exc:
            logger.error(
                "Poll cycle failed: %s (retrying in %.0fs)", exc, backoff, exc_info=True
            )
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, _BACKOFF_MAX)

    logger.info("Status poller stopped")
