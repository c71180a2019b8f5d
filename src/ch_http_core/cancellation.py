"""
Cancellation tokens for in-flight requests.

A CancellationToken is handed to an operation by the caller. Firing
it aborts the exchange that is currently listening on it; once an
exchange has settled and cleaned up it no longer listens, so firing
the token afterwards does nothing to it.
"""

import logging
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], Any]


class CancellationToken:
    """One-shot cancellation signal with removable callbacks."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Optional[str] = None
        self._callbacks: List[Callback] = []

    def cancel(self, reason: Optional[str] = None) -> None:
        """
        Fire the token.

        Every registered callback runs exactly once, in registration
        order. Calling cancel() again is a no-op.
        """
        if self._cancelled:
            return

        self._cancelled = True
        self._reason = reason
        callbacks, self._callbacks = self._callbacks, []

        logger.debug(f"Cancellation requested, notifying {len(callbacks)} listener(s)")
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callback) -> None:
        """Register a callback to run when the token fires."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callback) -> None:
        """Unregister a callback. Unknown callbacks are ignored."""
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    @property
    def cancelled(self) -> bool:
        """Check if the token has fired."""
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        """Reason passed to cancel(), if any."""
        return self._reason

    @property
    def callback_count(self) -> int:
        """Number of callbacks currently registered."""
        return len(self._callbacks)
