"""Cooperative cancellation for running executions.

The token is only observed at phase boundaries, after a remote call
returns, and between recovery attempts. A remote call already in flight
is never interrupted.
"""

import threading


class CancellationToken:

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()
