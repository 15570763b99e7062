"""Cooperative cancellation for long-running request pipelines."""

import asyncio

from kasifesyen.errors import Aborted


class CancellationToken:
    """Flag shared between a request handler and the pipeline it drives.

    The pipeline polls the token at stage boundaries; cancelling never
    interrupts a stage that is already running.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        """Raise Aborted if cancellation was requested before entering stage."""
        if self.cancelled:
            raise Aborted(stage)
