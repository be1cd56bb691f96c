from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional

from bridge.errors import BridgeError, RequestTimeout
from shared.frames import InboundFrame
from shared.log import get_logger

logger = get_logger(__name__)


@dataclass
class PendingRequest:
    correlation_id: str
    message_type: str
    future: "asyncio.Future[InboundFrame]"
    timer: asyncio.TimerHandle


class CorrelationTable:
    """
    Pending requests keyed by correlation id.

    Every mutation happens on the event loop that dispatches inbound frames,
    so registering a request and matching its response never race. Each
    entry leaves the table exactly once: on a matching response, on its
    deadline, on a forced failure, or when the awaiting caller is cancelled.
    """

    def __init__(self, timeout: float = 30.0):
        """
        Args:
            timeout: Seconds a request may stay pending (default 30s)
        """
        self.timeout = timeout
        self._pending: Dict[str, PendingRequest] = {}

    def register(self, correlation_id: str, message_type: str) -> "asyncio.Future[InboundFrame]":
        """
        Add a pending request and arm its deadline.

        Returns:
            Future resolved with the matching inbound frame
        """
        if correlation_id in self._pending:
            raise ValueError(f"Correlation id already pending: {correlation_id}")

        loop = asyncio.get_running_loop()
        future: asyncio.Future[InboundFrame] = loop.create_future()
        timer = loop.call_later(self.timeout, self._expire, correlation_id)
        self._pending[correlation_id] = PendingRequest(correlation_id, message_type, future, timer)
        future.add_done_callback(lambda _f: self._forget(correlation_id, _f))
        return future

    def resolve(self, correlation_id: Optional[str], frame: InboundFrame) -> bool:
        """
        Deliver a frame to the request waiting on its correlation id.

        Returns:
            True if a pending request consumed the frame, False otherwise
        """
        if not correlation_id:
            return False
        entry = self._pending.pop(correlation_id, None)
        if entry is None:
            return False
        entry.timer.cancel()
        if not entry.future.done():
            entry.future.set_result(frame)
        logger.debug("Response matched", extra={"corr": correlation_id, "msg_type": frame.message_type})
        return True

    def fail_all(self, exc: BridgeError) -> int:
        """
        Fail every pending request with the same error and empty the table.

        Returns:
            Number of requests failed
        """
        entries = list(self._pending.values())
        self._pending.clear()
        for entry in entries:
            entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(exc)
        if entries:
            logger.info("Failed %d pending request(s): %s", len(entries), exc)
        return len(entries)

    def discard(self, correlation_id: str) -> None:
        """Drop a pending request whose frame could not be sent"""
        entry = self._pending.pop(correlation_id, None)
        if entry is None:
            return
        entry.timer.cancel()
        if not entry.future.done():
            entry.future.cancel()

    def _expire(self, correlation_id: str) -> None:
        entry = self._pending.pop(correlation_id, None)
        if entry is None:
            return
        logger.warning("Request timed out after %gs", self.timeout,
                       extra={"corr": correlation_id, "msg_type": entry.message_type})
        if not entry.future.done():
            entry.future.set_exception(RequestTimeout(entry.message_type, self.timeout))

    def _forget(self, correlation_id: str, future: asyncio.Future) -> None:
        # Caller cancelled the await; the entry must not linger until its deadline
        entry = self._pending.get(correlation_id)
        if entry is not None and entry.future is future:
            del self._pending[correlation_id]
            entry.timer.cancel()

    def __contains__(self, correlation_id: object) -> bool:
        return correlation_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)
