"""
Bitcoin Drive Storage - Upload Progress Events

Uploads report progress as a finite, strictly ordered sequence of
ProgressEvent values delivered synchronously to a caller-supplied sink. A
sink is any callable taking one event; ProgressLog collects events in memory
and ProgressQueue hands them to another thread as a blocking iterator.
"""

import logging
import queue
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional


class ProgressStatus(str, Enum):
    """Upload progress states."""
    PREPARING = "preparing"
    UPLOADING = "uploading"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_STATUSES = (ProgressStatus.COMPLETE, ProgressStatus.ERROR)


@dataclass(frozen=True)
class ProgressEvent:
    """One step of an upload, in the order it happened."""
    status: ProgressStatus
    message: str
    result: Optional[Any] = None
    error: Optional[BaseException] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


ProgressSink = Callable[[ProgressEvent], None]


class ProgressEmitter:
    """Delivers events to an optional sink; a missing sink drops them."""

    def __init__(self, sink: Optional[ProgressSink] = None):
        self.sink = sink
        self.logger = logging.getLogger(__name__)

    def emit(self, status: ProgressStatus, message: str,
             result: Optional[Any] = None, error: Optional[BaseException] = None) -> None:
        event = ProgressEvent(status=status, message=message, result=result, error=error)
        self.logger.debug(f"{status.value}: {message}")
        if self.sink is not None:
            self.sink(event)

    def preparing(self, message: str) -> None:
        self.emit(ProgressStatus.PREPARING, message)

    def uploading(self, message: str) -> None:
        self.emit(ProgressStatus.UPLOADING, message)

    def complete(self, message: str, result: Any) -> None:
        self.emit(ProgressStatus.COMPLETE, message, result=result)

    def error(self, error: BaseException) -> None:
        self.emit(ProgressStatus.ERROR, str(error), error=error)


class ProgressLog:
    """Sink that records every event."""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def statuses(self) -> List[ProgressStatus]:
        return [event.status for event in self.events]

    @property
    def last(self) -> Optional[ProgressEvent]:
        return self.events[-1] if self.events else None


class ProgressQueue:
    """Sink backed by a queue, consumable from another thread."""

    def __init__(self, maxsize: int = 0):
        self._queue: "queue.Queue[ProgressEvent]" = queue.Queue(maxsize=maxsize)

    def __call__(self, event: ProgressEvent) -> None:
        self._queue.put(event)

    def iter_events(self, timeout: Optional[float] = None) -> Iterator[ProgressEvent]:
        """
        Yield events until a terminal event has been yielded.

        Args:
            timeout: Seconds to wait for each event (None blocks)

        Raises:
            queue.Empty: No event arrived within the timeout
        """
        while True:
            event = self._queue.get(timeout=timeout)
            yield event
            if event.is_terminal:
                return
