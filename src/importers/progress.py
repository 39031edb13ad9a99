from __future__ import annotations

import logging
import queue
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

logger = logging.getLogger(__name__)


class ProgressListener(Protocol):
    """Receives import notifications; called from the thread running the import."""

    def on_progress(self, message: str) -> None:
        ...

    def on_task_complete(self, label: str, total: int) -> None:
        ...

    def on_error(self, error: Exception) -> None:
        ...


class LoggingProgressListener:
    def on_progress(self, message: str) -> None:
        logger.info(message)

    def on_task_complete(self, label: str, total: int) -> None:
        logger.info("%s: %d imported", label, total)

    def on_error(self, error: Exception) -> None:
        logger.error("Import failed: %s", error)


class ProgressEventType(StrEnum):
    PROGRESS = "PROGRESS"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ProgressEvent:
    type: ProgressEventType
    message: str = ""
    label: str | None = None
    total: int | None = None
    error: Exception | None = None


class QueueProgressListener:
    """Posts events on a queue so a UI thread can consume them on its own schedule."""

    def __init__(self, events: queue.Queue[ProgressEvent] | None = None) -> None:
        self.events: queue.Queue[ProgressEvent] = events if events is not None else queue.Queue()

    def on_progress(self, message: str) -> None:
        self.events.put_nowait(ProgressEvent(type=ProgressEventType.PROGRESS, message=message))

    def on_task_complete(self, label: str, total: int) -> None:
        self.events.put_nowait(
            ProgressEvent(type=ProgressEventType.COMPLETE, message=f"{label}: {total}", label=label, total=total)
        )

    def on_error(self, error: Exception) -> None:
        self.events.put_nowait(ProgressEvent(type=ProgressEventType.ERROR, message=str(error), error=error))

    def drain(self) -> list[ProgressEvent]:
        drained: list[ProgressEvent] = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained
