from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Final, Literal

from viera_controller import metrics
from viera_controller.logging_abstraction import VieraLogger, get_logger
from viera_controller.queue.messages import Message

__all__ = ["EMPTY", "Empty", "Queue"]


class Empty(Enum):
    EMPTY = "empty"


# Returned by ``Queue.get`` when nothing is waiting
EMPTY: Final = Empty.EMPTY


class Queue:
    """Unbounded FIFO of connector messages.

    ``append`` never blocks or fails; ``get`` never waits.
    """

    lp: str = "Queue:"

    def __init__(self, logger: VieraLogger | None = None) -> None:
        self.logger = logger or get_logger(__name__)
        self._queue: deque[Message] = deque()

    def append(self, message: Message) -> None:
        self._queue.append(message)
        metrics.record_queue_depth(len(self._queue))
        self.logger.debug(
            "%s Appended new message into messages queue",
            self.lp,
            extra={"message_type": message.message_type, "depth": len(self._queue)},
        )

    def get(self) -> Message | Literal[Empty.EMPTY]:
        if not self._queue:
            return EMPTY
        message = self._queue.popleft()
        metrics.record_queue_depth(len(self._queue))
        return message

    def is_empty(self) -> bool:
        return not self._queue

    def __len__(self) -> int:
        return len(self._queue)
