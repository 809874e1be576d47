from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel

from viera_controller.logging_abstraction import VieraLogger, get_logger

if TYPE_CHECKING:
    from viera_controller.queue.messages import OutputMessage

__all__ = ["LoggingSink", "MessageSink"]


class MessageSink(Protocol):
    """Receiver of normalized connector output."""

    def publish(self, message: OutputMessage) -> None: ...


class LoggingSink:
    """Default sink: every message is logged with its fields as structured context."""

    lp: str = "LoggingSink:"

    def __init__(self, logger: VieraLogger | None = None) -> None:
        self.logger = logger or get_logger(__name__)
        self.published: int = 0

    def publish(self, message: OutputMessage) -> None:
        self.published += 1
        self.logger.info(
            "%s %s",
            self.lp,
            message.message_type,
            extra={k: _plain(v) for k, v in asdict(message).items()},
        )


def _plain(value: object) -> object:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, tuple | list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if value is None or isinstance(value, bool | int | float):
        return value
    return str(value)
