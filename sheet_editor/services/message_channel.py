from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from ..logging.error_log import ErrorLogBuffer, report_contained_error
from ..models.error_record import SUBSCRIBER_ERROR

"""Typed message channel between the core, plugins and the host UI.

Each message class is bound to exactly one topic; subscribers register per
topic and receive only messages of that topic's class. Delivery is
synchronous, in subscription order. A failing subscriber is logged and the
remaining subscribers still receive the message.
"""

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    STATUS = "status"
    VALIDATION = "validation"
    DOCUMENT = "document"
    COMMAND = "command"


@dataclass(frozen=True)
class StatusMessage:
    topic: ClassVar[Topic] = Topic.STATUS
    text: str


@dataclass(frozen=True)
class ValidationMessage:
    """An edit failed validation (policy tells whether it was blocked)."""
    topic: ClassVar[Topic] = Topic.VALIDATION
    sheet: str
    row: int
    col: int
    value: Any
    message: str
    policy: str
    blocked: bool


@dataclass(frozen=True)
class DocumentMessage:
    """Document lifecycle event: sheet-created, sheet-renamed, loaded, saved ..."""
    topic: ClassVar[Topic] = Topic.DOCUMENT
    event: str
    sheet: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommandMessage:
    """A UI command (menu item / toolbar button) addressed to plugins."""
    topic: ClassVar[Topic] = Topic.COMMAND
    command: str
    args: dict[str, Any] = field(default_factory=dict)


Message = StatusMessage | ValidationMessage | DocumentMessage | CommandMessage
Subscriber = Callable[[Any], None]


class MessageChannel:
    def __init__(self, error_buffer: ErrorLogBuffer | None = None) -> None:
        self._subscribers: dict[Topic, list[Subscriber]] = defaultdict(list)
        self._error_buffer = error_buffer

    def subscribe(self, topic: Topic | str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for ``topic``; returns a function that unsubscribes it."""
        t = Topic(topic)
        self._subscribers[t].append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(t, callback)

        return _unsubscribe

    def unsubscribe(self, topic: Topic | str, callback: Subscriber) -> bool:
        subs = self._subscribers.get(Topic(topic), [])
        if callback in subs:
            subs.remove(callback)
            return True
        return False

    def subscriber_count(self, topic: Topic | str) -> int:
        return len(self._subscribers.get(Topic(topic), []))

    def publish(self, message: Message) -> int:
        """Deliver ``message`` to its topic's subscribers; returns how many succeeded."""
        delivered = 0
        for callback in list(self._subscribers.get(message.topic, [])):
            try:
                callback(message)
                delivered += 1
            except Exception as e:
                report_contained_error(
                    logger,
                    self._error_buffer,
                    component="message-channel",
                    source=message.topic.value,
                    error_type=SUBSCRIBER_ERROR,
                    error=e,
                    message=f"subscriber failed on topic {message.topic.value}",
                )
        return delivered

    def status(self, text: str) -> None:
        self.publish(StatusMessage(text))
