"""Header parse results, response packets and the message handler interface."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass


class HeaderStatus(enum.Enum):
    """Outcome of parsing a message header."""

    OK = 0
    ERROR = 1
    TIMEOUT = 2


@dataclass(frozen=True)
class HeaderResult:
    """Body length announced by a header, and whether parsing succeeded."""

    length: int
    status: HeaderStatus = HeaderStatus.OK


@dataclass(frozen=True)
class ResponsePacket:
    """Bytes a handler produced in answer to a received message."""

    packet: bytes = b""

    def __len__(self) -> int:
        return len(self.packet)

    def __bytes__(self) -> bytes:
        return bytes(self.packet)


ResponseCallback = Callable[[ResponsePacket], None]


class MessageHandler(ABC):
    """Turns received headers and bodies into responses."""

    @abstractmethod
    def parse_message(self, header: bytes, body: bytes, callback: ResponseCallback) -> None:
        """Handle one message and pass the response to ``callback``."""

    @abstractmethod
    def parse_header(self, buffer: bytes) -> HeaderResult:
        """Return the body length announced by ``buffer``."""


_EMPTY_RESPONSE = ResponsePacket(b"")


class NOPMessageHandler(MessageHandler):
    """Handler that ignores everything: empty responses, zero-length bodies."""

    def parse_message(self, header: bytes, body: bytes, callback: ResponseCallback) -> None:
        callback(_EMPTY_RESPONSE)

    def parse_header(self, buffer: bytes) -> HeaderResult:
        return HeaderResult(0, HeaderStatus.OK)