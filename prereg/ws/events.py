"""Live feed message types."""

from enum import Enum


class EventType(str, Enum):
    # Server -> client
    REGISTRATION_SNAPSHOT = "REGISTRATION_SNAPSHOT"
    REGISTRATION_COUNT = "REGISTRATION_COUNT"
    PONG = "PONG"

    # Client -> server
    PING = "PING"
