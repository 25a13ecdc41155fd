from __future__ import annotations

from enum import IntEnum, StrEnum


class OutboxStatus(IntEnum):
    PENDING = 0
    PROCESSED = 1
    FAILED = 2


class HandlerFailureMode(StrEnum):
    STOP_ON_FIRST = "stop_on_first"
    INVOKE_ALL = "invoke_all"
