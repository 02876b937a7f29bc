from __future__ import annotations

from typing import Any


class MountingDomainError(Exception):
    """Base exception for mounted attachment operations."""


class RecordInvalidError(MountingDomainError):
    def __init__(self, record: Any, messages: list[str] | None = None):
        self.record = record
        self.messages = messages or []
        detail = "; ".join(self.messages) or "validation failed"
        super().__init__(f"{type(record).__name__} is invalid: {detail}")


class MountConfigurationError(MountingDomainError):
    pass
