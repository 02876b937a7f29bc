from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from filemount.features.shared.messages import MessageResolver
from filemount.features.uploads import Uploader

Validator = Callable[[Any], None]


class ValidationErrors:
    """Messages collected for one record, keyed by attribute name."""

    def __init__(self, resolver: MessageResolver):
        self._resolver = resolver
        self._messages: dict[str, list[str]] = {}

    def add(self, attribute: str, message: str, **params: object) -> None:
        resolved = self._resolver.resolve(message, **params)
        self._messages.setdefault(attribute, []).append(resolved)

    def clear(self) -> None:
        self._messages.clear()

    def __getitem__(self, attribute: str) -> list[str]:
        return list(self._messages.get(attribute, []))

    def __contains__(self, attribute: object) -> bool:
        return bool(self._messages.get(attribute))  # type: ignore[arg-type]

    def __bool__(self) -> bool:
        return any(self._messages.values())

    def __len__(self) -> int:
        return sum(len(items) for items in self._messages.values())

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for attribute, messages in self._messages.items():
            for message in messages:
                yield attribute, message

    @property
    def full_messages(self) -> list[str]:
        return [f"{attribute.replace('_', ' ').capitalize()} {message}" for attribute, message in self]

    def as_dict(self) -> dict[str, list[str]]:
        return {attribute: list(messages) for attribute, messages in self._messages.items() if messages}


def _measure(value: Any) -> int | None:
    if isinstance(value, Uploader):
        return None if value.blank else value.size
    if value is None:
        return None
    return len(value)


def _is_blank(value: Any) -> bool:
    if isinstance(value, Uploader):
        return value.blank
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def presence_of(attribute: str) -> Validator:
    def _validate(record: Any) -> None:
        if _is_blank(getattr(record, attribute)):
            record.errors.add(attribute, "blank")

    _validate.__name__ = f"validate_presence_of_{attribute}"
    return _validate


def size_of(attribute: str, *, maximum: int | None = None, minimum: int | None = None) -> Validator:
    if maximum is None and minimum is None:
        raise ValueError("size_of needs a maximum or a minimum.")

    def _validate(record: Any) -> None:
        size = _measure(getattr(record, attribute))
        if size is None:
            return
        if maximum is not None and size > maximum:
            record.errors.add(attribute, "too_long", count=maximum)
        if minimum is not None and size < minimum:
            record.errors.add(attribute, "too_short", count=minimum)

    _validate.__name__ = f"validate_size_of_{attribute}"
    return _validate


__all__ = [
    "ValidationErrors",
    "Validator",
    "presence_of",
    "size_of",
]
