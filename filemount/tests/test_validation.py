from __future__ import annotations

import pytest

from filemount.features.mounting import presence_of, size_of
from filemount.features.mounting.validation import ValidationErrors
from filemount.features.shared.messages import MessageResolver

from .models import Event


def test_validation_errors_collect_resolved_messages():
    errors = ValidationErrors(MessageResolver())
    errors.add("image", "blank")
    errors.add("image", "too_long", count=10)
    errors.add("name_field", "is odd")

    assert bool(errors) is True
    assert len(errors) == 3
    assert "image" in errors
    assert "foo" not in errors
    assert errors["image"] == ["can't be blank", "is too long (maximum is 10)"]
    assert errors["foo"] == []
    assert errors.full_messages == [
        "Image can't be blank",
        "Image is too long (maximum is 10)",
        "Name field is odd",
    ]
    assert errors.as_dict() == {
        "image": ["can't be blank", "is too long (maximum is 10)"],
        "name_field": ["is odd"],
    }

    errors.clear()
    assert bool(errors) is False


def test_presence_of_accepts_cached_file(monkeypatch, stub_file):
    monkeypatch.setattr(Event, "__validators__", (presence_of("image"),))
    event = Event(name="jonas")
    event.image = stub_file("test.jpeg")

    assert event.is_valid() is True


def test_presence_of_rejects_missing_file(monkeypatch):
    monkeypatch.setattr(Event, "__validators__", (presence_of("image"),))
    event = Event(name="jonas")

    assert event.is_valid() is False
    assert event.errors["image"] == ["can't be blank"]


def test_presence_of_plain_attribute(monkeypatch):
    monkeypatch.setattr(Event, "__validators__", (presence_of("name"),))

    assert Event(name="  ").is_valid() is False
    assert Event(name="jonas").is_valid() is True


def test_size_of_accepts_small_file(monkeypatch, stub_file):
    monkeypatch.setattr(Event, "__validators__", (size_of("image", maximum=40),))
    event = Event(name="jonas")
    event.image = stub_file("test.jpeg")

    assert event.is_valid() is True


def test_size_of_rejects_large_file(monkeypatch, stub_file):
    monkeypatch.setattr(Event, "__validators__", (size_of("image", maximum=40),))
    event = Event(name="jonas")
    event.image = stub_file("bork.txt")

    assert event.is_valid() is False
    assert event.errors["image"] == ["is too long (maximum is 40)"]


def test_size_of_minimum_and_blank_values(monkeypatch):
    monkeypatch.setattr(Event, "__validators__", (size_of("name", minimum=3),))

    assert Event(name="jo").is_valid() is False
    assert Event(name="jonas").is_valid() is True
    assert Event().is_valid() is True


def test_size_of_requires_a_bound():
    with pytest.raises(ValueError):
        size_of("image")
